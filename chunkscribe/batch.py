"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Bounded, batch-serialized transcription of chunk files.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from .errors import ChunkTranscriptionFailed, TranscriptionError
from .models import ChunkResult, ChunkSpec, ChunkStatus
from .transcript import HallucinationPredicate, filter_chunk_text, is_likely_hallucination

logger = logging.getLogger(__name__)

TranscribeChunk = Callable[[ChunkSpec], Awaitable[str]]

FAIL_FAST = "fail_fast"
BEST_EFFORT = "best_effort"


class BatchExecutor:
    """Transcribe chunks in consecutive batches of at most ``max_concurrent``.

    Every chunk of a batch runs concurrently and the next batch starts only once the
    whole batch has settled. Results come back ordered by chunk index no matter which
    task finished first.
    """

    def __init__(
        self,
        transcribe: TranscribeChunk,
        *,
        max_concurrent: int = 4,
        failure_policy: str = FAIL_FAST,
        is_hallucination: HallucinationPredicate = is_likely_hallucination,
        request_id: str = "-",
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if failure_policy not in (FAIL_FAST, BEST_EFFORT):
            raise ValueError(f"Unknown failure policy: {failure_policy}")
        self.transcribe = transcribe
        self.max_concurrent = max_concurrent
        self.failure_policy = failure_policy
        self.is_hallucination = is_hallucination
        self.request_id = request_id

    async def _run_chunk(self, chunk: ChunkSpec) -> ChunkResult:
        try:
            text = await self.transcribe(chunk)
        except (TranscriptionError, OSError) as exc:
            logger.error("[%s] Chunk %d failed: %r", self.request_id, chunk.index, exc)
            return ChunkResult(index=chunk.index, text="", status=ChunkStatus.FAILED, error=exc)
        return filter_chunk_text(chunk.index, text, self.is_hallucination)

    def _failure(self, result: ChunkResult) -> ChunkTranscriptionFailed:
        failure = ChunkTranscriptionFailed(result.index, str(result.error))
        failure.status_code = getattr(result.error, "status_code", failure.status_code)
        failure.__cause__ = result.error
        return failure

    async def run(self, chunks: Sequence[ChunkSpec]) -> list[ChunkResult]:
        ordered = sorted(chunks, key=lambda chunk: chunk.index)
        total = len(ordered)
        results: list[ChunkResult] = []

        for offset in range(0, total, self.max_concurrent):
            batch = ordered[offset : offset + self.max_concurrent]
            batch_results = await asyncio.gather(*(self._run_chunk(chunk) for chunk in batch))

            failed = [result for result in batch_results if result.status is ChunkStatus.FAILED]
            if failed and self.failure_policy == FAIL_FAST:
                raise self._failure(failed[0])

            results.extend(batch_results)
            logger.info(
                "[%s] Processed chunks %d-%d of %d",
                self.request_id,
                offset + 1,
                offset + len(batch),
                total,
            )

        failed = [result for result in results if result.status is ChunkStatus.FAILED]
        if failed:
            logger.warning(
                "[%s] %d of %d chunks failed and were left out: %s",
                self.request_id,
                len(failed),
                total,
                [result.index for result in failed],
            )
            if len(failed) == total:
                raise self._failure(failed[0])

        return sorted(results, key=lambda result: result.index)
