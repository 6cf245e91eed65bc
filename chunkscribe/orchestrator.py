"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Transcription orchestration: route a file to direct submission, normalization or the
chunked pipeline, and assemble the final transcript.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from .batch import BatchExecutor
from .config import Settings
from .errors import DurationUnknown, RemoteFormatError
from .files import ScratchSpace
from .llm_client import TextGenerationClient
from .media import CANONICAL_EXTENSION, MediaTranscoder
from .models import AudioAsset, ChunkSpec, TranscriptionOutcome, TranscriptionRequest
from .pipeline_config import PipelineConfig, RemoteClientConfig
from .planner import plan_chunks
from .schemas import TranscriptionOptions
from .segmenter import Segmenter
from .transcript import assemble_transcript, filter_chunk_text, make_hallucination_filter
from .transcription_client import SUPPORTED_EXTENSIONS, RemoteTranscriptionClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[RemoteClientConfig], RemoteTranscriptionClient]


class TranscriptionService:
    """Owns one configured pipeline; every call to :meth:`transcribe_file` is independent."""

    def __init__(
        self,
        pipeline: PipelineConfig,
        remote: RemoteClientConfig,
        *,
        transcoder: MediaTranscoder | None = None,
        client_factory: ClientFactory = RemoteTranscriptionClient,
        text_client: TextGenerationClient | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.remote = remote
        self.transcoder = transcoder or MediaTranscoder(
            ffmpeg_binary=pipeline.ffmpeg_binary,
            ffprobe_binary=pipeline.ffprobe_binary,
            sample_rate=pipeline.target_sample_rate,
            channels=pipeline.target_channels,
        )
        self.client_factory = client_factory
        self.text_client = text_client or TextGenerationClient(remote)
        self.is_hallucination = make_hallucination_filter(pipeline.hallucination)
        logger.debug("Pipeline config: %s", pipeline.as_dict())

    @classmethod
    def from_settings(cls, settings: Settings) -> "TranscriptionService":
        return cls(PipelineConfig.from_settings(settings), RemoteClientConfig.from_settings(settings))

    def model_for(self, options: TranscriptionOptions) -> str:
        return self.remote.diarization_model if options.diarize else self.remote.transcription_model

    async def inspect(self, path: str | Path, request_id: str = "-") -> AudioAsset:
        """Probe ``path``; a failed probe yields an asset with unknown duration."""

        try:
            duration = await self.transcoder.probe_duration(path)
        except DurationUnknown as exc:
            logger.warning("[%s] Could not determine audio duration: %s", request_id, exc)
            duration = None
        asset = AudioAsset.from_path(path, duration)
        logger.info(
            "[%s] Audio asset: %s size=%d bytes duration=%s",
            request_id,
            asset.path.name,
            asset.size_bytes,
            f"{duration:.2f}s" if duration is not None else "unknown",
        )
        return asset

    def needs_chunking(self, asset: AudioAsset) -> bool:
        if asset.size_bytes > self.pipeline.payload_ceiling_bytes:
            return True
        limit = self.pipeline.max_direct_duration_seconds
        return bool(limit) and asset.duration is not None and asset.duration > limit

    async def transcribe_file(
        self,
        path: str | Path,
        options: TranscriptionOptions | None = None,
        request_id: str = "-",
    ) -> TranscriptionOutcome:
        started = time.monotonic()
        options = options or TranscriptionOptions()
        asset = await self.inspect(path, request_id)
        request = TranscriptionRequest(asset=asset, options=options, request_id=request_id)

        async with self.client_factory(self.remote) as client:
            with ScratchSpace(prefix=f"chunkscribe-{request_id}-", base_dir=self.pipeline.temp_dir) as scratch:
                text, chunk_count = await self._route(request, client, scratch)

        elapsed = time.monotonic() - started
        logger.info(
            "[%s] Transcription finished in %.2fs: %d characters, %d chunk(s)",
            request_id,
            elapsed,
            len(text),
            chunk_count,
        )
        return TranscriptionOutcome(
            text=text,
            model=self.model_for(options),
            elapsed_seconds=elapsed,
            chunked=chunk_count > 0,
            chunk_count=chunk_count,
        )

    async def _route(
        self,
        request: TranscriptionRequest,
        client: RemoteTranscriptionClient,
        scratch: ScratchSpace,
    ) -> tuple[str, int]:
        asset = request.asset
        ceiling = self.pipeline.payload_ceiling_bytes

        if self.needs_chunking(asset):
            logger.info("[%s] Large file detected, processing in chunks", request.request_id)
            return await self._transcribe_chunked(request, client, scratch)

        if asset.extension in SUPPORTED_EXTENSIONS:
            try:
                return await self._transcribe_whole(client, asset.path, request), 0
            except RemoteFormatError as exc:
                logger.warning(
                    "[%s] Direct submission rejected (%s), normalizing audio",
                    request.request_id,
                    exc,
                )
        else:
            logger.info("[%s] Extension %r not accepted directly, normalizing audio", request.request_id, asset.extension)

        normalized = scratch.path(f"normalized{CANONICAL_EXTENSION}")
        await self.transcoder.normalize(asset.path, normalized)
        normalized_size = normalized.stat().st_size
        if normalized_size > ceiling:
            logger.info(
                "[%s] Normalized audio is %d bytes (ceiling %d), chunking the original file",
                request.request_id,
                normalized_size,
                ceiling,
            )
            return await self._transcribe_chunked(request, client, scratch)

        return await self._transcribe_whole(client, normalized, request), 0

    async def _transcribe_whole(
        self,
        client: RemoteTranscriptionClient,
        path: Path,
        request: TranscriptionRequest,
    ) -> str:
        text = await client.transcribe_file(path, request.options)
        return filter_chunk_text(0, text, self.is_hallucination).text

    async def _transcribe_chunked(
        self,
        request: TranscriptionRequest,
        client: RemoteTranscriptionClient,
        scratch: ScratchSpace,
    ) -> tuple[str, int]:
        asset = request.asset
        plan = plan_chunks(
            asset.duration,
            asset.size_bytes,
            self.pipeline.payload_ceiling_bytes,
            safety_margin=self.pipeline.safety_margin,
            conversion_expansion_factor=self.pipeline.conversion_expansion_factor,
            min_chunk_seconds=self.pipeline.min_chunk_seconds,
            max_chunk_seconds=self.pipeline.max_chunk_seconds,
        )

        segmenter = Segmenter(self.transcoder, copy_extensions=SUPPORTED_EXTENSIONS, request_id=request.request_id)
        chunks = await segmenter.materialize(asset, plan, scratch)

        async def transcribe_chunk(chunk: ChunkSpec) -> str:
            return await client.transcribe_file(chunk.path, request.options)

        executor = BatchExecutor(
            transcribe_chunk,
            max_concurrent=self.pipeline.max_concurrent,
            failure_policy=self.pipeline.failure_policy,
            is_hallucination=self.is_hallucination,
            request_id=request.request_id,
        )
        results = await executor.run(chunks)
        text = assemble_transcript(results)
        logger.info("[%s] Combined transcription: %d characters", request.request_id, len(text))
        return text, len(chunks)

    async def generate_text(self, transcript: str, prompt: str | None) -> str:
        """Run the optional post-processing prompt; empty string when skipped or failed."""
        if not prompt or not prompt.strip():
            return ""
        return await self.text_client.generate_from_transcript(transcript, prompt)
