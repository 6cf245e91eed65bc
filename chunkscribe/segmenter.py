"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Materialize a chunk plan as standalone audio files.
"""
from __future__ import annotations

import logging
from typing import Collection

from .errors import ConversionFailed
from .files import ScratchSpace
from .media import CANONICAL_EXTENSION, MediaTranscoder
from .models import AudioAsset, ChunkSpec
from .planner import ChunkPlan

logger = logging.getLogger(__name__)

# Shorter tails cut to empty files or audio the endpoint rejects
MIN_SEGMENT_SECONDS = 0.5


class Segmenter:
    """Cut chunks one after another; each cut is a separate ffmpeg run over the source."""

    def __init__(
        self,
        transcoder: MediaTranscoder,
        *,
        copy_extensions: Collection[str] | None = None,
        min_segment_seconds: float = MIN_SEGMENT_SECONDS,
        request_id: str = "-",
    ) -> None:
        self.transcoder = transcoder
        self.min_segment_seconds = min_segment_seconds
        self.copy_extensions = copy_extensions
        self.request_id = request_id

    def _can_stream_copy(self, asset: AudioAsset) -> bool:
        if not asset.extension:
            return False
        return self.copy_extensions is None or asset.extension in self.copy_extensions

    async def _reencode(self, asset: AudioAsset, scratch: ScratchSpace, index: int, start: float, span: float):
        path = scratch.path(f"chunk_{index:03d}{CANONICAL_EXTENSION}")
        await self.transcoder.extract_segment(asset.path, path, start, span, stream_copy=False)
        return path

    async def materialize(self, asset: AudioAsset, plan: ChunkPlan, scratch: ScratchSpace) -> list[ChunkSpec]:
        """Write every planned window to ``scratch``. Any unrecoverable cut aborts the run."""

        stream_copy = self._can_stream_copy(asset)
        specs: list[ChunkSpec] = []
        for index, start, span in plan.windows():
            if span < self.min_segment_seconds:
                logger.info(
                    "[%s] Skipping chunk %d: %.4fs tail is too short to transcribe",
                    self.request_id,
                    index,
                    span,
                )
                continue
            if stream_copy:
                path = scratch.path(f"chunk_{index:03d}.{asset.extension}")
                try:
                    await self.transcoder.extract_segment(asset.path, path, start, span, stream_copy=True)
                except ConversionFailed as exc:
                    logger.warning(
                        "[%s] Stream copy failed for chunk %d, re-encoding: %s",
                        self.request_id,
                        index,
                        exc,
                    )
                    path = await self._reencode(asset, scratch, index, start, span)
            else:
                path = await self._reencode(asset, scratch, index, start, span)

            specs.append(ChunkSpec(index=index, start=start, span=span, path=path))
            logger.debug("[%s] Chunk %d: %.2fs-%.2fs -> %s", self.request_id, index, start, start + span, path)

        logger.info("[%s] Created %d chunk files", self.request_id, len(specs))
        return specs
