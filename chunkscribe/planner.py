"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Chunk planning: how many segments a file needs and how long each one is.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator

from .errors import DurationUnknown

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkPlan:
    duration: float
    chunk_seconds: int
    num_chunks: int

    def windows(self) -> Iterator[tuple[int, float, float]]:
        """Yield ``(index, start, span)`` tiling ``[0, duration)`` without gaps or overlap."""

        for index in range(self.num_chunks):
            start = float(index * self.chunk_seconds)
            if index == self.num_chunks - 1:
                span = self.duration - start
            else:
                span = float(self.chunk_seconds)
            yield index, start, span


def plan_chunks(
    duration: float | None,
    size_bytes: int,
    ceiling_bytes: int,
    *,
    safety_margin: float = 0.8,
    conversion_expansion_factor: float = 2.0,
    min_chunk_seconds: int = 60,
    max_chunk_seconds: int = 300,
) -> ChunkPlan:
    """Compute a segmentation plan that keeps every chunk under ``ceiling_bytes``.

    The per-chunk length is derived from the file's average bitrate, divided by the
    expansion factor so a chunk still fits after re-encoding to uncompressed PCM, and
    clamped to ``[min_chunk_seconds, max_chunk_seconds]``.
    """

    if duration is None or not math.isfinite(duration) or duration <= 0:
        raise DurationUnknown("Cannot plan chunks without a known duration")

    safe_budget = ceiling_bytes * safety_margin
    bytes_per_second = size_bytes / duration

    if bytes_per_second > 0 and math.isfinite(safe_budget / bytes_per_second):
        raw_chunk_seconds = math.floor(safe_budget / bytes_per_second)
        normalized_chunk_seconds = math.floor(raw_chunk_seconds / conversion_expansion_factor)
    else:
        normalized_chunk_seconds = max_chunk_seconds

    chunk_seconds = max(min_chunk_seconds, min(max_chunk_seconds, normalized_chunk_seconds))
    num_chunks = max(1, math.ceil(duration / chunk_seconds))

    logger.info(
        "Chunk plan: duration=%.2fs size=%d bytes (%.1f B/s) -> %d chunks of %ds",
        duration,
        size_bytes,
        bytes_per_second,
        num_chunks,
        chunk_seconds,
    )
    return ChunkPlan(duration=duration, chunk_seconds=chunk_seconds, num_chunks=num_chunks)
