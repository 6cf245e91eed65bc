"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Value objects passed between pipeline stages.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path

from .schemas import TranscriptionOptions


@dataclass(frozen=True)
class AudioAsset:
    """A source file on disk. ``duration`` is ``None`` when probing failed."""

    path: Path
    size_bytes: int
    duration: float | None
    extension: str

    @classmethod
    def from_path(cls, path: str | Path, duration: float | None = None) -> "AudioAsset":
        path = Path(path)
        return cls(
            path=path,
            size_bytes=path.stat().st_size,
            duration=duration,
            extension=path.suffix.lower().lstrip("."),
        )


@dataclass(frozen=True)
class ChunkSpec:
    index: int
    start: float
    span: float
    path: Path

    @property
    def end(self) -> float:
        return self.start + self.span


class ChunkStatus(str, enum.Enum):
    OK = "ok"
    DISCARDED = "discarded"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkResult:
    """Outcome of transcribing one chunk. ``error`` is only set for failures."""

    index: int
    text: str
    status: ChunkStatus
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status is not ChunkStatus.FAILED


@dataclass(frozen=True)
class TranscriptionRequest:
    asset: AudioAsset
    options: TranscriptionOptions
    request_id: str = "-"


@dataclass(frozen=True)
class TranscriptionOutcome:
    text: str
    model: str
    elapsed_seconds: float
    chunked: bool = False
    chunk_count: int = 0
