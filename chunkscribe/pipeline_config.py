"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Explicit configuration objects injected into the transcription pipeline.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field

from .config import Settings


@dataclass(frozen=True)
class HallucinationThresholds:
    """Repetition limits above which a transcript is treated as model noise."""

    char_repeat: int = 31
    pattern_repeat: int = 16
    max_pattern_length: int = 5


@dataclass(frozen=True)
class RemoteClientConfig:
    """Credentials and endpoint details for the remote speech and text APIs."""

    api_key: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: float = 300.0
    transcription_model: str = "gpt-4o-mini-transcribe"
    diarization_model: str = "gpt-4o-transcribe-diarize"
    text_generation_model: str = "gpt-4o-mini"

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteClientConfig":
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.request_timeout_seconds,
            transcription_model=settings.transcription_model,
            diarization_model=settings.diarization_model,
            text_generation_model=settings.text_generation_model,
        )


@dataclass(frozen=True)
class PipelineConfig:
    """Chunking, concurrency and transcoding parameters for one orchestrator."""

    payload_ceiling_bytes: int = 25 * 1024 * 1024
    max_concurrent: int = 4
    min_chunk_seconds: int = 60
    max_chunk_seconds: int = 300
    safety_margin: float = 0.8
    conversion_expansion_factor: float = 2.0
    max_direct_duration_seconds: float = 600.0
    failure_policy: str = "fail_fast"
    target_sample_rate: int = 16000
    target_channels: int = 1
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    temp_dir: str | None = None
    hallucination: HallucinationThresholds = field(default_factory=HallucinationThresholds)

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if not 0 < self.min_chunk_seconds <= self.max_chunk_seconds:
            raise ValueError("Chunk bounds must satisfy 0 < min <= max")
        if self.conversion_expansion_factor <= 0:
            raise ValueError("conversion_expansion_factor must be positive")
        if self.failure_policy not in {"fail_fast", "best_effort"}:
            raise ValueError(f"Unknown failure policy: {self.failure_policy}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            payload_ceiling_bytes=settings.payload_ceiling_bytes,
            max_concurrent=settings.max_concurrent_chunks,
            min_chunk_seconds=settings.min_chunk_seconds,
            max_chunk_seconds=settings.max_chunk_seconds,
            safety_margin=settings.safety_margin,
            conversion_expansion_factor=settings.conversion_expansion_factor,
            max_direct_duration_seconds=settings.max_direct_duration_seconds,
            failure_policy=settings.chunk_failure_policy,
            target_sample_rate=settings.target_sample_rate,
            target_channels=settings.target_channels,
            ffmpeg_binary=settings.ffmpeg_binary,
            ffprobe_binary=settings.ffprobe_binary,
            temp_dir=settings.temp_dir,
            hallucination=HallucinationThresholds(
                char_repeat=settings.hallucination_char_repeat,
                pattern_repeat=settings.hallucination_pattern_repeat,
                max_pattern_length=settings.hallucination_max_pattern_length,
            ),
        )

    def as_dict(self) -> dict:
        """Return the config as a JSON-serializable dict."""
        return asdict(self)
