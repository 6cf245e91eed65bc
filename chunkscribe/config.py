"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Application configuration powered by environment variables.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional


class Settings(BaseSettings):
    """Centralized configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=(".env", "../.env"), env_prefix="", case_sensitive=False, extra="ignore")

    app_name: str = "chunkscribe"

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    transcription_model: str = "gpt-4o-mini-transcribe"
    diarization_model: str = "gpt-4o-transcribe-diarize"
    text_generation_model: str = "gpt-4o-mini"
    request_timeout_seconds: float = 300.0

    # The speech endpoint rejects uploads above 25 MiB
    payload_ceiling_bytes: int = 25 * 1024 * 1024
    max_concurrent_chunks: int = 4
    min_chunk_seconds: int = 60
    max_chunk_seconds: int = 300
    safety_margin: float = 0.8
    conversion_expansion_factor: float = 2.0
    max_direct_duration_seconds: float = 600.0
    chunk_failure_policy: Literal["fail_fast", "best_effort"] = "fail_fast"

    target_sample_rate: int = 16000
    target_channels: int = 1

    hallucination_char_repeat: int = 31
    hallucination_pattern_repeat: int = 16
    hallucination_max_pattern_length: int = 5

    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    temp_dir: Optional[str] = None

    allowed_origins: str = "*"
    log_level: str = "info"
    log_file: Optional[str] = None

settings = Settings()
