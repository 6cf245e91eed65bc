"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Pydantic schemas for API IO models and remote request options.
"""
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class TranscriptionOptions(BaseModel):
    """Typed options for one transcription request."""

    language: Optional[str] = Field(None, description="ISO-639-1/3 language hint")
    diarize: bool = False
    response_format: Literal["json", "text"] = "json"
    temperature: float = Field(0.0, ge=0.0, le=1.0)
    prompt: Optional[str] = Field(None, max_length=20000)

    model_config = ConfigDict(frozen=True)

    @field_validator("language")
    @classmethod
    def validate_language(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lower()
        if not value or value == "auto":
            return None
        if not value.isalpha() or not 2 <= len(value) <= 3:
            raise ValueError("Language must be a 2 or 3 letter code")
        return value

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value


class TranscriptionResponse(BaseModel):
    text: str
    model: str
    diarize: bool
    request_id: str
    processing_time_ms: int
    processing_time_seconds: float
    generated_text: Optional[str] = None
    text_generation_model: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    details: str
    request_id: str


class ServiceInfo(BaseModel):
    message: str
    status: str
    model: str
    diarization_model: str
    max_concurrent_chunks: int
