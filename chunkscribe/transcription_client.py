"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Client for an OpenAI-compatible ``/audio/transcriptions`` endpoint.

A single ``httpx.AsyncClient`` is shared for the lifetime of the context manager so
concurrent chunk uploads reuse pooled connections. HTTP failures are translated into the
error taxonomy in :mod:`chunkscribe.errors`.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from pathlib import Path
from typing import Dict, List

import httpx

from .errors import (
    RemoteAuthError,
    RemoteFormatError,
    RemoteRateLimited,
    RemoteTranscriptionError,
)
from .pipeline_config import RemoteClientConfig
from .schemas import TranscriptionOptions
from .transcript import clean_transcription

logger = logging.getLogger(__name__)

MIME_TYPES: Dict[str, str] = {
    "flac": "audio/flac",
    "m4a": "audio/mp4",
    "mp3": "audio/mpeg",
    "mp4": "audio/mp4",
    "mpeg": "audio/mpeg",
    "mpga": "audio/mpeg",
    "oga": "audio/ogg",
    "ogg": "audio/ogg",
    "wav": "audio/wav",
    "webm": "audio/webm",
}
SUPPORTED_EXTENSIONS = frozenset(MIME_TYPES)

FORMAT_ERROR_STATUSES = {400, 415, 422}
FORMAT_ERROR_HINTS = re.compile(r"format|corrupt|decod|unsupported|invalid file|could not be processed", re.IGNORECASE)


def mime_type_for(filename: str) -> str:
    extension = Path(filename).suffix.lower().lstrip(".")
    return MIME_TYPES.get(extension, "application/octet-stream")


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()[:500]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error or payload)


def raise_for_remote_status(response: httpx.Response) -> None:
    """Raise the taxonomy error matching a non-2xx response."""

    if response.is_success:
        return

    status = response.status_code
    detail = _error_detail(response)
    if status in (401, 403):
        raise RemoteAuthError(detail)
    if status == 429:
        raise RemoteRateLimited(detail)
    if status in FORMAT_ERROR_STATUSES and FORMAT_ERROR_HINTS.search(detail):
        raise RemoteFormatError(detail)
    raise RemoteTranscriptionError(f"HTTP {status}: {detail}")


def render_diarized_segments(segments: List[dict]) -> str:
    """Render speaker segments as ``speaker: text`` lines, merging consecutive turns."""

    turns: list[tuple[str, list[str]]] = []
    for segment in segments:
        if not isinstance(segment, dict):
            continue
        text = (segment.get("text") or "").strip()
        if not text:
            continue
        speaker = str(segment.get("speaker") or "Speaker")
        if turns and turns[-1][0] == speaker:
            turns[-1][1].append(text)
        else:
            turns.append((speaker, [text]))
    return "\n".join(f"{speaker}: {' '.join(parts)}" for speaker, parts in turns)


class RemoteTranscriptionClient:
    """Thin async wrapper around the remote speech-to-text endpoint."""

    def __init__(self, config: RemoteClientConfig) -> None:
        self.config = config
        self._client: httpx.AsyncClient | None = None
        self._stack: contextlib.AsyncExitStack | None = None

    async def __aenter__(self) -> "RemoteTranscriptionClient":
        base_url = self.config.base_url
        if not base_url.endswith("/"):
            base_url += "/"
        self._stack = contextlib.AsyncExitStack()
        self._client = await self._stack.enter_async_context(
            httpx.AsyncClient(
                base_url=base_url,
                timeout=self.config.timeout_seconds,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
            )
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self._stack is not None:
            await self._stack.aclose()
        self._client = None
        self._stack = None
        return False

    def model_for(self, options: TranscriptionOptions) -> str:
        return self.config.diarization_model if options.diarize else self.config.transcription_model

    def _build_form(self, options: TranscriptionOptions) -> Dict[str, str]:
        data = {
            "model": self.model_for(options),
            "temperature": str(options.temperature),
        }
        if options.diarize:
            data["response_format"] = "diarized_json"
            data["chunking_strategy"] = "auto"
        else:
            data["response_format"] = options.response_format
        if options.language:
            data["language"] = options.language
        return data

    async def transcribe(
        self,
        audio: bytes,
        filename: str,
        options: TranscriptionOptions,
        mime_type: str | None = None,
    ) -> str:
        """Send ``audio`` to the endpoint and return cleaned transcript text."""

        if self._client is None:
            raise RuntimeError("RemoteTranscriptionClient must be used as an async context manager")

        files = {"file": (filename, audio, mime_type or mime_type_for(filename))}
        data = self._build_form(options)
        logger.info("Sending transcription request: file=%s bytes=%d model=%s", filename, len(audio), data["model"])

        try:
            response = await self._client.post("audio/transcriptions", files=files, data=data)
        except httpx.HTTPError as exc:
            raise RemoteTranscriptionError(f"Request to transcription service failed: {exc!r}") from exc
        raise_for_remote_status(response)

        if data["response_format"] == "text":
            return clean_transcription(response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteTranscriptionError(
                f"Unparseable response from transcription service: {response.text[:200]!r}"
            ) from exc
        if not isinstance(payload, dict):
            raise RemoteTranscriptionError(f"Unexpected response shape: {type(payload).__name__}")

        segments = payload.get("segments")
        if options.diarize and isinstance(segments, list) and segments:
            return clean_transcription(render_diarized_segments(segments))
        text = payload.get("text")
        return clean_transcription(text if isinstance(text, str) else "")

    async def transcribe_file(self, path: str | Path, options: TranscriptionOptions) -> str:
        path = Path(path)
        audio = await asyncio.to_thread(path.read_bytes)
        return await self.transcribe(audio, path.name, options)
