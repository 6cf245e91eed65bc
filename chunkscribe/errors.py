"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Error taxonomy surfaced by the transcription pipeline.
"""
from __future__ import annotations


class TranscriptionError(Exception):
    """Base class for failures reported to the caller as a single terminal error."""

    status_code = 500
    message = "Failed to transcribe audio"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail or self.message

    def cause_chain(self) -> str:
        """Render this error and its ``__cause__`` ancestors as one line."""
        parts = []
        exc: BaseException | None = self
        while exc is not None:
            parts.append(str(exc) or type(exc).__name__)
            exc = exc.__cause__
        return ": ".join(parts)


class UnsupportedUpload(TranscriptionError):
    status_code = 400
    message = "No usable audio file found in request"


class DurationUnknown(TranscriptionError):
    status_code = 422
    message = "Could not determine the audio duration"


class ConversionFailed(TranscriptionError):
    status_code = 422
    message = "Audio conversion failed"

    def __init__(self, source: str, detail: str | None = None) -> None:
        super().__init__(f"{self.message} for {source}" + (f": {detail}" if detail else ""))
        self.source = source


class RemoteTranscriptionError(TranscriptionError):
    status_code = 502
    message = "The transcription service returned an error"


class RemoteAuthError(RemoteTranscriptionError):
    status_code = 502
    message = "The transcription service rejected the configured credentials"


class RemoteRateLimited(RemoteTranscriptionError):
    status_code = 429
    message = "The transcription service is rate limiting requests, try again later"


class RemoteFormatError(RemoteTranscriptionError):
    status_code = 415
    message = "The audio content is corrupt or in an unsupported format"


class ChunkTranscriptionFailed(TranscriptionError):
    status_code = 502
    message = "Transcription of an audio chunk failed"

    def __init__(self, index: int, detail: str | None = None) -> None:
        super().__init__(f"{self.message} (chunk {index})" + (f": {detail}" if detail else ""))
        self.index = index
