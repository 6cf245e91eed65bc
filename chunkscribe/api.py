"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

API router definitions for the upload endpoint and health checks.
"""
import asyncio
import logging
import time
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import settings
from .errors import TranscriptionError, UnsupportedUpload
from .files import generate_temp_path, safe_delete
from .orchestrator import TranscriptionService
from .schemas import ErrorResponse, ServiceInfo, TranscriptionOptions, TranscriptionResponse

logger = logging.getLogger(__name__)

UPLOAD_BLOCK_BYTES = 1024 * 1024
TRUTHY_FLAGS = {"true", "1", "yes"}

router = APIRouter()


@lru_cache(maxsize=1)
def get_transcription_service() -> TranscriptionService:
    return TranscriptionService.from_settings(settings)


def new_request_id() -> str:
    return f"req-{uuid.uuid4().hex[:12]}"


def _wants_diarization(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in TRUTHY_FLAGS


def _error_response(status_code: int, error: str, details: str, request_id: str) -> JSONResponse:
    body = ErrorResponse(error=error, details=details, request_id=request_id)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _save_upload(upload: UploadFile) -> Path:
    """Stream an upload to a temp file that keeps the original extension."""

    extension = Path(upload.filename or "").suffix.lower().lstrip(".") or "mp3"
    path = generate_temp_path(extension, prefix="transcribe", directory=settings.temp_dir)
    size = 0
    try:
        with open(path, "wb") as handle:
            while True:
                block = await upload.read(UPLOAD_BLOCK_BYTES)
                if not block:
                    break
                await asyncio.to_thread(handle.write, block)
                size += len(block)
    except OSError:
        safe_delete(path)
        raise

    if size == 0:
        safe_delete(path)
        raise UnsupportedUpload("Uploaded file is empty")
    return path


@router.get("/", response_model=ServiceInfo)
async def service_info(service: TranscriptionService = Depends(get_transcription_service)):
    return ServiceInfo(
        message="Chunked transcription API",
        status="ok",
        model=service.remote.transcription_model,
        diarization_model=service.remote.diarization_model,
        max_concurrent_chunks=service.pipeline.max_concurrent,
    )


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post(
    "/transcribe",
    response_model=TranscriptionResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def transcribe_endpoint(
    audio: Optional[UploadFile] = File(None),
    prompt: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    diarize: Optional[str] = Query(None),
    service: TranscriptionService = Depends(get_transcription_service),
):
    request_id = new_request_id()
    started = time.monotonic()
    upload_path: Optional[Path] = None
    logger.info("[%s] Transcription request started", request_id)

    try:
        options = TranscriptionOptions(language=language, diarize=_wants_diarization(diarize), prompt=prompt)
    except ValidationError as exc:
        return _error_response(400, "Invalid request options", str(exc), request_id)

    if options.diarize:
        logger.info("[%s] Speaker diarization enabled via query parameter", request_id)

    try:
        if audio is None:
            raise UnsupportedUpload()
        upload_path = await _save_upload(audio)
        logger.info("[%s] Upload complete: %s", request_id, upload_path)

        outcome = await service.transcribe_file(upload_path, options, request_id)

        generated_text = ""
        if options.prompt:
            logger.info("[%s] Prompt provided, generating text from transcript", request_id)
            generated_text = await service.generate_text(outcome.text, options.prompt)
            if not generated_text:
                logger.warning("[%s] Text generation produced nothing, returning transcript only", request_id)
    except TranscriptionError as exc:
        logger.error("[%s] Transcription error: %s", request_id, exc.cause_chain())
        return _error_response(exc.status_code, exc.message, exc.cause_chain(), request_id)
    except Exception as exc:
        logger.exception("[%s] Unexpected transcription failure", request_id)
        return _error_response(500, TranscriptionError.message, str(exc) or type(exc).__name__, request_id)
    finally:
        if upload_path is not None:
            safe_delete(upload_path)

    processing_time_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "[%s] Transcription completed successfully in %dms (%d characters, model=%s)",
        request_id,
        processing_time_ms,
        len(outcome.text),
        outcome.model,
    )
    return TranscriptionResponse(
        text=outcome.text,
        model=outcome.model,
        diarize=options.diarize,
        request_id=request_id,
        processing_time_ms=processing_time_ms,
        processing_time_seconds=round(processing_time_ms / 1000, 2),
        generated_text=generated_text or None,
        text_generation_model=service.remote.text_generation_model if generated_text else None,
    )
