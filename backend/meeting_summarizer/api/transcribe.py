from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from meeting_summarizer.api.schemas import CamelModel, iso_utc
from meeting_summarizer.config import Settings, get_settings
from meeting_summarizer.deps import get_pipeline
from meeting_summarizer.errors import ClientInputError, UploadTooLargeError
from meeting_summarizer.services.pipeline import MeetingPipeline, PipelineResult, UploadedAudio

logger = logging.getLogger("meeting_summarizer.api")

router = APIRouter(tags=["transcribe"])

UPLOAD_FIELD = "audio"
COPY_CHUNK_BYTES = 1024 * 1024
# Allowance for multipart boundaries and part headers on top of the file itself
FORM_OVERHEAD_BYTES = 64 * 1024


class TranscribeMetadata(CamelModel):
    filename: str
    processed_at: str
    processing_time: Optional[float] = None
    saved: Optional[bool] = None
    id: Optional[int] = None
    save_error: Optional[str] = None


class TranscribeResponse(CamelModel):
    transcript: str
    summary: str
    action_items: List[str]
    metadata: TranscribeMetadata

    @classmethod
    def from_result(cls, result: PipelineResult) -> "TranscribeResponse":
        return cls(
            transcript=result.transcript,
            summary=result.summary,
            action_items=result.action_items,
            metadata=TranscribeMetadata(
                filename=result.filename,
                processed_at=iso_utc(result.processed_at),
                processing_time=result.processing_time,
                saved=result.saved,
                id=result.meeting_id,
                save_error=result.save_error,
            ),
        )


def _too_large(settings: Settings) -> UploadTooLargeError:
    return UploadTooLargeError(f"File too large: uploads are limited to {settings.max_upload_bytes} bytes")


def _reject_declared_oversize(request: Request, settings: Settings) -> None:
    """Fail on the Content-Length header before the body is spooled."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > settings.max_upload_bytes + FORM_OVERHEAD_BYTES:
        logger.warning("Rejected upload declaring %s bytes", declared)
        raise _too_large(settings)


async def _save_upload(upload: UploadFile, settings: Settings, received_at: float) -> UploadedAudio:
    """Stream the upload into the uploads dir, enforcing the size limit as it goes."""
    original = Path(upload.filename or "").name or "audio"
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    dest = settings.uploads_dir / f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{original}"

    size = 0
    try:
        with dest.open("wb") as out:
            while True:
                chunk = await upload.read(COPY_CHUNK_BYTES)
                if not chunk:
                    break
                size += len(chunk)
                if size > settings.max_upload_bytes:
                    raise _too_large(settings)
                out.write(chunk)
    except BaseException:
        dest.unlink(missing_ok=True)
        raise
    return UploadedAudio(path=dest, filename=original, size=size, received_at=received_at)


@router.post(
    "/transcribe",
    response_model=TranscribeResponse,
    response_model_exclude_none=True,
)
async def transcribe_upload(
    request: Request,
    settings: Settings = Depends(get_settings),
    pipeline: MeetingPipeline = Depends(get_pipeline),
) -> TranscribeResponse:
    received_at = time.perf_counter()
    _reject_declared_oversize(request, settings)
    form = await request.form()
    try:
        files = [v for v in form.getlist(UPLOAD_FIELD) if isinstance(v, UploadFile)]
        if not files:
            raise ClientInputError("No audio file provided")
        if len(files) > 1:
            raise ClientInputError("Only one audio file may be uploaded per request")
        upload = await _save_upload(files[0], settings, received_at)
    finally:
        await form.close()

    result = await run_in_threadpool(pipeline.run, upload)
    return TranscribeResponse.from_result(result)
