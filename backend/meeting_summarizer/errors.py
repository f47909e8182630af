"""Exception taxonomy for the processing service and its FastAPI handlers.

Terminal errors derive from ``AppError`` and are rendered as JSON by
``app_error_handler``. ``BackendUnavailableError`` subclasses never reach the
HTTP layer: the summarization client turns them into placeholder values.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("meeting_summarizer.errors")


class AppError(Exception):
    """Base application error."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if http_status is not None:
            self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ClientInputError(AppError):
    http_status = status.HTTP_400_BAD_REQUEST


class UploadTooLargeError(ClientInputError):
    http_status = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class MeetingNotFoundError(AppError):
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, meeting_id: int) -> None:
        super().__init__("Meeting not found")
        self.meeting_id = meeting_id


class StorageDisabledError(AppError):
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self) -> None:
        super().__init__("Meeting storage is disabled")


class PipelineError(AppError):
    """A fatal pipeline stage failed; the request ends with a 500."""

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "Failed to process audio", "details": self.message}


class AudioConversionError(PipelineError):
    pass


class AudioProcessingError(PipelineError):
    pass


class WavFormatError(AudioProcessingError):
    """The WAV container or sample encoding is not plain PCM the stdlib reader handles."""


class TranscriptionError(PipelineError):
    pass


class PersistenceError(PipelineError):
    pass


class BackendUnavailableError(Exception):
    """The chat-completion backend could not produce a usable answer."""


class SummarizationUnavailable(BackendUnavailableError):
    pass


class ActionItemsUnavailable(BackendUnavailableError):
    pass


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc)})
