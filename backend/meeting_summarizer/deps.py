from __future__ import annotations

from typing import Iterator

from fastapi import Depends, Request
from sqlmodel import Session

from meeting_summarizer.config import Settings, get_settings
from meeting_summarizer.errors import StorageDisabledError
from meeting_summarizer.models.base import get_engine
from meeting_summarizer.services.pipeline import MeetingPipeline


def get_session() -> Iterator[Session]:
    with Session(get_engine()) as session:
        yield session


def require_storage(settings: Settings = Depends(get_settings)) -> None:
    if not settings.persist_meetings:
        raise StorageDisabledError()


def get_pipeline(request: Request, settings: Settings = Depends(get_settings)) -> MeetingPipeline:
    """One pipeline per app, normally built at startup."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        pipeline = MeetingPipeline.from_settings(settings)
        request.app.state.pipeline = pipeline
    return pipeline
