from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from meeting_summarizer.api.schemas import iso_utc
from meeting_summarizer.config import Settings, get_settings
from meeting_summarizer.models.base import get_engine
from meeting_summarizer.repositories.meetings import MeetingsRepository
from meeting_summarizer.services.asr_engine import is_model_loaded

logger = logging.getLogger("meeting_summarizer.api")

router = APIRouter(tags=["meta"])


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    storage: Dict[str, Any] = {"enabled": settings.persist_meetings}
    if settings.persist_meetings:
        try:
            with Session(get_engine()) as session:
                storage["meetingCount"] = MeetingsRepository(session).count()
        except SQLAlchemyError as exc:
            logger.warning("Health check could not count meetings: %s", exc)
            storage["error"] = str(exc)

    return {
        "status": "ok",
        "services": {
            "whisper": "loaded" if is_model_loaded() else "not loaded",
            "lmStudio": settings.llm_api_url,
        },
        "models": {
            "transcription": settings.whisper_model_id,
            "summarization": settings.llm_model,
        },
        "cache": str(settings.cache_dir),
        "storage": storage,
        "timestamp": iso_utc(datetime.now(timezone.utc)),
    }
