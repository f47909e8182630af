from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from meeting_summarizer.errors import PersistenceError
from meeting_summarizer.models.meeting import Meeting


TRANSCRIPT_PREVIEW_CHARS = 100
SUMMARY_PREVIEW_CHARS = 150


def preview(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


@dataclass
class MeetingSummary:
    """List-view projection of a meeting: previews instead of full text."""

    id: int
    filename: str
    transcript_preview: str
    summary_preview: str
    created_at: datetime
    file_size: int
    processing_time: Optional[float]


class MeetingsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def insert(self, meeting: Meeting) -> int:
        if not meeting.transcript or not meeting.transcript.strip():
            raise PersistenceError("Refusing to store a meeting without a transcript")
        if not meeting.action_items:
            raise PersistenceError("Refusing to store a meeting without action items")
        try:
            self.session.add(meeting)
            self.session.commit()
            self.session.refresh(meeting)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(f"Failed to save meeting: {exc}") from exc
        if meeting.id is None:
            raise PersistenceError("Failed to save meeting: no id assigned")
        return meeting.id

    def get(self, meeting_id: int) -> Optional[Meeting]:
        return self.session.get(Meeting, meeting_id)

    def list_summaries(self, limit: int = 50, offset: int = 0) -> list[MeetingSummary]:
        statement = (
            select(Meeting)
            .order_by(Meeting.created_at.desc(), Meeting.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [
            MeetingSummary(
                id=m.id,  # type: ignore[arg-type]
                filename=m.filename,
                transcript_preview=preview(m.transcript, TRANSCRIPT_PREVIEW_CHARS),
                summary_preview=preview(m.summary, SUMMARY_PREVIEW_CHARS),
                created_at=m.created_at,
                file_size=m.file_size,
                processing_time=m.processing_time,
            )
            for m in self.session.exec(statement)
        ]

    def delete(self, meeting_id: int) -> int:
        meeting = self.get(meeting_id)
        if meeting is None:
            return 0
        self.session.delete(meeting)
        self.session.commit()
        return 1

    def count(self) -> int:
        return int(self.session.exec(select(func.count()).select_from(Meeting)).one())
