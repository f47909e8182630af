from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Meeting(SQLModel, table=True):
    # AUTOINCREMENT keeps ids monotonic even after the newest row is deleted
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    filename: str
    transcript: str
    summary: str
    action_items: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    file_size: int = 0
    processing_time: Optional[float] = None
    # Written as aware UTC; SQLite hands it back naive, see as_utc()
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )


def as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
