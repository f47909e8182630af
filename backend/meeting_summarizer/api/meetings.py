from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from meeting_summarizer.api.schemas import CamelModel, UtcDatetime
from meeting_summarizer.deps import get_session, require_storage
from meeting_summarizer.errors import MeetingNotFoundError
from meeting_summarizer.models.meeting import Meeting
from meeting_summarizer.repositories.meetings import MeetingsRepository, MeetingSummary


logger = logging.getLogger("meeting_summarizer.api")

router = APIRouter(prefix="/meetings", tags=["meetings"], dependencies=[Depends(require_storage)])


class MeetingListItem(CamelModel):
    id: int
    filename: str
    transcript_preview: str
    summary_preview: str
    created_at: UtcDatetime
    file_size: int
    processing_time: Optional[float] = None

    @classmethod
    def from_summary(cls, s: MeetingSummary) -> "MeetingListItem":
        return cls(
            id=s.id,
            filename=s.filename,
            transcript_preview=s.transcript_preview,
            summary_preview=s.summary_preview,
            created_at=s.created_at,
            file_size=s.file_size,
            processing_time=s.processing_time,
        )


class MeetingList(CamelModel):
    count: int
    meetings: List[MeetingListItem]


class MeetingDetail(CamelModel):
    id: int
    filename: str
    transcript: str
    summary: str
    action_items: List[str]
    file_size: int
    processing_time: Optional[float] = None
    created_at: UtcDatetime

    @classmethod
    def from_meeting(cls, m: Meeting) -> "MeetingDetail":
        return cls(
            id=m.id,  # type: ignore[arg-type]
            filename=m.filename,
            transcript=m.transcript,
            summary=m.summary,
            action_items=list(m.action_items),
            file_size=m.file_size,
            processing_time=m.processing_time,
            created_at=m.created_at,
        )


class DeleteResponse(CamelModel):
    message: str
    id: int
    deleted: int


@router.get("", response_model=MeetingList)
def list_meetings(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_session),
) -> MeetingList:
    items = [MeetingListItem.from_summary(s) for s in MeetingsRepository(session).list_summaries(limit, offset)]
    return MeetingList(count=len(items), meetings=items)


@router.get("/{meeting_id}", response_model=MeetingDetail)
def get_meeting(meeting_id: int, session: Session = Depends(get_session)) -> MeetingDetail:
    meeting = MeetingsRepository(session).get(meeting_id)
    if meeting is None:
        raise MeetingNotFoundError(meeting_id)
    return MeetingDetail.from_meeting(meeting)


@router.delete("/{meeting_id}", response_model=DeleteResponse)
def delete_meeting(meeting_id: int, session: Session = Depends(get_session)) -> DeleteResponse:
    deleted = MeetingsRepository(session).delete(meeting_id)
    if deleted:
        logger.info("Deleted meeting %s", meeting_id)
        return DeleteResponse(message="Meeting deleted", id=meeting_id, deleted=deleted)
    return DeleteResponse(message="Meeting not found; nothing deleted", id=meeting_id, deleted=0)
