"""Meeting store tests against a SQLite file in tmp_path."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session

from meeting_summarizer.errors import PersistenceError
from meeting_summarizer.models.base import get_engine
from meeting_summarizer.models.meeting import Meeting, as_utc
from meeting_summarizer.repositories.meetings import MeetingsRepository


def make_meeting(**overrides) -> Meeting:
    fields = dict(
        filename="standup.mp3",
        transcript="Alice will send the report. Bob reviews the budget.",
        summary="Report and budget review agreed.",
        action_items=["Send the report", "Review the budget"],
        file_size=2048,
        processing_time=1.5,
    )
    fields.update(overrides)
    return Meeting(**fields)


def test_insert_assigns_id_and_timestamp(settings):
    with Session(get_engine()) as session:
        repo = MeetingsRepository(session)
        first = repo.insert(make_meeting())
        second = repo.insert(make_meeting(filename="retro.wav"))

        assert second > first
        stored = repo.get(first)
        assert stored is not None
        assert stored.created_at is not None
        assert stored.action_items == ["Send the report", "Review the budget"]


def test_action_items_round_trip_through_fresh_session(settings):
    with Session(get_engine()) as session:
        meeting_id = MeetingsRepository(session).insert(make_meeting(action_items=["a", "b", "c"]))
    with Session(get_engine()) as session:
        stored = MeetingsRepository(session).get(meeting_id)
    assert stored is not None and stored.action_items == ["a", "b", "c"]


@pytest.mark.parametrize(
    "overrides",
    [{"transcript": "   "}, {"transcript": ""}, {"action_items": []}],
)
def test_insert_rejects_records_breaking_invariants(settings, overrides):
    with Session(get_engine()) as session:
        repo = MeetingsRepository(session)
        with pytest.raises(PersistenceError):
            repo.insert(make_meeting(**overrides))
        assert repo.count() == 0


def test_list_summaries_newest_first_with_previews(settings):
    base = datetime(2024, 5, 1, 9, 0, 0, tzinfo=timezone.utc)
    with Session(get_engine()) as session:
        repo = MeetingsRepository(session)
        old_id = repo.insert(make_meeting(filename="old.mp3", created_at=base))
        new_id = repo.insert(
            make_meeting(
                filename="new.mp3",
                transcript="t" * 250,
                summary="s" * 400,
                created_at=base + timedelta(hours=1),
            )
        )

        rows = repo.list_summaries()

    assert [r.id for r in rows] == [new_id, old_id]
    newest = rows[0]
    assert newest.transcript_preview == "t" * 100 + "..."
    assert newest.summary_preview == "s" * 150 + "..."
    assert newest.file_size == 2048 and newest.processing_time == 1.5
    # short text is not marked as truncated
    assert rows[1].summary_preview == "Report and budget review agreed."


def test_list_summaries_paginates(settings):
    with Session(get_engine()) as session:
        repo = MeetingsRepository(session)
        ids = [repo.insert(make_meeting(filename=f"{i}.mp3")) for i in range(5)]
        page = repo.list_summaries(limit=2, offset=1)
    assert len(page) == 2
    assert all(r.id in ids for r in page)


def test_delete_reports_rows_removed(settings):
    with Session(get_engine()) as session:
        repo = MeetingsRepository(session)
        meeting_id = repo.insert(make_meeting())

        assert repo.delete(meeting_id) == 1
        assert repo.get(meeting_id) is None
        assert repo.delete(meeting_id) == 0
        assert repo.delete(9999) == 0


def test_ids_are_not_reused_after_deleting_newest(settings):
    with Session(get_engine()) as session:
        repo = MeetingsRepository(session)
        first = repo.insert(make_meeting())
        repo.delete(first)
        second = repo.insert(make_meeting())
    assert second > first


def test_created_at_round_trips_as_utc(settings):
    with Session(get_engine()) as session:
        meeting = make_meeting()
        written = meeting.created_at
        assert written.tzinfo is not None
        meeting_id = MeetingsRepository(session).insert(meeting)
    with Session(get_engine()) as session:
        stored = MeetingsRepository(session).get(meeting_id)
    assert stored is not None
    assert as_utc(stored.created_at) == written


def test_insert_without_assigned_id_raises_persistence_error():
    class NoIdSession:
        def add(self, obj):
            pass

        def commit(self):
            pass

        def refresh(self, obj):
            pass

    with pytest.raises(PersistenceError, match="no id assigned"):
        MeetingsRepository(NoIdSession()).insert(make_meeting())
