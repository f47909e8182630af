from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from meeting_summarizer.models.meeting import as_utc


def iso_utc(ts: datetime) -> str:
    """Millisecond ISO-8601 in UTC with a ``Z`` suffix."""
    return as_utc(ts).isoformat(timespec="milliseconds").replace("+00:00", "Z")


UtcDatetime = Annotated[datetime, PlainSerializer(iso_utc, return_type=str)]


class CamelModel(BaseModel):
    """Response models are snake_case in Python and camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
