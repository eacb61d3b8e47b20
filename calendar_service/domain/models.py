"""Domain model for calendar events."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import AwareDatetime, BaseModel

from calendar_service.domain.errors import ValidationError

# int for SQL and in-memory stores, ObjectId hex string for MongoDB.
EventId = int | str

# Largest id a BIGINT or SQLite INTEGER column can hold.
MAX_INTEGER_ID = 2**63 - 1

_INTEGER_ID_RE = re.compile(r"[0-9]+")


class Event(BaseModel):
    id: int | str | None = None
    title: str
    description: str = ""
    start_time: AwareDatetime
    end_time: AwareDatetime

    def with_id(self, event_id: EventId) -> Event:
        """Return a copy of this event carrying *event_id*."""
        return self.model_copy(update={"id": event_id})


def validate_time_range(start: datetime, end: datetime) -> None:
    """Reject an empty or inverted range that falls within one calendar day.

    The day is read in whatever zone each timestamp carries. Ranges spanning
    more than one calendar day are accepted without any ordering check.
    """
    if start.date() != end.date():
        return
    if start >= end:
        raise ValidationError("start_time must be before end_time")


def parse_integer_id(raw: str) -> int:
    """Parse a path id for the integer-keyed stores.

    Only plain ASCII digits within the 64-bit signed range are accepted, so
    every integer-keyed backend sees the same ids.
    """
    if not _INTEGER_ID_RE.fullmatch(raw) or int(raw) > MAX_INTEGER_ID:
        raise ValidationError(f"invalid event id: {raw!r}")
    return int(raw)
