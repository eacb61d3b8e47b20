"""Slot-conflict predicate shared by every event store."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from calendar_service.domain.models import Event


def slot_conflicts(
    new_start: datetime,
    new_end: datetime,
    start: datetime,
    end: datetime,
) -> bool:
    """Return True if the stored slot [start, end) conflicts with the new one.

    Conflict rule: the stored slot strictly surrounds the new slot, or lies
    inside it (boundaries inclusive). A partial overlap that crosses only one
    boundary of the new slot is NOT a conflict.
    """
    surrounds = start < new_start and end > new_end
    inside = start >= new_start and end <= new_end
    return surrounds or inside


def find_conflicts(
    new_start: datetime,
    new_end: datetime,
    existing_events: Iterable[Event],
) -> list[Event]:
    """Return the existing events whose slots conflict with [new_start, new_end)."""
    return [
        event
        for event in existing_events
        if slot_conflicts(new_start, new_end, event.start_time, event.end_time)
    ]
