"""The contract every event store backend satisfies."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from calendar_service.domain.models import Event, EventId


class EventStore(Protocol):
    """Persistence for events with a backend-native slot-conflict query.

    Backend failures surface as ``PersistenceError``. ``get_by_id`` signals
    a missing record with ``None``; ``update`` and ``delete`` raise
    ``NotFoundError`` instead.
    """

    def parse_id(self, raw: str) -> EventId:
        """Convert an id taken from a URL into this backend's id type."""
        ...

    def create(self, event: Event) -> EventId:
        ...

    def get_by_id(self, event_id: EventId) -> Event | None:
        ...

    def get_all(self) -> list[Event]:
        ...

    def update(self, event: Event) -> None:
        ...

    def delete(self, event_id: EventId) -> None:
        ...

    def is_slot_taken(
        self,
        start: datetime,
        end: datetime,
        exclude_id: EventId | None = None,
    ) -> bool:
        """Report whether a stored event conflicts with [start, end)."""
        ...

    def write_guard(self) -> AbstractContextManager[None]:
        """Hold writers off while a conflict check and its write run."""
        ...

    def close(self) -> None:
        ...
