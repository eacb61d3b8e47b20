"""In-memory event store, used by tests and throwaway local runs."""

from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from calendar_service.domain.errors import NotFoundError
from calendar_service.domain.models import Event, EventId, parse_integer_id
from calendar_service.services.conflicts import find_conflicts


class MemoryEventStore:
    """Dict-backed store for Event instances, keyed by an integer id."""

    def __init__(self) -> None:
        self._store: dict[int, Event] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def parse_id(self, raw: str) -> int:
        return parse_integer_id(raw)

    def create(self, event: Event) -> int:
        with self._lock:
            event_id = next(self._ids)
            self._store[event_id] = event.with_id(event_id)
            return event_id

    def get_by_id(self, event_id: EventId) -> Event | None:
        with self._lock:
            return self._store.get(event_id)

    def get_all(self) -> list[Event]:
        with self._lock:
            return list(self._store.values())

    def update(self, event: Event) -> None:
        with self._lock:
            if event.id not in self._store:
                raise NotFoundError(event.id)
            self._store[event.id] = event

    def delete(self, event_id: EventId) -> None:
        with self._lock:
            if self._store.pop(event_id, None) is None:
                raise NotFoundError(event_id)

    def is_slot_taken(
        self,
        start: datetime,
        end: datetime,
        exclude_id: EventId | None = None,
    ) -> bool:
        with self._lock:
            others = [e for e in self._store.values() if e.id != exclude_id]
        return bool(find_conflicts(start, end, others))

    @contextmanager
    def write_guard(self) -> Iterator[None]:
        with self._lock:
            yield

    def close(self) -> None:
        """Nothing to release; the data lives as long as the object."""
