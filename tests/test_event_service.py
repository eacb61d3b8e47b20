"""Tests for the EventService create/update flow."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

from calendar_service.domain.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from calendar_service.domain.models import Event
from calendar_service.observability import Observability
from calendar_service.repos.memory import MemoryEventStore
from calendar_service.repos.sqlite import SqliteEventStore
from calendar_service.services.events import EventService

_UTC = timezone.utc


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=_UTC)


def _event(start: datetime, end: datetime, title: str = "Event") -> Event:
    return Event(title=title, start_time=start, end_time=end)


@pytest.fixture()
def observability():
    return Observability()


@pytest.fixture()
def store():
    return MemoryEventStore()


@pytest.fixture()
def service(store, observability):
    return EventService(store, observability)


def _metric(observability: Observability, name: str, **labels) -> float:
    return observability.registry.get_sample_value(name, labels) or 0.0


class RecordingStore(MemoryEventStore):
    """Memory store that records which operations were called."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    def is_slot_taken(self, start, end, exclude_id=None):
        self.calls.append("is_slot_taken")
        return super().is_slot_taken(start, end, exclude_id)

    def create(self, event):
        self.calls.append("create")
        return super().create(event)

    def update(self, event):
        self.calls.append("update")
        return super().update(event)


class FailingStore(MemoryEventStore):
    """Memory store whose reads fail like a broken backend connection."""

    def get_all(self):
        try:
            raise ConnectionError("connection refused to postgres://app:s3cret@db/calendar")
        except ConnectionError as exc:
            raise PersistenceError("get_all") from exc


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def test_create_returns_id_of_stored_event(service, store):
    event_id = service.create_event(_event(_at(1, 10), _at(1, 11), title="A"))
    assert store.get_by_id(event_id).title == "A"


def test_scenario_conflict_then_free_slot_then_delete(service):
    a = service.create_event(_event(_at(1, 10), _at(1, 11), title="A"))

    with pytest.raises(ConflictError):
        service.create_event(_event(_at(1, 10, 30), _at(1, 10, 45), title="B"))

    service.create_event(_event(_at(2, 9), _at(2, 10), title="C"))

    service.delete_event(a)
    with pytest.raises(NotFoundError):
        service.get_event(a)


def test_invalid_range_short_circuits_before_store():
    store = RecordingStore()
    service = EventService(store, Observability())

    with pytest.raises(ValidationError):
        service.create_event(_event(_at(1, 11), _at(1, 10)))

    assert store.calls == []


def test_conflict_short_circuits_before_write(observability):
    store = RecordingStore()
    service = EventService(store, observability)
    service.create_event(_event(_at(1, 10), _at(1, 12)))
    store.calls.clear()

    with pytest.raises(ConflictError) as excinfo:
        service.create_event(_event(_at(1, 10, 30), _at(1, 11)))

    assert store.calls == ["is_slot_taken"]
    assert excinfo.value.start == _at(1, 10, 30)
    assert _metric(observability, "calendar_slot_conflicts_total", operation="create") == 1.0


def test_cross_day_inverted_range_is_stored(service, store):
    event_id = service.create_event(_event(_at(2, 9), _at(1, 17)))
    assert store.get_by_id(event_id) is not None


def test_partial_overlap_is_accepted(service, store):
    service.create_event(_event(_at(1, 10), _at(1, 12)))
    service.create_event(_event(_at(1, 11), _at(1, 13)))
    assert len(store.get_all()) == 2


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


def test_update_to_same_slot_does_not_conflict_with_itself(service, store):
    event_id = service.create_event(_event(_at(1, 10), _at(1, 11), title="Old"))

    service.update_event(_event(_at(1, 10), _at(1, 11), title="New").with_id(event_id))

    assert store.get_by_id(event_id).title == "New"


def test_update_into_taken_slot_conflicts(service, store, observability):
    service.create_event(_event(_at(1, 10), _at(1, 12), title="A"))
    b = service.create_event(_event(_at(1, 14), _at(1, 15), title="B"))

    with pytest.raises(ConflictError):
        service.update_event(_event(_at(1, 10, 30), _at(1, 11), title="B").with_id(b))

    assert store.get_by_id(b).start_time == _at(1, 14)
    assert _metric(observability, "calendar_slot_conflicts_total", operation="update") == 1.0


def test_update_unknown_event_raises_not_found(service):
    with pytest.raises(NotFoundError):
        service.update_event(_event(_at(1, 10), _at(1, 11)).with_id(42))


def test_update_without_id_rejected(service):
    with pytest.raises(ValidationError):
        service.update_event(_event(_at(1, 10), _at(1, 11)))


def test_update_checks_slot_excluding_itself():
    store = RecordingStore()
    service = EventService(store, Observability())
    event_id = service.create_event(_event(_at(1, 10), _at(1, 11)))
    store.calls.clear()

    service.update_event(_event(_at(1, 10), _at(1, 11)).with_id(event_id))

    assert store.calls == ["is_slot_taken", "update"]


# ---------------------------------------------------------------------------
# Reads, deletes, failures
# ---------------------------------------------------------------------------


def test_get_missing_event_raises_not_found(service):
    with pytest.raises(NotFoundError) as excinfo:
        service.get_event(5)
    assert excinfo.value.event_id == 5


def test_delete_missing_event_raises_not_found(service):
    with pytest.raises(NotFoundError):
        service.delete_event(5)


def test_list_events_empty(service):
    assert service.list_events() == []


def test_persistence_error_is_logged_counted_and_propagated(observability, caplog):
    service = EventService(FailingStore(), observability)

    with caplog.at_level(logging.ERROR, logger="calendar_service"):
        with pytest.raises(PersistenceError):
            service.list_events()

    assert "Storage failure during get_all" in caplog.text
    assert _metric(observability, "calendar_store_errors_total", operation="get_all") == 1.0


def test_write_guard_held_across_check_and_write():
    events: list[str] = []

    class GuardedStore(RecordingStore):
        @contextmanager
        def write_guard(self):
            events.append("enter")
            yield
            events.append("exit")

        def is_slot_taken(self, start, end, exclude_id=None):
            events.append("check")
            return super().is_slot_taken(start, end, exclude_id)

        def create(self, event):
            events.append("write")
            return super().create(event)

    EventService(GuardedStore(), Observability()).create_event(_event(_at(1, 10), _at(1, 11)))

    assert events == ["enter", "check", "write", "exit"]


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("backend", ["memory", "sqlite"])
def test_concurrent_creates_book_a_slot_once(backend, tmp_path):
    store = MemoryEventStore() if backend == "memory" else SqliteEventStore(tmp_path / "race.db")
    service = EventService(store, Observability())
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def book():
        barrier.wait()
        try:
            service.create_event(_event(_at(1, 10), _at(1, 11)))
            result = "created"
        except ConflictError:
            result = "conflict"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=book) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    try:
        assert sorted(outcomes) == ["conflict"] * 7 + ["created"]
        assert len(store.get_all()) == 1
    finally:
        store.close()
