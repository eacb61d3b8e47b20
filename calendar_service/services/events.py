"""Service facade: the create/update flow and thin read/delete wrappers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from calendar_service.domain.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from calendar_service.domain.models import Event, EventId, validate_time_range
from calendar_service.observability import Observability
from calendar_service.repos.base import EventStore


class EventService:
    """Runs validate -> conflict check -> write against one event store.

    The conflict check and the write share ``store.write_guard()``, so two
    writers cannot both see a free slot and then both book it. Nothing is
    retried: every failure propagates to the caller.
    """

    def __init__(self, store: EventStore, observability: Observability) -> None:
        self.store = store
        self.observability = observability
        self._logger = observability.logger.getChild("events")

    def parse_id(self, raw: str) -> EventId:
        return self.store.parse_id(raw)

    def create_event(self, event: Event) -> EventId:
        validate_time_range(event.start_time, event.end_time)
        with self._store_call("create"):
            with self.store.write_guard():
                self._ensure_slot_free(event, "create")
                event_id = self.store.create(event)
        self._logger.info(
            "Event %s created: %r [%s, %s)",
            event_id,
            event.title,
            event.start_time.isoformat(),
            event.end_time.isoformat(),
        )
        return event_id

    def update_event(self, event: Event) -> None:
        if event.id is None:
            raise ValidationError("event id is required for update")
        validate_time_range(event.start_time, event.end_time)
        with self._store_call("update", event.id):
            with self.store.write_guard():
                self._ensure_slot_free(event, "update", exclude_id=event.id)
                self.store.update(event)
        self._logger.info("Event %s updated", event.id)

    def get_event(self, event_id: EventId) -> Event:
        with self._store_call("get_by_id", event_id):
            event = self.store.get_by_id(event_id)
        if event is None:
            self._logger.debug("Event %s not found", event_id)
            raise NotFoundError(event_id)
        return event

    def list_events(self) -> list[Event]:
        with self._store_call("get_all"):
            return self.store.get_all()

    def delete_event(self, event_id: EventId) -> None:
        with self._store_call("delete", event_id):
            self.store.delete(event_id)
        self._logger.info("Event %s deleted", event_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_slot_free(
        self,
        event: Event,
        operation: str,
        exclude_id: EventId | None = None,
    ) -> None:
        if self.store.is_slot_taken(event.start_time, event.end_time, exclude_id=exclude_id):
            self.observability.record_conflict(operation)
            self._logger.warning(
                "Time slot is already taken: [%s, %s)",
                event.start_time.isoformat(),
                event.end_time.isoformat(),
            )
            raise ConflictError(event.start_time, event.end_time)

    @contextmanager
    def _store_call(self, operation: str, event_id: EventId | None = None) -> Iterator[None]:
        try:
            yield
        except PersistenceError as exc:
            self.observability.record_store_error(exc.operation)
            self._logger.error(
                "Storage failure during %s (event id: %s): %s",
                operation,
                event_id,
                exc,
                exc_info=exc.__cause__,
            )
            raise
