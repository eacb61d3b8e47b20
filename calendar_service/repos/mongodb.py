"""Document event store on MongoDB, through pymongo.

Events are documents in an ``events`` collection keyed by an
engine-generated ``ObjectId``; on the wire the id is its 24-character hex
string. The slot-conflict query is a filter document equivalent to the SQL
predicate. BSON dates keep millisecond precision, so sub-millisecond parts
of a timestamp do not survive a round trip.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from calendar_service.domain.errors import (
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from calendar_service.domain.models import Event
from calendar_service.logging_config import redact_dsn

logger = logging.getLogger(__name__)

COLLECTION_NAME = "events"


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        raise PersistenceError(operation) from exc


def slot_taken_filter(
    start: datetime,
    end: datetime,
    exclude_id: str | None = None,
) -> dict[str, Any]:
    """Build the filter matching stored events that conflict with [start, end)."""
    query: dict[str, Any] = {
        "$or": [
            {"start_time": {"$lt": start}, "end_time": {"$gt": end}},
            {"start_time": {"$gte": start}, "end_time": {"$lte": end}},
        ]
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": _object_id(exclude_id)}
    return query


def _object_id(event_id: str) -> ObjectId:
    try:
        return ObjectId(event_id)
    except (InvalidId, TypeError):
        raise ValidationError(f"invalid event id: {event_id!r}") from None


class MongoEventStore:
    """Event store backed by a MongoDB collection.

    The write guard is a process-local lock: writers in one process are
    serialised, writers in separate processes are not.
    """

    def __init__(
        self,
        dsn: str | None = None,
        database: str = "calendar",
        username: str | None = None,
        password: str | None = None,
        client: MongoClient | None = None,
    ) -> None:
        if client is None:
            if not dsn:
                raise ValueError("either dsn or client is required")
            options: dict[str, Any] = {"tz_aware": True}
            if username and password:
                options.update(username=username, password=password)
            logger.info("Connecting to MongoDB at %s", redact_dsn(dsn))
            with _translate_errors("connect"):
                client = MongoClient(dsn, **options)
                client.admin.command("ping")
        self._client = client
        self._collection: Collection = client[database][COLLECTION_NAME]
        self._lock = threading.Lock()
        logger.info("Using MongoDB collection %s.%s", database, COLLECTION_NAME)

    def parse_id(self, raw: str) -> str:
        return str(_object_id(raw))

    def create(self, event: Event) -> str:
        with _translate_errors("create"):
            result = self._collection.insert_one(self._document(event))
        return str(result.inserted_id)

    def get_by_id(self, event_id: str) -> Event | None:
        with _translate_errors("get_by_id"):
            document = self._collection.find_one({"_id": _object_id(event_id)})
        return None if document is None else self._to_event(document)

    def get_all(self) -> list[Event]:
        with _translate_errors("get_all"):
            return [self._to_event(document) for document in self._collection.find({})]

    def update(self, event: Event) -> None:
        with _translate_errors("update"):
            result = self._collection.update_one(
                {"_id": _object_id(event.id)}, {"$set": self._document(event)}
            )
        if result.matched_count == 0:
            raise NotFoundError(event.id)

    def delete(self, event_id: str) -> None:
        with _translate_errors("delete"):
            result = self._collection.delete_one({"_id": _object_id(event_id)})
        if result.deleted_count == 0:
            raise NotFoundError(event_id)

    def is_slot_taken(
        self,
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> bool:
        query = slot_taken_filter(start, end, exclude_id)
        with _translate_errors("is_slot_taken"):
            return self._collection.count_documents(query, limit=1) > 0

    @contextmanager
    def write_guard(self) -> Iterator[None]:
        with self._lock:
            yield

    def close(self) -> None:
        self._client.close()
        logger.info("Closed MongoDB client")

    @staticmethod
    def _document(event: Event) -> dict[str, Any]:
        return {
            "title": event.title,
            "description": event.description,
            "start_time": event.start_time,
            "end_time": event.end_time,
        }

    @staticmethod
    def _to_event(document: dict[str, Any]) -> Event:
        return Event(
            id=str(document["_id"]),
            title=document.get("title", ""),
            description=document.get("description", ""),
            start_time=document["start_time"],
            end_time=document["end_time"],
        )
