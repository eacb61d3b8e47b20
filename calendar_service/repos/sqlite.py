"""Embedded SQL event store on the standard-library sqlite3 driver.

SQLite has no temporal column type, so timestamps are stored as UTC text in
one fixed format. The format sorts lexicographically in chronological order,
which lets the slot-conflict query compare the text columns directly. Reads
parse the text back strictly: a row holding any other format fails the
operation instead of being coerced.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from alembic.script import Script
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from calendar_service.domain.errors import (
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from calendar_service.domain.models import Event, parse_integer_id
from calendar_service.repos.migrations import upgrade_to_head

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_SELECT_COLUMNS = "SELECT id, title, description, start_time, end_time FROM events"

_SLOT_TAKEN_QUERY = """
SELECT EXISTS (
    SELECT 1 FROM events
    WHERE ((start_time < :start AND end_time > :end)
        OR (start_time >= :start AND end_time <= :end))
      AND (:exclude_id IS NULL OR id <> :exclude_id)
)
"""


def format_timestamp(value: datetime) -> str:
    """Render *value* as fixed-width UTC text in TIMESTAMP_FORMAT.

    Raises:
        ValidationError: if the instant falls outside years 1-9999 in UTC.
    """
    try:
        utc = value.astimezone(timezone.utc)
    except OverflowError:
        raise ValidationError(f"timestamp out of range: {value.isoformat()}") from None
    # strftime("%Y") is not zero-padded below year 1000 on glibc.
    return f"{utc.year:04d}-{utc:%m-%dT%H:%M:%S.%f}Z"


def parse_timestamp(text: Any) -> datetime:
    """Parse a stored timestamp, raising ValueError unless it is in TIMESTAMP_FORMAT."""
    if not isinstance(text, str):
        raise ValueError(f"stored timestamp is not text: {text!r}")
    return datetime.strptime(text, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise PersistenceError(operation) from exc


class SqliteEventStore:
    """Event store backed by a single SQLite connection.

    The connection is shared by every request thread and serialised by a
    re-entrant lock, which also serves as the write guard. Cross-process
    writers against the same file are not coordinated.
    """

    def __init__(
        self,
        path: str | Path,
        migrations_dir: Path | None = None,
        apply_migrations: bool = True,
    ) -> None:
        self._path = str(path)
        self._migrations_dir = migrations_dir
        self._lock = threading.RLock()
        with _translate_errors("connect"):
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
        logger.info("Opened SQLite event store at %s", self._path)
        if apply_migrations:
            self.migrate()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def migrate(self) -> list[Script]:
        """Upgrade the schema to the newest revision and return the revisions that ran.

        Alembic runs on this store's own connection, so in-memory databases
        are migrated too.
        """
        engine = create_engine("sqlite://", creator=lambda: self._conn, poolclass=StaticPool)
        with self._lock:
            try:
                with engine.begin() as conn:
                    return upgrade_to_head(conn, self._migrations_dir)
            except SQLAlchemyError as exc:
                raise PersistenceError("migrate") from exc

    # ------------------------------------------------------------------
    # EventStore
    # ------------------------------------------------------------------

    def parse_id(self, raw: str) -> int:
        return parse_integer_id(raw)

    def create(self, event: Event) -> int:
        with self._lock, _translate_errors("create"):
            cursor = self._conn.execute(
                "INSERT INTO events (title, description, start_time, end_time) "
                "VALUES (?, ?, ?, ?)",
                (
                    event.title,
                    event.description,
                    format_timestamp(event.start_time),
                    format_timestamp(event.end_time),
                ),
            )
            self._conn.commit()
            return cursor.lastrowid

    def get_by_id(self, event_id: int) -> Event | None:
        with self._lock, _translate_errors("get_by_id"):
            row = self._conn.execute(f"{_SELECT_COLUMNS} WHERE id = ?", (event_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_event(row, "get_by_id")

    def get_all(self) -> list[Event]:
        with self._lock, _translate_errors("get_all"):
            rows = self._conn.execute(f"{_SELECT_COLUMNS} ORDER BY id").fetchall()
        return [self._row_to_event(row, "get_all") for row in rows]

    def update(self, event: Event) -> None:
        with self._lock, _translate_errors("update"):
            cursor = self._conn.execute(
                "UPDATE events SET title = ?, description = ?, start_time = ?, end_time = ? "
                "WHERE id = ?",
                (
                    event.title,
                    event.description,
                    format_timestamp(event.start_time),
                    format_timestamp(event.end_time),
                    event.id,
                ),
            )
            self._conn.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(event.id)

    def delete(self, event_id: int) -> None:
        with self._lock, _translate_errors("delete"):
            cursor = self._conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
            self._conn.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(event_id)

    def is_slot_taken(
        self,
        start: datetime,
        end: datetime,
        exclude_id: int | None = None,
    ) -> bool:
        params = {
            "start": format_timestamp(start),
            "end": format_timestamp(end),
            "exclude_id": exclude_id,
        }
        with self._lock, _translate_errors("is_slot_taken"):
            (taken,) = self._conn.execute(_SLOT_TAKEN_QUERY, params).fetchone()
        return bool(taken)

    @contextmanager
    def write_guard(self) -> Iterator[None]:
        with self._lock:
            yield

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("Closed SQLite event store at %s", self._path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_event(row: tuple, operation: str) -> Event:
        event_id, title, description, start_text, end_text = row
        try:
            start_time = parse_timestamp(start_text)
            end_time = parse_timestamp(end_text)
        except ValueError as exc:
            raise PersistenceError(
                operation, f"event {event_id} has a malformed stored timestamp"
            ) from exc
        return Event(
            id=event_id,
            title=title,
            description=description,
            start_time=start_time,
            end_time=end_time,
        )
