"""Relational event store on PostgreSQL, through SQLAlchemy Core.

Queries are plain parameterised SQL run on a process-wide engine. Inside the
write guard every store call reuses the guard's connection, so a guarded
conflict check and write hold exactly one pooled connection between them.
Timestamps are ``TIMESTAMPTZ`` columns, so instants round-trip exactly and
come back as aware datetimes.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from alembic.script import Script
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from calendar_service.domain.errors import (
    NotFoundError,
    PersistenceError,
)
from calendar_service.domain.models import Event, parse_integer_id
from calendar_service.logging_config import redact_dsn
from calendar_service.repos.migrations import upgrade_to_head

logger = logging.getLogger(__name__)

# Key for the transaction-level advisory lock that serialises slot writers.
SLOT_WRITE_LOCK_KEY = 0x63616C656E646172

_SELECT_COLUMNS = "SELECT id, title, description, start_time, end_time FROM events"

_SLOT_TAKEN_QUERY = text(
    """
    SELECT EXISTS (
        SELECT 1 FROM events
        WHERE ((start_time < :start AND end_time > :end)
            OR (start_time >= :start AND end_time <= :end))
          AND (CAST(:exclude_id AS BIGINT) IS NULL OR id <> :exclude_id)
    )
    """
)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(operation) from exc


class PostgresEventStore:
    """Event store backed by a PostgreSQL ``events`` table.

    The write guard opens one transaction and takes a transaction-level
    advisory lock in it, so conflict-check-then-write is serialised across
    threads and across processes sharing the database. The lock is released
    when that transaction commits or rolls back.
    """

    def __init__(
        self,
        dsn: str | None = None,
        migrations_dir: Path | None = None,
        apply_migrations: bool = True,
        engine: Engine | None = None,
    ) -> None:
        if engine is None:
            if not dsn:
                raise ValueError("either dsn or engine is required")
            logger.info("Connecting to PostgreSQL at %s", redact_dsn(dsn))
            with _translate_errors("connect"):
                engine = create_engine(dsn, pool_pre_ping=True)
        self._engine = engine
        self._migrations_dir = migrations_dir
        self._guarded = threading.local()
        if apply_migrations:
            self.migrate()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def migrate(self) -> list[Script]:
        """Upgrade the schema to the newest revision in one transaction."""
        with _translate_errors("migrate"), self._engine.begin() as conn:
            return upgrade_to_head(conn, self._migrations_dir)

    # ------------------------------------------------------------------
    # EventStore
    # ------------------------------------------------------------------

    def parse_id(self, raw: str) -> int:
        return parse_integer_id(raw)

    def create(self, event: Event) -> int:
        with self._transaction("create") as conn:
            return conn.execute(
                text(
                    "INSERT INTO events (title, description, start_time, end_time) "
                    "VALUES (:title, :description, :start_time, :end_time) RETURNING id"
                ),
                self._params(event),
            ).scalar_one()

    def get_by_id(self, event_id: int) -> Event | None:
        with self._transaction("get_by_id") as conn:
            row = conn.execute(
                text(f"{_SELECT_COLUMNS} WHERE id = :id"), {"id": event_id}
            ).one_or_none()
        return None if row is None else self._row_to_event(row)

    def get_all(self) -> list[Event]:
        with self._transaction("get_all") as conn:
            rows = conn.execute(text(f"{_SELECT_COLUMNS} ORDER BY id")).all()
        return [self._row_to_event(row) for row in rows]

    def update(self, event: Event) -> None:
        with self._transaction("update") as conn:
            result = conn.execute(
                text(
                    "UPDATE events SET title = :title, description = :description, "
                    "start_time = :start_time, end_time = :end_time WHERE id = :id"
                ),
                {**self._params(event), "id": event.id},
            )
        if result.rowcount == 0:
            raise NotFoundError(event.id)

    def delete(self, event_id: int) -> None:
        with self._transaction("delete") as conn:
            result = conn.execute(text("DELETE FROM events WHERE id = :id"), {"id": event_id})
        if result.rowcount == 0:
            raise NotFoundError(event_id)

    def is_slot_taken(
        self,
        start: datetime,
        end: datetime,
        exclude_id: int | None = None,
    ) -> bool:
        with self._transaction("is_slot_taken") as conn:
            return bool(
                conn.execute(
                    _SLOT_TAKEN_QUERY,
                    {"start": start, "end": end, "exclude_id": exclude_id},
                ).scalar_one()
            )

    @contextmanager
    def write_guard(self) -> Iterator[None]:
        if getattr(self._guarded, "conn", None) is not None:
            yield
            return
        with _translate_errors("write_guard"), self._engine.begin() as conn:
            conn.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": SLOT_WRITE_LOCK_KEY})
            self._guarded.conn = conn
            try:
                yield
            finally:
                self._guarded.conn = None

    def close(self) -> None:
        self._engine.dispose()
        logger.info("Disposed PostgreSQL engine")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Connection]:
        """Yield the write guard's connection if this thread holds it, else a new transaction."""
        conn = getattr(self._guarded, "conn", None)
        if conn is not None:
            with _translate_errors(operation):
                yield conn
            return
        with _translate_errors(operation), self._engine.begin() as conn:
            yield conn

    @staticmethod
    def _params(event: Event) -> dict:
        return {
            "title": event.title,
            "description": event.description,
            "start_time": event.start_time,
            "end_time": event.end_time,
        }

    @staticmethod
    def _row_to_event(row) -> Event:
        return Event(
            id=row.id,
            title=row.title,
            description=row.description,
            start_time=row.start_time,
            end_time=row.end_time,
        )
