"""Select and construct the configured event store backend."""

from __future__ import annotations

import logging

from calendar_service.config import Settings
from calendar_service.domain.errors import ConfigurationError
from calendar_service.repos.base import EventStore

logger = logging.getLogger(__name__)


def create_event_store(settings: Settings) -> EventStore:
    """Build the backend named by ``settings.storage_backend``.

    Driver modules are imported lazily so a deployment only needs the driver
    of the backend it runs.

    Raises:
        ConfigurationError: if the backend's connection settings are missing.
        PersistenceError: if the backend cannot be reached or migrated.
    """
    backend = settings.storage_backend
    logger.info("Initialising %s event store", backend)

    if backend == "postgres":
        if not settings.postgres_dsn:
            raise ConfigurationError("POSTGRES_DSN is required for the postgres backend")
        from calendar_service.repos.postgres import PostgresEventStore

        return PostgresEventStore(
            settings.postgres_dsn,
            migrations_dir=settings.migrations_dir,
            apply_migrations=settings.apply_migrations,
        )

    if backend == "mongodb":
        if not settings.mongo_dsn:
            raise ConfigurationError("MONGO_DSN is required for the mongodb backend")
        from calendar_service.repos.mongodb import MongoEventStore

        return MongoEventStore(
            settings.mongo_dsn,
            database=settings.mongo_database,
            username=settings.mongo_username,
            password=settings.mongo_password,
        )

    if backend == "sqlite":
        from calendar_service.repos.sqlite import SqliteEventStore

        return SqliteEventStore(
            settings.sqlite_path,
            migrations_dir=settings.migrations_dir,
            apply_migrations=settings.apply_migrations,
        )

    if backend == "memory":
        from calendar_service.repos.memory import MemoryEventStore

        return MemoryEventStore()

    raise ConfigurationError(f"unknown storage backend: {backend!r}")
