"""Command-line entry points: ``calendar-service`` and ``calendar-migrate``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import uvicorn

from calendar_service.config import get_settings
from calendar_service.domain.errors import CalendarError
from calendar_service.logging_config import setup_logging


def serve() -> None:
    """Run the HTTP API with the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "calendar_service.main:app",
        host=settings.http_host,
        port=settings.http_port,
        log_config=None,
    )


def build_migrate_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calendar-migrate",
        description="Upgrade a SQL event store to the newest forward-only migration.",
    )
    parser.add_argument(
        "--backend",
        choices=["postgres", "sqlite"],
        help="store to migrate (default: STORAGE_BACKEND)",
    )
    parser.add_argument(
        "--dsn",
        help="PostgreSQL DSN or SQLite file path (default: POSTGRES_DSN / SQLITE_PATH)",
    )
    parser.add_argument(
        "--migrations-path",
        type=Path,
        help="Alembic script directory (default: MIGRATIONS_DIR)",
    )
    return parser


def migrate(argv: list[str] | None = None) -> int:
    """Apply pending migrations and report how many ran."""
    args = build_migrate_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.env, settings.log_level, settings.log_file)

    backend = args.backend or settings.storage_backend
    migrations_dir = args.migrations_path or settings.migrations_dir

    try:
        if backend == "postgres":
            from calendar_service.repos.postgres import PostgresEventStore

            dsn = args.dsn or settings.postgres_dsn
            if not dsn:
                print("a PostgreSQL DSN is required (--dsn or POSTGRES_DSN)", file=sys.stderr)
                return 2
            store = PostgresEventStore(
                dsn, migrations_dir=migrations_dir, apply_migrations=False
            )
        elif backend == "sqlite":
            from calendar_service.repos.sqlite import SqliteEventStore

            store = SqliteEventStore(
                args.dsn or settings.sqlite_path,
                migrations_dir=migrations_dir,
                apply_migrations=False,
            )
        else:
            print(f"backend {backend!r} has no migrations", file=sys.stderr)
            return 2

        try:
            applied = store.migrate()
        finally:
            store.close()
    except CalendarError as exc:
        print(f"migration failed: {exc}", file=sys.stderr)
        return 1

    if applied:
        names = ", ".join(f"{r.revision}_{r.doc}" for r in applied)
        print(f"applied {len(applied)} migration(s): {names}")
    else:
        print("no migrations to apply")
    return 0


def main_migrate() -> None:
    sys.exit(migrate())
