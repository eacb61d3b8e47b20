"""Programmatic Alembic migration runner for the SQL event stores.

Lets a store bring its schema to the newest revision at startup without
shelling out to the Alembic CLI. The revisions under ``migrations/versions``
form one linear chain and carry SQL for both PostgreSQL and SQLite.
Migrations are forward-only: nothing here ever calls ``downgrade``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import Script, ScriptDirectory
from alembic.util import CommandError
from sqlalchemy.engine import Connection

from calendar_service.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Root of the Alembic script directory (sibling to the package)
DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent.parent / "migrations"


def build_alembic_config(script_location: Path | None = None) -> Config:
    """Build an Alembic Config pointing at the script directory.

    Raises:
        ConfigurationError: if the directory has no ``env.py``.
    """
    location = script_location or DEFAULT_MIGRATIONS_DIR
    if not (location / "env.py").is_file():
        raise ConfigurationError(f"not an Alembic script directory: {location}")
    config = Config()
    config.set_main_option("script_location", str(location))
    config.set_main_option("path_separator", "os")
    return config


def list_revisions(config: Config) -> list[Script]:
    """Return every revision in the script directory, oldest first."""
    try:
        script = ScriptDirectory.from_config(config)
        return list(reversed(list(script.walk_revisions())))
    except CommandError as exc:
        raise ConfigurationError(f"invalid migration scripts: {exc}") from exc


def upgrade_to_head(connection: Connection, script_location: Path | None = None) -> list[Script]:
    """Upgrade the database behind *connection* and return the revisions that ran.

    The upgrade runs on *connection* itself, inside whatever transaction the
    caller holds.

    Raises:
        ConfigurationError: if the scripts are broken or the database is at a
            revision the scripts do not know.
    """
    config = build_alembic_config(script_location)
    revisions = list_revisions(config)
    known = [script.revision for script in revisions]

    current = MigrationContext.configure(connection).get_current_revision()
    if current is None:
        pending = revisions
    elif current in known:
        pending = revisions[known.index(current) + 1 :]
    else:
        raise ConfigurationError(f"database is at unknown migration revision {current!r}")

    for script in pending:
        logger.info("Applying migration %s (%s)", script.revision, script.doc)

    config.attributes["connection"] = connection
    try:
        command.upgrade(config, "head")
    except CommandError as exc:
        raise ConfigurationError(f"migration failed: {exc}") from exc
    return pending
