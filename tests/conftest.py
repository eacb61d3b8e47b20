"""Shared fixtures: a disposable PostgreSQL container for integration tests."""

from __future__ import annotations

import pytest


@pytest.fixture(scope="session")
def postgres_dsn():
    """Start one PostgreSQL container for the whole session."""
    postgres = pytest.importorskip("testcontainers.postgres")

    try:
        container = postgres.PostgresContainer("postgres:16-alpine")
        container.start()
    except Exception as exc:  # docker binary present but daemon unusable
        pytest.skip(f"PostgreSQL container unavailable: {exc}")
    yield container.get_connection_url()
    container.stop()
