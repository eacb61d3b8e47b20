"""Alembic environment for the calendar event store.

Revisions are raw SQL via op.execute() (no SQLAlchemy models). The stores
run upgrades programmatically and hand over their own connection through
``config.attributes["connection"]``; the ``sqlalchemy.url`` option is the
fallback for running the Alembic CLI by hand.
"""

from __future__ import annotations

from sqlalchemy import create_engine, pool

from alembic import context


def run_migrations_offline() -> None:
    """Emit the migration SQL without a live connection."""
    context.configure(
        url=context.config.get_main_option("sqlalchemy.url"),
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connection = context.config.attributes.get("connection")
    if connection is not None:
        context.configure(connection=connection, target_metadata=None)
        with context.begin_transaction():
            context.run_migrations()
        return

    connectable = create_engine(
        context.config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=None)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
