from __future__ import annotations

from sqlalchemy import create_engine, pool

from alembic import context
from burn_watch.config import AppSettings
from burn_watch.db import Base

target_metadata = Base.metadata
database_url = AppSettings().database_url


def run_migrations_offline():
    context.configure(url=database_url, target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    engine = create_engine(database_url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
