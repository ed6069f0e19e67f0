import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, create_engine

from app.core.config import settings
from app.db.session import Base

# Import all models so Alembic sees them in metadata
from app.db import base  # noqa: F401

# Alembic Config object
config = context.config

# Force sqlalchemy.url from real runtime DATABASE_URL
db_url = getattr(settings, "DATABASE_URL", None) or os.getenv("DATABASE_URL")
if not db_url:
    raise RuntimeError("DATABASE_URL is not set (check .env / app.core.config.settings)")

config.set_main_option("sqlalchemy.url", db_url)

# Logging config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Target metadata for autogenerate
target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    # events.location is generated by Postgres and not mapped on the model
    if type_ == "column" and name == "location" and getattr(obj, "table", None) is not None and obj.table.name == "events":
        return False
    if type_ == "index" and name == "ix_events_location":
        return False
    # PostGIS ships its own tables
    if type_ == "table" and name == "spatial_ref_sys":
        return False
    return True


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    url = config.get_main_option("sqlalchemy.url")

    # alembic.ini does not expand env vars, so build the engine from the runtime URL
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            include_object=include_object,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
