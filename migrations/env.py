from logging.config import fileConfig
import os
import sys

from alembic import context
from sqlalchemy import engine_from_config, pool

# Project root on sys.path so `alembic` works from any directory.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

import control_tower.models  # noqa: F401
from control_tower.config import settings
from control_tower.database import Base

# Owned by the identity and project services; referenced here, never migrated.
EXTERNAL_TABLES = {"users", "project_members"}


def _sync_url() -> str:
    """Migrations run on a sync driver. Fall back to the app URL with asyncpg swapped out."""
    if settings.DATABASE_SYNC_URL:
        return settings.DATABASE_SYNC_URL
    return settings.DATABASE_URL.replace("+asyncpg", "+psycopg2")


def include_object(obj, name, type_, reflected, compare_to):
    if type_ == "table" and name in EXTERNAL_TABLES:
        return False
    return True


config = context.config
database_url = _sync_url()
config.set_main_option("sqlalchemy.url", database_url)
if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline():
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        include_object=include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
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
