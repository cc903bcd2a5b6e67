"""Alembic environment configuration for the central registry"""

from sqlalchemy import create_engine
from sqlmodel import SQLModel
from alembic import context

from tenantplane.core.config import get_settings
from tenantplane.models import CENTRAL_TABLES

# this is the Alembic Config object
config = context.config

target_metadata = SQLModel.metadata

# Tenant-database tables share the metadata; only central ones are managed here
CENTRAL_TABLE_NAMES = {table.name for table in CENTRAL_TABLES}


def include_object(object, name, type_, reflected, compare_to):
    if type_ == "table":
        return name in CENTRAL_TABLE_NAMES
    return True


def get_url():
    """Database URL from alembic.ini, falling back to application settings"""
    return config.get_main_option("sqlalchemy.url") or get_settings().DATABASE_URL


def run_migrations_offline():
    """Run migrations in 'offline' mode"""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode"""
    engine = create_engine(get_url())

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
