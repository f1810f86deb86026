"""Alembic environment for the issuer tables.

DATABASE_URL comes from kyc_issuer.core.config, the same source the
service reads, so migrations and the running app never disagree about
which database they target.
"""

from __future__ import annotations

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context
from kyc_issuer.core.config import SETTINGS
from kyc_issuer.db.engine import Base

config = context.config


def _sync_url(url: str) -> str:
    # Migrations run synchronously; the app uses the asyncpg driver.
    return url.replace("postgresql+asyncpg", "postgresql")


if SETTINGS.database_url:
    config.set_main_option("sqlalchemy.url", _sync_url(SETTINGS.database_url))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Registers IssuerConfigRow, CredentialRow and LedgerAccountRow on Base.metadata.
import kyc_issuer.db.tables  # noqa: E402, F401

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL without a live database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
