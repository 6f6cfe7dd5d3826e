from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import MetaData, engine_from_config, pool

_REPO_ROOT = Path(__file__).resolve().parents[2]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from infra import AuditBase, OrderingBase  # noqa: E402
from libs.env import get_database_url  # noqa: E402
from services.auth_service.app.models import Base as CredentialBase  # noqa: E402

config = context.config

if config.config_file_name is not None:
    try:
        fileConfig(config.config_file_name)
    except (KeyError, ValueError) as exc:  # pragma: no cover - logging configuration is optional
        logging.warning("Error configuring logging: %s", exc)


def _resolve_database_url() -> str:
    value = os.getenv("ALEMBIC_DATABASE_URL") or get_database_url()
    config.set_main_option("sqlalchemy.url", value)
    return value


target_metadata: tuple[MetaData, ...] = (
    OrderingBase.metadata,
    AuditBase.metadata,
    CredentialBase.metadata,
)
database_url = _resolve_database_url()


def run_migrations_offline() -> None:
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = database_url

    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
