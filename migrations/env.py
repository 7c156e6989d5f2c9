from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from portal.schema import Base  # noqa: E402

config = context.config
target_metadata = Base.metadata

if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or (
        f"sqlite:///{os.getenv('PORTAL_DB_PATH', 'portal.db')}"
    )


def _migrate(**options) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **options)
    with context.begin_transaction():
        context.run_migrations()


def main() -> None:
    if context.is_offline_mode():
        _migrate(url=_database_url(), literal_binds=True)
        return

    external = config.attributes.get("connection")
    if external is not None:
        _migrate(connection=external)
        return

    settings = dict(config.get_section(config.config_ini_section) or {})
    settings["sqlalchemy.url"] = _database_url()
    engine = engine_from_config(settings, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with engine.connect() as connection:
        _migrate(connection=connection)


main()
