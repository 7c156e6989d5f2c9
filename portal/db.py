from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DB_PATH = "portal.db"

_CONNECTION_PRAGMAS = (
    "journal_mode=WAL",
    "synchronous=NORMAL",
    "busy_timeout=5000",
    "foreign_keys=ON",
)


def connect(db_path: str) -> sqlite3.Connection:
    connection = sqlite3.connect(db_path, check_same_thread=False)
    connection.row_factory = sqlite3.Row
    for pragma in _CONNECTION_PRAGMAS:
        connection.execute(f"PRAGMA {pragma}")
    return connection


def database_file(connection: sqlite3.Connection) -> Optional[str]:
    """Path of the connection's main database, or None for in-memory databases."""
    main = connection.execute("PRAGMA database_list").fetchone()
    return (main[2] or None) if main is not None else None


def alembic_config(db_path: str) -> Config:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    config.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    # Application logging is configured at startup; keep alembic.ini out of it.
    config.attributes["configure_logger"] = False
    return config


def upgrade(db_path: Optional[str] = None, revision: str = "head") -> None:
    target = db_path or os.getenv("PORTAL_DB_PATH") or DEFAULT_DB_PATH
    command.upgrade(alembic_config(target), revision)


def init_db(connection: sqlite3.Connection) -> None:
    upgrade(database_file(connection))


def has_table(connection: sqlite3.Connection, table_name: str) -> bool:
    found = connection.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table_name,),
    ).fetchone()
    return found is not None
