from __future__ import annotations

import os
from functools import lru_cache
from typing import AsyncIterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from portal import db
from portal.identity.client import IdentityClient


def get_db_path() -> str:
    return os.getenv("PORTAL_DB_PATH", db.DEFAULT_DB_PATH)


def _on_connect(dbapi_connection, connection_record) -> None:
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT/ROLLBACK TO behave.
    dbapi_connection.isolation_level = None
    dbapi_connection.execute("PRAGMA foreign_keys = ON")
    dbapi_connection.execute("PRAGMA busy_timeout=5000;")


def _on_begin(connection) -> None:
    connection.exec_driver_sql("BEGIN")


@lru_cache(maxsize=8)
def _get_session_factory(db_path: str) -> sessionmaker[Session]:
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    event.listen(engine, "connect", _on_connect)
    event.listen(engine, "begin", _on_begin)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_db_session(db_path: str | None = None) -> Session:
    target_db_path = db_path or get_db_path()
    return _get_session_factory(target_db_path)()


def get_connection():
    connection = db.connect(get_db_path())
    try:
        yield connection
    finally:
        connection.close()


async def get_identity_client() -> AsyncIterator[IdentityClient]:
    client = IdentityClient.from_environment()
    try:
        yield client
    finally:
        await client.aclose()
