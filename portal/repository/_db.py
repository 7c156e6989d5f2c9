from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.db import database_file
from portal.dependencies import create_db_session

ConnectionOrSession = Union[sqlite3.Connection, Session]


def _caller_owns(connection_or_session: ConnectionOrSession) -> bool:
    return isinstance(connection_or_session, Session)


@contextmanager
def session_scope(connection_or_session: ConnectionOrSession) -> Iterator[Session]:
    """Yield the caller's session, or a short-lived one on the connection's database."""
    if _caller_owns(connection_or_session):
        yield connection_or_session
        return
    session = create_db_session(database_file(connection_or_session))
    try:
        yield session
    finally:
        session.close()


@contextmanager
def write_session_scope(connection_or_session: ConnectionOrSession) -> Iterator[Session]:
    with session_scope(connection_or_session) as session:
        try:
            yield session
        except Exception:
            # A caller-supplied session is rolled back by whoever opened it.
            if not _caller_owns(connection_or_session):
                session.rollback()
            raise


@contextmanager
def transaction_scope(connection_or_session: ConnectionOrSession) -> Iterator[Session]:
    with session_scope(connection_or_session) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()


def commit_unless_caller_owns(
    connection_or_session: ConnectionOrSession, session: Session
) -> None:
    if _caller_owns(connection_or_session):
        session.flush()
    else:
        session.commit()


def reraise_as_sqlite_integrity_error(exc: IntegrityError) -> None:
    raise sqlite3.IntegrityError(str(exc.orig or exc)) from exc
