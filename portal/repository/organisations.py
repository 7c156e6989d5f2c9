from __future__ import annotations

import sqlite3

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal import schema as db_schema
from portal.models import Organisation

from ._db import (
    commit_unless_caller_owns,
    reraise_as_sqlite_integrity_error,
    session_scope,
    write_session_scope,
)
from .mappers import _row_to_organisation


def create_organisation(
    connection_or_session: sqlite3.Connection | Session, name: str
) -> Organisation:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.Organisation(name=name.strip())
        try:
            session.add(model)
            commit_unless_caller_owns(connection_or_session, session)
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return Organisation(id=model.id, name=model.name)


def list_organisations(
    connection_or_session: sqlite3.Connection | Session,
) -> list[Organisation]:
    with session_scope(connection_or_session) as session:
        rows = (
            session.execute(
                select(db_schema.Organisation.id, db_schema.Organisation.name).order_by(
                    db_schema.Organisation.name.asc()
                )
            )
            .mappings()
            .all()
        )
    return [_row_to_organisation(row) for row in rows]


def delete_organisation(
    connection_or_session: sqlite3.Connection | Session, organisation_id: int
) -> bool:
    with write_session_scope(connection_or_session) as session:
        result = session.execute(
            delete(db_schema.Organisation).where(
                db_schema.Organisation.id == organisation_id
            )
        )
        commit_unless_caller_owns(connection_or_session, session)
    return bool(result.rowcount)
