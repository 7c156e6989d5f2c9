from __future__ import annotations

import json
import sqlite3
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal import schema as db_schema
from portal.models import Invitation, InvitationStatus, UserRole

from ._db import (
    commit_unless_caller_owns,
    reraise_as_sqlite_integrity_error,
    session_scope,
    write_session_scope,
)
from .mappers import _row_to_invitation

_INVITATION_COLUMNS = (
    db_schema.Invitation.id,
    db_schema.Invitation.email,
    db_schema.Invitation.name,
    db_schema.Invitation.organisation_id,
    db_schema.Invitation.role_name,
    db_schema.Invitation.course_ids,
    db_schema.Invitation.external_invitation_id,
    db_schema.Invitation.status,
    db_schema.Invitation.invited_by,
    db_schema.Invitation.invited_at,
    db_schema.Invitation.expires_at,
)


def create_invitation(
    connection_or_session: sqlite3.Connection | Session,
    email: str,
    organisation_id: int,
    role: UserRole,
    external_invitation_id: str,
    invited_at: str,
    expires_at: str,
    name: Optional[str] = None,
    course_ids: Optional[list[int]] = None,
    invited_by: Optional[int] = None,
) -> Invitation:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.Invitation(
            email=email,
            name=name,
            organisation_id=organisation_id,
            role_name=role.value,
            status=InvitationStatus.PENDING.value,
            external_invitation_id=external_invitation_id,
            course_ids=json.dumps(list(course_ids or [])),
            invited_by=invited_by,
            invited_at=invited_at,
            expires_at=expires_at,
        )
        try:
            session.add(model)
            commit_unless_caller_owns(connection_or_session, session)
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return Invitation(
            id=model.id,
            email=model.email,
            name=model.name,
            organisation_id=model.organisation_id,
            role=role,
            course_ids=list(course_ids or []),
            external_invitation_id=model.external_invitation_id,
            status=InvitationStatus.PENDING,
            invited_by=model.invited_by,
            invited_at=model.invited_at,
            expires_at=model.expires_at,
        )


def list_invitations(
    connection_or_session: sqlite3.Connection | Session,
    organisation_id: Optional[int] = None,
    status: Optional[InvitationStatus] = None,
) -> list[Invitation]:
    statement = select(*_INVITATION_COLUMNS).order_by(db_schema.Invitation.id.asc())
    if organisation_id is not None:
        statement = statement.where(
            db_schema.Invitation.organisation_id == organisation_id
        )
    if status is not None:
        statement = statement.where(db_schema.Invitation.status == status.value)
    with session_scope(connection_or_session) as session:
        rows = session.execute(statement).mappings().all()
    return [_row_to_invitation(row) for row in rows]


def delete_invitation(
    connection_or_session: sqlite3.Connection | Session, invitation_id: int
) -> bool:
    with write_session_scope(connection_or_session) as session:
        result = session.execute(
            delete(db_schema.Invitation).where(db_schema.Invitation.id == invitation_id)
        )
        commit_unless_caller_owns(connection_or_session, session)
    return bool(result.rowcount)


def delete_invitations_for_email(
    connection_or_session: sqlite3.Connection | Session,
    email: str,
    organisation_id: int,
) -> int:
    with write_session_scope(connection_or_session) as session:
        result = session.execute(
            delete(db_schema.Invitation).where(
                db_schema.Invitation.email == email,
                db_schema.Invitation.organisation_id == organisation_id,
            )
        )
        commit_unless_caller_owns(connection_or_session, session)
    return int(result.rowcount or 0)


def mark_invitation_accepted(
    connection_or_session: sqlite3.Connection | Session,
    email: str,
    organisation_id: int,
) -> bool:
    with write_session_scope(connection_or_session) as session:
        result = session.execute(
            update(db_schema.Invitation)
            .where(
                db_schema.Invitation.email == email,
                db_schema.Invitation.organisation_id == organisation_id,
                db_schema.Invitation.status == InvitationStatus.PENDING.value,
            )
            .values(
                status=InvitationStatus.ACCEPTED.value,
                accepted_at=func.current_timestamp(),
            )
        )
        commit_unless_caller_owns(connection_or_session, session)
    return bool(result.rowcount)
