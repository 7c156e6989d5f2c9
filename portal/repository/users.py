from __future__ import annotations

import sqlite3
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal import schema as db_schema
from portal.models import User, UserRole

from ._db import (
    reraise_as_sqlite_integrity_error,
    session_scope,
    write_session_scope,
)
from .mappers import _row_to_user

_USER_COLUMNS = (
    db_schema.User.id,
    db_schema.User.external_id,
    db_schema.User.email,
    db_schema.User.name,
    db_schema.User.organisation_id,
)


def _roles_for_user(session: Session, user_id: int) -> list[UserRole]:
    names = session.scalars(
        select(db_schema.Role.name)
        .join(db_schema.UserRole, db_schema.UserRole.role_id == db_schema.Role.id)
        .where(db_schema.UserRole.user_id == user_id)
        .order_by(db_schema.Role.id.asc())
    ).all()
    return [UserRole(name) for name in dict.fromkeys(names)]


def create_user(
    connection_or_session: sqlite3.Connection | Session,
    external_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    organisation_id: Optional[int] = None,
) -> User:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.User(
            external_id=external_id,
            email=email,
            name=name,
            organisation_id=organisation_id,
        )
        try:
            session.add(model)
            session.commit()
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return User(
            id=model.id,
            external_id=model.external_id,
            email=model.email,
            name=model.name,
            organisation_id=model.organisation_id,
        )


def count_users(connection_or_session: sqlite3.Connection | Session) -> int:
    with session_scope(connection_or_session) as session:
        total = session.scalar(select(func.count()).select_from(db_schema.User))
    return int(total or 0)


def _get_user(
    connection_or_session: sqlite3.Connection | Session, condition
) -> Optional[User]:
    with session_scope(connection_or_session) as session:
        row = session.execute(select(*_USER_COLUMNS).where(condition)).mappings().first()
        if row is None:
            return None
        return _row_to_user(row, _roles_for_user(session, row["id"]))


def get_user_by_id(
    connection_or_session: sqlite3.Connection | Session, user_id: int
) -> Optional[User]:
    return _get_user(connection_or_session, db_schema.User.id == user_id)


def get_user_by_external_id(
    connection_or_session: sqlite3.Connection | Session, external_id: str
) -> Optional[User]:
    return _get_user(connection_or_session, db_schema.User.external_id == external_id)


def update_user_profile(
    connection_or_session: sqlite3.Connection | Session,
    external_id: str,
    email: Optional[str],
    name: Optional[str],
) -> Optional[User]:
    with write_session_scope(connection_or_session) as session:
        result = session.execute(
            update(db_schema.User)
            .where(db_schema.User.external_id == external_id)
            .values(email=email, name=name, updated_at=func.current_timestamp())
        )
        if result.rowcount == 0:
            session.rollback()
            return None
        session.commit()
    return get_user_by_external_id(connection_or_session, external_id)


def set_user_organisation(
    connection_or_session: sqlite3.Connection | Session,
    user_id: int,
    organisation_id: Optional[int],
) -> None:
    with write_session_scope(connection_or_session) as session:
        session.execute(
            update(db_schema.User)
            .where(db_schema.User.id == user_id)
            .values(organisation_id=organisation_id)
        )
        session.commit()


def delete_user_by_external_id(
    connection_or_session: sqlite3.Connection | Session, external_id: str
) -> bool:
    with write_session_scope(connection_or_session) as session:
        result = session.execute(
            delete(db_schema.User).where(db_schema.User.external_id == external_id)
        )
        session.commit()
    return bool(result.rowcount)


def assign_role(
    connection_or_session: sqlite3.Connection | Session,
    user_id: int,
    role: UserRole,
    organisation_id: Optional[int] = None,
) -> None:
    with write_session_scope(connection_or_session) as session:
        role_id = session.scalar(
            select(db_schema.Role.id).where(db_schema.Role.name == role.value)
        )
        if role_id is None:
            raise sqlite3.IntegrityError(f"Unknown role: {role.value}")
        organisation_condition = (
            db_schema.UserRole.organisation_id.is_(None)
            if organisation_id is None
            else db_schema.UserRole.organisation_id == organisation_id
        )
        existing = session.scalar(
            select(db_schema.UserRole.id).where(
                db_schema.UserRole.user_id == user_id,
                db_schema.UserRole.role_id == role_id,
                organisation_condition,
            )
        )
        if existing is not None:
            return
        try:
            session.add(
                db_schema.UserRole(
                    user_id=user_id, role_id=role_id, organisation_id=organisation_id
                )
            )
            session.commit()
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
