from __future__ import annotations

import sqlite3
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal import schema as db_schema
from portal.models import Course, CourseLesson, CourseModule

from ._db import (
    reraise_as_sqlite_integrity_error,
    session_scope,
    write_session_scope,
)
from .mappers import _row_to_course


def create_course(
    connection_or_session: sqlite3.Connection | Session,
    name: str,
    slug: str,
    is_published: bool = False,
    description: Optional[str] = None,
) -> Course:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.Course(
            name=name,
            slug=slug,
            description=description,
            is_published=1 if is_published else 0,
        )
        try:
            session.add(model)
            session.commit()
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return Course(
            id=model.id,
            name=model.name,
            slug=model.slug,
            is_published=bool(model.is_published),
        )


def list_published_courses(
    connection_or_session: sqlite3.Connection | Session,
) -> list[Course]:
    with session_scope(connection_or_session) as session:
        rows = (
            session.execute(
                select(
                    db_schema.Course.id,
                    db_schema.Course.name,
                    db_schema.Course.slug,
                    db_schema.Course.is_published,
                )
                .where(db_schema.Course.is_published == 1)
                .order_by(db_schema.Course.sort_order.asc(), db_schema.Course.id.asc())
            )
            .mappings()
            .all()
        )
    return [_row_to_course(row) for row in rows]


def create_module(
    connection_or_session: sqlite3.Connection | Session, course_id: int, name: str
) -> CourseModule:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.CourseModule(course_id=course_id, name=name)
        try:
            session.add(model)
            session.commit()
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return CourseModule(id=model.id, course_id=model.course_id, name=model.name)


def create_lesson(
    connection_or_session: sqlite3.Connection | Session,
    module_id: int,
    name: str,
    slug: str,
) -> CourseLesson:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.CourseLesson(module_id=module_id, name=name, slug=slug)
        try:
            session.add(model)
            session.commit()
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return CourseLesson(
            id=model.id, module_id=model.module_id, name=model.name, slug=model.slug
        )


def _count(session: Session, statement) -> int:
    return int(session.scalar(statement) or 0)


def is_course_slug_available(
    connection_or_session: sqlite3.Connection | Session,
    slug: str,
    exclude_id: Optional[int] = None,
) -> bool:
    statement = (
        select(func.count())
        .select_from(db_schema.Course)
        .where(db_schema.Course.slug == slug)
    )
    if exclude_id is not None:
        statement = statement.where(db_schema.Course.id != exclude_id)
    with session_scope(connection_or_session) as session:
        return _count(session, statement) == 0


def is_lesson_slug_available(
    connection_or_session: sqlite3.Connection | Session,
    slug: str,
    module_id: int,
    exclude_id: Optional[int] = None,
) -> bool:
    statement = (
        select(func.count())
        .select_from(db_schema.CourseLesson)
        .where(
            db_schema.CourseLesson.module_id == module_id,
            db_schema.CourseLesson.slug == slug,
        )
    )
    if exclude_id is not None:
        statement = statement.where(db_schema.CourseLesson.id != exclude_id)
    with session_scope(connection_or_session) as session:
        return _count(session, statement) == 0


def is_module_name_available(
    connection_or_session: sqlite3.Connection | Session,
    name: str,
    course_id: int,
    exclude_id: Optional[int] = None,
) -> bool:
    statement = (
        select(func.count())
        .select_from(db_schema.CourseModule)
        .where(
            db_schema.CourseModule.course_id == course_id,
            func.lower(func.trim(db_schema.CourseModule.name)) == name.strip().lower(),
        )
    )
    if exclude_id is not None:
        statement = statement.where(db_schema.CourseModule.id != exclude_id)
    with session_scope(connection_or_session) as session:
        return _count(session, statement) == 0
