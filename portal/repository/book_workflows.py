from __future__ import annotations

import sqlite3
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal import schema as db_schema
from portal.models import (
    ActivityType,
    Book,
    BookWorkflow,
    BookWorkflowCategory,
    BookWorkflowDepartment,
    ProblemGoal,
)

from ._db import (
    commit_unless_caller_owns,
    reraise_as_sqlite_integrity_error,
    session_scope,
    write_session_scope,
)
from .mappers import (
    _row_to_book,
    _row_to_book_workflow,
    _row_to_book_workflow_category,
    _row_to_book_workflow_department,
)


def list_book_workflow_departments(
    connection_or_session: sqlite3.Connection | Session,
) -> list[BookWorkflowDepartment]:
    with session_scope(connection_or_session) as session:
        rows = (
            session.execute(
                select(
                    db_schema.BookWorkflowDepartment.id,
                    db_schema.BookWorkflowDepartment.name,
                    db_schema.BookWorkflowDepartment.slug,
                ).order_by(
                    db_schema.BookWorkflowDepartment.sort_order.asc(),
                    db_schema.BookWorkflowDepartment.id.asc(),
                )
            )
            .mappings()
            .all()
        )
    return [_row_to_book_workflow_department(row) for row in rows]


def list_book_workflow_categories(
    connection_or_session: sqlite3.Connection | Session,
) -> list[BookWorkflowCategory]:
    with session_scope(connection_or_session) as session:
        rows = (
            session.execute(
                select(
                    db_schema.BookWorkflowCategory.id,
                    db_schema.BookWorkflowCategory.department_id,
                    db_schema.BookWorkflowDepartment.name.label("department_name"),
                    db_schema.BookWorkflowCategory.name,
                    db_schema.BookWorkflowCategory.slug,
                )
                .join(
                    db_schema.BookWorkflowDepartment,
                    db_schema.BookWorkflowDepartment.id
                    == db_schema.BookWorkflowCategory.department_id,
                )
                .order_by(db_schema.BookWorkflowCategory.id.asc())
            )
            .mappings()
            .all()
        )
    return [_row_to_book_workflow_category(row) for row in rows]


def list_books(connection_or_session: sqlite3.Connection | Session) -> list[Book]:
    with session_scope(connection_or_session) as session:
        rows = (
            session.execute(
                select(
                    db_schema.Book.id,
                    db_schema.Book.title,
                    db_schema.Book.slug,
                    db_schema.Book.author,
                ).order_by(db_schema.Book.id.asc())
            )
            .mappings()
            .all()
        )
    return [_row_to_book(row) for row in rows]


def is_book_slug_taken(
    connection_or_session: sqlite3.Connection | Session, slug: str
) -> bool:
    with session_scope(connection_or_session) as session:
        total = session.scalar(
            select(func.count())
            .select_from(db_schema.Book)
            .where(db_schema.Book.slug == slug)
        )
    return bool(total)


def create_book_workflow_category(
    connection_or_session: sqlite3.Connection | Session,
    department_id: int,
    name: str,
    slug: str,
) -> BookWorkflowCategory:
    with write_session_scope(connection_or_session) as session:
        department_name = session.scalar(
            select(db_schema.BookWorkflowDepartment.name).where(
                db_schema.BookWorkflowDepartment.id == department_id
            )
        )
        if department_name is None:
            raise sqlite3.IntegrityError(f"Unknown department: {department_id}")
        model = db_schema.BookWorkflowCategory(
            department_id=department_id, name=name, slug=slug
        )
        try:
            session.add(model)
            commit_unless_caller_owns(connection_or_session, session)
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return BookWorkflowCategory(
            id=model.id,
            department_id=department_id,
            department_name=department_name,
            name=model.name,
            slug=model.slug,
        )


def create_book(
    connection_or_session: sqlite3.Connection | Session,
    title: str,
    slug: str,
    author: str,
) -> Book:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.Book(title=title, slug=slug, author=author)
        try:
            session.add(model)
            commit_unless_caller_owns(connection_or_session, session)
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return Book(id=model.id, title=model.title, slug=model.slug, author=model.author)


def book_workflow_exists(
    connection_or_session: sqlite3.Connection | Session, book_id: int, slug: str
) -> bool:
    with session_scope(connection_or_session) as session:
        total = session.scalar(
            select(func.count())
            .select_from(db_schema.BookWorkflow)
            .where(
                db_schema.BookWorkflow.book_id == book_id,
                db_schema.BookWorkflow.slug == slug,
            )
        )
    return bool(total)


def create_book_workflow(
    connection_or_session: sqlite3.Connection | Session,
    book_id: int,
    category_id: int,
    name: str,
    slug: str,
    activity_type: ActivityType,
    problem_goal: ProblemGoal,
    content: Optional[str] = None,
) -> BookWorkflow:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.BookWorkflow(
            book_id=book_id,
            category_id=category_id,
            name=name,
            slug=slug,
            activity_type=activity_type.value,
            problem_goal=problem_goal.value,
            content=content,
        )
        try:
            session.add(model)
            commit_unless_caller_owns(connection_or_session, session)
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return BookWorkflow(
            id=model.id,
            book_id=model.book_id,
            category_id=model.category_id,
            name=model.name,
            slug=model.slug,
            content=model.content,
            activity_type=activity_type,
            problem_goal=problem_goal,
        )


def list_book_workflows(
    connection_or_session: sqlite3.Connection | Session,
    book_id: Optional[int] = None,
) -> list[BookWorkflow]:
    statement = select(
        db_schema.BookWorkflow.id,
        db_schema.BookWorkflow.book_id,
        db_schema.BookWorkflow.category_id,
        db_schema.BookWorkflow.name,
        db_schema.BookWorkflow.slug,
        db_schema.BookWorkflow.content,
        db_schema.BookWorkflow.activity_type,
        db_schema.BookWorkflow.problem_goal,
    ).order_by(db_schema.BookWorkflow.id.asc())
    if book_id is not None:
        statement = statement.where(db_schema.BookWorkflow.book_id == book_id)
    with session_scope(connection_or_session) as session:
        rows = session.execute(statement).mappings().all()
    return [_row_to_book_workflow(row) for row in rows]
