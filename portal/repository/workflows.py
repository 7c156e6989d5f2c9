from __future__ import annotations

import sqlite3
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal import schema as db_schema
from portal.models import Workflow, WorkflowCategory, WorkflowDepartment

from ._db import (
    commit_unless_caller_owns,
    reraise_as_sqlite_integrity_error,
    session_scope,
    write_session_scope,
)
from .mappers import (
    _row_to_workflow,
    _row_to_workflow_category,
    _row_to_workflow_department,
)


def list_workflow_categories(
    connection_or_session: sqlite3.Connection | Session,
) -> list[WorkflowCategory]:
    with session_scope(connection_or_session) as session:
        rows = (
            session.execute(
                select(
                    db_schema.WorkflowCategory.id,
                    db_schema.WorkflowCategory.name,
                    db_schema.WorkflowCategory.sort_order,
                ).order_by(
                    db_schema.WorkflowCategory.sort_order.asc(),
                    db_schema.WorkflowCategory.id.asc(),
                )
            )
            .mappings()
            .all()
        )
    return [_row_to_workflow_category(row) for row in rows]


def list_workflow_departments(
    connection_or_session: sqlite3.Connection | Session,
) -> list[WorkflowDepartment]:
    with session_scope(connection_or_session) as session:
        rows = (
            session.execute(
                select(
                    db_schema.WorkflowDepartment.id,
                    db_schema.WorkflowDepartment.category_id,
                    db_schema.WorkflowCategory.name.label("category_name"),
                    db_schema.WorkflowDepartment.name,
                    db_schema.WorkflowDepartment.sort_order,
                )
                .join(
                    db_schema.WorkflowCategory,
                    db_schema.WorkflowCategory.id
                    == db_schema.WorkflowDepartment.category_id,
                )
                .order_by(
                    db_schema.WorkflowDepartment.sort_order.asc(),
                    db_schema.WorkflowDepartment.id.asc(),
                )
            )
            .mappings()
            .all()
        )
    return [_row_to_workflow_department(row) for row in rows]


def create_workflow_category(
    connection_or_session: sqlite3.Connection | Session, name: str, sort_order: int = 0
) -> WorkflowCategory:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.WorkflowCategory(name=name, sort_order=sort_order)
        try:
            session.add(model)
            commit_unless_caller_owns(connection_or_session, session)
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return WorkflowCategory(id=model.id, name=model.name, sort_order=model.sort_order)


def create_workflow_department(
    connection_or_session: sqlite3.Connection | Session,
    category_id: int,
    name: str,
    sort_order: int = 0,
) -> WorkflowDepartment:
    with write_session_scope(connection_or_session) as session:
        category_name = session.scalar(
            select(db_schema.WorkflowCategory.name).where(
                db_schema.WorkflowCategory.id == category_id
            )
        )
        if category_name is None:
            raise sqlite3.IntegrityError(f"Unknown workflow category: {category_id}")
        model = db_schema.WorkflowDepartment(
            category_id=category_id, name=name, sort_order=sort_order
        )
        try:
            session.add(model)
            commit_unless_caller_owns(connection_or_session, session)
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return WorkflowDepartment(
            id=model.id,
            category_id=category_id,
            category_name=category_name,
            name=model.name,
            sort_order=model.sort_order,
        )


def create_workflow(
    connection_or_session: sqlite3.Connection | Session,
    department_id: int,
    name: str,
    description: Optional[str] = None,
    ai_mba: Optional[str] = None,
    topic: Optional[str] = None,
    source_book: Optional[str] = None,
    source_author: Optional[str] = None,
    external_url: Optional[str] = None,
    is_published: bool = True,
    sort_order: int = 0,
    created_by: Optional[int] = None,
) -> Workflow:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.Workflow(
            department_id=department_id,
            name=name,
            description=description,
            ai_mba=ai_mba,
            topic=topic,
            source_book=source_book,
            source_author=source_author,
            external_url=external_url,
            is_published=1 if is_published else 0,
            sort_order=sort_order,
            created_by=created_by,
        )
        try:
            session.add(model)
            commit_unless_caller_owns(connection_or_session, session)
        except IntegrityError as exc:
            reraise_as_sqlite_integrity_error(exc)
        return Workflow(
            id=model.id,
            department_id=model.department_id,
            name=model.name,
            description=model.description,
            ai_mba=model.ai_mba,
            topic=model.topic,
            source_book=model.source_book,
            source_author=model.source_author,
            external_url=model.external_url,
            is_published=bool(model.is_published),
            sort_order=model.sort_order,
        )


def list_workflows(
    connection_or_session: sqlite3.Connection | Session,
    department_id: Optional[int] = None,
) -> list[Workflow]:
    statement = select(
        db_schema.Workflow.id,
        db_schema.Workflow.department_id,
        db_schema.Workflow.name,
        db_schema.Workflow.description,
        db_schema.Workflow.ai_mba,
        db_schema.Workflow.topic,
        db_schema.Workflow.source_book,
        db_schema.Workflow.source_author,
        db_schema.Workflow.external_url,
        db_schema.Workflow.is_published,
        db_schema.Workflow.sort_order,
    ).order_by(db_schema.Workflow.sort_order.asc(), db_schema.Workflow.id.asc())
    if department_id is not None:
        statement = statement.where(db_schema.Workflow.department_id == department_id)
    with session_scope(connection_or_session) as session:
        rows = session.execute(statement).mappings().all()
    return [_row_to_workflow(row) for row in rows]


def count_workflows(connection_or_session: sqlite3.Connection | Session) -> int:
    with session_scope(connection_or_session) as session:
        total = session.scalar(select(func.count()).select_from(db_schema.Workflow))
    return int(total or 0)
