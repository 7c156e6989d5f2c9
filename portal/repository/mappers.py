from __future__ import annotations

import json
import sqlite3
from typing import Optional

from portal.models import (
    ActivityType,
    Book,
    BookWorkflow,
    BookWorkflowCategory,
    BookWorkflowDepartment,
    Course,
    ImportKind,
    ImportLog,
    ImportStatus,
    Invitation,
    InvitationStatus,
    Organisation,
    ProblemGoal,
    User,
    UserRole,
    Workflow,
    WorkflowCategory,
    WorkflowDepartment,
)


def _load_json(value: Optional[str], default):
    if value is None or value == "":
        return default
    return json.loads(value)


def _row_to_organisation(row: sqlite3.Row) -> Organisation:
    return Organisation(id=row["id"], name=row["name"])


def _row_to_user(row: sqlite3.Row, roles: Optional[list[UserRole]] = None) -> User:
    return User(
        id=row["id"],
        external_id=row["external_id"],
        email=row["email"],
        name=row["name"],
        organisation_id=row["organisation_id"],
        roles=list(roles or []),
    )


def _row_to_course(row: sqlite3.Row) -> Course:
    return Course(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        is_published=bool(row["is_published"]),
    )


def _row_to_workflow_category(row: sqlite3.Row) -> WorkflowCategory:
    return WorkflowCategory(id=row["id"], name=row["name"], sort_order=row["sort_order"])


def _row_to_workflow_department(row: sqlite3.Row) -> WorkflowDepartment:
    return WorkflowDepartment(
        id=row["id"],
        category_id=row["category_id"],
        category_name=row["category_name"],
        name=row["name"],
        sort_order=row["sort_order"],
    )


def _row_to_workflow(row: sqlite3.Row) -> Workflow:
    return Workflow(
        id=row["id"],
        department_id=row["department_id"],
        name=row["name"],
        description=row["description"],
        ai_mba=row["ai_mba"],
        topic=row["topic"],
        source_book=row["source_book"],
        source_author=row["source_author"],
        external_url=row["external_url"],
        is_published=bool(row["is_published"]),
        sort_order=row["sort_order"],
    )


def _row_to_book_workflow_department(row: sqlite3.Row) -> BookWorkflowDepartment:
    return BookWorkflowDepartment(id=row["id"], name=row["name"], slug=row["slug"])


def _row_to_book_workflow_category(row: sqlite3.Row) -> BookWorkflowCategory:
    return BookWorkflowCategory(
        id=row["id"],
        department_id=row["department_id"],
        department_name=row["department_name"],
        name=row["name"],
        slug=row["slug"],
    )


def _row_to_book(row: sqlite3.Row) -> Book:
    return Book(id=row["id"], title=row["title"], slug=row["slug"], author=row["author"])


def _row_to_book_workflow(row: sqlite3.Row) -> BookWorkflow:
    return BookWorkflow(
        id=row["id"],
        book_id=row["book_id"],
        category_id=row["category_id"],
        name=row["name"],
        slug=row["slug"],
        content=row["content"],
        activity_type=ActivityType(row["activity_type"]),
        problem_goal=ProblemGoal(row["problem_goal"]),
    )


def _row_to_invitation(row: sqlite3.Row) -> Invitation:
    return Invitation(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        organisation_id=row["organisation_id"],
        role=UserRole(row["role_name"]),
        course_ids=[int(value) for value in _load_json(row["course_ids"], [])],
        external_invitation_id=row["external_invitation_id"],
        status=InvitationStatus(row["status"]),
        invited_by=row["invited_by"],
        invited_at=row["invited_at"],
        expires_at=row["expires_at"],
    )


def _row_to_import_log(row: sqlite3.Row) -> ImportLog:
    return ImportLog(
        id=row["id"],
        kind=ImportKind(row["kind"]),
        file_name=row["file_name"],
        total_rows=row["total_rows"],
        success_count=row["success_count"],
        failure_count=row["failure_count"],
        entities_created=_load_json(row["entities_created"], {}),
        imported_by=row["imported_by"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        status=ImportStatus(row["status"]),
        error_summary=_load_json(row["error_summary"], None),
    )
