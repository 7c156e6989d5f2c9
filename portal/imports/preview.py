from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from portal.models import ImportKind
from portal.utils import split_comma_list

from . import resolver
from .models import ImportIssue, ImportPreview, ImportPreviewSummary, ImportRow
from .resolver import ReferenceIndex
from .validator import (
    ACTIVITY_TYPES,
    INVITABLE_ROLES,
    PROBLEM_GOALS,
    validate_book_workflow_row,
    validate_user_row,
    validate_workflow_row,
)

USER_SAMPLE_SIZE = 5
BOOK_WORKFLOW_SAMPLE_SIZE = 5
WORKFLOW_SAMPLE_SIZE = 10


@dataclass
class PreviewContext:
    """A preview together with the reference indexes and rows it was built from."""

    preview: ImportPreview
    indexes: dict[str, ReferenceIndex]
    valid_rows: list[ImportRow] = field(default_factory=list)


def _count(distribution: dict[str, int], value: str) -> None:
    distribution[value] = distribution.get(value, 0) + 1


def _assemble(
    kind: ImportKind,
    rows: list[ImportRow],
    errors: list[ImportIssue],
    valid_rows: list[ImportRow],
    *,
    to_create: Iterable[ReferenceIndex],
    found: Iterable[ReferenceIndex],
    distributions: dict[str, dict[str, int]],
    sample: list[ImportRow],
    duplicate_emails: list[str] | None = None,
) -> ImportPreview:
    summary = ImportPreviewSummary(
        entities_to_create={index.kind: index.to_create for index in to_create},
        entities_found={index.kind: index.found for index in found},
        target_record_count=len(valid_rows),
        distributions=distributions,
        duplicate_emails=list(duplicate_emails or []),
    )
    return ImportPreview(
        kind=kind,
        total_rows=len(rows),
        valid_rows=len(valid_rows),
        errors=errors,
        summary=summary,
        sample_rows=[row.as_dict() for row in sample],
    )


def assess_users(
    connection, rows: list[ImportRow], *, allow_create_organisations: bool = True
) -> PreviewContext:
    organisations = resolver.load_organisations(connection)
    courses = resolver.load_published_courses(connection)

    errors: list[ImportIssue] = []
    valid_rows: list[ImportRow] = []
    seen_emails: set[str] = set()
    duplicate_emails: list[str] = []
    roles: dict[str, int] = {}

    for row in rows:
        issues = validate_user_row(
            row,
            seen_emails,
            duplicate_emails,
            organisations=organisations,
            courses=courses,
            allow_create_organisations=allow_create_organisations,
        )
        role = row.get("role")
        if role in INVITABLE_ROLES:
            _count(roles, role)
        organisation = row.get("organisation")
        if organisation:
            organisations.classify(organisation, create=allow_create_organisations)
        for course_name in split_comma_list(row.get("courses")):
            courses.classify(course_name, create=False)
        errors.extend(issues)
        if not issues:
            valid_rows.append(row)

    preview = _assemble(
        ImportKind.USERS,
        rows,
        errors,
        valid_rows,
        to_create=[organisations],
        found=[organisations, courses],
        distributions={"role": roles},
        sample=rows[:USER_SAMPLE_SIZE],
        duplicate_emails=duplicate_emails,
    )
    return PreviewContext(
        preview=preview,
        indexes={organisations.kind: organisations, courses.kind: courses},
        valid_rows=valid_rows,
    )


def assess_workflows(connection, rows: list[ImportRow]) -> PreviewContext:
    categories = resolver.load_workflow_categories(connection)
    departments = resolver.load_workflow_departments(connection)

    errors: list[ImportIssue] = []
    valid_rows: list[ImportRow] = []
    per_category: dict[str, int] = {}

    for row in rows:
        issues = validate_workflow_row(row)
        errors.extend(issues)
        if issues:
            continue
        category = row.get("ai_mba")
        department = row.get("category")
        categories.classify(category)
        departments.classify(category, department, label=f"{category} / {department}")
        _count(per_category, category)
        valid_rows.append(row)

    preview = _assemble(
        ImportKind.WORKFLOWS,
        rows,
        errors,
        valid_rows,
        to_create=[categories, departments],
        found=[categories, departments],
        distributions={"category": per_category},
        sample=valid_rows[:WORKFLOW_SAMPLE_SIZE],
    )
    return PreviewContext(
        preview=preview,
        indexes={categories.kind: categories, departments.kind: departments},
        valid_rows=valid_rows,
    )


def assess_book_workflows(connection, rows: list[ImportRow]) -> PreviewContext:
    departments = resolver.load_book_workflow_departments(connection)
    categories = resolver.load_book_workflow_categories(connection)
    books = resolver.load_books(connection)

    errors: list[ImportIssue] = []
    valid_rows: list[ImportRow] = []
    activity_types: dict[str, int] = {}
    problem_goals: dict[str, int] = {}

    for row in rows:
        issues = validate_book_workflow_row(row, departments=departments)
        department = None
        if row.get("department"):
            department = departments.classify(row.get("department"), create=False)

        category = row.get("category")
        if department is not None and category:
            categories.classify(
                department.name, category, label=f"{department.name} / {category}"
            )
        title, author = row.get("book"), row.get("author")
        if title and author:
            books.classify(title, author, label=f"{title} by {author}")

        if row.get("activity_type") in ACTIVITY_TYPES:
            _count(activity_types, row.get("activity_type"))
        if row.get("problem_goal") in PROBLEM_GOALS:
            _count(problem_goals, row.get("problem_goal"))

        errors.extend(issues)
        if not issues:
            valid_rows.append(row)

    preview = _assemble(
        ImportKind.BOOK_WORKFLOWS,
        rows,
        errors,
        valid_rows,
        to_create=[categories, books],
        found=[departments, categories, books],
        distributions={"activity_type": activity_types, "problem_goal": problem_goals},
        sample=rows[:BOOK_WORKFLOW_SAMPLE_SIZE],
    )
    return PreviewContext(
        preview=preview,
        indexes={
            departments.kind: departments,
            categories.kind: categories,
            books.kind: books,
        },
        valid_rows=valid_rows,
    )


def build_user_preview(
    connection, rows: list[ImportRow], *, allow_create_organisations: bool = True
) -> ImportPreview:
    return assess_users(
        connection, rows, allow_create_organisations=allow_create_organisations
    ).preview


def build_workflow_preview(connection, rows: list[ImportRow]) -> ImportPreview:
    return assess_workflows(connection, rows).preview


def build_book_workflow_preview(connection, rows: list[ImportRow]) -> ImportPreview:
    return assess_book_workflows(connection, rows).preview
