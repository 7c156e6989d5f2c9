from __future__ import annotations

from typing import Optional

from portal.models import ActivityType, ProblemGoal, UserRole
from portal.utils import is_valid_email, is_valid_url, normalize_email, split_comma_list

from .models import ImportIssue, ImportRow
from .resolver import ReferenceIndex

INVITABLE_ROLES = tuple(role.value for role in UserRole.invitable())
ACTIVITY_TYPES = tuple(item.value for item in ActivityType)
PROBLEM_GOALS = tuple(item.value for item in ProblemGoal)

DEPARTMENT_NOT_FOUND = "Department not found. Must be one of the predefined departments."

_WORKFLOW_REQUIRED = (
    ("ai_mba", "AI MBA field is required"),
    ("category", "Category field is required"),
    ("topic", "Topic field is required"),
)

_BOOK_WORKFLOW_REQUIRED = (
    ("department", "Department is required"),
    ("category", "Category is required"),
    ("book", "Book title is required"),
    ("author", "Author is required"),
    ("workflow", "Workflow name is required"),
)


def _issue(row: ImportRow, field: str, message: str, raw_value: Optional[str] = None) -> ImportIssue:
    return ImportIssue(
        row_number=row.row_number,
        field=field,
        message=message,
        raw_value=row.values.get(field) if raw_value is None else raw_value,
    )


def _required(row: ImportRow, fields: tuple[tuple[str, str], ...]) -> list[ImportIssue]:
    return [_issue(row, name, message) for name, message in fields if not row.get(name)]


def validate_user_row(
    row: ImportRow,
    seen_emails: set[str],
    duplicate_emails: list[str],
    *,
    organisations: ReferenceIndex,
    courses: ReferenceIndex,
    allow_create_organisations: bool,
) -> list[ImportIssue]:
    issues: list[ImportIssue] = []

    raw_email = row.get("email")
    if not raw_email:
        issues.append(_issue(row, "email", "Email is required"))
    elif not is_valid_email(raw_email):
        issues.append(_issue(row, "email", "Invalid email format"))
    else:
        email = normalize_email(raw_email)
        if email in seen_emails:
            issues.append(_issue(row, "email", "Duplicate email in CSV"))
            duplicate_emails.append(email)
        else:
            seen_emails.add(email)

    if not row.get("name"):
        issues.append(_issue(row, "name", "Name is required"))

    if row.get("role") not in INVITABLE_ROLES:
        issues.append(
            _issue(row, "role", f"Role must be one of: {', '.join(INVITABLE_ROLES)}")
        )

    organisation = row.get("organisation")
    if not organisation:
        issues.append(_issue(row, "organisation", "Organisation is required"))
    elif not allow_create_organisations and organisations.lookup(organisation) is None:
        issues.append(
            _issue(row, "organisation", f"Organisation not found: {organisation}")
        )

    for course_name in split_comma_list(row.get("courses")):
        if courses.lookup(course_name) is None:
            issues.append(
                _issue(row, "courses", f"Course not found: {course_name}", course_name)
            )

    return issues


def validate_workflow_row(row: ImportRow) -> list[ImportIssue]:
    issues = _required(row, _WORKFLOW_REQUIRED)
    link = row.get("link")
    if link and not is_valid_url(link):
        issues.append(_issue(row, "link", "Invalid URL format"))
    return issues


def validate_book_workflow_row(
    row: ImportRow, *, departments: ReferenceIndex
) -> list[ImportIssue]:
    issues = _required(row, _BOOK_WORKFLOW_REQUIRED)

    if row.get("activity_type") not in ACTIVITY_TYPES:
        issues.append(
            _issue(
                row,
                "activity_type",
                f"Activity type must be one of: {', '.join(ACTIVITY_TYPES)}",
            )
        )
    if row.get("problem_goal") not in PROBLEM_GOALS:
        issues.append(
            _issue(
                row,
                "problem_goal",
                f"Problem/goal must be one of: {', '.join(PROBLEM_GOALS)}",
            )
        )

    department = row.get("department")
    if department and departments.lookup(department) is None:
        issues.append(_issue(row, "department", DEPARTMENT_NOT_FOUND))

    return issues
