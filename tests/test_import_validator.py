from __future__ import annotations

import pytest

from portal.imports.models import ImportRow
from portal.imports.resolver import ReferenceEntity, ReferenceIndex
from portal.imports.validator import (
    DEPARTMENT_NOT_FOUND,
    validate_book_workflow_row,
    validate_user_row,
    validate_workflow_row,
)


def _user_row(row_number: int = 1, **overrides: str) -> ImportRow:
    values = {
        "email": "a@x.com",
        "name": "A",
        "role": "org_member",
        "organisation": "Acme",
        "courses": "",
    }
    values.update(overrides)
    return ImportRow(row_number=row_number, values=values)


def _book_row(**overrides: str) -> ImportRow:
    values = {
        "department": "Sales",
        "category": "Prospecting",
        "book": "The Challenger Sale",
        "author": "Matthew Dixon",
        "workflow": "Reframe the pitch",
        "activity_type": "Plan",
        "problem_goal": "Grow",
        "content": "",
    }
    values.update(overrides)
    return ImportRow(row_number=1, values=values)


def _organisations() -> ReferenceIndex:
    return ReferenceIndex("organisations", [ReferenceEntity(id=1, name="Acme")])


def _courses() -> ReferenceIndex:
    return ReferenceIndex("courses", [ReferenceEntity(id=7, name="Strategy 101")])


def _departments() -> ReferenceIndex:
    return ReferenceIndex(
        "book_workflow_departments",
        [ReferenceEntity(id=1, name="Sales"), ReferenceEntity(id=2, name="HR / People")],
    )


def _validate_user(row: ImportRow, *, allow_create: bool = True, seen=None, duplicates=None):
    return validate_user_row(
        row,
        seen if seen is not None else set(),
        duplicates if duplicates is not None else [],
        organisations=_organisations(),
        courses=_courses(),
        allow_create_organisations=allow_create,
    )


def test_valid_user_row_has_no_issues() -> None:
    assert _validate_user(_user_row()) == []


@pytest.mark.parametrize(
    ("field", "message"),
    [
        ("email", "Email is required"),
        ("name", "Name is required"),
        ("organisation", "Organisation is required"),
    ],
)
def test_missing_user_field_yields_one_issue(field: str, message: str) -> None:
    issues = _validate_user(_user_row(**{field: "  "}))

    assert [(issue.field, issue.message) for issue in issues] == [(field, message)]
    assert issues[0].row_number == 1


def test_user_row_rejects_malformed_email() -> None:
    issues = _validate_user(_user_row(email="not-an-email"))

    assert [issue.message for issue in issues] == ["Invalid email format"]
    assert issues[0].raw_value == "not-an-email"


def test_user_row_role_message_lists_allowed_roles() -> None:
    issues = _validate_user(_user_row(role="platform_admin"))

    assert [issue.message for issue in issues] == [
        "Role must be one of: org_admin, org_member"
    ]


def test_duplicate_email_flagged_only_after_first_occurrence() -> None:
    seen: set[str] = set()
    duplicates: list[str] = []

    first = _validate_user(_user_row(1, email="A@X.com "), seen=seen, duplicates=duplicates)
    second = _validate_user(_user_row(2, email="a@x.com"), seen=seen, duplicates=duplicates)
    third = _validate_user(_user_row(3, email="a@X.COM"), seen=seen, duplicates=duplicates)

    assert first == []
    assert [issue.message for issue in second] == ["Duplicate email in CSV"]
    assert [issue.row_number for issue in third] == [3]
    assert duplicates == ["a@x.com", "a@x.com"]


def test_unknown_organisation_allowed_when_creation_enabled() -> None:
    assert _validate_user(_user_row(organisation="NewCo"), allow_create=True) == []


def test_unknown_organisation_rejected_when_creation_disabled() -> None:
    issues = _validate_user(_user_row(organisation="NewCo"), allow_create=False)

    assert [issue.message for issue in issues] == ["Organisation not found: NewCo"]


def test_organisation_match_is_case_insensitive() -> None:
    assert _validate_user(_user_row(organisation=" acme "), allow_create=False) == []


def test_each_unknown_course_is_reported() -> None:
    issues = _validate_user(_user_row(courses="strategy 101, Missing One,Missing Two"))

    assert [issue.message for issue in issues] == [
        "Course not found: Missing One",
        "Course not found: Missing Two",
    ]
    assert [issue.raw_value for issue in issues] == ["Missing One", "Missing Two"]


def test_workflow_row_reports_each_missing_required_field() -> None:
    row = ImportRow(
        row_number=4,
        values={"ai_mba": "", "category": "", "topic": "", "link": ""},
    )

    issues = validate_workflow_row(row)

    assert [issue.message for issue in issues] == [
        "AI MBA field is required",
        "Category field is required",
        "Topic field is required",
    ]
    assert {issue.row_number for issue in issues} == {4}


@pytest.mark.parametrize(
    ("link", "valid"),
    [
        ("", True),
        ("https://example.com/path", True),
        ("http://example.com", True),
        ("ftp://example.com", False),
        ("example.com", False),
        ("https://", False),
    ],
)
def test_workflow_link_must_be_absolute_http_url(link: str, valid: bool) -> None:
    row = ImportRow(
        row_number=1,
        values={"ai_mba": "Growth", "category": "Sales", "topic": "Pipeline", "link": link},
    )

    issues = validate_workflow_row(row)

    assert (issues == []) is valid
    if not valid:
        assert issues[0].message == "Invalid URL format"


def test_valid_book_workflow_row_has_no_issues() -> None:
    assert validate_book_workflow_row(_book_row(), departments=_departments()) == []


def test_book_workflow_missing_fields_produce_one_issue_each() -> None:
    issues = validate_book_workflow_row(
        _book_row(category="", book="", author=""), departments=_departments()
    )

    assert [issue.message for issue in issues] == [
        "Category is required",
        "Book title is required",
        "Author is required",
    ]


def test_book_workflow_enum_messages_list_allowed_values() -> None:
    issues = validate_book_workflow_row(
        _book_row(activity_type="Build", problem_goal="Win"), departments=_departments()
    )

    assert [issue.message for issue in issues] == [
        "Activity type must be one of: Create, Assess, Plan, Workshop",
        "Problem/goal must be one of: Grow, Optimise, Lead, Strategise, Innovate, Understand",
    ]


def test_unknown_department_rejected_even_when_rest_is_valid() -> None:
    issues = validate_book_workflow_row(
        _book_row(department="Engineering"), departments=_departments()
    )

    assert [issue.message for issue in issues] == [DEPARTMENT_NOT_FOUND]
    assert issues[0].field == "department"


def test_department_match_is_case_insensitive() -> None:
    assert (
        validate_book_workflow_row(_book_row(department="hr / people"), departments=_departments())
        == []
    )
