from __future__ import annotations

from portal import repository
from portal.imports import preview_import
from portal.models import ImportKind

USER_HEADER = "email,name,role,organisation,courses\n"
WORKFLOW_HEADER = "ai_mba,category,topic,workflow,course,author,link\n"
BOOK_HEADER = "department,category,book,author,workflow,activity_type,problem_goal,content\n"


def _csv(header: str, *lines: str) -> bytes:
    return (header + "".join(f"{line}\n" for line in lines)).encode()


def test_user_preview_classifies_organisations(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        repository.create_organisation(connection, "Acme")
        repository.create_course(connection, "Strategy 101", "strategy-101", is_published=True)
        data = _csv(
            USER_HEADER,
            "a@x.com,A,org_member,Acme,Strategy 101",
            "b@x.com,B,org_admin,NewCo,",
            "c@x.com,C,org_member,newco,",
        )

        preview = preview_import(connection, ImportKind.USERS, data)
    finally:
        connection.close()

    assert preview.is_valid
    assert preview.total_rows == 3
    assert preview.valid_rows == 3
    assert preview.summary.entities_to_create == {"organisations": ["NewCo"]}
    assert preview.summary.entities_found["organisations"] == ["Acme"]
    assert preview.summary.entities_found["courses"] == ["Strategy 101"]
    assert preview.summary.distributions == {"role": {"org_member": 2, "org_admin": 1}}
    assert preview.summary.target_record_count == 3


def test_preview_writes_nothing_and_is_repeatable(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        data = _csv(USER_HEADER, "a@x.com,A,org_member,NewCo,")

        first = preview_import(connection, ImportKind.USERS, data)
        second = preview_import(connection, ImportKind.USERS, data)
        organisations = repository.list_organisations(connection)
        invitations = repository.list_invitations(connection)
    finally:
        connection.close()

    assert first == second
    assert organisations == []
    assert invitations == []


def test_user_preview_reports_duplicates_and_bad_rows(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        data = _csv(
            USER_HEADER,
            "a@x.com,A,org_member,Acme,",
            "A@X.com,A again,org_member,Acme,",
            "bad-email,B,org_member,Acme,",
            "c@x.com,C,owner,Acme,",
        )

        preview = preview_import(connection, ImportKind.USERS, data)
    finally:
        connection.close()

    assert not preview.is_valid
    assert preview.total_rows == 4
    assert preview.valid_rows == 1
    assert preview.summary.duplicate_emails == ["a@x.com"]
    assert [(issue.row_number, issue.field) for issue in preview.errors] == [
        (2, "email"),
        (3, "email"),
        (4, "role"),
    ]


def test_user_preview_without_organisation_creation(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        data = _csv(USER_HEADER, "a@x.com,A,org_member,NewCo,")

        preview = preview_import(
            connection, ImportKind.USERS, data, allow_create_organisations=False
        )
    finally:
        connection.close()

    assert [issue.message for issue in preview.errors] == ["Organisation not found: NewCo"]
    assert preview.summary.entities_to_create == {"organisations": []}


def test_user_preview_samples_first_five_rows(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        lines = [f"user{i}@x.com,User {i},org_member,Acme," for i in range(8)]
        preview = preview_import(connection, ImportKind.USERS, _csv(USER_HEADER, *lines))
    finally:
        connection.close()

    assert [row["email"] for row in preview.sample_rows] == [
        f"user{i}@x.com" for i in range(5)
    ]


def test_workflow_preview_groups_departments_by_category(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        category = repository.create_workflow_category(connection, "Growth", sort_order=1)
        repository.create_workflow_department(connection, category.id, "Sales", sort_order=1)
        lines = [
            "Growth,Sales,Pipeline,,,,",
            "Growth,Marketing,Campaigns,,,,https://example.com",
            "Leadership,Sales,Coaching,,,,",
            "Leadership,,Missing category,,,,",
        ]
        lines += [f"Growth,Sales,Topic {i},,,," for i in range(10)]

        preview = preview_import(connection, ImportKind.WORKFLOWS, _csv(WORKFLOW_HEADER, *lines))
    finally:
        connection.close()

    assert [issue.row_number for issue in preview.errors] == [4]
    assert preview.valid_rows == 13
    assert preview.summary.entities_to_create == {
        "workflow_categories": ["Leadership"],
        "workflow_departments": ["Growth / Marketing", "Leadership / Sales"],
    }
    assert preview.summary.entities_found == {
        "workflow_categories": ["Growth"],
        "workflow_departments": ["Sales"],
    }
    assert preview.summary.distributions == {"category": {"Growth": 12, "Leadership": 1}}
    assert len(preview.sample_rows) == 10
    assert all(row["category"] for row in preview.sample_rows)


def test_book_workflow_preview_rejects_unknown_department(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        data = _csv(
            BOOK_HEADER,
            "Sales,Prospecting,The Challenger Sale,Matthew Dixon,Reframe,Plan,Grow,",
            "Engineering,Tooling,Accelerate,Nicole Forsgren,Measure,Assess,Optimise,",
        )

        preview = preview_import(connection, ImportKind.BOOK_WORKFLOWS, data)
    finally:
        connection.close()

    assert preview.valid_rows == 1
    assert [(issue.row_number, issue.field) for issue in preview.errors] == [
        (2, "department")
    ]
    assert preview.summary.entities_to_create == {
        "book_workflow_categories": ["Sales / Prospecting"],
        "books": ["The Challenger Sale by Matthew Dixon", "Accelerate by Nicole Forsgren"],
    }
    assert preview.summary.entities_found["book_workflow_departments"] == ["Sales"]
    assert preview.summary.distributions == {
        "activity_type": {"Plan": 1, "Assess": 1},
        "problem_goal": {"Grow": 1, "Optimise": 1},
    }


def test_parse_error_is_reported_on_row_zero(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        preview = preview_import(connection, ImportKind.USERS, b"email,name\na@x.com,A\n")
    finally:
        connection.close()

    assert not preview.is_valid
    assert preview.total_rows == 0
    assert len(preview.errors) == 1
    assert preview.errors[0].row_number == 0
    assert preview.errors[0].field == "header"
