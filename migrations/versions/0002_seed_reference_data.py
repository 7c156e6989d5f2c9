"""seed_reference_data

Revision ID: 0002_seed_reference_data
Revises: 0001_initial_schema
Create Date: 2026-02-04 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_seed_reference_data"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None

ROLES = (
    ("platform_admin", "Manages every organisation and all content."),
    ("org_admin", "Manages users and enrolments within one organisation."),
    ("org_member", "Learner within one organisation."),
)

BOOK_WORKFLOW_DEPARTMENTS = (
    ("Sales", "sales"),
    ("Marketing", "marketing"),
    ("HR / People", "hr-people"),
    ("Finance", "finance"),
    ("Operations", "operations"),
    ("Strategy", "strategy"),
    ("Leadership", "leadership"),
)


def upgrade() -> None:
    roles = sa.table(
        "roles",
        sa.column("name", sa.Text()),
        sa.column("description", sa.Text()),
    )
    op.bulk_insert(
        roles, [{"name": name, "description": description} for name, description in ROLES]
    )

    departments = sa.table(
        "book_workflow_departments",
        sa.column("name", sa.Text()),
        sa.column("slug", sa.Text()),
        sa.column("sort_order", sa.Integer()),
    )
    op.bulk_insert(
        departments,
        [
            {"name": name, "slug": slug, "sort_order": index}
            for index, (name, slug) in enumerate(BOOK_WORKFLOW_DEPARTMENTS, start=1)
        ],
    )


def downgrade() -> None:
    op.execute("DELETE FROM book_workflow_departments")
    op.execute("DELETE FROM roles")
