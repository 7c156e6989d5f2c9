"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-02-02 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.Text(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")
    )


def upgrade() -> None:
    op.create_table(
        "organisations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.Text(), nullable=False),
        sa.Column("organisation_id", sa.Integer(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("external_id"),
        sa.ForeignKeyConstraint(
            ["organisation_id"], ["organisations.id"], ondelete="SET NULL"
        ),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("organisation_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "user_id", "role_id", "organisation_id", name="uq_user_roles_assignment"
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["organisation_id"], ["organisations.id"], ondelete="CASCADE"
        ),
    )
    op.create_table(
        "sessions",
        sa.Column("token", sa.Text(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("provider_role", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "is_published", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("slug"),
    )
    op.create_table(
        "course_modules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "course_lessons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("module_id", "slug", name="uq_course_lessons_module_slug"),
        sa.ForeignKeyConstraint(
            ["module_id"], ["course_modules.id"], ondelete="CASCADE"
        ),
    )
    op.create_table(
        "workflow_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
    )
    op.create_table(
        "workflow_departments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(
            ["category_id"], ["workflow_categories.id"], ondelete="CASCADE"
        ),
    )
    op.create_table(
        "workflows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("department_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("ai_mba", sa.Text(), nullable=True),
        sa.Column("topic", sa.Text(), nullable=True),
        sa.Column("source_book", sa.Text(), nullable=True),
        sa.Column("source_author", sa.Text(), nullable=True),
        sa.Column("external_url", sa.Text(), nullable=True),
        sa.Column(
            "is_published", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_by", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(
            ["department_id"], ["workflow_departments.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_table(
        "book_workflow_departments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("slug"),
    )
    op.create_table(
        "book_workflow_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("department_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint(
            "department_id", "slug", name="uq_book_workflow_categories_department_slug"
        ),
        sa.ForeignKeyConstraint(
            ["department_id"], ["book_workflow_departments.id"], ondelete="CASCADE"
        ),
    )
    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("author", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("slug"),
    )
    op.create_table(
        "book_workflows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("activity_type", sa.Text(), nullable=False),
        sa.Column("problem_goal", sa.Text(), nullable=False),
        sa.Column(
            "is_published", sa.Integer(), nullable=False, server_default=sa.text("1")
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("book_id", "slug", name="uq_book_workflows_book_slug"),
        sa.CheckConstraint(
            "activity_type IN ('Create', 'Assess', 'Plan', 'Workshop')",
            name="ck_book_workflows_activity_type",
        ),
        sa.CheckConstraint(
            "problem_goal IN ('Grow', 'Optimise', 'Lead', 'Strategise', 'Innovate', 'Understand')",
            name="ck_book_workflows_problem_goal",
        ),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["category_id"], ["book_workflow_categories.id"], ondelete="CASCADE"
        ),
    )
    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("organisation_id", sa.Integer(), nullable=False),
        sa.Column(
            "role_name",
            sa.Text(),
            nullable=False,
            server_default=sa.text("'org_member'"),
        ),
        sa.Column(
            "status", sa.Text(), nullable=False, server_default=sa.text("'pending'")
        ),
        sa.Column("external_invitation_id", sa.Text(), nullable=True),
        sa.Column(
            "course_ids", sa.Text(), nullable=False, server_default=sa.text("'[]'")
        ),
        sa.Column("invited_by", sa.Integer(), nullable=True),
        _timestamp("invited_at"),
        sa.Column("accepted_at", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.Text(), nullable=False),
        sa.UniqueConstraint("email", "organisation_id", name="uq_invitations_email_org"),
        sa.CheckConstraint(
            "role_name IN ('org_admin', 'org_member')", name="ck_invitations_role"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'expired', 'failed')",
            name="ck_invitations_status",
        ),
        sa.ForeignKeyConstraint(
            ["organisation_id"], ["organisations.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_table(
        "import_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("total_rows", sa.Integer(), nullable=False),
        sa.Column(
            "success_count", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "failure_count", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "entities_created",
            sa.Text(),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("imported_by", sa.Integer(), nullable=True),
        sa.Column(
            "status", sa.Text(), nullable=False, server_default=sa.text("'pending'")
        ),
        sa.Column("error_summary", sa.Text(), nullable=True),
        sa.Column("started_at", sa.Text(), nullable=False),
        sa.Column("completed_at", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "kind IN ('workflows', 'users', 'book_workflows')", name="ck_import_logs_kind"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="ck_import_logs_status"
        ),
        sa.ForeignKeyConstraint(["imported_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "ix_import_logs_kind_started_at", "import_logs", ["kind", "started_at"]
    )
    op.create_index("ix_invitations_organisation_id", "invitations", ["organisation_id"])


def downgrade() -> None:
    op.drop_index("ix_invitations_organisation_id", table_name="invitations")
    op.drop_index("ix_import_logs_kind_started_at", table_name="import_logs")
    for table in (
        "import_logs",
        "invitations",
        "book_workflows",
        "books",
        "book_workflow_categories",
        "book_workflow_departments",
        "workflows",
        "workflow_departments",
        "workflow_categories",
        "course_lessons",
        "course_modules",
        "courses",
        "sessions",
        "user_roles",
        "roles",
        "users",
        "organisations",
    ):
        op.drop_table(table)
