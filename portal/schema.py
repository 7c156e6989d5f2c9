from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import text

Base = declarative_base()


class Organisation(Base):
    __tablename__ = "organisations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(Text, nullable=False, unique=True)
    organisation_id = Column(
        Integer, ForeignKey("organisations.id", ondelete="SET NULL"), nullable=True
    )
    email = Column(Text)
    name = Column(Text)
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text)


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    organisation_id = Column(
        Integer, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=True
    )
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        UniqueConstraint(
            "user_id", "role_id", "organisation_id", name="uq_user_roles_assignment"
        ),
    )


class Session(Base):
    __tablename__ = "sessions"

    token = Column(Text, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider_role = Column(Text)
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    description = Column(Text)
    is_published = Column(Integer, nullable=False, server_default=text("0"))
    sort_order = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class CourseModule(Base):
    __tablename__ = "course_modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, server_default=text("0"))


class CourseLesson(Base):
    __tablename__ = "course_lessons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_id = Column(
        Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, server_default=text("0"))

    __table_args__ = (
        UniqueConstraint("module_id", "slug", name="uq_course_lessons_module_slug"),
    )


class WorkflowCategory(Base):
    __tablename__ = "workflow_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    description = Column(Text)
    sort_order = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class WorkflowDepartment(Base):
    __tablename__ = "workflow_departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(
        Integer, ForeignKey("workflow_categories.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(Text, nullable=False)
    description = Column(Text)
    sort_order = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class Workflow(Base):
    __tablename__ = "workflows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    department_id = Column(
        Integer, ForeignKey("workflow_departments.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(Text, nullable=False)
    description = Column(Text)
    ai_mba = Column(Text)
    topic = Column(Text)
    source_book = Column(Text)
    source_author = Column(Text)
    external_url = Column(Text)
    is_published = Column(Integer, nullable=False, server_default=text("0"))
    sort_order = Column(Integer, nullable=False, server_default=text("0"))
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class BookWorkflowDepartment(Base):
    __tablename__ = "book_workflow_departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)
    slug = Column(Text, nullable=False, unique=True)
    sort_order = Column(Integer, nullable=False, server_default=text("0"))


class BookWorkflowCategory(Base):
    __tablename__ = "book_workflow_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    department_id = Column(
        Integer,
        ForeignKey("book_workflow_departments.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, server_default=text("0"))

    __table_args__ = (
        UniqueConstraint(
            "department_id", "slug", name="uq_book_workflow_categories_department_slug"
        ),
    )


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    author = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class BookWorkflow(Base):
    __tablename__ = "book_workflows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(
        Integer,
        ForeignKey("book_workflow_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False)
    content = Column(Text)
    activity_type = Column(Text, nullable=False)
    problem_goal = Column(Text, nullable=False)
    is_published = Column(Integer, nullable=False, server_default=text("1"))
    created_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        UniqueConstraint("book_id", "slug", name="uq_book_workflows_book_slug"),
        CheckConstraint(
            "activity_type IN ('Create', 'Assess', 'Plan', 'Workshop')",
            name="ck_book_workflows_activity_type",
        ),
        CheckConstraint(
            "problem_goal IN ('Grow', 'Optimise', 'Lead', 'Strategise', 'Innovate', 'Understand')",
            name="ck_book_workflows_problem_goal",
        ),
    )


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(Text, nullable=False)
    name = Column(Text)
    organisation_id = Column(
        Integer, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=False
    )
    role_name = Column(Text, nullable=False, server_default=text("'org_member'"))
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    external_invitation_id = Column(Text)
    course_ids = Column(Text, nullable=False, server_default=text("'[]'"))
    invited_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    invited_at = Column(Text, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    accepted_at = Column(Text)
    expires_at = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("email", "organisation_id", name="uq_invitations_email_org"),
        CheckConstraint(
            "role_name IN ('org_admin', 'org_member')", name="ck_invitations_role"
        ),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'expired', 'failed')",
            name="ck_invitations_status",
        ),
    )


class ImportLog(Base):
    __tablename__ = "import_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(Text, nullable=False)
    file_name = Column(Text, nullable=False)
    total_rows = Column(Integer, nullable=False)
    success_count = Column(Integer, nullable=False, server_default=text("0"))
    failure_count = Column(Integer, nullable=False, server_default=text("0"))
    entities_created = Column(Text, nullable=False, server_default=text("'{}'"))
    imported_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    error_summary = Column(Text)
    started_at = Column(Text, nullable=False)
    completed_at = Column(Text)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('workflows', 'users', 'book_workflows')", name="ck_import_logs_kind"
        ),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="ck_import_logs_status"
        ),
    )
