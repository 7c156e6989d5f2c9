from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    PLATFORM_ADMIN = "platform_admin"
    ORG_ADMIN = "org_admin"
    ORG_MEMBER = "org_member"

    @classmethod
    def invitable(cls) -> tuple["UserRole", ...]:
        return (cls.ORG_ADMIN, cls.ORG_MEMBER)


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    FAILED = "failed"


class ActivityType(str, Enum):
    CREATE = "Create"
    ASSESS = "Assess"
    PLAN = "Plan"
    WORKSHOP = "Workshop"


class ProblemGoal(str, Enum):
    GROW = "Grow"
    OPTIMISE = "Optimise"
    LEAD = "Lead"
    STRATEGISE = "Strategise"
    INNOVATE = "Innovate"
    UNDERSTAND = "Understand"


class ImportKind(str, Enum):
    WORKFLOWS = "workflows"
    USERS = "users"
    BOOK_WORKFLOWS = "book_workflows"


class ImportStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Organisation:
    id: int
    name: str


@dataclass
class User:
    id: int
    external_id: str
    email: Optional[str]
    name: Optional[str]
    organisation_id: Optional[int]
    roles: list[UserRole] = field(default_factory=list)


@dataclass
class Course:
    id: int
    name: str
    slug: str
    is_published: bool


@dataclass
class CourseModule:
    id: int
    course_id: int
    name: str


@dataclass
class CourseLesson:
    id: int
    module_id: int
    name: str
    slug: str


@dataclass
class WorkflowCategory:
    id: int
    name: str
    sort_order: int


@dataclass
class WorkflowDepartment:
    id: int
    category_id: int
    category_name: str
    name: str
    sort_order: int


@dataclass
class Workflow:
    id: int
    department_id: int
    name: str
    description: Optional[str]
    ai_mba: Optional[str]
    topic: Optional[str]
    source_book: Optional[str]
    source_author: Optional[str]
    external_url: Optional[str]
    is_published: bool
    sort_order: int


@dataclass
class BookWorkflowDepartment:
    id: int
    name: str
    slug: str


@dataclass
class BookWorkflowCategory:
    id: int
    department_id: int
    department_name: str
    name: str
    slug: str


@dataclass
class Book:
    id: int
    title: str
    slug: str
    author: str


@dataclass
class BookWorkflow:
    id: int
    book_id: int
    category_id: int
    name: str
    slug: str
    content: Optional[str]
    activity_type: ActivityType
    problem_goal: ProblemGoal


@dataclass
class Invitation:
    id: int
    email: str
    name: Optional[str]
    organisation_id: int
    role: UserRole
    course_ids: list[int]
    external_invitation_id: Optional[str]
    status: InvitationStatus
    invited_by: Optional[int]
    invited_at: str
    expires_at: str


@dataclass
class ImportLog:
    id: int
    kind: ImportKind
    file_name: str
    total_rows: int
    success_count: int
    failure_count: int
    entities_created: dict[str, int]
    imported_by: Optional[int]
    started_at: str
    completed_at: Optional[str]
    status: ImportStatus
    error_summary: Optional[object]
