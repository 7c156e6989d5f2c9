from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal import repository
from portal.errors import StorageError
from portal.identity.client import IdentityProvider
from portal.identity.errors import (
    IdentityProviderError,
    IdentityProviderUnavailableError,
)
from portal.models import ActivityType, Invitation, ProblemGoal, UserRole
from portal.utils import generate_slug, normalize_email, split_comma_list

from . import resolver
from .models import ImportCommitError, ImportRow, InvitationRowError
from .preview import PreviewContext
from .resolver import ReferenceEntity, ReferenceIndex
from .saga import CommitSaga

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
INVITATION_TTL = timedelta(days=7)

CRITICAL_FAILURE_MESSAGE = (
    "Import failed due to critical error. All invitations have been rolled back."
)
PARTIAL_FAILURE_MESSAGE = "Some invitations failed to process"
WORKFLOW_FAILURE_MESSAGE = "Failed to import workflows"
BOOK_WORKFLOW_FAILURE_MESSAGE = "Failed to import book workflows"

_STORAGE_ERRORS = (SQLAlchemyError, sqlite3.Error)


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now(timezone.utc)).isoformat()


@dataclass
class CommitTally:
    """Counters collected while a commit runs; the import log is built from it."""

    total_rows: int = 0
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    entities_created: dict[str, int] = field(default_factory=dict)
    counters: dict[str, int] = field(default_factory=dict)
    failures: list[dict[str, Any]] = field(default_factory=list)
    error_summary: Optional[object] = None

    def created(self, kind: str) -> None:
        self.entities_created[kind] = self.entities_created.get(kind, 0) + 1

    def fail_everything(self, summary: object) -> None:
        self.entities_created.clear()
        self.success_count = 0
        self.skipped_count = 0
        self.failure_count = self.total_rows
        self.error_summary = summary


@dataclass
class _InvitedRow:
    row: ImportRow
    invitation: Invitation
    enrollments: int


async def _revoke_quietly(
    provider: IdentityProvider, external_id: str, email: str
) -> None:
    try:
        await provider.revoke_invitation(external_id)
    except IdentityProviderError:
        logger.exception("Failed to revoke provider invitation for %s", email)


async def _withdraw_invitation(
    connection, provider: IdentityProvider, invitation: Invitation
) -> None:
    try:
        if invitation.external_invitation_id:
            await provider.revoke_invitation(invitation.external_invitation_id)
    finally:
        repository.delete_invitation(connection, invitation.id)


async def _invite_row(
    connection,
    provider: IdentityProvider,
    row: ImportRow,
    *,
    organisations: ReferenceIndex,
    courses: ReferenceIndex,
    invited_by: Optional[int],
    site_url: str,
) -> _InvitedRow:
    email = normalize_email(row.get("email"))
    organisation_id = organisations.resolve(row.get("organisation"))
    if organisation_id is None:
        raise InvitationRowError(
            row.row_number, email, f"Organisation not found: {row.get('organisation')}"
        )
    role = UserRole(row.get("role"))
    course_ids = [
        course_id
        for course_id in (
            courses.resolve(name) for name in split_comma_list(row.get("courses"))
        )
        if course_id is not None
    ]

    try:
        for stale in await provider.list_invitations(email):
            await provider.revoke_invitation(stale.id)
    except IdentityProviderUnavailableError:
        raise
    except IdentityProviderError as exc:
        raise InvitationRowError(row.row_number, email, str(exc)) from exc

    try:
        repository.delete_invitations_for_email(connection, email, organisation_id)
    except _STORAGE_ERRORS as exc:
        raise InvitationRowError(
            row.row_number, email, f"Failed to clear previous invitation: {exc}"
        ) from exc

    try:
        external = await provider.create_invitation(
            email,
            {"organisation_id": organisation_id, "role": role.value},
            f"{site_url.rstrip('/')}/sign-up",
        )
    except IdentityProviderUnavailableError:
        raise
    except IdentityProviderError as exc:
        raise InvitationRowError(row.row_number, email, str(exc)) from exc

    invited_at = datetime.now(timezone.utc)
    try:
        invitation = repository.create_invitation(
            connection,
            email=email,
            organisation_id=organisation_id,
            role=role,
            external_invitation_id=external.id,
            invited_at=utc_timestamp(invited_at),
            expires_at=utc_timestamp(invited_at + INVITATION_TTL),
            name=row.get("name") or None,
            course_ids=course_ids,
            invited_by=invited_by,
        )
    except _STORAGE_ERRORS as exc:
        await _revoke_quietly(provider, external.id, email)
        raise InvitationRowError(
            row.row_number, email, f"Failed to create invitation record: {exc}"
        ) from exc
    return _InvitedRow(row=row, invitation=invitation, enrollments=len(course_ids))


def _create_pending_organisations(
    connection,
    organisations: ReferenceIndex,
    tally: CommitTally,
    saga: CommitSaga,
) -> None:
    for parts in organisations.pending:
        name = parts[-1]
        try:
            organisation = repository.create_organisation(connection, name)
        except _STORAGE_ERRORS as exc:
            logger.exception("Failed to create organisation %s", name)
            raise StorageError(f"Failed to create organisation '{name}'") from exc
        organisations.register(
            ReferenceEntity(id=organisation.id, name=organisation.name)
        )
        saga.record(
            f"organisation:{organisation.id}",
            partial(repository.delete_organisation, connection, organisation.id),
        )
        tally.created(resolver.ORGANISATIONS)


async def commit_users(
    connection,
    context: PreviewContext,
    provider: IdentityProvider,
    tally: CommitTally,
    *,
    invited_by: Optional[int],
    site_url: str,
    saga: Optional[CommitSaga] = None,
) -> None:
    saga = saga if saga is not None else CommitSaga()
    organisations = context.indexes[resolver.ORGANISATIONS]
    courses = context.indexes[resolver.COURSES]
    rows = context.valid_rows
    processed_organisations: set[int] = set()
    enrollments = 0

    try:
        _create_pending_organisations(connection, organisations, tally, saga)

        for start in range(0, len(rows), BATCH_SIZE):
            batch = rows[start : start + BATCH_SIZE]
            results = await asyncio.gather(
                *(
                    _invite_row(
                        connection,
                        provider,
                        row,
                        organisations=organisations,
                        courses=courses,
                        invited_by=invited_by,
                        site_url=site_url,
                    )
                    for row in batch
                ),
                return_exceptions=True,
            )

            critical: Optional[BaseException] = None
            for row, result in zip(batch, results):
                organisation_id = organisations.resolve(row.get("organisation"))
                if organisation_id is not None:
                    processed_organisations.add(organisation_id)
                if isinstance(result, InvitationRowError):
                    logger.warning(
                        "Invitation failed for row %s (%s): %s",
                        result.row_number,
                        result.email,
                        result,
                    )
                    tally.failure_count += 1
                    tally.failures.append(
                        {"row": result.row_number, "email": result.email, "error": str(result)}
                    )
                elif isinstance(result, BaseException):
                    if critical is None:
                        critical = result
                else:
                    tally.success_count += 1
                    enrollments += result.enrollments
                    saga.record(
                        f"invitation:{result.invitation.email}",
                        partial(
                            _withdraw_invitation, connection, provider, result.invitation
                        ),
                    )
            if critical is not None:
                raise critical
    except Exception as exc:
        logger.exception("Critical error during invitation batch processing")
        failed_undos = await saga.compensate()
        if failed_undos:
            logger.error("Compensation left %d actions undone", len(failed_undos))
        tally.fail_everything(
            {"message": CRITICAL_FAILURE_MESSAGE, "type": "critical_failure"}
        )
        raise ImportCommitError(CRITICAL_FAILURE_MESSAGE) from exc

    tally.counters["organisations_processed"] = len(processed_organisations)
    tally.counters["individual_enrollments"] = enrollments
    if tally.failure_count:
        tally.error_summary = {
            "failed_count": tally.failure_count,
            "message": PARTIAL_FAILURE_MESSAGE,
            "failures": list(tally.failures),
        }


def _insert_workflows(
    session: Session,
    context: PreviewContext,
    tally: CommitTally,
    created_by: Optional[int],
) -> None:
    categories = context.indexes[resolver.WORKFLOW_CATEGORIES]
    departments = context.indexes[resolver.WORKFLOW_DEPARTMENTS]

    existing_categories = len(categories)
    for index, (name,) in enumerate(categories.pending):
        category = repository.create_workflow_category(
            session, name, sort_order=existing_categories + index + 1
        )
        categories.register(ReferenceEntity(id=category.id, name=category.name))
        tally.created(resolver.WORKFLOW_CATEGORIES)

    for index, (category_name, name) in enumerate(departments.pending):
        department = repository.create_workflow_department(
            session, categories.resolve(category_name), name, sort_order=index + 1
        )
        departments.register(
            ReferenceEntity(
                id=department.id,
                name=department.name,
                parent_id=department.category_id,
                scope=(department.category_name,),
            )
        )
        tally.created(resolver.WORKFLOW_DEPARTMENTS)

    for index, row in enumerate(context.valid_rows):
        repository.create_workflow(
            session,
            department_id=departments.resolve(row.get("ai_mba"), row.get("category")),
            name=row.get("topic"),
            description=row.get("workflow") or None,
            ai_mba=row.get("ai_mba"),
            topic=row.get("topic"),
            source_book=row.get("course") or None,
            source_author=row.get("author") or None,
            external_url=row.get("link") or None,
            is_published=True,
            sort_order=index + 1,
            created_by=created_by,
        )
        tally.success_count += 1


def commit_workflows(
    connection,
    context: PreviewContext,
    tally: CommitTally,
    *,
    created_by: Optional[int] = None,
) -> None:
    try:
        with repository.transaction_scope(connection) as session:
            _insert_workflows(session, context, tally, created_by)
    except _STORAGE_ERRORS as exc:
        logger.exception("Workflow import transaction rolled back")
        tally.fail_everything({"message": str(exc), "type": "transaction_failure"})
        raise ImportCommitError(WORKFLOW_FAILURE_MESSAGE) from exc


@dataclass
class _BookWorkflowOutcome:
    skipped: bool
    new_entities: list[tuple[ReferenceIndex, ReferenceEntity]]


def _book_slug(session: Session, title: str, author: str) -> str:
    slug = generate_slug(title)
    if not repository.is_book_slug_taken(session, slug):
        return slug
    base = generate_slug(f"{title} {author}")
    candidate, suffix = base, 2
    while repository.is_book_slug_taken(session, candidate):
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def _import_book_workflow_row(
    session: Session, row: ImportRow, context: PreviewContext
) -> _BookWorkflowOutcome:
    departments = context.indexes[resolver.BOOK_WORKFLOW_DEPARTMENTS]
    categories = context.indexes[resolver.BOOK_WORKFLOW_CATEGORIES]
    books = context.indexes[resolver.BOOKS]
    new_entities: list[tuple[ReferenceIndex, ReferenceEntity]] = []

    department = departments.lookup(row.get("department"))
    if department is None:
        raise sqlite3.IntegrityError(f"Unknown department: {row.get('department')}")

    category = categories.lookup(department.name, row.get("category"))
    if category is None:
        created_category = repository.create_book_workflow_category(
            session, department.id, row.get("category"), generate_slug(row.get("category"))
        )
        category = ReferenceEntity(
            id=created_category.id,
            name=created_category.name,
            parent_id=department.id,
            scope=(department.name,),
            slug=created_category.slug,
        )
        new_entities.append((categories, category))

    title, author = row.get("book"), row.get("author")
    book = books.lookup(title, author)
    if book is None:
        created_book = repository.create_book(
            session, title, _book_slug(session, title, author), author
        )
        book = ReferenceEntity(
            id=created_book.id, name=created_book.title, qualifier=(created_book.author,)
        )
        new_entities.append((books, book))

    slug = generate_slug(row.get("workflow"))
    if repository.book_workflow_exists(session, book.id, slug):
        return _BookWorkflowOutcome(skipped=True, new_entities=new_entities)

    repository.create_book_workflow(
        session,
        book_id=book.id,
        category_id=category.id,
        name=row.get("workflow"),
        slug=slug,
        activity_type=ActivityType(row.get("activity_type")),
        problem_goal=ProblemGoal(row.get("problem_goal")),
        content=row.get("content") or None,
    )
    return _BookWorkflowOutcome(skipped=False, new_entities=new_entities)


def commit_book_workflows(
    connection, context: PreviewContext, tally: CommitTally
) -> None:
    try:
        with repository.transaction_scope(connection) as session:
            for row in context.valid_rows:
                try:
                    with session.begin_nested():
                        outcome = _import_book_workflow_row(session, row, context)
                except _STORAGE_ERRORS as exc:
                    logger.warning("Book workflow row %s failed: %s", row.row_number, exc)
                    tally.failure_count += 1
                    tally.failures.append({"row": row.row_number, "error": str(exc)})
                    continue

                for target, entity in outcome.new_entities:
                    target.register(entity)
                    tally.created(target.kind)
                if outcome.skipped:
                    tally.skipped_count += 1
                else:
                    tally.success_count += 1
    except _STORAGE_ERRORS as exc:
        logger.exception("Book workflow import transaction rolled back")
        tally.fail_everything({"message": str(exc), "type": "transaction_failure"})
        raise ImportCommitError(BOOK_WORKFLOW_FAILURE_MESSAGE) from exc

    if tally.failures:
        tally.error_summary = list(tally.failures)
