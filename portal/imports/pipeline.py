from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from portal import repository
from portal.errors import StorageError
from portal.identity.client import IdentityProvider
from portal.models import ImportKind, ImportLog, ImportStatus

from .commit import (
    CommitTally,
    commit_book_workflows,
    commit_users,
    commit_workflows,
    utc_timestamp,
)
from .models import (
    ImportCommitError,
    ImportCommitResult,
    ImportIssue,
    ImportParseError,
    ImportPreview,
    ImportValidationFailed,
)
from .parsers import parse_rows
from .preview import (
    PreviewContext,
    assess_book_workflows,
    assess_users,
    assess_workflows,
)
from .saga import CommitSaga

logger = logging.getLogger(__name__)

_VALIDATION_ERROR_SAMPLE = 20


def _parse_failure(kind: ImportKind, exc: ImportParseError) -> PreviewContext:
    preview = ImportPreview(
        kind=kind,
        total_rows=0,
        valid_rows=0,
        errors=[ImportIssue(row_number=0, field=exc.location, message=str(exc))],
    )
    return PreviewContext(preview=preview, indexes={})


def _assess(
    connection,
    kind: ImportKind,
    data: bytes,
    *,
    allow_create_organisations: bool = True,
) -> PreviewContext:
    try:
        rows = parse_rows(kind, data)
    except ImportParseError as exc:
        return _parse_failure(kind, exc)

    if kind == ImportKind.USERS:
        return assess_users(
            connection, rows, allow_create_organisations=allow_create_organisations
        )
    if kind == ImportKind.WORKFLOWS:
        return assess_workflows(connection, rows)
    if kind == ImportKind.BOOK_WORKFLOWS:
        return assess_book_workflows(connection, rows)
    raise ValueError(f"Unsupported import kind: {kind}")


def preview_import(
    connection,
    kind: ImportKind,
    data: bytes,
    *,
    allow_create_organisations: bool = True,
) -> ImportPreview:
    return _assess(
        connection, kind, data, allow_create_organisations=allow_create_organisations
    ).preview


def _write_log(
    connection,
    kind: ImportKind,
    file_name: str,
    tally: CommitTally,
    *,
    status: ImportStatus,
    started_at: str,
    imported_by: Optional[int],
) -> Optional[ImportLog]:
    entities_created = dict(tally.entities_created)
    entities_created.update(tally.counters)
    if tally.skipped_count:
        entities_created["skipped"] = tally.skipped_count
    try:
        return repository.create_import_log(
            connection,
            kind=kind,
            file_name=file_name,
            total_rows=tally.total_rows,
            started_at=started_at,
            status=status,
            success_count=tally.success_count,
            failure_count=tally.failure_count,
            entities_created=entities_created,
            imported_by=imported_by,
            completed_at=utc_timestamp(),
            error_summary=tally.error_summary,
        )
    except (SQLAlchemyError, sqlite3.Error):
        logger.exception("Failed to save %s import log", kind.value)
        return None


def _validation_summary(preview: ImportPreview) -> dict[str, object]:
    return {
        "message": f"Import validation failed: {len(preview.errors)} errors found",
        "type": "validation_failure",
        "errors": [
            {"row": issue.row_number, "field": issue.field, "error": issue.message}
            for issue in preview.errors[:_VALIDATION_ERROR_SAMPLE]
        ],
    }


async def commit_import(
    connection,
    kind: ImportKind,
    data: bytes,
    file_name: str,
    *,
    provider: Optional[IdentityProvider] = None,
    imported_by: Optional[int] = None,
    site_url: str = "",
    allow_create_organisations: bool = True,
    saga: Optional[CommitSaga] = None,
) -> ImportCommitResult:
    """Re-validate the upload and apply it; one import log is written per call.

    Raises :class:`ImportValidationFailed` when the re-run preview has errors
    and :class:`ImportCommitError` when storage or the identity provider fails
    in a way the commit cannot absorb. Per-row failures are reported in the
    result instead.
    """
    if kind == ImportKind.USERS and provider is None:
        raise ValueError("An identity provider is required to import users")

    started_at = utc_timestamp()
    tally = CommitTally()

    def finish(status: ImportStatus) -> Optional[ImportLog]:
        return _write_log(
            connection,
            kind,
            file_name,
            tally,
            status=status,
            started_at=started_at,
            imported_by=imported_by,
        )

    try:
        context = _assess(
            connection, kind, data, allow_create_organisations=allow_create_organisations
        )
    except StorageError as exc:
        tally.error_summary = {"message": str(exc), "type": "critical_failure"}
        raise ImportCommitError(str(exc), log=finish(ImportStatus.FAILED)) from exc

    preview = context.preview
    tally.total_rows = preview.total_rows
    if not preview.is_valid:
        tally.failure_count = preview.total_rows - preview.valid_rows
        tally.error_summary = _validation_summary(preview)
        finish(ImportStatus.FAILED)
        raise ImportValidationFailed(preview)

    try:
        if kind == ImportKind.USERS:
            await commit_users(
                connection,
                context,
                provider,
                tally,
                invited_by=imported_by,
                site_url=site_url,
                saga=saga,
            )
        elif kind == ImportKind.WORKFLOWS:
            commit_workflows(connection, context, tally, created_by=imported_by)
        else:
            commit_book_workflows(connection, context, tally)
    except ImportCommitError as exc:
        exc.log = finish(ImportStatus.FAILED)
        raise

    log = finish(ImportStatus.COMPLETED)
    logger.info(
        "%s import %s committed: %d succeeded, %d failed, %d skipped",
        kind.value,
        file_name,
        tally.success_count,
        tally.failure_count,
        tally.skipped_count,
    )
    return ImportCommitResult(
        kind=kind,
        log=log,
        success_count=tally.success_count,
        failure_count=tally.failure_count,
        skipped_count=tally.skipped_count,
        entities_created=dict(tally.entities_created),
        counters=dict(tally.counters),
        failures=list(tally.failures),
    )
