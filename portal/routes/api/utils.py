from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Optional

from portal.imports.models import ImportCommitResult, ImportIssue, ImportPreview
from portal.models import ImportLog, ImportStatus, User


def duration_seconds(started_at: Optional[str], completed_at: Optional[str]) -> Optional[int]:
    if not started_at or not completed_at:
        return None
    try:
        started = datetime.fromisoformat(started_at)
        completed = datetime.fromisoformat(completed_at)
    except ValueError:
        return None
    if (started.tzinfo is None) != (completed.tzinfo is None):
        return None
    return round((completed - started).total_seconds())


def derived_import_status(log: ImportLog) -> str:
    if not log.completed_at:
        return "pending"
    if log.status == ImportStatus.FAILED:
        return "failed"
    if log.failure_count > 0:
        return "partial"
    return "completed"


def user_payload(user: User) -> dict[str, object]:
    return {
        "id": user.id,
        "external_id": user.external_id,
        "email": user.email,
        "name": user.name,
        "organisation_id": user.organisation_id,
        "roles": [role.value for role in user.roles],
    }


def issue_payload(issue: ImportIssue) -> dict[str, object]:
    return {
        "row": issue.row_number,
        "field": issue.field,
        "message": issue.message,
        "value": issue.raw_value,
    }


def preview_payload(preview: ImportPreview) -> dict[str, object]:
    return {
        "kind": preview.kind.value,
        "is_valid": preview.is_valid,
        "total_rows": preview.total_rows,
        "valid_rows": preview.valid_rows,
        "errors": [issue_payload(issue) for issue in preview.errors],
        "summary": asdict(preview.summary),
        "sample_rows": preview.sample_rows,
    }


def import_log_payload(log: ImportLog) -> dict[str, object]:
    return {
        "id": log.id,
        "kind": log.kind.value,
        "file_name": log.file_name,
        "total_rows": log.total_rows,
        "success_count": log.success_count,
        "failure_count": log.failure_count,
        "entities_created": log.entities_created,
        "imported_by": log.imported_by,
        "status": derived_import_status(log),
        "started_at": log.started_at,
        "completed_at": log.completed_at,
        "duration_seconds": duration_seconds(log.started_at, log.completed_at),
        "error_summary": log.error_summary,
    }


def commit_result_payload(result: ImportCommitResult) -> dict[str, object]:
    return {
        "kind": result.kind.value,
        "success_count": result.success_count,
        "failure_count": result.failure_count,
        "skipped_count": result.skipped_count,
        "entities_created": result.entities_created,
        "counters": result.counters,
        "failures": result.failures,
        "log": import_log_payload(result.log) if result.log else None,
    }
