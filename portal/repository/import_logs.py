from __future__ import annotations

import json
import sqlite3
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from portal import schema as db_schema
from portal.models import ImportKind, ImportLog, ImportStatus

from ._db import session_scope, write_session_scope
from .mappers import _row_to_import_log

_IMPORT_LOG_COLUMNS = (
    db_schema.ImportLog.id,
    db_schema.ImportLog.kind,
    db_schema.ImportLog.file_name,
    db_schema.ImportLog.total_rows,
    db_schema.ImportLog.success_count,
    db_schema.ImportLog.failure_count,
    db_schema.ImportLog.entities_created,
    db_schema.ImportLog.imported_by,
    db_schema.ImportLog.status,
    db_schema.ImportLog.error_summary,
    db_schema.ImportLog.started_at,
    db_schema.ImportLog.completed_at,
)


def create_import_log(
    connection_or_session: sqlite3.Connection | Session,
    kind: ImportKind,
    file_name: str,
    total_rows: int,
    started_at: str,
    status: ImportStatus,
    success_count: int = 0,
    failure_count: int = 0,
    entities_created: Optional[dict[str, int]] = None,
    imported_by: Optional[int] = None,
    completed_at: Optional[str] = None,
    error_summary: Optional[object] = None,
) -> ImportLog:
    with write_session_scope(connection_or_session) as session:
        model = db_schema.ImportLog(
            kind=kind.value,
            file_name=file_name,
            total_rows=total_rows,
            success_count=success_count,
            failure_count=failure_count,
            entities_created=json.dumps(entities_created or {}),
            imported_by=imported_by,
            status=status.value,
            error_summary=json.dumps(error_summary) if error_summary is not None else None,
            started_at=started_at,
            completed_at=completed_at,
        )
        session.add(model)
        session.commit()
        return ImportLog(
            id=model.id,
            kind=kind,
            file_name=file_name,
            total_rows=total_rows,
            success_count=success_count,
            failure_count=failure_count,
            entities_created=dict(entities_created or {}),
            imported_by=imported_by,
            started_at=started_at,
            completed_at=completed_at,
            status=status,
            error_summary=error_summary,
        )


def list_import_logs(
    connection_or_session: sqlite3.Connection | Session,
    kind: Optional[ImportKind] = None,
    limit: int = 50,
) -> list[ImportLog]:
    statement = (
        select(*_IMPORT_LOG_COLUMNS)
        .order_by(desc(db_schema.ImportLog.started_at), desc(db_schema.ImportLog.id))
        .limit(limit)
    )
    if kind is not None:
        statement = statement.where(db_schema.ImportLog.kind == kind.value)
    with session_scope(connection_or_session) as session:
        rows = session.execute(statement).mappings().all()
    return [_row_to_import_log(row) for row in rows]


def get_import_log(
    connection_or_session: sqlite3.Connection | Session, log_id: int
) -> Optional[ImportLog]:
    with session_scope(connection_or_session) as session:
        row = (
            session.execute(
                select(*_IMPORT_LOG_COLUMNS).where(db_schema.ImportLog.id == log_id)
            )
            .mappings()
            .first()
        )
    return _row_to_import_log(row) if row else None
