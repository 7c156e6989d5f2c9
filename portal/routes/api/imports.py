from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from portal import environment, repository
from portal.dependencies import get_connection, get_identity_client
from portal.errors import StorageError
from portal.imports import (
    ImportCommitError,
    ImportValidationFailed,
    commit_import,
    preview_import,
)
from portal.imports.uploads import UploadTooLargeError, read_csv_upload
from portal.models import ImportKind, User

from .dependencies import require_platform_admin
from .utils import commit_result_payload, import_log_payload, preview_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports")

IMPORT_LOG_LIMIT = 50


async def _read_csv_upload(file: UploadFile, kind: ImportKind) -> bytes:
    try:
        return await read_csv_upload(file, kind)
    except UploadTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)
        ) from exc


async def _preview(connection, kind: ImportKind, file: UploadFile) -> dict[str, object]:
    payload = await _read_csv_upload(file, kind)
    try:
        preview = preview_import(connection, kind, payload)
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return preview_payload(preview)


async def _commit(
    connection,
    kind: ImportKind,
    file: UploadFile,
    user: User,
    provider=None,
) -> dict[str, object]:
    payload = await _read_csv_upload(file, kind)
    try:
        result = await commit_import(
            connection,
            kind,
            payload,
            file.filename or "upload.csv",
            provider=provider,
            imported_by=user.id,
            site_url=environment.get_site_url(),
        )
    except ImportValidationFailed as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "preview": preview_payload(exc.preview)},
        ) from exc
    except ImportCommitError as exc:
        logger.error("%s import by user %s failed: %s", kind.value, user.id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return commit_result_payload(result)


@router.post("/workflows/preview")
async def preview_workflows(
    file: UploadFile = File(...),
    connection=Depends(get_connection),
    user=Depends(require_platform_admin),
):
    return await _preview(connection, ImportKind.WORKFLOWS, file)


@router.post("/workflows/commit")
async def commit_workflows(
    file: UploadFile = File(...),
    connection=Depends(get_connection),
    user=Depends(require_platform_admin),
):
    return await _commit(connection, ImportKind.WORKFLOWS, file, user)


@router.post("/users/preview")
async def preview_users(
    file: UploadFile = File(...),
    connection=Depends(get_connection),
    user=Depends(require_platform_admin),
):
    return await _preview(connection, ImportKind.USERS, file)


@router.post("/users/commit")
async def commit_users(
    file: UploadFile = File(...),
    connection=Depends(get_connection),
    provider=Depends(get_identity_client),
    user=Depends(require_platform_admin),
):
    return await _commit(connection, ImportKind.USERS, file, user, provider=provider)


@router.post("/book-workflows/preview")
async def preview_book_workflows(
    file: UploadFile = File(...),
    connection=Depends(get_connection),
    user=Depends(require_platform_admin),
):
    return await _preview(connection, ImportKind.BOOK_WORKFLOWS, file)


@router.post("/book-workflows/commit")
async def commit_book_workflows(
    file: UploadFile = File(...),
    connection=Depends(get_connection),
    user=Depends(require_platform_admin),
):
    return await _commit(connection, ImportKind.BOOK_WORKFLOWS, file, user)


@router.get("/logs")
def list_import_logs(
    kind: Optional[ImportKind] = Query(default=None),
    connection=Depends(get_connection),
    user=Depends(require_platform_admin),
):
    logs = repository.list_import_logs(connection, kind=kind, limit=IMPORT_LOG_LIMIT)
    return [import_log_payload(log) for log in logs]


@router.get("/logs/{log_id}")
def get_import_log(
    log_id: int,
    connection=Depends(get_connection),
    user=Depends(require_platform_admin),
):
    log = repository.get_import_log(connection, log_id)
    if log is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return import_log_payload(log)
