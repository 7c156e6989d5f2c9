from __future__ import annotations

import logging
import sqlite3
from typing import Callable, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from portal import repository
from portal.dependencies import get_connection
from portal.errors import AuthorizationError
from portal.models import User
from portal.utils import slug_format_error

from .dependencies import ensure_platform_admin, get_current_user
from .schemas import CourseSlugCheck, LessonSlugCheck, ModuleNameCheck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/validate")


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(content={"error": message}, status_code=status_code)


def _forbidden(user: User) -> Optional[JSONResponse]:
    try:
        ensure_platform_admin(user)
    except AuthorizationError as exc:
        return _error(str(exc), status.HTTP_403_FORBIDDEN)
    return None


def _check_availability(
    failure_message: str, check: Callable[[], bool]
) -> JSONResponse:
    try:
        available = check()
    except (SQLAlchemyError, sqlite3.Error):
        logger.exception(failure_message)
        return _error(failure_message, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(content={"available": available})


def _slug_problem(slug: Optional[str]) -> Optional[str]:
    if not slug or not slug.strip():
        return "Slug is required"
    return slug_format_error(slug.strip())


@router.post("/course-slug")
def validate_course_slug(
    payload: Optional[CourseSlugCheck] = None,
    connection=Depends(get_connection),
    user=Depends(get_current_user),
):
    denied = _forbidden(user)
    if denied is not None:
        return denied
    payload = payload or CourseSlugCheck()
    problem = _slug_problem(payload.slug)
    if problem:
        return _error(problem, status.HTTP_400_BAD_REQUEST)
    return _check_availability(
        "Failed to validate slug",
        lambda: repository.is_course_slug_available(
            connection, payload.slug.strip(), exclude_id=payload.exclude_id
        ),
    )


@router.post("/lesson-slug")
def validate_lesson_slug(
    payload: Optional[LessonSlugCheck] = None,
    connection=Depends(get_connection),
    user=Depends(get_current_user),
):
    denied = _forbidden(user)
    if denied is not None:
        return denied
    payload = payload or LessonSlugCheck()
    problem = _slug_problem(payload.slug)
    if problem:
        return _error(problem, status.HTTP_400_BAD_REQUEST)
    if payload.module_id is None:
        return _error("Module ID is required", status.HTTP_400_BAD_REQUEST)
    return _check_availability(
        "Failed to validate slug",
        lambda: repository.is_lesson_slug_available(
            connection,
            payload.slug.strip(),
            payload.module_id,
            exclude_id=payload.exclude_id,
        ),
    )


@router.post("/module-name")
def validate_module_name(
    payload: Optional[ModuleNameCheck] = None,
    connection=Depends(get_connection),
    user=Depends(get_current_user),
):
    denied = _forbidden(user)
    if denied is not None:
        return denied
    payload = payload or ModuleNameCheck()
    if not payload.name or not payload.name.strip():
        return _error("Module name is required", status.HTTP_400_BAD_REQUEST)
    if payload.course_id is None:
        return _error("Course ID is required", status.HTTP_400_BAD_REQUEST)
    return _check_availability(
        "Failed to validate module name",
        lambda: repository.is_module_name_available(
            connection, payload.name, payload.course_id, exclude_id=payload.exclude_id
        ),
    )
