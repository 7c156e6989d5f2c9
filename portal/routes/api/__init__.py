from __future__ import annotations

from fastapi import APIRouter

from . import auth, imports, system, validation, webhooks
from .dependencies import get_current_user, require_platform_admin
from .utils import (
    commit_result_payload,
    duration_seconds,
    import_log_payload,
    preview_payload,
    user_payload,
)

router = APIRouter()
router.include_router(system.router)
router.include_router(auth.router)
router.include_router(imports.router)
router.include_router(validation.router)
router.include_router(webhooks.router)

__all__ = [
    "router",
    "get_current_user",
    "require_platform_admin",
    "commit_result_payload",
    "duration_seconds",
    "import_log_payload",
    "preview_payload",
    "user_payload",
]
