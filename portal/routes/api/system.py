from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response

from portal import build_info

router = APIRouter()


@router.get("/health")
def health_check() -> Response:
    return JSONResponse(content=build_info.get_build_info())
