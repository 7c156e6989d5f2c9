from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator


class SessionExchangeRequest(BaseModel):
    token: str

    @field_validator("token")
    @classmethod
    def require_token(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Session token is required.")
        return value


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class CourseSlugCheck(BaseModel):
    slug: Optional[str] = None
    exclude_id: Optional[int] = None


class LessonSlugCheck(BaseModel):
    slug: Optional[str] = None
    module_id: Optional[int] = None
    exclude_id: Optional[int] = None


class ModuleNameCheck(BaseModel):
    name: Optional[str] = None
    course_id: Optional[int] = None
    exclude_id: Optional[int] = None
