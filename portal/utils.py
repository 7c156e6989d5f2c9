from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_SLUG_SEPARATOR_PATTERN = re.compile(r"[^a-z0-9]+")
_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SLUG_MAX_LENGTH = 100


def normalize_email(value: str) -> str:
    return value.strip().lower()


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip()))


def is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def split_comma_list(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def generate_slug(value: str) -> str:
    return _SLUG_SEPARATOR_PATTERN.sub("-", value.strip().lower()).strip("-")


def slug_format_error(slug: str) -> Optional[str]:
    if not slug:
        return "Slug is required."
    if len(slug) > SLUG_MAX_LENGTH:
        return f"Slug must be at most {SLUG_MAX_LENGTH} characters."
    if not _SLUG_PATTERN.match(slug):
        return "Slug may include lowercase letters, digits, and single dashes only."
    return None
