from __future__ import annotations

import os

DEFAULT_SITE_URL = "http://localhost:3000"
DEFAULT_IDENTITY_API_URL = "https://api.clerk.com/v1"
DEFAULT_IDENTITY_TIMEOUT_SECONDS = 30.0


def get_site_url() -> str:
    value = os.getenv("PORTAL_SITE_URL", "").strip()
    return (value or DEFAULT_SITE_URL).rstrip("/")


def get_identity_api_url() -> str:
    value = os.getenv("IDENTITY_API_URL", "").strip()
    return (value or DEFAULT_IDENTITY_API_URL).rstrip("/")


def get_identity_secret_key() -> str | None:
    value = os.getenv("IDENTITY_SECRET_KEY")
    if value is None or not value.strip():
        return None
    return value.strip()


def get_identity_webhook_secret() -> str | None:
    value = os.getenv("IDENTITY_WEBHOOK_SECRET")
    if value is None or not value.strip():
        return None
    return value.strip()


def get_identity_timeout() -> float:
    raw = os.getenv("IDENTITY_TIMEOUT_SECONDS")
    if raw is None or not raw.strip():
        return DEFAULT_IDENTITY_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except ValueError:
        return DEFAULT_IDENTITY_TIMEOUT_SECONDS
    return timeout if timeout > 0 else DEFAULT_IDENTITY_TIMEOUT_SECONDS

