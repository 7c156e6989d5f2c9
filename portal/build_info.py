from __future__ import annotations

import os

_FIELDS = (
    ("version", "PORTAL_VERSION", "dev"),
    ("commit", "PORTAL_COMMIT", "unknown"),
)


def get_build_info() -> dict[str, str]:
    info = {"status": "ok"}
    for key, variable, default in _FIELDS:
        info[key] = os.getenv(variable) or default
    return info
