from __future__ import annotations

import secrets
import sqlite3
from typing import Iterable, Optional

from portal import repository
from portal.models import User, UserRole

_ROLE_PRECEDENCE = (UserRole.PLATFORM_ADMIN, UserRole.ORG_ADMIN, UserRole.ORG_MEMBER)


def create_access_token(
    connection: sqlite3.Connection, user_id: int, provider_role: Optional[str] = None
) -> str:
    token = secrets.token_urlsafe(32)
    repository.create_session(
        connection, token=token, user_id=user_id, provider_role=provider_role
    )
    return token


def get_user_id_for_token(connection: sqlite3.Connection, token: str) -> Optional[int]:
    return repository.get_session_user_id(connection, token)


def revoke_access_token(connection: sqlite3.Connection, token: str) -> bool:
    return repository.delete_session(connection, token)


def has_role(user: Optional[User], role: UserRole) -> bool:
    if user is None:
        return False
    return role in user.roles


def is_platform_admin(user: Optional[User]) -> bool:
    return has_role(user, UserRole.PLATFORM_ADMIN)


def is_org_admin(user: Optional[User]) -> bool:
    return has_role(user, UserRole.ORG_ADMIN) or is_platform_admin(user)


def primary_role(roles: Iterable[UserRole]) -> Optional[UserRole]:
    assigned = set(roles)
    for role in _ROLE_PRECEDENCE:
        if role in assigned:
            return role
    return None


def detect_stale_role(
    provider_role: Optional[str], db_roles: Iterable[UserRole]
) -> Optional[str]:
    """Compare the provider's copy of a user's role with the database.

    Role changes are written to the database first and to the provider second,
    so the two can disagree. A mismatch is reported as a warning message and
    left for the next sign-in or metadata push to resolve.
    """
    expected = primary_role(db_roles)
    if expected is None:
        return None
    if provider_role == expected.value:
        return None
    return (
        f"Session role '{provider_role or 'none'}' does not match assigned role "
        f"'{expected.value}'. Sign out and back in to refresh permissions."
    )
