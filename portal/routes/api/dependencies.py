from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from portal import auth, repository
from portal.dependencies import get_connection
from portal.errors import AuthorizationError
from portal.models import User


def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return token


def get_current_user(
    token: str = Depends(bearer_token),
    connection=Depends(get_connection),
) -> User:
    user_id = auth.get_user_id_for_token(connection, token)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    user = repository.get_user_by_id(connection, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return user


def ensure_platform_admin(user: User) -> User:
    if not auth.is_platform_admin(user):
        raise AuthorizationError()
    return user


def require_platform_admin(user: User = Depends(get_current_user)) -> User:
    try:
        return ensure_platform_admin(user)
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
