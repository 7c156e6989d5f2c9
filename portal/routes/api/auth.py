from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from portal import auth, repository
from portal.dependencies import get_connection, get_identity_client
from portal.identity import IdentityProviderError, IdentityProviderUnavailableError

from .dependencies import bearer_token, get_current_user
from .schemas import SessionExchangeRequest, TokenResponse
from .utils import user_payload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/auth/session", response_model=TokenResponse)
async def exchange_session(
    request: SessionExchangeRequest,
    connection=Depends(get_connection),
    provider=Depends(get_identity_client),
) -> TokenResponse:
    try:
        session = await provider.verify_session(request.token)
    except IdentityProviderUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE) from exc
    except IdentityProviderError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc
    user = repository.get_user_by_external_id(connection, session.user_id)
    if user is None:
        logger.info("Session verified for unknown user %s", session.user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    token = auth.create_access_token(connection, user.id, provider_role=session.role)
    return TokenResponse(access_token=token)


@router.get("/auth/me")
def current_user(
    token: str = Depends(bearer_token),
    user=Depends(get_current_user),
    connection=Depends(get_connection),
) -> dict[str, object]:
    provider_role = repository.get_session_provider_role(connection, token)
    warning = auth.detect_stale_role(provider_role, user.roles)
    if warning:
        logger.warning("Stale role for user %s: %s", user.external_id, warning)
    payload = user_payload(user)
    role = auth.primary_role(user.roles)
    payload["primary_role"] = role.value if role else None
    payload["stale_role_warning"] = warning
    return payload


@router.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    token: str = Depends(bearer_token),
    user=Depends(get_current_user),
    connection=Depends(get_connection),
) -> None:
    auth.revoke_access_token(connection, token)
