from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

from portal import environment

from .errors import IdentityProviderError, IdentityProviderUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderInvitation:
    id: str
    email: str
    status: str
    public_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderSession:
    user_id: str
    role: Optional[str] = None


class IdentityProvider(Protocol):
    async def create_invitation(
        self,
        email: str,
        public_metadata: dict[str, Any],
        redirect_url: str,
    ) -> ProviderInvitation: ...

    async def revoke_invitation(self, invitation_id: str) -> None: ...

    async def list_invitations(
        self, email: str, status: str = "pending"
    ) -> list[ProviderInvitation]: ...

    async def update_user_metadata(
        self, external_id: str, public_metadata: dict[str, Any]
    ) -> None: ...

    async def verify_session(self, token: str) -> ProviderSession: ...


def _invitation_from_payload(payload: dict[str, Any]) -> ProviderInvitation:
    return ProviderInvitation(
        id=str(payload.get("id") or ""),
        email=str(payload.get("email_address") or ""),
        status=str(payload.get("status") or ""),
        public_metadata=dict(payload.get("public_metadata") or {}),
    )


def _first_error_code(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    errors = payload.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        code = errors[0].get("code")
        return str(code) if code else None
    return None


class IdentityClient:
    """Async REST client for the hosted identity provider.

    Every call raises :class:`IdentityProviderError` for an error response and
    :class:`IdentityProviderUnavailableError` when the provider cannot be
    reached. Nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        secret_key: Optional[str],
        *,
        timeout: float = environment.DEFAULT_IDENTITY_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if secret_key:
            headers["Authorization"] = f"Bearer {secret_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_environment(cls) -> "IdentityClient":
        return cls(
            environment.get_identity_api_url(),
            environment.get_identity_secret_key(),
            timeout=environment.get_identity_timeout(),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, action: str, **kwargs: Any
    ) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.error("Identity provider unreachable while trying to %s: %s", action, exc)
            raise IdentityProviderUnavailableError(
                f"Failed to {action}: identity provider unavailable"
            ) from exc
        if response.status_code >= 400:
            code = _first_error_code(response)
            logger.error(
                "Identity provider rejected request to %s: status=%s code=%s",
                action,
                response.status_code,
                code,
            )
            raise IdentityProviderError(
                f"Failed to {action}: {code or response.reason_phrase}",
                status_code=response.status_code,
                code=code,
            )
        if not response.content:
            return None
        return response.json()

    async def create_invitation(
        self,
        email: str,
        public_metadata: dict[str, Any],
        redirect_url: str,
    ) -> ProviderInvitation:
        payload = await self._request(
            "POST",
            "/invitations",
            "create invitation",
            json={
                "email_address": email,
                "public_metadata": public_metadata,
                "redirect_url": redirect_url,
            },
        )
        return _invitation_from_payload(payload or {})

    async def revoke_invitation(self, invitation_id: str) -> None:
        await self._request(
            "POST", f"/invitations/{invitation_id}/revoke", "revoke invitation"
        )

    async def list_invitations(
        self, email: str, status: str = "pending"
    ) -> list[ProviderInvitation]:
        payload = await self._request(
            "GET",
            "/invitations",
            "list invitations",
            params={"query": email, "status": status},
        )
        if isinstance(payload, dict):
            payload = payload.get("data") or []
        invitations = [_invitation_from_payload(item) for item in payload or []]
        normalized = email.strip().lower()
        return [
            invitation
            for invitation in invitations
            if invitation.email.strip().lower() == normalized
        ]

    async def update_user_metadata(
        self, external_id: str, public_metadata: dict[str, Any]
    ) -> None:
        await self._request(
            "PATCH",
            f"/users/{external_id}/metadata",
            "update user metadata",
            json={"public_metadata": public_metadata},
        )

    async def verify_session(self, token: str) -> ProviderSession:
        payload = await self._request(
            "POST",
            "/sessions/verify",
            "verify session",
            json={"token": token},
        )
        payload = payload or {}
        user_id = payload.get("user_id")
        if not user_id:
            raise IdentityProviderError(
                "Failed to verify session: no user in response", status_code=401
            )
        metadata = payload.get("public_metadata") or {}
        role = metadata.get("role")
        return ProviderSession(user_id=str(user_id), role=str(role) if role else None)
