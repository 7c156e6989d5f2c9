from __future__ import annotations

import sqlite3
from collections.abc import Callable, Generator, Iterable
from dataclasses import replace
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient as FastAPITestClient

from portal import db, repository
from portal.dependencies import get_identity_client
from portal.identity import (
    IdentityProviderError,
    ProviderInvitation,
    ProviderSession,
)
from portal.main import app
from portal.models import User, UserRole


class FakeIdentityProvider:
    """In-memory stand-in for the identity provider REST client."""

    def __init__(self) -> None:
        self.invitations: dict[str, ProviderInvitation] = {}
        self.created: list[dict[str, Any]] = []
        self.revoked: list[str] = []
        self.metadata_updates: list[tuple[str, dict[str, Any]]] = []
        self.sessions: dict[str, ProviderSession] = {}
        self.create_failures: dict[str, Exception] = {}
        self.revoke_failures: dict[str, Exception] = {}
        self._counter = 0

    async def create_invitation(
        self, email: str, public_metadata: dict[str, Any], redirect_url: str
    ) -> ProviderInvitation:
        failure = self.create_failures.get(email)
        if failure is not None:
            raise failure
        self._counter += 1
        invitation = ProviderInvitation(
            id=f"inv_{self._counter}",
            email=email,
            status="pending",
            public_metadata=dict(public_metadata),
        )
        self.invitations[invitation.id] = invitation
        self.created.append(
            {
                "email": email,
                "public_metadata": dict(public_metadata),
                "redirect_url": redirect_url,
            }
        )
        return invitation

    async def revoke_invitation(self, invitation_id: str) -> None:
        failure = self.revoke_failures.get(invitation_id)
        if failure is not None:
            raise failure
        self.revoked.append(invitation_id)
        invitation = self.invitations.get(invitation_id)
        if invitation is not None:
            self.invitations[invitation_id] = replace(invitation, status="revoked")

    async def list_invitations(
        self, email: str, status: str = "pending"
    ) -> list[ProviderInvitation]:
        return [
            invitation
            for invitation in self.invitations.values()
            if invitation.email == email and invitation.status == status
        ]

    async def update_user_metadata(
        self, external_id: str, public_metadata: dict[str, Any]
    ) -> None:
        self.metadata_updates.append((external_id, dict(public_metadata)))

    async def verify_session(self, token: str) -> ProviderSession:
        session = self.sessions.get(token)
        if session is None:
            raise IdentityProviderError(
                "Failed to verify session: session_not_found", status_code=404
            )
        return session

    def pending(self) -> list[ProviderInvitation]:
        return [
            invitation
            for invitation in self.invitations.values()
            if invitation.status == "pending"
        ]


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("PORTAL_DB_PATH", str(db_file))
    monkeypatch.setenv("PORTAL_SITE_URL", "https://portal.test")
    monkeypatch.delenv("ADMIN_BOOTSTRAP_EXTERNAL_ID", raising=False)
    monkeypatch.delenv("ADMIN_BOOTSTRAP_EMAIL", raising=False)
    monkeypatch.delenv("IDENTITY_WEBHOOK_SECRET", raising=False)
    return db_file


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def client(
    db_path, identity_provider
) -> Generator[FastAPITestClient, None, None]:
    app.dependency_overrides[get_identity_client] = lambda: identity_provider
    try:
        with FastAPITestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_identity_client, None)


@pytest.fixture
def _setup_connection(db_path) -> Callable[[], sqlite3.Connection]:
    def _factory() -> sqlite3.Connection:
        connection = db.connect(str(db_path))
        db.init_db(connection)
        return connection

    return _factory


@pytest.fixture
def _create_user(db_path, _setup_connection) -> Callable[..., User]:
    def _factory(
        external_id: str,
        email: str,
        roles: Iterable[UserRole] = (UserRole.PLATFORM_ADMIN,),
        organisation_id: Optional[int] = None,
    ) -> User:
        connection = _setup_connection()
        try:
            user = repository.create_user(
                connection,
                external_id=external_id,
                email=email,
                organisation_id=organisation_id,
            )
            for role in roles:
                repository.assign_role(
                    connection,
                    user.id,
                    role,
                    organisation_id=None if role == UserRole.PLATFORM_ADMIN else organisation_id,
                )
            return repository.get_user_by_id(connection, user.id)
        finally:
            connection.close()

    return _factory


@pytest.fixture
def _login(
    client: FastAPITestClient, identity_provider: FakeIdentityProvider
) -> Callable[..., str]:
    def _factory(external_id: str, provider_role: Optional[str] = None) -> str:
        session_token = f"sess_{external_id}"
        identity_provider.sessions[session_token] = ProviderSession(
            user_id=external_id, role=provider_role
        )
        response = client.post("/auth/session", json={"token": session_token})
        assert response.status_code == 200
        return response.json()["access_token"]

    return _factory


@pytest.fixture
def _auth_headers() -> Callable[[str], dict[str, str]]:
    def _factory(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    return _factory


@pytest.fixture
def _admin_headers(_create_user, _login, _auth_headers) -> Callable[[], dict[str, str]]:
    def _factory() -> dict[str, str]:
        _create_user("user_admin", "admin@example.com")
        return _auth_headers(_login("user_admin", UserRole.PLATFORM_ADMIN.value))

    return _factory
