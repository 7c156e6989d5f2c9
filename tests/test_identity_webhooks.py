from __future__ import annotations

import asyncio
import base64
import json
import time
from datetime import datetime, timezone

import pytest
from svix.webhooks import Webhook

from portal import repository
from portal.identity import WebhookVerificationError
from portal.identity.webhooks import (
    MissingWebhookHeadersError,
    handle_event,
    verify_webhook,
)
from portal.models import InvitationStatus, UserRole

SECRET = "whsec_" + base64.b64encode(b"webhook-test-secret").decode("ascii")


def _signed_headers(body: bytes, *, timestamp: int | None = None, secret: str = SECRET) -> dict[str, str]:
    sent_at = int(time.time()) if timestamp is None else timestamp
    signature = Webhook(secret).sign(
        "msg_1", datetime.fromtimestamp(sent_at, tz=timezone.utc), body.decode()
    )
    return {
        "svix-id": "msg_1",
        "svix-timestamp": str(sent_at),
        "svix-signature": signature,
    }


def _body(event_type: str, data: dict) -> bytes:
    return json.dumps({"type": event_type, "data": data}).encode()


def _user_data(**metadata) -> dict:
    return {
        "id": "user_ext_1",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "primary_email_address_id": "email_2",
        "email_addresses": [
            {"id": "email_1", "email_address": "old@x.com"},
            {"id": "email_2", "email_address": "Ada@X.com"},
        ],
        "public_metadata": metadata,
    }


def test_verify_webhook_returns_parsed_event() -> None:
    body = _body("user.deleted", {"id": "user_ext_1"})

    event = verify_webhook(SECRET, _signed_headers(body), body)

    assert event == {"type": "user.deleted", "data": {"id": "user_ext_1"}}


def test_verify_webhook_accepts_any_matching_signature() -> None:
    body = _body("user.deleted", {"id": "x"})
    headers = _signed_headers(body)
    wrong = base64.b64encode(bytes(32)).decode("ascii")
    headers["svix-signature"] = f"v1,{wrong} {headers['svix-signature']}"

    assert verify_webhook(SECRET, headers, body)["type"] == "user.deleted"


def test_verify_webhook_requires_all_headers() -> None:
    body = _body("user.deleted", {"id": "x"})
    headers = _signed_headers(body)
    del headers["svix-timestamp"]

    with pytest.raises(MissingWebhookHeadersError):
        verify_webhook(SECRET, headers, body)


def test_verify_webhook_rejects_tampered_body() -> None:
    body = _body("user.deleted", {"id": "x"})
    headers = _signed_headers(body)

    with pytest.raises(WebhookVerificationError):
        verify_webhook(SECRET, headers, _body("user.deleted", {"id": "y"}))


def test_verify_webhook_rejects_other_secret() -> None:
    body = _body("user.deleted", {"id": "x"})
    other = "whsec_" + base64.b64encode(b"another-secret").decode("ascii")

    with pytest.raises(WebhookVerificationError):
        verify_webhook(SECRET, _signed_headers(body, secret=other), body)


def test_verify_webhook_enforces_timestamp_tolerance() -> None:
    body = _body("user.deleted", {"id": "x"})
    now = int(time.time())
    recent = _signed_headers(body, timestamp=now - 240)
    stale = _signed_headers(body, timestamp=now - 360)
    future = _signed_headers(body, timestamp=now + 360)

    assert verify_webhook(SECRET, recent, body)["type"] == "user.deleted"
    with pytest.raises(WebhookVerificationError):
        verify_webhook(SECRET, stale, body)
    with pytest.raises(WebhookVerificationError):
        verify_webhook(SECRET, future, body)


def test_user_created_links_user_to_invited_organisation(
    _setup_connection, identity_provider
) -> None:
    connection = _setup_connection()
    try:
        organisation = repository.create_organisation(connection, "Acme")
        repository.create_invitation(
            connection,
            email="ada@x.com",
            organisation_id=organisation.id,
            role=UserRole.ORG_ADMIN,
            external_invitation_id="inv_1",
            invited_at="2026-01-01T00:00:00+00:00",
            expires_at="2026-01-08T00:00:00+00:00",
        )
        event = {
            "type": "user.created",
            "data": _user_data(organisation_id=str(organisation.id), role="org_admin"),
        }

        handled = asyncio.run(handle_event(connection, identity_provider, event))
        user = repository.get_user_by_external_id(connection, "user_ext_1")
        invitations = repository.list_invitations(connection)
    finally:
        connection.close()

    assert handled is True
    assert user.email == "ada@x.com"
    assert user.name == "Ada Lovelace"
    assert user.organisation_id == organisation.id
    assert user.roles == [UserRole.ORG_ADMIN]
    assert invitations[0].status == InvitationStatus.ACCEPTED
    assert identity_provider.metadata_updates == [
        ("user_ext_1", {"organisation_id": organisation.id, "role": "org_admin"})
    ]


def test_user_created_without_metadata_only_stores_user(
    _setup_connection, identity_provider
) -> None:
    connection = _setup_connection()
    try:
        event = {"type": "user.created", "data": _user_data()}
        asyncio.run(handle_event(connection, identity_provider, event))
        user = repository.get_user_by_external_id(connection, "user_ext_1")
    finally:
        connection.close()

    assert user.organisation_id is None
    assert user.roles == []
    assert identity_provider.metadata_updates == []


def test_user_updated_and_deleted(_setup_connection, identity_provider, _create_user) -> None:
    _create_user("user_ext_1", "old@x.com", roles=(UserRole.ORG_MEMBER,))
    connection = _setup_connection()
    try:
        asyncio.run(
            handle_event(
                connection, identity_provider, {"type": "user.updated", "data": _user_data()}
            )
        )
        updated = repository.get_user_by_external_id(connection, "user_ext_1")
        asyncio.run(
            handle_event(
                connection,
                identity_provider,
                {"type": "user.deleted", "data": {"id": "user_ext_1"}},
            )
        )
        deleted = repository.get_user_by_external_id(connection, "user_ext_1")
    finally:
        connection.close()

    assert updated.email == "ada@x.com"
    assert identity_provider.metadata_updates == [("user_ext_1", {"role": "org_member"})]
    assert deleted is None


def test_unhandled_event_type_is_ignored(_setup_connection, identity_provider) -> None:
    connection = _setup_connection()
    try:
        handled = asyncio.run(
            handle_event(connection, identity_provider, {"type": "session.created", "data": {}})
        )
    finally:
        connection.close()

    assert handled is False


def test_webhook_endpoint_requires_configured_secret(client) -> None:
    response = client.post("/webhooks/identity", content=b"{}")

    assert response.status_code == 500
    assert response.text == "Webhook secret not configured"


def test_webhook_endpoint_status_codes(client, monkeypatch) -> None:
    monkeypatch.setenv("IDENTITY_WEBHOOK_SECRET", SECRET)
    body = _body("user.deleted", {"id": "nobody"})

    missing = client.post("/webhooks/identity", content=body)
    forged = client.post(
        "/webhooks/identity",
        content=body,
        headers={**_signed_headers(body), "svix-signature": "v1,forged"},
    )
    accepted = client.post("/webhooks/identity", content=body, headers=_signed_headers(body))

    assert missing.status_code == 400
    assert missing.text == "Missing required webhook headers"
    assert forged.status_code == 400
    assert forged.text == "Invalid webhook signature"
    assert accepted.status_code == 200
    assert accepted.json() == {"received": True, "handled": True}


def test_webhook_handler_failure_still_answers_200(client, monkeypatch) -> None:
    monkeypatch.setenv("IDENTITY_WEBHOOK_SECRET", SECRET)
    body = _body("user.created", {"email_addresses": []})

    response = client.post("/webhooks/identity", content=body, headers=_signed_headers(body))

    assert response.status_code == 200
    assert response.json() == {"error": "Internal error"}
