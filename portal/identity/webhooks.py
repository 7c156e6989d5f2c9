from __future__ import annotations

import logging
import sqlite3
from typing import Any, Mapping, Optional

from svix.webhooks import Webhook
from svix.webhooks import WebhookVerificationError as SvixVerificationError

from portal import auth, repository
from portal.models import UserRole

from .client import IdentityProvider
from .errors import WebhookVerificationError

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


class MissingWebhookHeadersError(WebhookVerificationError):
    pass


def verify_webhook(
    secret: str, headers: Mapping[str, str], body: bytes
) -> dict[str, Any]:
    """Check the Svix signature on ``body`` and return the decoded event.

    Timestamps more than five minutes away from now are rejected by svix.
    """
    normalized = {key.lower(): value for key, value in headers.items()}
    if not all(normalized.get(name) for name in REQUIRED_HEADERS):
        raise MissingWebhookHeadersError("Missing webhook signature headers.")

    try:
        payload = Webhook(secret).verify(body, normalized)
    except SvixVerificationError as exc:
        raise WebhookVerificationError(str(exc)) from exc
    except ValueError as exc:
        # malformed base64 in the secret or a signature, or a non-JSON body
        raise WebhookVerificationError("Malformed webhook signature or body.") from exc
    if not isinstance(payload, dict):
        raise WebhookVerificationError("Webhook body must be an object.")
    return payload


def _primary_email(data: Mapping[str, Any]) -> Optional[str]:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return str(address.get("email_address") or "").strip().lower() or None
    if addresses:
        return str(addresses[0].get("email_address") or "").strip().lower() or None
    return None


def _display_name(data: Mapping[str, Any]) -> Optional[str]:
    parts = [str(data.get("first_name") or "").strip(), str(data.get("last_name") or "").strip()]
    name = " ".join(part for part in parts if part)
    return name or None


def _metadata_role(metadata: Mapping[str, Any]) -> UserRole:
    try:
        return UserRole(str(metadata.get("role") or UserRole.ORG_MEMBER.value))
    except ValueError:
        return UserRole.ORG_MEMBER


def _metadata_organisation_id(metadata: Mapping[str, Any]) -> Optional[int]:
    value = metadata.get("organisation_id")
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


async def _handle_user_created(
    connection: sqlite3.Connection, provider: IdentityProvider, data: Mapping[str, Any]
) -> None:
    external_id = str(data["id"])
    email = _primary_email(data)
    metadata = data.get("public_metadata") or {}
    organisation_id = _metadata_organisation_id(metadata)

    user = repository.get_user_by_external_id(connection, external_id)
    if user is None:
        user = repository.create_user(
            connection,
            external_id=external_id,
            email=email,
            name=_display_name(data),
            organisation_id=organisation_id,
        )
    if organisation_id is None:
        logger.info("User %s created without organisation metadata", external_id)
        return

    role = _metadata_role(metadata)
    repository.set_user_organisation(connection, user.id, organisation_id)
    repository.assign_role(connection, user.id, role, organisation_id=organisation_id)
    if email:
        repository.mark_invitation_accepted(connection, email, organisation_id)
    await provider.update_user_metadata(
        external_id, {"organisation_id": organisation_id, "role": role.value}
    )


async def _handle_user_updated(
    connection: sqlite3.Connection, provider: IdentityProvider, data: Mapping[str, Any]
) -> None:
    external_id = str(data["id"])
    user = repository.update_user_profile(
        connection,
        external_id,
        email=_primary_email(data),
        name=_display_name(data),
    )
    if user is None:
        logger.info("Ignoring update for unknown user %s", external_id)
        return
    role = auth.primary_role(user.roles)
    if role is None:
        return
    metadata: dict[str, Any] = {"role": role.value}
    if user.organisation_id is not None:
        metadata["organisation_id"] = user.organisation_id
    await provider.update_user_metadata(external_id, metadata)


async def _handle_user_deleted(
    connection: sqlite3.Connection, provider: IdentityProvider, data: Mapping[str, Any]
) -> None:
    external_id = data.get("id")
    if not external_id:
        return
    repository.delete_user_by_external_id(connection, str(external_id))


_HANDLERS = {
    "user.created": _handle_user_created,
    "user.updated": _handle_user_updated,
    "user.deleted": _handle_user_deleted,
}


async def handle_event(
    connection: sqlite3.Connection, provider: IdentityProvider, event: Mapping[str, Any]
) -> bool:
    event_type = str(event.get("type") or "")
    handler = _HANDLERS.get(event_type)
    if handler is None:
        logger.info("Ignoring unhandled webhook event type: %s", event_type or "<none>")
        return False
    await handler(connection, provider, event.get("data") or {})
    return True
