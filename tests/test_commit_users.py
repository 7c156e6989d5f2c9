from __future__ import annotations

import asyncio
import sqlite3

import pytest

from portal import repository
from portal.identity import IdentityProviderError, IdentityProviderUnavailableError
from portal.imports import CommitSaga, commit_import
from portal.imports.commit import CRITICAL_FAILURE_MESSAGE, PARTIAL_FAILURE_MESSAGE
from portal.imports.models import ImportCommitError, ImportValidationFailed
from portal.models import ImportKind, ImportStatus, InvitationStatus, UserRole

USER_HEADER = "email,name,role,organisation,courses\n"


def _csv(*lines: str) -> bytes:
    return (USER_HEADER + "".join(f"{line}\n" for line in lines)).encode()


def _commit(connection, provider, data: bytes, **kwargs):
    return asyncio.run(
        commit_import(
            connection,
            ImportKind.USERS,
            data,
            "users.csv",
            provider=provider,
            site_url="https://portal.test/",
            **kwargs,
        )
    )


def test_commit_creates_new_organisation_before_inviting(
    _setup_connection, identity_provider
) -> None:
    connection = _setup_connection()
    try:
        course = repository.create_course(
            connection, "Strategy 101", "strategy-101", is_published=True
        )
        result = _commit(
            connection,
            identity_provider,
            _csv("New.Person@X.com,New Person,org_admin,NewCo,Strategy 101"),
        )
        organisations = repository.list_organisations(connection)
        invitations = repository.list_invitations(connection)
    finally:
        connection.close()

    assert [organisation.name for organisation in organisations] == ["NewCo"]
    new_co = organisations[0]
    assert identity_provider.created == [
        {
            "email": "new.person@x.com",
            "public_metadata": {"organisation_id": new_co.id, "role": "org_admin"},
            "redirect_url": "https://portal.test/sign-up",
        }
    ]
    assert len(invitations) == 1
    invitation = invitations[0]
    assert invitation.organisation_id == new_co.id
    assert invitation.role == UserRole.ORG_ADMIN
    assert invitation.status == InvitationStatus.PENDING
    assert invitation.course_ids == [course.id]
    assert invitation.external_invitation_id == "inv_1"
    assert invitation.name == "New Person"

    assert result.success_count == 1
    assert result.failure_count == 0
    assert result.entities_created == {"organisations": 1}
    assert result.counters == {"organisations_processed": 1, "individual_enrollments": 1}
    assert result.log is not None
    assert result.log.status == ImportStatus.COMPLETED
    assert result.log.file_name == "users.csv"
    assert result.log.entities_created == {
        "organisations": 1,
        "organisations_processed": 1,
        "individual_enrollments": 1,
    }


def test_single_row_failure_does_not_stop_the_batch(
    _setup_connection, identity_provider
) -> None:
    emails = [f"user{i}@x.com" for i in range(1, 11)]
    identity_provider.create_failures[emails[4]] = IdentityProviderError(
        "Failed to create invitation: form_identifier_exists", status_code=422
    )
    connection = _setup_connection()
    try:
        repository.create_organisation(connection, "Acme")
        result = _commit(
            connection,
            identity_provider,
            _csv(*(f"{email},User,org_member,Acme," for email in emails)),
        )
        invitations = repository.list_invitations(connection)
    finally:
        connection.close()

    assert result.success_count == 9
    assert result.failure_count == 1
    assert result.failures == [
        {
            "row": 5,
            "email": "user5@x.com",
            "error": "Failed to create invitation: form_identifier_exists",
        }
    ]
    assert sorted(invitation.email for invitation in invitations) == sorted(
        email for email in emails if email != "user5@x.com"
    )
    assert result.log.status == ImportStatus.COMPLETED
    assert result.log.success_count == 9
    assert result.log.failure_count == 1
    assert result.log.error_summary["message"] == PARTIAL_FAILURE_MESSAGE
    assert result.log.error_summary["failed_count"] == 1
    assert result.log.error_summary["failures"][0]["email"] == "user5@x.com"


def test_critical_failure_rolls_back_every_side_effect(
    _setup_connection, identity_provider
) -> None:
    lines = [f"user{i}@x.com,User,org_member,NewCo," for i in range(1, 13)]
    identity_provider.create_failures["user11@x.com"] = IdentityProviderUnavailableError(
        "Failed to create invitation: identity provider unavailable"
    )
    saga = CommitSaga()
    connection = _setup_connection()
    try:
        with pytest.raises(ImportCommitError) as excinfo:
            _commit(connection, identity_provider, _csv(*lines), saga=saga)
        invitations = repository.list_invitations(connection)
        organisations = repository.list_organisations(connection)
        logs = repository.list_import_logs(connection, kind=ImportKind.USERS)
    finally:
        connection.close()

    assert str(excinfo.value) == CRITICAL_FAILURE_MESSAGE
    assert len(identity_provider.created) == 11
    assert identity_provider.pending() == []
    assert sorted(identity_provider.revoked) == sorted(
        f"inv_{i}" for i in range(1, 12)
    )
    assert invitations == []
    assert organisations == []
    assert len(saga) == 0

    assert len(logs) == 1
    log = logs[0]
    assert excinfo.value.log == log
    assert log.status == ImportStatus.FAILED
    assert log.success_count == 0
    assert log.failure_count == 12
    assert log.entities_created == {}
    assert log.error_summary == {
        "message": CRITICAL_FAILURE_MESSAGE,
        "type": "critical_failure",
    }


def test_existing_pending_invitation_is_replaced(
    _setup_connection, identity_provider
) -> None:
    connection = _setup_connection()
    try:
        repository.create_organisation(connection, "Acme")
        data = _csv("a@x.com,A,org_member,Acme,")
        _commit(connection, identity_provider, data)
        _commit(connection, identity_provider, data)
        invitations = repository.list_invitations(connection)
    finally:
        connection.close()

    assert identity_provider.revoked == ["inv_1"]
    assert [invitation.external_invitation_id for invitation in invitations] == ["inv_2"]
    assert [invitation.id for invitation in identity_provider.pending()] == ["inv_2"]


def test_invalid_upload_writes_failed_log_and_changes_nothing(
    _setup_connection, identity_provider
) -> None:
    connection = _setup_connection()
    try:
        with pytest.raises(ImportValidationFailed) as excinfo:
            _commit(
                connection,
                identity_provider,
                _csv("a@x.com,A,org_member,NewCo,", "not-an-email,B,org_member,NewCo,"),
            )
        organisations = repository.list_organisations(connection)
        logs = repository.list_import_logs(connection)
    finally:
        connection.close()

    assert excinfo.value.preview.valid_rows == 1
    assert identity_provider.created == []
    assert organisations == []
    assert len(logs) == 1
    assert logs[0].status == ImportStatus.FAILED
    assert logs[0].failure_count == 1
    assert logs[0].error_summary["type"] == "validation_failure"
    assert logs[0].error_summary["errors"] == [
        {"row": 2, "field": "email", "error": "Invalid email format"}
    ]


def test_user_commit_requires_a_provider(_setup_connection) -> None:
    connection = _setup_connection()
    try:
        with pytest.raises(ValueError):
            asyncio.run(
                commit_import(
                    connection, ImportKind.USERS, _csv("a@x.com,A,org_member,Acme,"), "u.csv"
                )
            )
    finally:
        connection.close()


def test_local_insert_failure_revokes_the_provider_invitation(
    _setup_connection, identity_provider, monkeypatch
) -> None:
    original = repository.create_invitation

    def _fail_for_b(connection, **kwargs):
        if kwargs["email"] == "b@x.com":
            raise sqlite3.OperationalError("database is locked")
        return original(connection, **kwargs)

    monkeypatch.setattr(repository, "create_invitation", _fail_for_b)
    connection = _setup_connection()
    try:
        repository.create_organisation(connection, "Acme")
        result = _commit(
            connection,
            identity_provider,
            _csv("a@x.com,A,org_member,Acme,", "b@x.com,B,org_member,Acme,"),
        )
        invitations = repository.list_invitations(connection)
    finally:
        connection.close()

    assert result.success_count == 1
    assert result.failure_count == 1
    assert result.failures[0]["email"] == "b@x.com"
    assert result.failures[0]["error"].startswith("Failed to create invitation record")
    assert len(identity_provider.created) == 2
    assert len(identity_provider.revoked) == 1
    assert [invitation.email for invitation in identity_provider.pending()] == ["a@x.com"]
    assert [invitation.email for invitation in invitations] == ["a@x.com"]


def test_failed_revoke_during_rollback_does_not_stop_compensation(
    _setup_connection, identity_provider, caplog
) -> None:
    identity_provider.create_failures["c@x.com"] = IdentityProviderUnavailableError(
        "Failed to create invitation: identity provider unavailable"
    )
    identity_provider.revoke_failures["inv_2"] = IdentityProviderError(
        "Failed to revoke invitation: server_error", status_code=500
    )
    connection = _setup_connection()
    try:
        with pytest.raises(ImportCommitError) as excinfo:
            _commit(
                connection,
                identity_provider,
                _csv(
                    "a@x.com,A,org_member,NewCo,",
                    "b@x.com,B,org_member,NewCo,",
                    "c@x.com,C,org_member,NewCo,",
                ),
            )
        invitations = repository.list_invitations(connection)
        organisations = repository.list_organisations(connection)
    finally:
        connection.close()

    assert str(excinfo.value) == CRITICAL_FAILURE_MESSAGE
    assert identity_provider.revoked == ["inv_1"]
    assert [invitation.id for invitation in identity_provider.pending()] == ["inv_2"]
    assert invitations == []
    assert organisations == []
    assert "Compensation step failed: invitation:b@x.com" in caplog.text
