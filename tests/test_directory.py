"""Tests for the remote recipient directory."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from envv.api import ApiClient
from envv.directory import RemoteRecipientDirectory
from envv.errors import AuthzError, NotFoundError, ServiceError


@pytest.fixture
def client() -> MagicMock:
    return MagicMock(spec=ApiClient)


def test_lists_members_including_keyless(client):
    client.request.return_value = {
        "project_id": "p1",
        "members": [
            {"user_id": "u1", "email": "alice@example.com", "age_public_key": "age1a", "permission": "admin"},
            {"user_id": "u2", "email": "bob@example.com", "age_public_key": "", "permission": "read"},
        ],
        "total": 2,
    }

    recipients = RemoteRecipientDirectory(client).list_recipients("p1")

    client.request.assert_called_once_with("GET", "/projects/p1/members")
    assert [r.identity for r in recipients] == ["alice@example.com", "bob@example.com"]
    assert recipients[0].has_key
    assert not recipients[1].has_key


def test_empty_roster(client):
    client.request.return_value = {"project_id": "p1", "members": [], "total": 0}
    assert RemoteRecipientDirectory(client).list_recipients("p1") == []


def test_duplicate_identity_keeps_first(client):
    client.request.return_value = {"members": [
        {"email": "alice@example.com", "age_public_key": "age1first"},
        {"email": "Alice@Example.com", "age_public_key": "age1second"},
    ]}
    recipients = RemoteRecipientDirectory(client).list_recipients("p1")
    assert len(recipients) == 1
    assert recipients[0].public_key == "age1first"


@pytest.mark.parametrize("error", [NotFoundError("project not found"), AuthzError("forbidden")])
def test_errors_propagate(client, error):
    client.request.side_effect = error
    with pytest.raises(type(error)):
        RemoteRecipientDirectory(client).list_recipients("p1")


def test_organization_member_keys(client):
    client.request.return_value = [
        {"user_id": "u1", "email": "alice@example.com", "age_public_key": "age1a", "role": "owner"},
    ]
    recipients = RemoteRecipientDirectory(client).list_organization_recipients("org-1")
    client.request.assert_called_once_with("GET", "/organizations/org-1/members/keys")
    assert recipients[0].role.value == "owner"


def test_member_without_identity_is_invalid_response(client):
    client.request.return_value = {"members": [{"user_id": "u1", "age_public_key": "age1a"}]}
    with pytest.raises(ServiceError) as info:
        RemoteRecipientDirectory(client).list_recipients("p1")
    assert info.value.code == "invalid_response"


def test_unknown_permission_is_invalid_response(client):
    client.request.return_value = {"members": [
        {"email": "alice@example.com", "permission": "superuser"},
    ]}
    with pytest.raises(ServiceError, match="member list"):
        RemoteRecipientDirectory(client).list_recipients("p1")


def test_organization_keys_not_a_list(client):
    client.request.return_value = {"error": "unexpected"}
    with pytest.raises(ServiceError):
        RemoteRecipientDirectory(client).list_organization_recipients("org-1")
