"""Tests for users, teams and permissions."""

import pytest

from core.errors import ConfigurationError
from identity import TEAM_ADMIN, IdentityProvider


def test_tokens_resolve_to_users(identity):
    user = identity.get_current_user("alice-token")

    assert user.id == "alice"
    assert user.display_name == "Alice"
    assert identity.get_current_user("bob-token").display_name == "bob"
    assert identity.get_current_user("nope") is None
    assert identity.get_current_user(None) is None


def test_team_requires_membership(identity):
    assert identity.get_team("alice", "acme").name == "Acme"
    assert identity.get_team("carol", "acme") is None
    assert identity.get_team("alice", "missing") is None


def test_permissions(identity):
    team = identity.get_team("alice", "acme")
    alice = identity.get_current_user("alice-token")
    bob = identity.get_current_user("bob-token")

    assert identity.has_permission(alice, team, TEAM_ADMIN)
    assert not identity.has_permission(bob, team, TEAM_ADMIN)


def test_from_file(tmp_path):
    path = tmp_path / "identity.toml"
    path.write_text(
        '[users.alice]\n'
        'token = "t1"\n'
        '\n'
        '[teams.acme]\n'
        'name = "Acme"\n'
        '\n'
        '[teams.acme.members]\n'
        'alice = ["team_admin"]\n'
    )

    provider = IdentityProvider.from_file(path)

    alice = provider.get_current_user("t1")
    assert alice.id == "alice"
    assert provider.has_permission(alice, provider.get_team("alice", "acme"), TEAM_ADMIN)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        IdentityProvider.from_file(tmp_path / "missing.toml")


def test_malformed_file(tmp_path):
    path = tmp_path / "identity.toml"
    path.write_text("[users.alice\ntoken = ")

    with pytest.raises(ConfigurationError):
        IdentityProvider.from_file(path)


def test_malformed_structure():
    with pytest.raises(ConfigurationError):
        IdentityProvider.from_dict({"users": {"alice": "not-a-table"}})
