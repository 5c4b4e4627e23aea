from unittest.mock import MagicMock, patch

import pytest
from spotipy.oauth2 import SpotifyOauthError

from eventmix.credentials import CredentialRefresher
from eventmix.error_handling import ConfigurationError, OwnerCredentialError, OwnerNotFoundError
from eventmix.models import Member, Role, User
from eventmix.store import MemoryStore


def member(user_id, role=Role.PARTICIPANT, refresh_token="rt"):
    return Member(User(user_id, refresh_token=refresh_token), "e1", role)


@pytest.fixture
def oauth():
    with patch("eventmix.credentials.SpotifyOAuth") as cls:
        yield cls.return_value


def test_refresh_updates_user_and_store(oauth):
    oauth.refresh_access_token.return_value = {
        "access_token": "fresh",
        "expires_in": 3600,
        "refresh_token": "rotated",
    }
    store = MemoryStore()
    refresher = CredentialRefresher("id", "secret", store=store)
    alice = member("alice", Role.OWNER, refresh_token="old")

    assert refresher.refresh(alice) == "fresh"
    oauth.refresh_access_token.assert_called_once_with("old")
    assert alice.user.access_token == "fresh"
    assert alice.user.refresh_token == "rotated"
    assert alice.user.expires_in == 3600
    assert store.get_user("alice") is alice.user


def test_refresh_without_refresh_token(oauth):
    refresher = CredentialRefresher("id", "secret")
    assert refresher.refresh(member("bob", refresh_token=None)) is None
    oauth.refresh_access_token.assert_not_called()


def test_refresh_failure_returns_none(oauth):
    oauth.refresh_access_token.side_effect = SpotifyOauthError("invalid_grant")
    refresher = CredentialRefresher("id", "secret")
    assert refresher.refresh(member("bob")) is None


def _refresher_with(tokens):
    refresher = CredentialRefresher("id", "secret", max_workers=4)
    refresher.refresh = MagicMock(side_effect=lambda m: tokens.get(m.user_id))
    return refresher


def test_refresh_all_puts_owner_first():
    members = [member("bob"), member("carol"), member("alice", Role.OWNER)]
    refresher = _refresher_with({"alice": "ta", "bob": "tb", "carol": "tc"})

    assert refresher.refresh_all(members) == ["ta", "tb", "tc"]


def test_refresh_all_keeps_failed_members_as_none():
    members = [member("alice", Role.OWNER), member("bob"), member("carol")]
    refresher = _refresher_with({"alice": "ta", "carol": "tc"})

    assert refresher.refresh_all(members) == ["ta", None, "tc"]


def test_refresh_all_owner_failure_is_fatal():
    members = [member("alice", Role.OWNER), member("bob")]
    refresher = _refresher_with({"bob": "tb"})

    with pytest.raises(OwnerCredentialError):
        refresher.refresh_all(members)


def test_refresh_all_requires_owner():
    refresher = _refresher_with({"bob": "tb"})
    with pytest.raises(OwnerNotFoundError):
        refresher.refresh_all([member("bob")])


def _raising_refresher(tokens, broken):
    def refresh(m):
        if m.user_id in broken:
            raise KeyError(m.user_id)
        return tokens.get(m.user_id)

    refresher = CredentialRefresher("id", "secret", max_workers=4)
    refresher.refresh = MagicMock(side_effect=refresh)
    return refresher


def test_refresh_all_unexpected_member_error_excludes_member():
    members = [member("alice", Role.OWNER), member("bob"), member("carol")]
    refresher = _raising_refresher({"alice": "ta", "carol": "tc"}, broken={"bob"})

    assert refresher.refresh_all(members) == ["ta", None, "tc"]
    assert refresher.refresh.call_count == 3


def test_refresh_all_unexpected_owner_error_is_owner_failure():
    members = [member("alice", Role.OWNER), member("bob")]
    refresher = _raising_refresher({"bob": "tb"}, broken={"alice"})

    with pytest.raises(OwnerCredentialError) as excinfo:
        refresher.refresh_all(members)
    assert isinstance(excinfo.value.__cause__, KeyError)


def test_from_env(monkeypatch):
    monkeypatch.setenv("SPOTIPY_CLIENT_ID", "cid")
    monkeypatch.setenv("SPOTIPY_CLIENT_SECRET", "csecret")
    monkeypatch.delenv("SPOTIPY_REDIRECT_URI", raising=False)

    refresher = CredentialRefresher.from_env()

    assert refresher.client_id == "cid"
    assert refresher.redirect_uri == "http://127.0.0.1:8888/callback"


def test_from_env_missing_secret(monkeypatch):
    monkeypatch.setenv("SPOTIPY_CLIENT_ID", "cid")
    monkeypatch.delenv("SPOTIPY_CLIENT_SECRET", raising=False)
    with pytest.raises(ConfigurationError):
        CredentialRefresher.from_env()
