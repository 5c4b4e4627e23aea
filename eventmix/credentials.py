"""
Access token refresh for event members.

Tokens are refreshed concurrently. The owner's token is mandatory; any other
member whose refresh fails is simply left out of the run.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence

import requests
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from . import config
from .error_handling import OwnerCredentialError, OwnerNotFoundError, get_logger
from .models import Member, find_owner

logger = get_logger()

SCOPES = (
    "playlist-read-private playlist-read-collaborative "
    "playlist-modify-public playlist-modify-private user-top-read"
)


class CredentialRefresher:
    """Exchanges a member's stored refresh token for a fresh access token."""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str = config.DEFAULT_REDIRECT_URI,
                 store=None, max_workers: int = config.FAN_OUT_WORKERS):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.store = store
        self.max_workers = max_workers

    @classmethod
    def from_env(cls, store=None) -> "CredentialRefresher":
        client_id, client_secret, redirect_uri = config.spotify_app_credentials()
        return cls(client_id, client_secret, redirect_uri, store=store)

    def _oauth(self) -> SpotifyOAuth:
        return SpotifyOAuth(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            scope=SCOPES,
            cache_handler=MemoryCacheHandler(),
            open_browser=False,
        )

    def refresh(self, member: Member) -> Optional[str]:
        """Return a fresh access token for member, or None if refresh failed."""
        user = member.user
        if not user.refresh_token:
            logger.warning(f"refresh(): user {user.user_id} has no refresh token")
            return None
        try:
            token_info = self._oauth().refresh_access_token(user.refresh_token)
        except (SpotifyOauthError, SpotifyException, requests.exceptions.RequestException) as e:
            logger.warning(f"refresh(): token refresh failed for user {user.user_id}: {e}")
            return None

        token = (token_info or {}).get("access_token")
        if not token:
            logger.warning(f"refresh(): no access token returned for user {user.user_id}")
            return None

        user.access_token = token
        user.expires_in = int(token_info.get("expires_in") or 0)
        user.issued_at = time.time()
        if token_info.get("refresh_token"):
            user.refresh_token = token_info["refresh_token"]
        if self.store is not None:
            self.store.upsert_user(user)
        return token

    def refresh_all(self, members: Sequence[Member]) -> List[Optional[str]]:
        """
        Refresh every member's token concurrently.

        Returns:
            Tokens ordered owner first, then the other members in input
            order. A non-owner whose refresh failed, or raised, appears as None.

        Raises:
            OwnerNotFoundError: If the members do not contain exactly one owner
            OwnerCredentialError: If the owner's refresh failed
        """
        owner = find_owner(members)
        if owner is None:
            raise OwnerNotFoundError("Event must have exactly one owner.")
        ordered = [owner] + [m for m in members if m is not owner]

        workers = max(1, min(self.max_workers, len(ordered)))
        tokens: List[Optional[str]] = [None] * len(ordered)
        owner_error: Optional[Exception] = None
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.refresh, m): i for i, m in enumerate(ordered)}
            for future in as_completed(futures):
                i = futures[future]
                try:
                    tokens[i] = future.result()
                except Exception as e:
                    logger.warning(f"refresh_all(): unexpected error refreshing user {ordered[i].user_id}: {e}")
                    if i == 0:
                        owner_error = e

        if tokens[0] is None:
            raise OwnerCredentialError(
                f"Failed to refresh access token for owner {owner.user_id}."
            ) from owner_error
        failed = sum(1 for t in tokens if t is None)
        if failed:
            logger.warning(f"{failed} member(s) excluded from generation: token refresh failed")
        return tokens
