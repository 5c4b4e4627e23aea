"""
Typed facade over the Spotify Web API.

Every call takes the bearer token to act with, so one CatalogClient serves
all members of an event. Reads fail soft (logged, empty result); only
playlist creation reports failure to the caller as None, which the
generator treats as fatal.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Callable, List, Optional, Set

import spotipy

from . import config
from .error_handling import get_logger
from .ratelimit import API_ERRORS, RateLimitError, api_call, safe_api_call

logger = get_logger()


def default_client_factory(token: str) -> spotipy.Spotify:
    return spotipy.Spotify(auth=token, requests_timeout=config.API_REQUEST_TIMEOUT)


class CatalogClient:
    """Spotify catalog reads and playlist writes, keyed by access token."""

    def __init__(
        self,
        client_factory: Callable[[str], spotipy.Spotify] = default_client_factory,
        request_delay: float = config.API_REQUEST_DELAY,
        max_retries: int = config.API_MAX_RETRIES,
        max_clients: int = config.CLIENT_CACHE_SIZE,
    ):
        self._client_factory = client_factory
        self._request_delay = request_delay
        self._max_retries = max_retries
        self._max_clients = max(1, max_clients)
        # token -> client, least recently used first
        self._clients: "OrderedDict[str, spotipy.Spotify]" = OrderedDict()
        self._lock = threading.Lock()

    def _sp(self, token: str) -> spotipy.Spotify:
        with self._lock:
            sp = self._clients.get(token)
            if sp is not None:
                self._clients.move_to_end(token)
                return sp
            sp = self._client_factory(token)
            self._clients[token] = sp
            while len(self._clients) > self._max_clients:
                self._clients.popitem(last=False)
            return sp

    def _call(self, fn, *args, **kwargs):
        return api_call(fn, *args, delay=self._request_delay, max_retries=self._max_retries, **kwargs)

    def _safe(self, fn, *args, default_return=None, **kwargs):
        return safe_api_call(
            fn, *args,
            default_return=default_return,
            delay=self._request_delay,
            max_retries=self._max_retries,
            **kwargs,
        )

    # ------------------ Library ------------------
    def list_playlists(self, token: str) -> List[dict]:
        """All playlists of the token's user as {id, name} dicts."""
        sp = self._sp(token)
        out = []
        offset = 0
        while True:
            page = self._safe(
                sp.current_user_playlists,
                limit=config.SPOTIFY_API_PAGINATION_LIMIT,
                offset=offset,
            )
            if not page:
                break
            items = page.get("items") or []
            for p in items:
                if p and p.get("id"):
                    out.append({"id": p["id"], "name": p.get("name") or ""})
            offset += len(items)
            if not page.get("next") or not items:
                break
        return out

    def list_playlist_tracks(self, token: str, playlist_id: str) -> List[str]:
        """Track ids of a playlist; local files and removed tracks are skipped."""
        sp = self._sp(token)
        out = []
        offset = 0
        while True:
            page = self._safe(
                sp.playlist_items,
                playlist_id,
                fields="items(track(id)),next",
                limit=config.SPOTIFY_API_PLAYLIST_ITEMS_LIMIT,
                offset=offset,
                additional_types=("track",),
            )
            if not page:
                break
            items = page.get("items") or []
            for item in items:
                track = (item or {}).get("track") or {}
                if track.get("id"):
                    out.append(track["id"])
            offset += len(items)
            if not page.get("next") or not items:
                break
        return out

    def top_artists(self, token: str, limit: int = config.AMOUNT_ARTISTS) -> List[dict]:
        """The user's top artists as {id, genres} dicts, best first."""
        resp = self._safe(self._sp(token).current_user_top_artists, limit=limit)
        if not resp:
            return []
        return [
            {"id": a["id"], "genres": list(a.get("genres") or [])}
            for a in resp.get("items") or []
            if a and a.get("id")
        ]

    # ------------------ Artists ------------------
    def artist_top_tracks(
        self,
        token: str,
        artist_id: str,
        country: str = config.TOP_TRACKS_COUNTRY,
        limit: int = config.AMOUNT_TRACKS_PER_ARTIST,
    ) -> List[str]:
        resp = self._safe(self._sp(token).artist_top_tracks, artist_id, country=country)
        if not resp:
            return []
        ids = [t["id"] for t in resp.get("tracks") or [] if t and t.get("id")]
        return ids[:limit]

    def artist_genres(self, token: str, artist_id: str) -> List[str]:
        resp = self._safe(self._sp(token).artist, artist_id)
        genres = (resp or {}).get("genres") or []
        return list(genres) or [config.UNKNOWN_GENRE]

    # ------------------ Recommendations ------------------
    def genre_seeds(self, token: str) -> Set[str]:
        resp = self._safe(self._sp(token).recommendation_genre_seeds)
        return set((resp or {}).get("genres") or [])

    def recommendations(
        self,
        token: str,
        genres: List[str],
        limit: int = config.AMOUNT_RECOMMENDATIONS,
    ) -> List[dict]:
        seeds = list(genres)[:config.MAX_SEED_GENRES]
        if not seeds:
            return []
        resp = self._safe(self._sp(token).recommendations, seed_genres=seeds, limit=limit)
        if not resp:
            return []
        return [
            {
                "id": t["id"],
                "duration_ms": t.get("duration_ms"),
                "artists": [a.get("name") for a in t.get("artists") or []],
            }
            for t in resp.get("tracks") or []
            if t and t.get("id")
        ]

    # ------------------ Tracks ------------------
    def get_track(self, token: str, track_id: str) -> Optional[dict]:
        """Full track payload, or None when it cannot be fetched."""
        resp = self._safe(self._sp(token).track, track_id)
        if not resp or not resp.get("id"):
            return None
        return resp

    def search_tracks(self, token: str, query: str, limit: int = config.SEARCH_LIMIT) -> List[dict]:
        """Catalog search as {id, name, artist, album_image} dicts; artists joined by ", "."""
        if not query or not query.strip():
            return []
        resp = self._safe(self._sp(token).search, q=query, type="track", limit=limit)
        items = ((resp or {}).get("tracks") or {}).get("items") or []
        results = []
        for t in items:
            if not t or not t.get("id"):
                continue
            images = (t.get("album") or {}).get("images") or []
            results.append({
                "id": t["id"],
                "name": t.get("name") or "",
                "artist": ", ".join(a.get("name") or "" for a in t.get("artists") or []),
                "album_image": (images[0] or {}).get("url", "") if images else "",
            })
        return results

    # ------------------ Playlist writes ------------------
    def create_playlist(
        self,
        token: str,
        owner_id: str,
        name: str,
        description: str = config.PLAYLIST_DESCRIPTION,
        public: bool = config.PLAYLIST_PUBLIC,
    ) -> Optional[str]:
        try:
            pl = self._call(
                self._sp(token).user_playlist_create,
                owner_id,
                name,
                public=public,
                description=description,
            )
        except (RateLimitError,) + API_ERRORS as e:
            logger.error(f"create_playlist() failed for owner {owner_id}: {e}")
            return None
        return (pl or {}).get("id") or None

    def add_tracks(self, token: str, playlist_id: str, uris: List[str]) -> bool:
        if len(uris) > config.SAVE_BATCH_SIZE:
            raise ValueError(
                f"Cannot add {len(uris)} tracks in one request (max {config.SAVE_BATCH_SIZE})"
            )
        if not uris:
            return True
        try:
            self._call(self._sp(token).playlist_add_items, playlist_id, uris)
        except (RateLimitError,) + API_ERRORS as e:
            logger.warning(f"add_tracks() failed for playlist {playlist_id} ({len(uris)} tracks): {e}")
            return False
        return True

    def replace_all_tracks(self, token: str, playlist_id: str) -> bool:
        """Empty a playlist. Errors propagate: only the save flow uses this."""
        self._call(self._sp(token).playlist_replace_items, playlist_id, [])
        return True
