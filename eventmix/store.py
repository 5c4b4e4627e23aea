"""
Durable storage for events, members, tracks and generated playlists.

MemoryStore is the plain find/upsert/delete store the generator talks to.
TableStore keeps the same in-memory indexes but persists every table as a
pandas DataFrame through DataCatalog, so a run survives a restart.
Writes are plain upserts: the last writer wins.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .models import (
    Event,
    Member,
    Playlist,
    Role,
    Track,
    TrackAssociation,
    TrackStatus,
    User,
)
from .tables import CacheConfig, DataCatalog


class MemoryStore:
    """Thread-safe in-memory store keyed by identifiers."""

    def __init__(self):
        self._lock = threading.RLock()
        self.users: Dict[str, User] = {}
        self.events: Dict[str, Event] = {}
        self.members: Dict[Tuple[str, str], Member] = {}
        self.tracks: Dict[str, Track] = {}
        self.associations: Dict[Tuple[str, str], TrackAssociation] = {}
        self.playlists: Dict[str, Playlist] = {}

    # ------------------ Users / events / members ------------------
    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def upsert_user(self, user: User) -> User:
        with self._lock:
            self.users[user.user_id] = user
        return user

    def get_event(self, event_id: str) -> Optional[Event]:
        return self.events.get(event_id)

    def upsert_event(self, event: Event) -> Event:
        with self._lock:
            self.events[event.id] = event
        return event

    def delete_event(self, event_id: str) -> None:
        with self._lock:
            self.reset_event(event_id)
            for key in [k for k in self.members if k[0] == event_id]:
                del self.members[key]
            self.events.pop(event_id, None)

    def add_member(self, member: Member) -> Member:
        with self._lock:
            self.users.setdefault(member.user_id, member.user)
            self.members[(member.event_id, member.user_id)] = member
        return member

    def list_members(self, event_id: str) -> List[Member]:
        with self._lock:
            return [m for (eid, _), m in self.members.items() if eid == event_id]

    # ------------------ Tracks ------------------
    def get_track(self, track_id: str) -> Optional[Track]:
        return self.tracks.get(track_id)

    def upsert_track(self, track: Track) -> Track:
        """Idempotent: the first stored version of a track wins."""
        with self._lock:
            return self.tracks.setdefault(track.id, track)

    # ------------------ Track associations ------------------
    def get_association(self, event_id: str, track_id: str) -> Optional[TrackAssociation]:
        return self.associations.get((event_id, track_id))

    def upsert_association(self, association: TrackAssociation) -> TrackAssociation:
        with self._lock:
            self.upsert_track(association.track)
            self.associations[association.key] = association
        return association

    def delete_association(self, event_id: str, track_id: str) -> bool:
        with self._lock:
            removed = self.associations.pop((event_id, track_id), None)
            if removed is None:
                return False
            for playlist in self.list_playlists(event_id):
                if track_id in playlist.track_ids:
                    playlist.track_ids.remove(track_id)
            return True

    def list_associations(self, event_id: str) -> List[TrackAssociation]:
        with self._lock:
            return [a for (eid, _), a in self.associations.items() if eid == event_id]

    # ------------------ Playlists ------------------
    def get_playlist(self, event_id: str, playlist_id: str) -> Optional[Playlist]:
        playlist = self.playlists.get(playlist_id)
        if playlist is None or playlist.event_id != event_id:
            return None
        return playlist

    def upsert_playlist(self, playlist: Playlist) -> Playlist:
        with self._lock:
            self.playlists[playlist.id] = playlist
        return playlist

    def list_playlists(self, event_id: str) -> List[Playlist]:
        with self._lock:
            return [p for p in self.playlists.values() if p.event_id == event_id]

    # ------------------ Lifecycle ------------------
    def reset_event(self, event_id: str) -> None:
        """Drop every association and playlist of an event (hard reset)."""
        with self._lock:
            for key in [k for k in self.associations if k[0] == event_id]:
                del self.associations[key]
            for pid in [p.id for p in self.list_playlists(event_id)]:
                del self.playlists[pid]

    def flush(self) -> None:
        """Nothing to persist for the in-memory store."""
        pass


def _as_bool(value) -> bool:
    return str(value).strip().lower() in ("true", "1", "yes")


def _as_optional(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)) or value == "":
        return None
    return str(value)


class TableStore(MemoryStore):
    """
    MemoryStore persisted as DataFrames (parquet or csv).

    Tables: users, events, event_users, tracks, event_tracks, playlists,
    playlist_tracks. flush() rewrites all of them.
    """

    def __init__(self, cache: Optional[CacheConfig] = None):
        super().__init__()
        self.catalog = DataCatalog(cache or CacheConfig())
        self.load()

    def load(self) -> None:
        cat = self.catalog
        with self._lock:
            for row in _rows(cat.load("users")):
                self.users[row["user_id"]] = User(
                    user_id=row["user_id"],
                    refresh_token=_as_optional(row.get("refresh_token")),
                    access_token=_as_optional(row.get("access_token")),
                    expires_in=int(row.get("expires_in") or 0),
                    issued_at=float(row.get("issued_at") or 0.0),
                )
            for row in _rows(cat.load("events")):
                raw_date = _as_optional(row.get("date"))
                self.events[row["event_id"]] = Event(
                    id=row["event_id"],
                    name=row["name"],
                    date=date.fromisoformat(raw_date) if raw_date else None,
                    locked=_as_bool(row.get("locked")),
                )
            for row in _rows(cat.load("event_users")):
                user = self.users.setdefault(row["user_id"], User(user_id=row["user_id"]))
                self.members[(row["event_id"], row["user_id"])] = Member(
                    user=user, event_id=row["event_id"], role=Role(row["role"])
                )
            for row in _rows(cat.load("tracks")):
                self.tracks[row["track_id"]] = Track(
                    id=row["track_id"],
                    name=row["name"],
                    duration_ms=int(row["duration_ms"]),
                    genre=row["genre"],
                    artist_id=row["artist_id"],
                    artist_name=row["artist_name"],
                    album_image=row["album_image"] or "",
                )
            for row in _rows(cat.load("playlists")):
                self.playlists[row["playlist_id"]] = Playlist(
                    id=row["playlist_id"],
                    event_id=row["event_id"],
                    accepted=_as_bool(row.get("accepted")),
                )
            for row in _rows(cat.load("event_tracks")):
                track = self.tracks.get(row["track_id"]) or Track(id=row["track_id"])
                self.associations[(row["event_id"], row["track_id"])] = TrackAssociation(
                    event_id=row["event_id"],
                    track=track,
                    status=TrackStatus[row["status"]],
                )
            links = _rows(cat.load("playlist_tracks"))
            for row in sorted(links, key=lambda r: int(r["position"])):
                playlist = self.playlists.get(row["playlist_id"])
                if playlist is None:
                    continue
                playlist.add_track(row["track_id"])
                assoc = self.associations.get((playlist.event_id, row["track_id"]))
                if assoc is not None:
                    assoc.playlist_ids.add(playlist.id)

    def flush(self) -> None:
        with self._lock:
            self.catalog.save_all({
                "users": [
                    [u.user_id, u.refresh_token, u.access_token, u.expires_in, u.issued_at]
                    for u in self.users.values()
                ],
                "events": [
                    [e.id, e.name, e.date.isoformat() if e.date else None, e.locked]
                    for e in self.events.values()
                ],
                "event_users": [[m.event_id, m.user_id, m.role.value] for m in self.members.values()],
                "tracks": [
                    [t.id, t.name, t.duration_ms, t.genre, t.artist_id, t.artist_name, t.album_image]
                    for t in self.tracks.values()
                ],
                "event_tracks": [[a.event_id, a.track_id, a.status.name] for a in self.associations.values()],
                "playlists": [[p.id, p.event_id, p.accepted] for p in self.playlists.values()],
                "playlist_tracks": [
                    [p.id, tid, pos] for p in self.playlists.values() for pos, tid in enumerate(p.track_ids)
                ],
            })


def _rows(df: pd.DataFrame) -> List[dict]:
    if df.empty:
        return []
    return df.to_dict("records")


def associations_frame(store: MemoryStore, event_id: str) -> pd.DataFrame:
    """Tidy table of an event's tracks with their status and playlists."""
    rows = []
    for assoc in store.list_associations(event_id):
        t = assoc.track
        rows.append({
            "event_id": assoc.event_id,
            "track_id": t.id,
            "track_name": t.name,
            "artist_name": t.artist_name,
            "genre": t.genre,
            "duration_ms": t.duration_ms,
            "status": assoc.status.name,
            "status_rank": assoc.status.rank,
            "playlists": sorted(assoc.playlist_ids),
            "uri": t.uri,
        })
    columns = ["event_id", "track_id", "track_name", "artist_name", "genre",
               "duration_ms", "status", "status_rank", "playlists", "uri"]
    return pd.DataFrame(rows, columns=columns)
