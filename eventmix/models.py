"""
Domain model for event playlists.

Tracks are immutable catalog metadata shared by every event; a
TrackAssociation carries the per-event curation status of one track.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from functools import total_ordering
from typing import Iterable, List, Optional

from .config import TRACK_URI_PREFIX, UNKNOWN_GENRE


@total_ordering
class TrackStatus(Enum):
    """
    Curation status of a track within an event.

    Hierarchical: every level carries the rights of the levels below it.
    Ordering is by rank, never by comparing against plain integers.
    """

    DENIED = 0
    PROPOSED = 1
    ACCEPTED_PLAYLIST = 2
    GENERATED = 3
    ACCEPTED = 4

    @property
    def rank(self) -> int:
        return self.value

    def __lt__(self, other):
        if not isinstance(other, TrackStatus):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, name: str) -> "TrackStatus":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown track status: {name}") from None


# Statuses that may be published to the remote playlist automatically
PUBLISHABLE = frozenset({
    TrackStatus.GENERATED,
    TrackStatus.ACCEPTED_PLAYLIST,
    TrackStatus.ACCEPTED,
})


def merge_status(current: Optional[TrackStatus]) -> TrackStatus:
    """
    Status of a track after the generator (re)discovers it.

    DENIED is a sticky floor and anything at or above GENERATED is kept;
    everything else is promoted to GENERATED.
    """
    if current is None:
        return TrackStatus.GENERATED
    if current is TrackStatus.DENIED or current >= TrackStatus.GENERATED:
        return current
    return TrackStatus.GENERATED


@total_ordering
class Role(Enum):
    PARTICIPANT = "participant"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _ROLE_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank < other.rank


_ROLE_ORDER = [Role.PARTICIPANT, Role.ADMIN, Role.OWNER]


@dataclass(frozen=True)
class Track:
    id: str
    name: str = ""
    duration_ms: int = 0
    genre: str = UNKNOWN_GENRE
    artist_id: str = ""
    artist_name: str = ""
    album_image: str = ""

    @property
    def uri(self) -> str:
        return f"{TRACK_URI_PREFIX}{self.id}"

    @classmethod
    def from_spotify(cls, payload: dict, genre: str = UNKNOWN_GENRE) -> "Track":
        """Build a Track from a /tracks/{id} payload, primary artist first."""
        artists = payload.get("artists") or [{}]
        primary = artists[0] or {}
        images = (payload.get("album") or {}).get("images") or []
        return cls(
            id=payload["id"],
            name=payload.get("name") or "",
            duration_ms=int(payload.get("duration_ms") or 0),
            genre=genre,
            artist_id=primary.get("id") or "",
            artist_name=primary.get("name") or "",
            album_image=(images[0] or {}).get("url", "") if images else "",
        )


@dataclass
class TrackAssociation:
    event_id: str
    track: Track
    status: TrackStatus = TrackStatus.GENERATED
    playlist_ids: set = field(default_factory=set)

    @property
    def track_id(self) -> str:
        return self.track.id

    @property
    def key(self) -> tuple:
        return (self.event_id, self.track.id)


@dataclass
class User:
    user_id: str  # Spotify user id
    refresh_token: Optional[str] = None
    access_token: Optional[str] = None
    expires_in: int = 0
    issued_at: float = 0.0


@dataclass
class Member:
    user: User
    event_id: str
    role: Role = Role.PARTICIPANT

    @property
    def user_id(self) -> str:
        return self.user.user_id

    @property
    def is_owner(self) -> bool:
        return self.role is Role.OWNER


@dataclass
class Event:
    id: str
    name: str
    date: Optional[date] = None
    locked: bool = False


@dataclass
class Playlist:
    id: str  # Spotify playlist id
    event_id: str
    accepted: bool = False
    track_ids: List[str] = field(default_factory=list)

    def add_track(self, track_id: str) -> bool:
        """Append a track id once; a playlist never lists a track twice."""
        if track_id in self.track_ids:
            return False
        self.track_ids.append(track_id)
        return True


def find_owner(members: Iterable[Member]) -> Optional[Member]:
    """Return the single OWNER membership, or None if there is not exactly one."""
    owners = [m for m in members if m.is_owner]
    if len(owners) != 1:
        return None
    return owners[0]
