"""
Candidate pool: the working set of tracks for one generation run.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from . import config
from .error_handling import get_logger
from .models import Track, TrackAssociation, merge_status

logger = get_logger()


class CandidatePool:
    """
    Ordered mapping track_id -> TrackAssociation for one event.

    Owned by a single run. Contributions follow the status merge policy and
    look through to the durable store, so a track the event already knows
    keeps its association (and a DENIED track stays denied).
    """

    def __init__(self, event_id: str, store, catalog, token: str):
        self.event_id = event_id
        self.store = store
        self.catalog = catalog
        self.token = token  # authoritative token for metadata lookups
        self._entries: Dict[str, TrackAssociation] = {}

    @classmethod
    def load(cls, event_id: str, store, catalog, token: str) -> "CandidatePool":
        """Seed a pool with the associations the store already holds."""
        pool = cls(event_id, store, catalog, token)
        for assoc in store.list_associations(event_id):
            pool._entries[assoc.track_id] = assoc
        return pool

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, track_id: str) -> bool:
        return track_id in self._entries

    def get(self, track_id: str) -> Optional[TrackAssociation]:
        return self._entries.get(track_id)

    def associations(self) -> List[TrackAssociation]:
        return list(self._entries.values())

    def contribute(self, track_id: str) -> bool:
        """
        Offer a track to the pool.

        Returns True only if the pool gained a new track.
        """
        if not track_id:
            return False

        existing = self._entries.get(track_id) or self.store.get_association(self.event_id, track_id)
        if existing is not None:
            existing.status = merge_status(existing.status)
            added = track_id not in self._entries
            self._entries[track_id] = existing
            return added

        track = self._resolve_track(track_id)
        if track is None:
            return False
        self._entries[track_id] = TrackAssociation(
            event_id=self.event_id,
            track=track,
            status=merge_status(None),
        )
        return True

    def contribute_many(self, track_ids: Iterable[str]) -> int:
        return sum(1 for tid in track_ids if self.contribute(tid))

    def flush(self) -> None:
        """Write the pool's associations through to the durable store."""
        for assoc in self._entries.values():
            self.store.upsert_association(assoc)
        self.store.flush()

    def _resolve_track(self, track_id: str) -> Optional[Track]:
        track = self.store.get_track(track_id)
        if track is not None:
            return track

        payload = self.catalog.get_track(self.token, track_id)
        if payload is None:
            logger.warning(f"Skipping track {track_id}: metadata unavailable")
            return None

        artists = payload.get("artists") or []
        genre = config.UNKNOWN_GENRE
        if artists and artists[0].get("id"):
            genre = ",".join(self.catalog.artist_genres(self.token, artists[0]["id"]))
        return self.store.upsert_track(Track.from_spotify(payload, genre=genre))
