"""
Playlist generation for an event.

Runs the stages in order under a per-event lock:

    reset -> refresh tokens -> common library -> top tracks
          -> genre recommendations (looped) -> materialize

Soft failures inside a stage are logged and shrink the result; the fatal
conditions (missing event or owner, owner token refresh, playlist creation)
abort the run with a GenerationError subclass.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Optional

from . import config
from .error_handling import (
    EventNotFoundError,
    GenerationInProgressError,
    OwnerNotFoundError,
    PlaylistCreationError,
    get_logger,
)
from .models import find_owner
from .pool import CandidatePool
from .stages import (
    CommonLibraryStage,
    GenreRecommendationStage,
    PlaylistMaterializationStage,
    StageContext,
    TopTracksStage,
)

logger = get_logger()


class EventLockRegistry:
    """In-process mutual exclusion keyed by event id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, event_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(event_id, threading.Lock())

    @contextmanager
    def hold(self, event_id: str, blocking: bool = False, timeout: float = -1):
        lock = self._lock_for(event_id)
        if not lock.acquire(blocking, timeout if blocking else -1):
            raise GenerationInProgressError(f"Playlist generation already running for event {event_id}.")
        try:
            yield
        finally:
            lock.release()


@dataclass
class GenerationResult:
    event_id: str
    playlist_id: str
    owner_token: str
    track_count: int
    stage_counts: Dict[str, int] = field(default_factory=dict)
    elapsed: float = 0.0


class PlaylistGenerator:
    """Builds one shared playlist per event from its members' listening."""

    def __init__(self, store, catalog, refresher, progress: bool = False,
                 locks: Optional[EventLockRegistry] = None,
                 max_workers: int = config.FAN_OUT_WORKERS):
        self.store = store
        self.catalog = catalog
        self.refresher = refresher
        self.progress = progress
        self.locks = locks or EventLockRegistry()
        self.max_workers = max_workers
        self.stages = [CommonLibraryStage(), TopTracksStage(), GenreRecommendationStage()]
        self.materializer = PlaylistMaterializationStage()

    def generate(self, event_id: str, wait: bool = False) -> GenerationResult:
        """
        Regenerate the playlist of an event.

        Args:
            event_id: Event to generate for
            wait: Block until a concurrent run of the same event finishes
                instead of raising GenerationInProgressError

        Returns:
            GenerationResult with the new Spotify playlist id
        """
        with self.locks.hold(event_id, blocking=wait):
            return self._generate(event_id)

    def _generate(self, event_id: str) -> GenerationResult:
        start = time.time()
        event = self.store.get_event(event_id)
        if event is None:
            raise EventNotFoundError(f"Event {event_id} not found.")

        members = self.store.list_members(event_id)
        owner = find_owner(members)
        if owner is None:
            raise OwnerNotFoundError(f"Event {event_id} has no unique owner.")

        # Hard reset: nothing carries over from earlier runs
        self.store.reset_event(event_id)
        self.store.flush()

        credentials = self.refresher.refresh_all(members)
        logger.info(
            f"0: Generating playlist for event {event_id} from owner {owner.user_id} "
            f"with {len([c for c in credentials if c])}/{len(credentials)} members"
        )

        pool = CandidatePool(event_id, self.store, self.catalog, credentials[0])
        ctx = StageContext(
            event=event,
            owner=owner,
            credentials=credentials,
            catalog=self.catalog,
            pool=pool,
            store=self.store,
            progress=self.progress,
            max_workers=self.max_workers,
        )

        stage_counts = {}
        for stage in self.stages:
            stage_counts[stage.name] = stage.run(ctx)

        playlist = self.materializer.run(ctx)
        if playlist is None:
            raise PlaylistCreationError(f"Failed to create playlist for event {event_id}.")

        elapsed = time.time() - start
        logger.info(f"Generated playlist {playlist.id} for event {event_id} in {elapsed:.2f}s")
        return GenerationResult(
            event_id=event_id,
            playlist_id=playlist.id,
            owner_token=credentials[0],
            track_count=len(playlist.track_ids),
            stage_counts=stage_counts,
            elapsed=elapsed,
        )
