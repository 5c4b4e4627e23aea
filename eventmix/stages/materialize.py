"""
Stage 4: publish the candidate pool as a Spotify playlist.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .. import config
from ..error_handling import get_logger
from ..models import PUBLISHABLE, Playlist, TrackAssociation
from ..ratelimit import chunked
from .base import StageContext

logger = get_logger()


def unique_associations(associations: Iterable[TrackAssociation]) -> List[TrackAssociation]:
    """Drop repeated track ids; the first occurrence wins."""
    seen = set()
    unique = []
    for assoc in associations:
        if assoc.track_id in seen:
            logger.info(f"Duplicate track found and removed: {assoc.track_id}")
            continue
        seen.add(assoc.track_id)
        unique.append(assoc)
    return unique


def publishable(associations: Iterable[TrackAssociation]) -> List[TrackAssociation]:
    return [a for a in associations if a.status in PUBLISHABLE]


class PlaylistMaterializationStage:
    name = "materialize"

    def __init__(self, batch_size: int = config.ADD_BATCH_SIZE):
        self.batch_size = batch_size

    def run(self, ctx: StageContext) -> Optional[Playlist]:
        """
        Create the remote playlist and fill it from the pool.

        Returns:
            The new Playlist, or None if Spotify refused to create it.
        """
        owner = ctx.owner
        candidates = ctx.pool.associations()
        logger.info(
            f"4: Creating playlist for event {ctx.event.id} from owner {owner.user_id} "
            f"with {len(candidates)} candidate tracks"
        )
        playlist_id = ctx.catalog.create_playlist(
            ctx.authoritative_credential,
            owner.user_id,
            ctx.event.name,
            description=config.PLAYLIST_DESCRIPTION,
            public=config.PLAYLIST_PUBLIC,
        )
        if not playlist_id:
            return None

        playlist = Playlist(id=playlist_id, event_id=ctx.event.id, accepted=False)
        tracks = publishable(unique_associations(candidates))

        failed_batches = 0
        for batch in chunked(tracks, self.batch_size):
            ok = ctx.catalog.add_tracks(
                ctx.authoritative_credential, playlist_id, [a.track.uri for a in batch]
            )
            if not ok:
                failed_batches += 1
            for assoc in batch:
                assoc.playlist_ids.add(playlist_id)
                playlist.add_track(assoc.track_id)
                if ctx.store.get_association(ctx.event.id, assoc.track_id) is None:
                    ctx.store.upsert_association(assoc)

        if failed_batches:
            logger.warning(f"4: {failed_batches} batch(es) could not be added to playlist {playlist_id}")
        ctx.store.upsert_playlist(playlist)
        ctx.store.flush()
        logger.info(f"4: Playlist {playlist_id} created with {len(playlist.track_ids)} tracks")
        return playlist
