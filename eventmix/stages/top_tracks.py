"""
Stage 2: top tracks of the artists every member has in their top list.
"""

from __future__ import annotations

from typing import List

from .. import config
from ..error_handling import get_logger
from .base import StageContext, intersect_all

logger = get_logger()


class TopTracksStage:
    name = "top_tracks"

    def common_artists(self, ctx: StageContext) -> List[str]:
        """Artist ids in every valid member's top list, in the owner's ranking."""
        top_lists = ctx.fan_out(
            lambda token: [a["id"] for a in ctx.catalog.top_artists(token, limit=config.AMOUNT_ARTISTS)]
        )
        return intersect_all(top_lists)

    def run(self, ctx: StageContext) -> int:
        artists = self.common_artists(ctx)
        budget = ctx.member_budget
        token = ctx.authoritative_credential

        track_ids: List[str] = []
        for artist_id in artists:
            if len(track_ids) >= budget:
                break
            top = ctx.catalog.artist_top_tracks(
                token, artist_id,
                country=config.TOP_TRACKS_COUNTRY,
                limit=config.AMOUNT_TRACKS_PER_ARTIST,
            )
            track_ids.extend(top[:budget - len(track_ids)])

        logger.info(f"2: Common top artists: {len(artists)}, top tracks: {len(track_ids)}")
        if not track_ids:
            return 0
        added = ctx.pool.contribute_many(track_ids)
        ctx.pool.flush()
        return added
