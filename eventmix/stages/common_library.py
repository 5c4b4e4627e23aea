"""
Stage 1: tracks every member already keeps in their own playlists.
"""

from __future__ import annotations

import sys
from typing import Dict, List

from tqdm import tqdm

from ..error_handling import get_logger
from .base import StageContext, intersect_all

logger = get_logger()


class CommonLibraryStage:
    name = "common_library"

    def library(self, ctx: StageContext, token: str) -> List[str]:
        """Track ids across all of one member's playlists, in first-seen order."""
        track_ids: Dict[str, None] = {}
        for playlist in ctx.catalog.list_playlists(token):
            track_ids.update(dict.fromkeys(ctx.catalog.list_playlist_tracks(token, playlist["id"])))
        return list(track_ids)

    def run(self, ctx: StageContext) -> int:
        libraries = []
        members = tqdm(
            ctx.credentials,
            desc="  Scanning libraries",
            unit="member",
            leave=False,
            file=sys.stderr,
            disable=not ctx.progress,
        )
        for token in members:
            libraries.append(self.library(ctx, token) if token else None)

        common = intersect_all(libraries)
        if not common:
            logger.info("1: No common songs found between all members.")
            return 0

        budget = ctx.member_budget
        logger.info(f"1: Common songs between all members: {len(common)} (budget {budget})")
        added = ctx.pool.contribute_many(common[:budget])
        ctx.pool.flush()
        return added
