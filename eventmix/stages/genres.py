"""
Stage 3: genre-seeded recommendations, repeated until the pool is full.
"""

from __future__ import annotations

from typing import List

from .. import config
from ..error_handling import get_logger
from .base import StageContext, top_genres

logger = get_logger()


class GenreRecommendationStage:
    name = "genre_recommendations"

    def shared_genres(self, ctx: StageContext) -> List[str]:
        token = ctx.authoritative_credential
        vocabulary = ctx.catalog.genre_seeds(token)
        if not vocabulary:
            return []
        # Member order decides genre ties
        artist_lists = [
            ctx.catalog.top_artists(t, limit=config.GENRE_TALLY_ARTISTS)
            for t in ctx.valid_credentials
        ]
        return top_genres(artist_lists, vocabulary, n=config.MAX_SEED_GENRES)

    def iterate(self, ctx: StageContext) -> int:
        """One recommendation round; returns how many new tracks the pool gained."""
        genres = self.shared_genres(ctx)
        if not genres:
            logger.info("3: No shared seed genres found.")
            return 0

        recommendations = ctx.catalog.recommendations(
            ctx.authoritative_credential, genres, limit=config.AMOUNT_RECOMMENDATIONS
        )
        added = ctx.pool.contribute_many(r["id"] for r in recommendations)
        logger.info(
            f"3: Got {len(recommendations)} recommendations for {', '.join(genres)}; {added} new."
        )
        return added

    def run(self, ctx: StageContext) -> int:
        total = 0
        while len(ctx.pool) < config.TARGET_SIZE:
            added = self.iterate(ctx)
            if added == 0:
                logger.info("3: No more recommendations found.")
                break
            total += added
            ctx.pool.flush()
        return total
