"""
Generation stages, run in this order for every event:

1. CommonLibraryStage - tracks all members keep in their playlists
2. TopTracksStage - top tracks of artists all members listen to
3. GenreRecommendationStage - recommendations seeded by shared genres
4. PlaylistMaterializationStage - publish the pool to Spotify
"""

from .base import StageContext, intersect_all, member_budget, top_genres
from .common_library import CommonLibraryStage
from .genres import GenreRecommendationStage
from .materialize import PlaylistMaterializationStage, publishable, unique_associations
from .top_tracks import TopTracksStage

__all__ = [
    "StageContext",
    "intersect_all",
    "member_budget",
    "top_genres",
    "CommonLibraryStage",
    "TopTracksStage",
    "GenreRecommendationStage",
    "PlaylistMaterializationStage",
    "publishable",
    "unique_associations",
]
