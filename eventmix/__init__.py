"""
eventmix - one shared Spotify playlist for a group of listeners.

Aggregates the taste of an event's members (shared library tracks, common
top artists, shared genres) into a candidate pool and publishes it as a
playlist owned by the event owner.

Usage:
    from eventmix import PlaylistGenerator, CatalogClient, CredentialRefresher, TableStore

    store = TableStore()
    generator = PlaylistGenerator(store, CatalogClient(), CredentialRefresher.from_env(store))
    result = generator.generate("my-event")
    print(result.playlist_id)
"""

from .catalog_client import CatalogClient
from .credentials import CredentialRefresher
from .error_handling import (
    ConfigurationError,
    EventNotFoundError,
    GenerationError,
    GenerationInProgressError,
    OwnerCredentialError,
    OwnerNotFoundError,
    PlaylistCreationError,
)
from .models import (
    PUBLISHABLE,
    Event,
    Member,
    Playlist,
    Role,
    Track,
    TrackAssociation,
    TrackStatus,
    User,
    merge_status,
)
from .orchestrator import GenerationResult, PlaylistGenerator
from .pool import CandidatePool
from .store import MemoryStore, TableStore
from .tables import CacheConfig, DataCatalog

__version__ = "0.1.0"

__all__ = [
    # Generation
    "PlaylistGenerator",
    "GenerationResult",
    "CandidatePool",
    # Collaborators
    "CatalogClient",
    "CredentialRefresher",
    "MemoryStore",
    "TableStore",
    "CacheConfig",
    "DataCatalog",
    # Model
    "Event",
    "Member",
    "Playlist",
    "Role",
    "Track",
    "TrackAssociation",
    "TrackStatus",
    "User",
    "PUBLISHABLE",
    "merge_status",
    # Errors
    "GenerationError",
    "EventNotFoundError",
    "OwnerNotFoundError",
    "OwnerCredentialError",
    "PlaylistCreationError",
    "GenerationInProgressError",
    "ConfigurationError",
]
