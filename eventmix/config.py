"""
Configuration module for playlist generation.

All environment variables and configuration constants are defined here.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from .error_handling import ConfigurationError


# Project root (assumes this file is at eventmix/config.py)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Load .env file early so environment variables are available
_env_path = PROJECT_ROOT / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def parse_bool_env(key: str, default: bool = True) -> bool:
    """Parse boolean environment variable."""
    value = os.environ.get(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def parse_int_env(key: str, default: int) -> int:
    """Parse integer environment variable, falling back to default on garbage."""
    try:
        return int(os.environ.get(key, default))
    except (TypeError, ValueError):
        return default


def parse_float_env(key: str, default: float) -> float:
    try:
        return float(os.environ.get(key, default))
    except (TypeError, ValueError):
        return default


def parse_str_env(key: str, default: str) -> str:
    return os.environ.get(key, default)


def require_env(key: str) -> str:
    """Return a required environment variable or raise ConfigurationError."""
    value = os.environ.get(key)
    if not value:
        raise ConfigurationError(
            f"Missing required environment variable: {key}. "
            "Set it in the environment or .env file."
        )
    return value


# ============================================================================
# GENERATION CONSTANTS
# ============================================================================
# These form the contract with the web frontend; they are not env-overridable.

TARGET_SIZE = 100  # Candidate pool size the genre loop fills up to
RESERVED_SLACK = 50  # Slots kept free for genre recommendations
AMOUNT_ARTISTS = 20  # Top artists fetched per member for the artist stage
AMOUNT_TRACKS_PER_ARTIST = 3  # Top tracks taken per common artist
AMOUNT_RECOMMENDATIONS = 50  # Tracks requested per recommendation call
GENRE_TALLY_ARTISTS = 50  # Top artists fetched per member for the genre tally
MAX_SEED_GENRES = 5  # Spotify accepts at most 5 seeds per recommendation call
TOP_TRACKS_COUNTRY = "DE"
UNKNOWN_GENRE = "Unknown"

# ============================================================================
# SPOTIFY API LIMITS
# ============================================================================

ADD_BATCH_SIZE = 25  # Batch size used when publishing a generated playlist
SAVE_BATCH_SIZE = 100  # Spotify's maximum items per add request
SPOTIFY_API_PAGINATION_LIMIT = 50
SPOTIFY_API_PLAYLIST_ITEMS_LIMIT = 100
SEARCH_LIMIT = 10  # Results per track search
TRACK_URI_PREFIX = "spotify:track:"

PLAYLIST_DESCRIPTION = parse_str_env(
    "EVENTMIX_PLAYLIST_DESCRIPTION",
    "Automatically generated by eventmix."
)
PLAYLIST_PUBLIC = parse_bool_env("EVENTMIX_PLAYLIST_PUBLIC", True)

# ============================================================================
# API AND RATE LIMITING
# ============================================================================

API_REQUEST_DELAY = parse_float_env("SPOTIFY_API_DELAY", 0.15)  # Delay after each successful call
API_MAX_RETRIES = parse_int_env("SPOTIFY_API_MAX_RETRIES", 4)
API_BACKOFF_FACTOR = parse_float_env("SPOTIFY_API_BACKOFF", 1.0)
API_MAX_WAIT = 60.0  # Cap on a single backoff sleep (seconds)
API_REQUEST_TIMEOUT = parse_int_env("SPOTIFY_API_TIMEOUT", 10)

# ============================================================================
# RUNTIME
# ============================================================================

FAN_OUT_WORKERS = parse_int_env("EVENTMIX_FAN_OUT_WORKERS", 8)
CLIENT_CACHE_SIZE = parse_int_env("EVENTMIX_CLIENT_CACHE_SIZE", 32)  # spotipy clients kept per CatalogClient
DATA_DIR = Path(parse_str_env("EVENTMIX_DATA_DIR", str(PROJECT_ROOT / "data")))
LOG_DIR = Path(parse_str_env("EVENTMIX_LOG_DIR", str(PROJECT_ROOT / "logs")))
LOG_LEVEL = parse_str_env("EVENTMIX_LOG_LEVEL", "INFO")

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"


def spotify_app_credentials() -> tuple:
    """Return (client_id, client_secret, redirect_uri) for the Spotify app."""
    client_id = require_env("SPOTIPY_CLIENT_ID")
    client_secret = require_env("SPOTIPY_CLIENT_SECRET")
    redirect_uri = os.environ.get("SPOTIPY_REDIRECT_URI", DEFAULT_REDIRECT_URI)
    return client_id, client_secret, redirect_uri
