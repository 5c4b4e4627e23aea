"""
Bounded retries for Spotify Web API calls.

Every catalog call goes through api_call(). HTTP 429, 5xx and dropped
connections are retried under a RetryPolicy (exponential backoff with
jitter, Retry-After honoured, each wait capped); anything else propagates
at once. When the attempts run out the caller gets RateLimitError and
decides whether that failure is soft or fatal.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar

import requests
from spotipy.exceptions import SpotifyException

from . import config
from .error_handling import get_logger

logger = get_logger()

T = TypeVar("T")

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})
TRANSIENT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)

# What a catalog call can raise once api_call is done with it
API_ERRORS = (SpotifyException, requests.exceptions.RequestException)


class RateLimitError(Exception):
    """Every attempt of an API call hit a rate limit or transient failure."""
    pass


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = config.API_MAX_RETRIES
    backoff_factor: float = config.API_BACKOFF_FACTOR
    delay: float = config.API_REQUEST_DELAY  # pause after every successful call
    max_wait: float = config.API_MAX_WAIT

    def wait_for(self, attempt: int, error: Exception) -> float:
        """Seconds to sleep before retrying after attempt (0-based) failed with error."""
        wait = self.backoff_factor * (2 ** attempt) + random.uniform(0, 1)
        hinted = retry_after(error)
        if hinted is not None:
            wait = max(wait, hinted)
        return min(wait, self.max_wait)


def is_retryable(error: Exception) -> bool:
    if isinstance(error, TRANSIENT_ERRORS):
        return True
    if isinstance(error, SpotifyException):
        return error.http_status in RETRYABLE_STATUS
    return False


def retry_after(error: Exception) -> Optional[float]:
    """Retry-After hint (seconds) carried by a SpotifyException, if any."""
    headers = getattr(error, "headers", None)
    if not headers or not hasattr(headers, "get"):
        return None
    # requests hands back a case-insensitive mapping, tests a plain dict
    value = headers.get("Retry-After") or headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def api_call(
    fn: Callable[..., T],
    *args: Any,
    max_retries: int = config.API_MAX_RETRIES,
    backoff_factor: float = config.API_BACKOFF_FACTOR,
    delay: float = config.API_REQUEST_DELAY,
    **kwargs: Any,
) -> T:
    """
    Call fn(*args, **kwargs), retrying rate-limited and transient failures.

    Args:
        fn: Usually a bound method of a spotipy.Spotify client
        max_retries: Total attempts, including the first
        backoff_factor: Base of the exponential backoff (seconds)
        delay: Pause after a successful call (seconds)

    Raises:
        RateLimitError: If every attempt failed with a retryable error
        SpotifyException: For non-retryable API errors (404, 403, ...)
    """
    policy = RetryPolicy(max_retries=max_retries, backoff_factor=backoff_factor, delay=delay)
    name = getattr(fn, "__name__", repr(fn))

    last_error: Optional[Exception] = None
    for attempt in range(policy.max_retries):
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e
            if attempt + 1 >= policy.max_retries:
                break
            wait = policy.wait_for(attempt, e)
            logger.warning(
                f"{name}(): {e} - retry {attempt + 1}/{policy.max_retries - 1} in {wait:.1f}s"
            )
            time.sleep(wait)
            continue
        if policy.delay > 0:
            time.sleep(policy.delay)
        return result

    raise RateLimitError(f"{name}() gave up after {policy.max_retries} attempts: {last_error}")


def safe_api_call(fn: Callable[..., T], *args: Any, default_return: Any = None, **kwargs: Any) -> Any:
    """api_call() that logs and returns default_return instead of raising API errors."""
    try:
        return api_call(fn, *args, **kwargs)
    except (RateLimitError,) + API_ERRORS as e:
        logger.warning(f"{getattr(fn, '__name__', repr(fn))}() failed: {e}")
        return default_return


def chunked(seq: Sequence[T], n: int = 100) -> Iterator[Sequence[T]]:
    """Consecutive slices of seq, each at most n long."""
    for i in range(0, len(seq), n):
        yield seq[i:i + n]
