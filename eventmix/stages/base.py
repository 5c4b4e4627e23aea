"""
Shared pieces of the generation stages: run context and the pure
reductions the stages fold member data with.
"""

from __future__ import annotations

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set, TypeVar

from .. import config
from ..models import Event, Member
from ..pool import CandidatePool

T = TypeVar("T")


@dataclass
class StageContext:
    """Everything a stage needs for one event run."""

    event: Event
    owner: Member
    credentials: List[Optional[str]]  # owner first; None = member excluded
    catalog: object
    pool: CandidatePool
    store: object
    progress: bool = False
    max_workers: int = config.FAN_OUT_WORKERS

    @property
    def authoritative_credential(self) -> str:
        return self.credentials[0]

    @property
    def valid_credentials(self) -> List[str]:
        return [c for c in self.credentials if c]

    @property
    def member_budget(self) -> int:
        """Budget over every member of the event, including ones whose refresh failed."""
        return member_budget(len(self.credentials))

    def fan_out(self, fn: Callable[[str], T]) -> List[T]:
        """Run fn once per valid credential concurrently; results keep member order."""
        tokens = self.valid_credentials
        if not tokens:
            return []
        workers = max(1, min(self.max_workers, len(tokens)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(fn, tokens))


def member_budget(member_count: int) -> int:
    """Tracks a per-member stage may add: an even share of the non-reserved slots."""
    if member_count <= 0:
        return 0
    per_member = (config.TARGET_SIZE - config.RESERVED_SLACK) // member_count
    return per_member * member_count


def intersect_all(sets: Iterable[Optional[Iterable[str]]]) -> List[str]:
    """
    Fold member sets into their intersection.

    None entries (members without a credential) are skipped rather than
    treated as empty. Order follows the first member's set.
    """
    common: Optional[List[str]] = None
    for member_set in sets:
        if member_set is None:
            continue
        if common is None:
            common = list(dict.fromkeys(member_set))
            continue
        keep: Set[str] = set(member_set)
        common = [item for item in common if item in keep]
    return common or []


def top_genres(
    artist_lists: Iterable[Iterable[dict]],
    vocabulary: Set[str],
    n: int = config.MAX_SEED_GENRES,
) -> List[str]:
    """
    Most frequent genres across members' top artists.

    Only genres in the seed vocabulary count; ties keep first-seen order.
    """
    tally: Counter = Counter()
    for artists in artist_lists:
        for artist in artists:
            for genre in artist.get("genres") or []:
                if genre in vocabulary:
                    tally[genre] += 1
    return [genre for genre, _ in tally.most_common(n)]
