"""TTL-aware cache of saved repository analyses.

Saved analyses (``HistoryItem``) live in the application state, bucketed by
the date they were saved. ``RepoCache`` reads and writes them through the
``StateStore`` so persistence has a single source. Entries expire after the
configured TTL but are never evicted: a stale entry is simply a miss, and
capacity is enforced by rejecting inserts.
"""

import logging
import time
from collections.abc import Callable, Iterator
from datetime import datetime
from enum import Enum

from .constants import CACHE_TTL_MS, DEFAULT_BRANCH_NAMES, MAX_HISTORY_ITEMS
from .models import HistoryItem
from .state import StateStore, reset_saved_history, set_saved_history_items

logger = logging.getLogger(__name__)


class InsertResult(Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    FULL = "full"
    INCOMPLETE = "incomplete"


def date_bucket(timestamp_ms: int) -> str:
    """Format a timestamp as a history bucket key, e.g. ``October 18, 2026``."""
    day = datetime.fromtimestamp(timestamp_ms / 1000)
    return f"{day.strftime('%B')} {day.day}, {day.year}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class RepoCache:
    """Cache of saved analyses keyed by ``owner/repo/branch``.

    Also serves as a branch-list cache keyed by ``owner/repo`` alone, used to
    seed the first page of a branch listing.
    """

    def __init__(
        self,
        store: StateStore,
        ttl_ms: int = CACHE_TTL_MS,
        max_items: int = MAX_HISTORY_ITEMS,
        now: Callable[[], int] = _now_ms,
    ):
        """Initialize the cache.

        Args:
            store: Application state holding the saved history
            ttl_ms: Age in milliseconds after which an entry is a miss
            max_items: Maximum number of saved entries across all buckets
            now: Clock returning epoch milliseconds
        """
        self.store = store
        self.ttl_ms = ttl_ms
        self.max_items = max_items
        self.now = now
        self._hits = 0
        self._misses = 0

    def _entries(self) -> Iterator[HistoryItem]:
        for items in self.store.state.saved_history_items.values():
            yield from items

    def __len__(self) -> int:
        return sum(len(items) for items in self.store.state.saved_history_items.values())

    def is_fresh(self, item: HistoryItem) -> bool:
        if item.cached_at is None:
            return True
        return self.now() - item.cached_at <= self.ttl_ms

    def lookup(self, key: str, force_refresh: bool = False) -> HistoryItem | None:
        """Return the saved analysis for ``owner/repo/branch`` if fresh.

        Args:
            key: ``owner/repo/branch``
            force_refresh: Always report a miss

        Returns:
            The cached entry, or None on a miss
        """
        if force_refresh:
            self._misses += 1
            return None

        for item in self._entries():
            if item.repo_key != key or not item.graph_data:
                continue
            if self.is_fresh(item):
                self._hits += 1
                logger.info(f"Cache hit for {key}")
                return item
            logger.info(f"Cached analysis for {key} is stale")
            break

        self._misses += 1
        return None

    def insert(self, item: HistoryItem) -> InsertResult:
        """Save an analysis under today's date bucket, newest first."""
        if not item.username or not item.repo or not item.branch:
            return InsertResult.INCOMPLETE

        if len(self) >= self.max_items:
            logger.warning(f"History is full ({self.max_items} entries); not saving {item.repo_key}")
            return InsertResult.FULL

        now = self.now()
        bucket = date_bucket(now)
        existing = self.store.state.saved_history_items.get(bucket, [])

        if any(entry.repo_key == item.repo_key for entry in existing):
            logger.info(f"{item.repo_key} is already saved under {bucket}")
            return InsertResult.DUPLICATE

        if item.cached_at is None:
            item = item.model_copy(update={"cached_at": now})

        self.store.apply(set_saved_history_items, {bucket: [item, *existing]})
        return InsertResult.INSERTED

    def lookup_branches(self, owner: str, repo: str) -> HistoryItem | None:
        """Find a fresh saved entry for ``owner/repo`` on any branch.

        Entries saved for a conventional default branch are preferred.
        """
        matches = [
            item for item in self._entries()
            if item.username == owner and item.repo == repo and self.is_fresh(item)
        ]
        if not matches:
            self._misses += 1
            return None

        self._hits += 1
        for item in matches:
            if item.branch in DEFAULT_BRANCH_NAMES:
                return item
        return matches[0]

    def refresh_branches(self, owner: str, repo: str, branches: list[str]) -> int:
        """Replace the branch list of every saved entry for ``owner/repo``.

        Returns:
            Number of entries updated
        """
        updated = 0
        history: dict[str, list[HistoryItem]] = {}
        for bucket, items in self.store.state.saved_history_items.items():
            refreshed = []
            for item in items:
                if item.username == owner and item.repo == repo and item.branches != branches:
                    item = item.model_copy(update={"branches": list(branches)})
                    updated += 1
                refreshed.append(item)
            history[bucket] = refreshed

        if updated:
            self.store.apply(set_saved_history_items, history)
        return updated

    def clear(self) -> None:
        """Remove every saved entry and reset statistics."""
        self.store.apply(reset_saved_history)
        self._hits = 0
        self._misses = 0

    def stats(self) -> dict[str, int | float]:
        """Get cache statistics.

        Returns:
            Dictionary with hits, misses, size, and hit rate
        """
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0
        return {
            "hits": self._hits,
            "misses": self._misses,
            "size": len(self),
            "max_items": self.max_items,
            "hit_rate": round(hit_rate, 2),
        }
