"""Tests for the saved-analysis repository cache."""

from datetime import datetime

import pytest

from gitdepsec.constants import CACHE_TTL_MS
from gitdepsec.repo_cache import InsertResult, RepoCache, date_bucket

NOW = int(datetime(2026, 10, 18, 12, 0).timestamp() * 1000)


@pytest.fixture
def cache(store):
    return RepoCache(store, now=lambda: NOW)


class TestDateBucket:
    def test_format(self):
        assert date_bucket(NOW) == "October 18, 2026"


class TestLookup:
    """Test TTL-based lookup."""

    def test_hit_within_ttl(self, cache, make_history_item):
        cache.insert(make_history_item(cached_at=NOW - (CACHE_TTL_MS - 1)))
        assert cache.lookup("octo/repo/main") is not None

    def test_miss_past_ttl(self, cache, make_history_item):
        cache.insert(make_history_item(cached_at=NOW - (CACHE_TTL_MS + 1)))
        assert cache.lookup("octo/repo/main") is None
        # Stale entries are not deleted
        assert len(cache) == 1

    def test_force_refresh_misses(self, cache, make_history_item):
        cache.insert(make_history_item(cached_at=NOW))
        assert cache.lookup("octo/repo/main", force_refresh=True) is None

    def test_other_branch_misses(self, cache, make_history_item):
        cache.insert(make_history_item(cached_at=NOW))
        assert cache.lookup("octo/repo/dev") is None

    def test_entry_without_graph_misses(self, cache, make_history_item):
        item = make_history_item(cached_at=NOW).model_copy(update={"graph_data": {}})
        cache.insert(item)
        assert cache.lookup("octo/repo/main") is None

    def test_missing_cached_at_is_fresh(self, cache, store, make_history_item):
        item = make_history_item()
        store.apply(lambda state: state.model_copy(
            update={"saved_history_items": {"October 1, 2020": [item]}}
        ))
        assert cache.lookup("octo/repo/main") == item

    def test_stats(self, cache, make_history_item):
        cache.insert(make_history_item(cached_at=NOW))
        cache.lookup("octo/repo/main")
        cache.lookup("octo/other/main")
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1
        assert stats["hit_rate"] == 50.0


class TestInsert:
    """Test insert capacity and duplicate rules."""

    def test_insert_newest_first(self, cache, store, make_history_item):
        assert cache.insert(make_history_item(branch="main")) is InsertResult.INSERTED
        assert cache.insert(make_history_item(branch="dev")) is InsertResult.INSERTED

        bucket = store.state.saved_history_items["October 18, 2026"]
        assert [item.branch for item in bucket] == ["dev", "main"]
        assert bucket[0].cached_at == NOW

    def test_duplicate_rejected(self, cache, make_history_item):
        cache.insert(make_history_item(branches=["main"]))
        assert cache.insert(make_history_item(branches=["other"])) is InsertResult.DUPLICATE
        assert cache.lookup("octo/repo/main").branches == ["main"]

    def test_full_rejected(self, store, make_history_item):
        cache = RepoCache(store, max_items=2, now=lambda: NOW)
        cache.insert(make_history_item(repo="a"))
        cache.insert(make_history_item(repo="b"))

        assert cache.insert(make_history_item(repo="c")) is InsertResult.FULL
        assert len(cache) == 2

    def test_incomplete_rejected(self, cache, make_history_item):
        assert cache.insert(make_history_item(branch="")) is InsertResult.INCOMPLETE

    def test_clear(self, cache, make_history_item):
        cache.insert(make_history_item())
        cache.clear()
        assert len(cache) == 0
        assert cache.stats()["hits"] == 0


class TestBranchCache:
    """Test the owner/repo keyed branch cache."""

    def test_prefers_default_branch(self, cache, make_history_item):
        cache.insert(make_history_item(branch="feature", branches=["feature"]))
        cache.insert(make_history_item(branch="main", branches=["main", "feature"]))
        cache.insert(make_history_item(branch="hotfix", branches=["hotfix"]))

        assert cache.lookup_branches("octo", "repo").branch == "main"

    def test_first_match_without_default(self, cache, make_history_item):
        cache.insert(make_history_item(branch="feature"))
        cache.insert(make_history_item(branch="hotfix"))
        assert cache.lookup_branches("octo", "repo").branch == "hotfix"

    def test_stale_entries_ignored(self, cache, make_history_item):
        cache.insert(make_history_item(cached_at=NOW - CACHE_TTL_MS - 1))
        assert cache.lookup_branches("octo", "repo") is None

    def test_refresh_branches(self, cache, make_history_item):
        cache.insert(make_history_item(branch="main", branches=["main"]))
        cache.insert(make_history_item(branch="dev", branches=["dev"]))
        cache.insert(make_history_item(repo="other"))

        assert cache.refresh_branches("octo", "repo", ["main", "dev", "x"]) == 2
        assert cache.lookup("octo/repo/dev").branches == ["main", "dev", "x"]
        assert cache.lookup("octo/other/main").branches == ["main", "dev"]
