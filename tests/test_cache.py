from __future__ import annotations

from batchloader.cache import Cache
from batchloader.models import Failure, Success


def test_get_missing_returns_none() -> None:
    cache = Cache()
    assert cache.get("User", 1) is None
    assert ("User", 1) not in cache


def test_put_returns_new_cache() -> None:
    cache = Cache()
    warmed = cache.put("User", 1, "Ben Wilson")

    assert cache.get("User", 1) is None
    assert warmed.get("User", 1) == Success("Ben Wilson")
    assert ("User", 1) in warmed


def test_put_overwrites_existing_entry() -> None:
    cache = Cache().put("User", 1, "old").put("User", 1, "new")
    assert cache.get("User", 1) == Success("new")
    assert len(cache) == 1


def test_merge_keeps_other_groups_shared() -> None:
    error = RuntimeError("boom")
    cache = Cache().put("User", 1, "Ben").merge("Post", {10: Success("hello"), 11: Failure(error)})

    assert cache.get("User", 1) == Success("Ben")
    assert cache.get("Post", 10) == Success("hello")
    assert cache.get("Post", 11) == Failure(error)
    assert sorted(cache, key=repr) == [("Post", 10), ("Post", 11), ("User", 1)]

    updated = cache.merge("Post", {12: Success("again")})
    assert updated.groups["User"] is cache.groups["User"]


def test_merge_empty_is_noop() -> None:
    cache = Cache().put("User", 1, "Ben")
    assert cache.merge("User", {}) is cache


def test_caches_with_same_entries_are_equal() -> None:
    assert Cache().put("User", 1, "Ben") == Cache().put("User", 1, "Ben")
    assert Cache().put("User", 1, "Ben") != Cache().put("User", 2, "Ben")
