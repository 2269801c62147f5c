"""
Tests for shared helpers.
"""

import pytest

from ragcore.utils import LRUCache


class TestLRUCache:
    """Tests for the LRU cache."""

    def test_get_put(self):
        cache = LRUCache(maxsize=2)
        cache.put("a", 1)

        assert cache.get("a") == 1
        assert cache.get("missing") is None
        assert "a" in cache
        assert len(cache) == 1

    def test_evicts_least_recently_used(self):
        cache = LRUCache(maxsize=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")  # "b" is now the oldest
        cache.put("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_put_existing_key_does_not_evict(self):
        cache = LRUCache(maxsize=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)

        assert len(cache) == 2
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            LRUCache(maxsize=0)

    def test_clear(self):
        cache = LRUCache(maxsize=2)
        cache.put("a", 1)
        cache.clear()
        assert len(cache) == 0
