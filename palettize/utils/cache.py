"""Insert-only memo cache with a hard entry limit."""

from __future__ import annotations

from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class MemoCache(Generic[K, V]):
    """Dict-backed memo that stops accepting entries once full.

    Nothing is ever evicted: after `limit` insertions further misses are
    simply not remembered.
    """

    def __init__(self, limit: int = 200_000) -> None:
        self._limit = limit
        self._cache: dict[K, V] = {}

    def get(self, key: K) -> V | None:
        """Get a cached value, or None if not present."""
        return self._cache.get(key)

    def put(self, key: K, value: V) -> bool:
        """Remember a value. Returns False if the cache is full or the key exists."""
        if self.full or key in self._cache:
            return False
        self._cache[key] = value
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._cache

    def clear(self) -> None:
        """Clear the entire cache."""
        self._cache.clear()

    @property
    def full(self) -> bool:
        return len(self._cache) >= self._limit

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def size(self) -> int:
        return len(self._cache)
