"""Deduplication cache (core domain)."""

from __future__ import annotations

from typing import Dict, Iterator

DEFAULT_CAPACITY = 1000


class DedupeCache:
    """Bounded set of seen message keys with FIFO eviction.

    Insertion order is kept by the dict; re-recording a key does not refresh
    its position, so eviction always removes the oldest inserted key rather
    than the least recently used one.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Dedup capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._keys: Dict[str, None] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def seen(self, key: str) -> bool:
        return key in self._keys

    def record(self, key: str) -> None:
        if key in self._keys:
            return
        self._keys[key] = None
        # Only one key is added per call, so one eviction restores the bound.
        if len(self._keys) > self._capacity:
            oldest = next(iter(self._keys))
            del self._keys[oldest]

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)
