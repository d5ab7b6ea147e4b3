from __future__ import annotations

import pytest

from core.dedup import DedupeCache


def test_record_and_seen() -> None:
    cache = DedupeCache()
    assert not cache.seen("a:1")
    cache.record("a:1")
    assert cache.seen("a:1")
    assert "a:1" in cache
    assert len(cache) == 1


def test_record_is_idempotent() -> None:
    cache = DedupeCache(capacity=2)
    cache.record("a:1")
    cache.record("a:1")
    cache.record("a:1")
    assert len(cache) == 1


def test_size_never_exceeds_capacity() -> None:
    cache = DedupeCache()
    for index in range(5000):
        cache.record(f"chan:{index}")
        assert len(cache) <= 1000
    assert len(cache) == 1000


def test_1001st_key_evicts_exactly_the_oldest() -> None:
    cache = DedupeCache()
    for index in range(1000):
        cache.record(f"chan:{index}")
    cache.record("chan:1000")
    assert len(cache) == 1000
    assert not cache.seen("chan:0")
    assert cache.seen("chan:1")
    assert cache.seen("chan:1000")


def test_eviction_is_fifo_not_lru() -> None:
    cache = DedupeCache(capacity=3)
    cache.record("k1")
    cache.record("k2")
    cache.record("k3")
    # Touching k1 again must not refresh its position.
    cache.record("k1")
    assert cache.seen("k1")
    cache.record("k4")
    assert list(cache) == ["k2", "k3", "k4"]


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        DedupeCache(capacity=0)
