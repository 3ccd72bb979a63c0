"""Tests for the bounded processed-call cache."""

import pytest

from app.processed import ProcessedCallCache


def test_add_and_contains():
    cache = ProcessedCallCache()
    cache.add("conv-1")
    assert "conv-1" in cache
    assert "conv-2" not in cache
    assert len(cache) == 1


def test_re_adding_is_idempotent():
    cache = ProcessedCallCache()
    cache.add("conv-1")
    cache.add("conv-1")
    assert len(cache) == 1


def test_at_max_size_no_eviction():
    cache = ProcessedCallCache(max_size=1000, keep=500)
    for i in range(1000):
        cache.add(f"conv-{i}")
    assert len(cache) == 1000
    assert "conv-0" in cache


def test_eviction_keeps_most_recent():
    cache = ProcessedCallCache(max_size=1000, keep=500)
    for i in range(1001):
        cache.add(f"conv-{i}")

    assert len(cache) == 500
    assert "conv-500" not in cache
    assert "conv-501" in cache
    assert "conv-1000" in cache


def test_never_exceeds_max_at_rest():
    cache = ProcessedCallCache(max_size=1000, keep=500)
    for i in range(5000):
        cache.add(f"conv-{i}")
        assert len(cache) <= 1000
    assert "conv-4999" in cache


def test_clear():
    cache = ProcessedCallCache()
    cache.add("conv-1")
    cache.clear()
    assert len(cache) == 0
    assert "conv-1" not in cache


def test_keep_larger_than_max_rejected():
    with pytest.raises(ValueError):
        ProcessedCallCache(max_size=10, keep=20)
