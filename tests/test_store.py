"""
tests/test_store.py
"""

from __future__ import annotations

from conftest import FakeClock

from bulkfetch.scraping.store import InMemoryKeyValueStore


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    store = InMemoryKeyValueStore(clock=clock)
    store.set("brands:all", ["Nike"], ttl_seconds=30)
    store.set("job:1", {"id": 1})

    clock.advance(29)
    assert store.get("brands:all") == ["Nike"]

    clock.advance(2)
    assert store.get("brands:all") is None
    assert store.get("job:1") == {"id": 1}
    assert store.delete("brands:all") is False


def test_prefix_listing_and_clear() -> None:
    store = InMemoryKeyValueStore()
    store.set("job:a", 1)
    store.set("job:b", 2)
    store.set("brands:all", [])

    assert sorted(key for key, _ in store.items("job:")) == ["job:a", "job:b"]
    assert store.clear("job:") == 2
    assert store.items("job:") == []
    assert store.get("brands:all") == []
