"""
Unit Tests for Dedup Store
=========================

Tests for snapshot replacement, lookups, eviction and thread safety.
"""

import threading

import pytest

from feedstream.processing.dedup_store import (
    DedupStore,
    InMemoryDedupStore,
    get_default_dedup_store,
)

SOURCE = "http://feeds.example.com/rss.xml"
OTHER = "http://other.example.com/atom.xml"


class TestInMemoryDedupStore:
    """Test InMemoryDedupStore."""

    def test_is_a_dedup_store(self):
        assert isinstance(InMemoryDedupStore(), DedupStore)

    def test_unknown_source_never_seen(self, dedup_store):
        assert not dedup_store.seen_before(SOURCE, "http://a/1")
        assert dedup_store.get_snapshot(SOURCE) is None

    def test_seen_after_publish(self, dedup_store):
        dedup_store.publish(SOURCE, {"A", "B"})
        assert dedup_store.seen_before(SOURCE, "A")
        assert not dedup_store.seen_before(SOURCE, "C")
        assert not dedup_store.seen_before(OTHER, "A")

    def test_publish_replaces_not_merges(self, dedup_store):
        dedup_store.publish(SOURCE, {"A", "B"})
        dedup_store.publish(SOURCE, {"B", "C"})
        assert dedup_store.get_snapshot(SOURCE) == frozenset({"B", "C"})
        assert not dedup_store.seen_before(SOURCE, "A")

    def test_empty_identity_never_seen(self, dedup_store):
        dedup_store.publish(SOURCE, {"", "A"})
        assert not dedup_store.seen_before(SOURCE, "")
        assert dedup_store.get_snapshot(SOURCE) == frozenset({"A"})

    def test_snapshot_is_immutable_copy(self, dedup_store):
        ids = {"A"}
        dedup_store.publish(SOURCE, ids)
        ids.add("B")
        assert not dedup_store.seen_before(SOURCE, "B")
        assert isinstance(dedup_store.get_snapshot(SOURCE), frozenset)

    def test_empty_snapshot_is_stored(self, dedup_store):
        dedup_store.publish(SOURCE, set())
        assert dedup_store.get_snapshot(SOURCE) == frozenset()
        assert len(dedup_store) == 1

    def test_sources_and_clear(self, dedup_store):
        dedup_store.publish(SOURCE, {"A"})
        dedup_store.publish(OTHER, {"B"})
        assert dedup_store.sources() == [SOURCE, OTHER]
        dedup_store.clear()
        assert len(dedup_store) == 0


class TestEviction:
    """Test the optional max_sources bound."""

    def test_unbounded_by_default(self):
        store = InMemoryDedupStore()
        for i in range(100):
            store.publish(f"http://feed{i}.example.com/", {"x"})
        assert len(store) == 100

    def test_evicts_least_recently_committed(self):
        store = InMemoryDedupStore(max_sources=2)
        store.publish("http://a/", {"1"})
        store.publish("http://b/", {"2"})
        store.publish("http://a/", {"3"})
        store.publish("http://c/", {"4"})

        assert store.sources() == ["http://a/", "http://c/"]
        assert store.get_snapshot("http://b/") is None
        assert not store.seen_before("http://b/", "2")

    def test_rejects_invalid_bound(self):
        with pytest.raises(ValueError):
            InMemoryDedupStore(max_sources=0)


class TestConcurrency:
    """Readers never observe a partially built snapshot."""

    def test_concurrent_publish_and_read(self):
        store = InMemoryDedupStore()
        batches = [frozenset(f"{n}-{i}" for i in range(200)) for n in range(20)]
        observed = []
        errors = []

        def writer():
            for batch in batches:
                store.publish(SOURCE, batch)

        def reader():
            for _ in range(500):
                snapshot = store.get_snapshot(SOURCE)
                if snapshot is not None:
                    observed.append(snapshot)
                try:
                    store.seen_before(SOURCE, "0-0")
                except Exception as e:  # pragma: no cover
                    errors.append(e)

        threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert all(snapshot in batches for snapshot in observed)
        assert store.get_snapshot(SOURCE) == batches[-1]


def test_default_store_is_shared():
    assert get_default_dedup_store() is get_default_dedup_store()
