"""
Dedup Store
==========

Holds, per feed source, the set of entry identities considered during the
most recently completed perpetual run of that source.

Each commit replaces the previous snapshot of its source, it never merges.
Two overlapping runs of one source may both read the same stale snapshot and
both publish the same entries; delivery is at-least-once.
"""

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import FrozenSet, Iterable, List, Optional

from ..utils.logging import get_logger_for_component

DedupSnapshot = FrozenSet[str]


class DedupStore(ABC):
    """Interface for per-source snapshots of seen entry identities."""

    @abstractmethod
    def seen_before(self, source_key: str, entry_id: str) -> bool:
        """Return True if ``entry_id`` is in the stored snapshot of ``source_key``."""

    @abstractmethod
    def publish(self, source_key: str, snapshot: Iterable[str]) -> None:
        """Atomically replace the stored snapshot of ``source_key``."""

    @abstractmethod
    def get_snapshot(self, source_key: str) -> Optional[DedupSnapshot]:
        """Return the stored snapshot of ``source_key``, or None."""


class InMemoryDedupStore(DedupStore):
    """Thread-safe in-process dedup store.

    Snapshots are stored as frozensets, so a reader either sees the previous
    snapshot or the new one, never a partially built set. The lock only
    guards single dict operations.

    With ``max_sources`` set, the store evicts the source whose snapshot was
    committed least recently once more than ``max_sources`` sources are held.
    An evicted source behaves like a first run on its next execution.
    """

    def __init__(self, max_sources: Optional[int] = None):
        if max_sources is not None and max_sources < 1:
            raise ValueError("max_sources must be at least 1")

        self.max_sources = max_sources
        self._snapshots: "OrderedDict[str, DedupSnapshot]" = OrderedDict()
        self._lock = threading.Lock()
        self.logger = get_logger_for_component("dedup_store")

    def seen_before(self, source_key: str, entry_id: str) -> bool:
        if not entry_id:
            return False
        with self._lock:
            snapshot = self._snapshots.get(source_key)
        if snapshot is None:
            return False
        return entry_id in snapshot

    def publish(self, source_key: str, snapshot: Iterable[str]) -> None:
        frozen = frozenset(i for i in snapshot if i)
        evicted = []

        with self._lock:
            self._snapshots[source_key] = frozen
            self._snapshots.move_to_end(source_key)
            if self.max_sources is not None:
                while len(self._snapshots) > self.max_sources:
                    evicted.append(self._snapshots.popitem(last=False)[0])

        self.logger.debug(
            f"Committed snapshot of {len(frozen)} ids for {source_key}",
            extra={"source": source_key},
        )
        for key in evicted:
            self.logger.info(f"Evicted dedup snapshot for {key}", extra={"source": key})

    def get_snapshot(self, source_key: str) -> Optional[DedupSnapshot]:
        with self._lock:
            return self._snapshots.get(source_key)

    def sources(self) -> List[str]:
        """Sources with a stored snapshot, least recently committed first."""
        with self._lock:
            return list(self._snapshots)

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)


_default_store: Optional[InMemoryDedupStore] = None
_default_store_lock = threading.Lock()


def get_default_dedup_store() -> InMemoryDedupStore:
    """Process-wide store shared by tasks that are not given one explicitly."""
    global _default_store

    with _default_store_lock:
        if _default_store is None:
            from ..config.settings import get_settings

            _default_store = InMemoryDedupStore(
                max_sources=get_settings().dedup.max_sources
            )
        return _default_store
