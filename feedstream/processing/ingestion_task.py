"""
Ingestion Task
=============

One run against one feed source: fetch, normalize, filter by recency,
deduplicate against the previous run's snapshot and publish the surviving
records into a bounded asyncio queue.

A task can run in perpetual mode, in which case the identities considered
during a completed run are committed to the dedup store and entries found in
that snapshot are suppressed on the next run of the same source. Overlapping
runs of the same source are not serialized: both may read the same snapshot
and both publish the same entries.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from ..config.settings import get_settings
from ..ingestion.feed_fetcher import FeedFetcher
from ..ingestion.normalizer import NormalizedRecord, normalize_entry, resolve_entry_id
from ..ingestion.recency import PUBLISHED_SINCE_DEFAULT, ensure_utc, is_recent, read_published
from ..utils.exceptions import FeedError, IngestionError, is_retryable_error
from ..utils.logging import get_logger_for_component
from .dedup_store import DedupStore, get_default_dedup_store


class RunState(str, Enum):
    """Lifecycle of a single run."""
    IDLE = "idle"
    FETCHING = "fetching"
    PROCESSING = "processing"
    COMMITTING = "committing"
    FAILED = "failed"
    DONE = "done"


@dataclass
class RunResult:
    """Outcome and counters of one run."""

    source_url: str
    state: RunState = RunState.IDLE
    states: List[RunState] = field(default_factory=list)
    entries_fetched: int = 0
    published: int = 0
    rejected_recency: int = 0
    rejected_dedup: int = 0
    timestamp_fallbacks: int = 0
    seen_ids: Set[str] = field(default_factory=set)
    committed: bool = False
    cancelled: bool = False
    error: Optional[str] = None
    retryable: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def failed(self) -> bool:
        return RunState.FAILED in self.states

    @property
    def success(self) -> bool:
        return self.state == RunState.DONE and not self.failed

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Counters for structured logging and metrics."""
        return {
            "source": self.source_url,
            "state": self.state.value,
            "success": self.success,
            "entries_fetched": self.entries_fetched,
            "published": self.published,
            "rejected_recency": self.rejected_recency,
            "rejected_dedup": self.rejected_dedup,
            "timestamp_fallbacks": self.timestamp_fallbacks,
            "seen_ids": len(self.seen_ids),
            "committed": self.committed,
            "cancelled": self.cancelled,
            "error": self.error,
            "retryable": self.retryable,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class IngestionTask:
    """Reads one feed and queues its entries as normalized records."""

    def __init__(
        self,
        queue: "asyncio.Queue[NormalizedRecord]",
        source_url: str,
        published_since: Optional[datetime] = None,
        timeout_ms: Optional[int] = None,
        perpetual: Optional[bool] = None,
        dedup_store: Optional[DedupStore] = None,
        fetcher: Optional[FeedFetcher] = None,
    ):
        """Initialize ingestion task.

        Args:
            queue: Output queue, records are put with backpressure
            source_url: Feed URL, also the dedup source key
            published_since: Only queue entries published after this (default from config, else far past)
            timeout_ms: Connection timeout in milliseconds (default from config)
            perpetual: Suppress entries seen in the previous run (default from config)
            dedup_store: Snapshot store (default: process-wide store)
            fetcher: Feed fetcher (default: new FeedFetcher)
        """
        if published_since is None or timeout_ms is None or perpetual is None:
            provider_settings = get_settings().provider
            if published_since is None:
                published_since = provider_settings.published_since
            if timeout_ms is None:
                timeout_ms = provider_settings.timeout_ms
            if perpetual is None:
                perpetual = provider_settings.perpetual

        self.queue = queue
        self.source_url = source_url
        self.published_since = ensure_utc(published_since or PUBLISHED_SINCE_DEFAULT)
        self.timeout_ms = timeout_ms
        self.perpetual = perpetual
        self.dedup_store = dedup_store if dedup_store is not None else get_default_dedup_store()
        self.fetcher = fetcher or FeedFetcher()

        self.state = RunState.IDLE
        self.result: Optional[RunResult] = None
        self.logger = get_logger_for_component("ingestion_task", source=source_url)

    def _transition(self, result: RunResult, state: RunState) -> None:
        self.state = state
        result.state = state
        result.states.append(state)

    def _finish(self, result: RunResult) -> RunResult:
        self._transition(result, RunState.DONE)
        result.finished_at = datetime.now(timezone.utc)
        return result

    async def run(self) -> RunResult:
        """Execute one run.

        Returns:
            RunResult, also for runs that failed to fetch

        Raises:
            asyncio.CancelledError: If cancelled while fetching or publishing
            IngestionError: On an unexpected failure while processing entries
        """
        result = RunResult(source_url=self.source_url)
        self.result = result

        self._transition(result, RunState.FETCHING)
        try:
            entries = await self.fetcher.fetch(self.source_url, self.timeout_ms)
        except FeedError as e:
            result.error = str(e)
            result.retryable = is_retryable_error(e)
            self._transition(result, RunState.FAILED)
            self.logger.warning(
                f"Exception while reading feed {self.source_url}: {e}",
                extra=e.to_dict(),
            )
            return self._finish(result)
        except asyncio.CancelledError:
            self._cancel(result)
            raise

        result.entries_fetched = len(entries)
        self._transition(result, RunState.PROCESSING)

        try:
            await self._queue_entries(entries, result)
        except asyncio.CancelledError:
            self._cancel(result)
            raise
        except Exception as e:
            result.error = f"{type(e).__name__}: {e}"
            self._transition(result, RunState.FAILED)
            self._finish(result)
            self.logger.error(
                f"Processing failed for {self.source_url}", exc_info=True, extra=result.to_dict()
            )
            raise IngestionError(
                f"Processing failed: {result.error}", feed_url=self.source_url
            ) from e

        self._transition(result, RunState.COMMITTING)
        if self.perpetual:
            self.dedup_store.publish(self.source_url, result.seen_ids)
            result.committed = True

        self._finish(result)
        self.logger.info(
            f"Run complete for {self.source_url}: {result.published}/{result.entries_fetched} "
            f"published, {result.rejected_recency} too old, {result.rejected_dedup} seen before",
            extra=result.to_dict(),
        )
        return result

    async def _queue_entries(self, entries: List[Any], result: RunResult) -> None:
        for entry in entries:
            record = normalize_entry(entry, self.source_url)
            entry_id = resolve_entry_id(record)
            if entry_id:
                result.seen_ids.add(entry_id)

            published = read_published(record)
            if published.fallback:
                result.timestamp_fallbacks += 1
                self.logger.debug(
                    f"No usable published date ({published.reason}), queueing {entry_id or 'entry'} by default"
                )

            if not is_recent(record, self.published_since, published):
                result.rejected_recency += 1
                continue

            # Reads the snapshot committed by the previous run, not the one being built
            if self.perpetual and self.dedup_store.seen_before(self.source_url, entry_id):
                result.rejected_dedup += 1
                continue

            await self.queue.put(record)
            result.published += 1
            self.logger.debug(f"Added entry, {entry_id}, to provider queue.")

    def _cancel(self, result: RunResult) -> None:
        result.cancelled = True
        result.error = "cancelled"
        self._transition(result, RunState.FAILED)
        self._finish(result)
        self.logger.warning(
            f"Run cancelled for {self.source_url} after {result.published} published entries",
            extra=result.to_dict(),
        )
