"""
Feed Stream Provider
===================

Runs one ingestion task per configured source into a shared output queue.
Deciding when to call :meth:`FeedStreamProvider.run_once` again is left to
the caller.
"""

import asyncio
from datetime import datetime
from typing import List, Optional

from ..config.settings import get_settings
from ..ingestion.feed_fetcher import FeedFetcher
from ..ingestion.normalizer import NormalizedRecord
from ..utils.logging import get_logger_for_component
from ..utils.validators import validate_feed_urls
from .dedup_store import DedupStore, get_default_dedup_store
from .ingestion_task import IngestionTask, RunResult


class FeedStreamProvider:
    """Queues normalized records from several feeds."""

    def __init__(
        self,
        sources: List[str],
        queue: Optional["asyncio.Queue[NormalizedRecord]"] = None,
        published_since: Optional[datetime] = None,
        timeout_ms: Optional[int] = None,
        perpetual: Optional[bool] = None,
        dedup_store: Optional[DedupStore] = None,
        fetcher: Optional[FeedFetcher] = None,
        max_concurrent: Optional[int] = None,
    ):
        """Initialize provider.

        Args:
            sources: Feed URLs
            queue: Output queue (default: new queue sized from config)
            published_since: Recency threshold passed to every task
            timeout_ms: Connection timeout passed to every task
            perpetual: Perpetual mode passed to every task
            dedup_store: Store shared by all tasks (default: process-wide store)
            fetcher: Fetcher shared by all tasks
            max_concurrent: Maximum concurrent runs (default from config)

        Raises:
            ValidationError: If a source URL is malformed
        """
        settings = get_settings()

        self.sources = validate_feed_urls(sources)
        self.queue = queue if queue is not None else asyncio.Queue(maxsize=settings.provider.queue_size)
        self.published_since = published_since
        self.timeout_ms = timeout_ms
        self.perpetual = perpetual
        self.dedup_store = dedup_store if dedup_store is not None else get_default_dedup_store()
        self.fetcher = fetcher or FeedFetcher()
        self.max_concurrent = max_concurrent or settings.provider.max_concurrent_sources
        self.logger = get_logger_for_component("provider")

    def create_task(self, source_url: str) -> IngestionTask:
        """Build the ingestion task for one source."""
        return IngestionTask(
            self.queue,
            source_url,
            published_since=self.published_since,
            timeout_ms=self.timeout_ms,
            perpetual=self.perpetual,
            dedup_store=self.dedup_store,
            fetcher=self.fetcher,
        )

    async def run_once(self) -> List[RunResult]:
        """Run every source once, at most ``max_concurrent`` at a time.

        A failing source does not stop the others. Results come back in
        source order.
        """
        if not self.sources:
            return []

        self.logger.info(f"Starting run of {len(self.sources)} feeds")
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run_with_semaphore(task: IngestionTask) -> RunResult:
            async with semaphore:
                return await task.run()

        tasks = [self.create_task(url) for url in self.sources]
        outcomes = await asyncio.gather(
            *(run_with_semaphore(task) for task in tasks), return_exceptions=True
        )

        results = []
        for task, outcome in zip(tasks, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                self.logger.error(
                    f"Run failed for {task.source_url}: {outcome}", extra={"source": task.source_url}
                )
                results.append(task.result)
            else:
                results.append(outcome)

        successful = sum(1 for r in results if r.success)
        published = sum(r.published for r in results)
        self.logger.info(
            f"Run complete: {successful}/{len(results)} feeds successful, "
            f"{published} records queued"
        )
        return results

    def drain(self) -> List[NormalizedRecord]:
        """Remove and return everything currently queued, without waiting."""
        records = []
        while True:
            try:
                records.append(self.queue.get_nowait())
            except asyncio.QueueEmpty:
                return records
            self.queue.task_done()
