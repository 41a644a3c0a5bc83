"""
FeedStream - Deduplicating Feed Ingestion
=========================================

Fetches RSS/Atom feeds, normalizes their entries into JSON-compatible records
and queues them for downstream consumers.

Main Components:
- Ingestion: feed fetching, entry normalization, recency filtering
- Processing: per-source ingestion tasks, dedup snapshots, multi-feed provider
- Configuration: environment variables with Pydantic validation
"""

__version__ = "1.0.0"
__description__ = "Bounded, deduplicating feed-ingestion producer"

from .config.settings import get_settings
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedStreamError
from .processing import IngestionTask, RunResult, RunState, InMemoryDedupStore, FeedStreamProvider

__all__ = [
    "get_settings",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedStreamError",
    "IngestionTask",
    "RunResult",
    "RunState",
    "InMemoryDedupStore",
    "FeedStreamProvider",
]
