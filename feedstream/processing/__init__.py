"""
FeedStream Processing Module
===========================

Per-source ingestion tasks, dedup snapshot storage and the multi-feed
provider.
"""

from .dedup_store import DedupStore, InMemoryDedupStore, get_default_dedup_store
from .ingestion_task import IngestionTask, RunResult, RunState
from .provider import FeedStreamProvider

__all__ = [
    'DedupStore',
    'InMemoryDedupStore',
    'get_default_dedup_store',
    'IngestionTask',
    'RunResult',
    'RunState',
    'FeedStreamProvider',
]
