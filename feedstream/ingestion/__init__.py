"""
FeedStream Ingestion Module
==========================

Feed fetching and per-entry processing.

This module handles:
- Fetching and parsing feeds with a bounded connection timeout
- Normalizing entries into canonical records
- Resolving entry identities and filtering by recency
"""
