"""
Recency Filter
=============

Decides whether an entry is new enough to publish. Entries whose published
date is missing or unreadable always pass (fail-open): an occasional old
entry is preferred over silently dropping one that cannot be classified.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..utils.exceptions import TimestampParseError
from .normalizer import DATE_KEY

# Default threshold, accepts every dated entry
PUBLISHED_SINCE_DEFAULT = datetime.min.replace(tzinfo=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(text: Any) -> datetime:
    """Parse an RFC 3339 / ISO 8601 date-time into an aware UTC datetime.

    Raises:
        TimestampParseError: If ``text`` is not a readable date-time
    """
    if not isinstance(text, str) or not text.strip():
        raise TimestampParseError("Timestamp is empty or not text", value=repr(text))

    value = text.strip()
    if value[-1] in "zZ":
        value = value[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise TimestampParseError(f"Unrecognized timestamp: {text!r}", value=text) from e

    try:
        return ensure_utc(parsed)
    except OverflowError as e:
        raise TimestampParseError(f"Timestamp out of range: {text!r}", value=text) from e


@dataclass(frozen=True)
class PublishedTimestamp:
    """Outcome of reading a record's published date: an instant or the fallback."""

    instant: Optional[datetime] = None
    reason: Optional[str] = None

    @property
    def fallback(self) -> bool:
        return self.instant is None


def read_published(record: Mapping[str, Any]) -> PublishedTimestamp:
    """Evaluate the published date of ``record`` once."""
    raw = record.get(DATE_KEY)
    if raw is None:
        return PublishedTimestamp(reason="missing")
    try:
        return PublishedTimestamp(instant=parse_timestamp(raw))
    except TimestampParseError as e:
        return PublishedTimestamp(reason=str(e))


def is_recent(
    record: Mapping[str, Any],
    published_since: datetime = PUBLISHED_SINCE_DEFAULT,
    published: Optional[PublishedTimestamp] = None,
) -> bool:
    """Return True if ``record`` was published strictly after ``published_since``.

    Records without a usable published date always pass.

    Args:
        record: Normalized record
        published_since: Threshold instant, naive values are taken as UTC
        published: Already evaluated timestamp for ``record`` (optional)
    """
    if published is None:
        published = read_published(record)
    if published.fallback:
        return True
    return published.instant > ensure_utc(published_since)
