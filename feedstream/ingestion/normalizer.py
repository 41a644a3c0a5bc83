"""
Entry Normalizer
===============

Converts feedparser entries into canonical, JSON-compatible records and
derives the identity used for deduplication.
"""

import time
from typing import Any, Dict, List, Mapping, Optional

# Reserved record field naming the source feed URL
RSS_KEY = "rssFeed"
URI_KEY = "uri"
LINK_KEY = "link"
DATE_KEY = "publishedDate"
UPDATED_KEY = "updatedDate"

RFC3339_UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

NormalizedRecord = Dict[str, Any]


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    return None


def _format_struct_time(value: Any) -> Optional[str]:
    """Render a feedparser ``*_parsed`` struct_time (always UTC) as RFC 3339."""
    if value is None:
        return None
    try:
        return time.strftime(RFC3339_UTC_FORMAT, value)
    except (TypeError, ValueError, OverflowError):
        return None


def _date_field(entry: Mapping[str, Any], name: str) -> Optional[str]:
    formatted = _format_struct_time(entry.get(f"{name}_parsed"))
    if formatted:
        return formatted
    # feedparser could not read the date, keep the raw text for the recency filter
    return _text(entry.get(name)) or None


def _dict_list(value: Any, keys: List[str]) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        copied = {k: item.get(k) for k in keys if item.get(k) is not None}
        if copied:
            items.append(copied)
    return items


def _contents(entry: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return _dict_list(entry.get("content"), ["type", "value", "language"])


def _categories(entry: Mapping[str, Any]) -> List[str]:
    tags = entry.get("tags")
    if not isinstance(tags, list):
        return []
    terms = []
    for tag in tags:
        if isinstance(tag, Mapping):
            term = _text(tag.get("term")) or _text(tag.get("label"))
            if term:
                terms.append(term)
    return terms


def normalize_entry(entry: Mapping[str, Any], source_key: str) -> NormalizedRecord:
    """Build a canonical record from one raw feed entry.

    Fields are copied best-effort; missing or oddly typed values are skipped
    rather than rejected. The record is always stamped with ``source_key``
    under :data:`RSS_KEY`.

    Args:
        entry: feedparser entry (any mapping)
        source_key: Feed URL the entry was fetched from

    Returns:
        Normalized record
    """
    record: NormalizedRecord = {}

    title = _text(entry.get("title"))
    if title is not None:
        record["title"] = title

    description = _text(entry.get("summary")) or _text(entry.get("description"))
    if description is not None:
        record["description"] = description

    contents = _contents(entry)
    if contents:
        record["contents"] = contents

    author = _text(entry.get("author"))
    if author is not None:
        record["author"] = author

    authors = _dict_list(entry.get("authors"), ["name", "email", "href"])
    if authors:
        record["authors"] = authors

    categories = _categories(entry)
    if categories:
        record["categories"] = categories

    uri = _text(entry.get("id"))
    if uri is not None:
        record[URI_KEY] = uri

    link = _text(entry.get("link"))
    if link is not None:
        record[LINK_KEY] = link

    links = _dict_list(entry.get("links"), ["rel", "type", "href", "title"])
    if links:
        record["links"] = links

    enclosures = _dict_list(entry.get("enclosures"), ["href", "type", "length"])
    if enclosures:
        record["enclosures"] = enclosures

    published = _date_field(entry, "published")
    if published is not None:
        record[DATE_KEY] = published

    updated = _date_field(entry, "updated")
    if updated is not None:
        record[UPDATED_KEY] = updated

    record[RSS_KEY] = source_key
    return record


def resolve_entry_id(record: Mapping[str, Any]) -> str:
    """Return the identity used to deduplicate ``record``.

    ``uri`` wins over ``link`` since it is the more stable of the two. An
    empty string means the entry cannot be deduplicated.
    """
    uri = _text(record.get(URI_KEY))
    if uri:
        return uri
    link = _text(record.get(LINK_KEY))
    if link:
        return link
    return ""
