"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedStream tests.
"""

import pytest
import os
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FEEDSTREAM_LOGGING__FILE_PATH"] = ""
os.environ["FEEDSTREAM_DEBUG"] = "true"


SAMPLE_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Test RSS Feed</title>
        <link>http://example.com</link>
        <description>Test feed for unit testing</description>
        <item>
            <title>Test Article 1</title>
            <link>http://example.com/article1</link>
            <description>First test article</description>
            <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
            <guid>http://example.com/guid/1</guid>
            <category>Tech</category>
        </item>
        <item>
            <title>Test Article 2</title>
            <link>http://example.com/article2</link>
            <description>Second test article, no date</description>
        </item>
    </channel>
</rss>"""

SAMPLE_ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>Test Atom Feed</title>
    <link href="http://example.com"/>
    <id>http://example.com/feed</id>
    <updated>2024-09-07T00:00:01Z</updated>
    <entry>
        <title>Atom Test Article</title>
        <link href="http://example.com/atom-article"/>
        <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
        <updated>2024-09-05T12:00:00Z</updated>
        <published>2024-09-05T12:00:00Z</published>
        <summary>This is an Atom article summary</summary>
        <content type="html">&lt;p&gt;Full content&lt;/p&gt;</content>
        <author>
            <name>Atom Author</name>
            <email>atom@example.com</email>
        </author>
        <category term="Science"/>
    </entry>
</feed>"""

NOT_A_FEED = """<!DOCTYPE html>
<html><head><title>Not a feed</title></head><body><p>Hello</p></body></html>"""


class StubFetcher:
    """Stands in for FeedFetcher, returning canned entries or raising."""

    def __init__(self, entries=None, error=None):
        self.entries = list(entries or [])
        self.error = error
        self.calls = []

    async def fetch(self, feed_url, timeout_ms):
        self.calls.append((feed_url, timeout_ms))
        if self.error is not None:
            raise self.error
        return list(self.entries)


def _make_entry(uri=None, link=None, published=None, title="Entry"):
    entry = {"title": title}
    if uri is not None:
        entry["id"] = uri
    if link is not None:
        entry["link"] = link
    if published is not None:
        entry["published"] = published
    return entry


@pytest.fixture
def make_entry():
    """Build a raw feed entry the way feedparser exposes it."""
    return _make_entry


@pytest.fixture
def stub_fetcher():
    """Factory for StubFetcher instances."""
    return StubFetcher


@pytest.fixture
def dedup_store():
    """Fresh, unbounded dedup store."""
    from feedstream.processing.dedup_store import InMemoryDedupStore

    return InMemoryDedupStore()


@pytest.fixture
def source_url():
    return "http://feeds.example.com/rss.xml"


@pytest.fixture
def sample_rss_feed():
    return SAMPLE_RSS_FEED


@pytest.fixture
def sample_atom_feed():
    return SAMPLE_ATOM_FEED


@pytest.fixture
def not_a_feed():
    return NOT_A_FEED
