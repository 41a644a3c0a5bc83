"""
Feed Fetcher
===========

Fetches one syndication feed over HTTP(S) with a bounded connection timeout
and parses it with feedparser. A fetch is all-or-nothing: either the full
list of entries is returned or a NetworkError/FormatError is raised.
"""

import asyncio
import ssl
import xml.sax
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import aiohttp
import certifi
import feedparser

from ..config.settings import get_settings
from ..utils.exceptions import ErrorCode, FormatError, NetworkError, ValidationError
from ..utils.logging import PerformanceLogger, get_logger_for_component
from ..utils.validators import URLValidator

RawEntry = Any

logger = get_logger_for_component("feed_fetcher")


def parse_feed(content: bytes, feed_url: str, response_headers: Optional[dict] = None) -> List[RawEntry]:
    """Parse feed bytes into a list of feedparser entries.

    Args:
        content: Raw response body
        feed_url: Source URL, used for relative link resolution and errors
        response_headers: HTTP headers, used by feedparser for encoding detection

    Returns:
        Fully materialized list of entries

    Raises:
        FormatError: If the bytes are not a well-formed RSS/Atom/RDF feed
    """
    parsed = feedparser.parse(content, response_headers=response_headers or {})

    # feedparser sets version only when it recognized a feed document
    if not parsed.get("version"):
        reason = parsed.get("bozo_exception") or "no feed element found"
        raise FormatError(f"Content is not a syndication feed: {reason}", feed_url=feed_url)

    if parsed.get("bozo"):
        problem = parsed.get("bozo_exception")
        # Strict XML parse failed, loose-parser entries are partial
        if isinstance(problem, xml.sax.SAXException):
            raise FormatError(f"Feed is not well-formed XML: {problem}", feed_url=feed_url)
        logger.warning(f"Feed parsing warning for {feed_url}: {problem}")

    return list(parsed.entries)


class FeedFetcher:
    """Fetches a single feed per call, opening exactly one HTTP connection."""

    def __init__(
        self,
        read_timeout_ms: Optional[int] = None,
        user_agent: Optional[str] = None,
    ):
        """Initialize feed fetcher.

        Args:
            read_timeout_ms: Socket read timeout in milliseconds (default from config)
            user_agent: User-Agent header value (default from config)
        """
        if read_timeout_ms is None or user_agent is None:
            settings = get_settings()
            if read_timeout_ms is None:
                read_timeout_ms = settings.provider.read_timeout_ms
            if user_agent is None:
                user_agent = settings.provider.user_agent

        self.read_timeout_ms = read_timeout_ms
        self.user_agent = user_agent
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    def _client_timeout(self, timeout_ms: int) -> aiohttp.ClientTimeout:
        sock_read = self.read_timeout_ms / 1000 if self.read_timeout_ms else None
        return aiohttp.ClientTimeout(
            total=None, connect=timeout_ms / 1000, sock_read=sock_read
        )

    @asynccontextmanager
    async def get_session(self, timeout_ms: int):
        """Get an aiohttp session limited to one connection."""
        connector = aiohttp.TCPConnector(ssl=self.ssl_context, limit=1)

        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=self._client_timeout(timeout_ms), headers=headers
        ) as session:
            yield session

    async def _download(self, feed_url: str, timeout_ms: int):
        """Return ``(body, headers)`` for ``feed_url``, raising NetworkError on bad status."""
        async with self.get_session(timeout_ms) as session:
            async with session.get(feed_url) as response:
                if response.status in (401, 403):
                    raise NetworkError(
                        f"HTTP {response.status}: {response.reason}",
                        feed_url=feed_url,
                        error_code=ErrorCode.FEED_ACCESS_DENIED,
                        recoverable=False,
                    )
                if response.status == 404:
                    raise NetworkError(
                        f"HTTP 404: {response.reason}",
                        feed_url=feed_url,
                        error_code=ErrorCode.FEED_NOT_FOUND,
                        recoverable=False,
                    )
                if response.status >= 400:
                    raise NetworkError(
                        f"HTTP {response.status}: {response.reason}", feed_url=feed_url
                    )

                content = await response.read()
                return content, dict(response.headers)

    async def fetch(self, feed_url: str, timeout_ms: int) -> List[RawEntry]:
        """Fetch and parse a single feed.

        Args:
            feed_url: URL of the feed
            timeout_ms: Connection timeout in milliseconds

        Returns:
            List of feedparser entries

        Raises:
            NetworkError: Malformed URL, unreachable host, bad status or timeout
            FormatError: Body is not a syndication feed
        """
        try:
            validated_url = URLValidator.validate_feed_url(feed_url)
        except ValidationError as e:
            raise NetworkError(
                f"Malformed feed URL {feed_url!r}: {e}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_INVALID_URL,
                recoverable=False,
            ) from e

        self.logger.debug(f"Fetching feed: {validated_url}")

        with PerformanceLogger(self.logger, "feed download", source=validated_url) as perf:
            try:
                content, headers = await self._download(validated_url, timeout_ms)
            except NetworkError:
                raise
            except asyncio.TimeoutError as e:
                raise NetworkError(
                    f"Timed out fetching feed after {timeout_ms}ms",
                    feed_url=feed_url,
                    error_code=ErrorCode.FEED_FETCH_TIMEOUT,
                ) from e
            except (aiohttp.ClientError, OSError, ValueError) as e:
                raise NetworkError(
                    f"Failed to fetch feed: {e}", feed_url=feed_url
                ) from e

        entries = parse_feed(content, validated_url, headers)

        self.logger.info(
            f"Fetched {len(entries)} entries from {validated_url} "
            f"({len(content)} bytes in {perf.duration:.2f}s)"
        )
        return entries
