#!/usr/bin/env python3
"""
End-to-End Integration Tests for FeedStream
==========================================

Tests the complete path from an HTTP feed to the output queue against a
local aiohttp server.
"""

import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from feedstream.ingestion.feed_fetcher import FeedFetcher
from feedstream.processing.dedup_store import InMemoryDedupStore
from feedstream.processing.ingestion_task import IngestionTask, RunState
from feedstream.processing.provider import FeedStreamProvider
from feedstream.utils.exceptions import ErrorCode, FormatError, NetworkError

pytestmark = pytest.mark.integration


class TestEndToEnd:
    """End-to-end tests against a local feed server."""

    @pytest_asyncio.fixture
    async def feed_server(self, sample_rss_feed, sample_atom_feed, not_a_feed):
        """Serve sample feeds, an HTML page, a 404 and a slow endpoint."""
        state = {"rss": sample_rss_feed, "user_agents": []}

        async def rss(request):
            state["user_agents"].append(request.headers.get("User-Agent"))
            return web.Response(text=state["rss"], content_type="application/rss+xml")

        async def atom(request):
            return web.Response(text=sample_atom_feed, content_type="application/atom+xml")

        async def html(request):
            return web.Response(text=not_a_feed, content_type="text/html")

        async def forbidden(request):
            raise web.HTTPForbidden()

        async def truncated(request):
            return web.Response(text=sample_rss_feed[:sample_rss_feed.index("<title>Test Article 2")], content_type="application/rss+xml")

        async def slow(request):
            await asyncio.sleep(2)
            return web.Response(text=sample_rss_feed)

        app = web.Application()
        app.router.add_get("/rss.xml", rss)
        app.router.add_get("/atom.xml", atom)
        app.router.add_get("/index.html", html)
        app.router.add_get("/private.xml", forbidden)
        app.router.add_get("/slow.xml", slow)
        app.router.add_get("/truncated.xml", truncated)

        server = test_utils.TestServer(app)
        await server.start_server()
        server.state = state
        yield server
        await server.close()

    @pytest.fixture
    def fetcher(self):
        return FeedFetcher(read_timeout_ms=500, user_agent="FeedStream-Test/1.0")

    @pytest.mark.asyncio
    async def test_fetch_rss(self, feed_server, fetcher):
        entries = await fetcher.fetch(str(feed_server.make_url("/rss.xml")), 5000)

        assert len(entries) == 2
        assert feed_server.state["user_agents"] == ["FeedStream-Test/1.0"]

    @pytest.mark.asyncio
    async def test_html_is_format_error(self, feed_server, fetcher):
        with pytest.raises(FormatError):
            await fetcher.fetch(str(feed_server.make_url("/index.html")), 5000)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path,code", [
        ("/missing.xml", ErrorCode.FEED_NOT_FOUND),
        ("/private.xml", ErrorCode.FEED_ACCESS_DENIED),
    ])
    async def test_http_errors(self, feed_server, fetcher, path, code):
        with pytest.raises(NetworkError) as exc_info:
            await fetcher.fetch(str(feed_server.make_url(path)), 5000)
        assert exc_info.value.error_code == code

    @pytest.mark.asyncio
    async def test_read_timeout(self, feed_server, fetcher):
        with pytest.raises(NetworkError) as exc_info:
            await fetcher.fetch(str(feed_server.make_url("/slow.xml")), 5000)
        assert exc_info.value.error_code == ErrorCode.FEED_FETCH_TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_refused(self, fetcher):
        with pytest.raises(NetworkError) as exc_info:
            await fetcher.fetch("http://127.0.0.1:1/rss.xml", 1000)
        assert exc_info.value.error_code in (ErrorCode.FEED_NETWORK_ERROR, ErrorCode.FEED_FETCH_TIMEOUT)

    @pytest.mark.asyncio
    async def test_recency_and_fail_open(self, feed_server, fetcher):
        url = str(feed_server.make_url("/rss.xml"))
        queue = asyncio.Queue()
        task = IngestionTask(
            queue,
            url,
            published_since=datetime(2025, 1, 1, tzinfo=timezone.utc),
            timeout_ms=5000,
            perpetual=False,
            dedup_store=InMemoryDedupStore(),
            fetcher=fetcher,
        )

        result = await task.run()

        assert result.success
        assert result.rejected_recency == 1
        record = queue.get_nowait()
        assert record["link"] == "http://example.com/article2"
        assert record["rssFeed"] == url
        assert "publishedDate" not in record
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_perpetual_runs(self, feed_server, fetcher, sample_rss_feed):
        url = str(feed_server.make_url("/rss.xml"))
        store = InMemoryDedupStore()
        provider = FeedStreamProvider(
            [url],
            queue=asyncio.Queue(maxsize=10),
            timeout_ms=5000,
            perpetual=True,
            dedup_store=store,
            fetcher=fetcher,
        )

        await provider.run_once()
        first = provider.drain()
        assert [r["title"] for r in first] == ["Test Article 1", "Test Article 2"]
        assert store.get_snapshot(url) == frozenset({
            "http://example.com/guid/1",
            "http://example.com/article2",
        })

        await provider.run_once()
        assert provider.drain() == []

        feed_server.state["rss"] = sample_rss_feed.replace(
            "http://example.com/article2", "http://example.com/article3"
        )
        results = await provider.run_once()

        assert [r["link"] for r in provider.drain()] == ["http://example.com/article3"]
        assert results[0].rejected_dedup == 1
        assert not store.seen_before(url, "http://example.com/article2")

    @pytest.mark.asyncio
    async def test_mixed_sources(self, feed_server, fetcher):
        good = str(feed_server.make_url("/atom.xml"))
        bad = str(feed_server.make_url("/index.html"))
        store = InMemoryDedupStore()
        provider = FeedStreamProvider(
            [bad, good],
            timeout_ms=5000,
            perpetual=True,
            dedup_store=store,
            fetcher=fetcher,
        )

        results = await provider.run_once()

        assert results[0].states == [RunState.FETCHING, RunState.FAILED, RunState.DONE]
        assert results[1].success
        assert store.get_snapshot(bad) is None
        assert len(provider.drain()) == 1

    @pytest.mark.asyncio
    async def test_truncated_feed_fails_whole_run(self, feed_server, fetcher):
        url = str(feed_server.make_url("/truncated.xml"))
        store = InMemoryDedupStore()
        store.publish(url, {"previous"})
        queue = asyncio.Queue()
        task = IngestionTask(queue, url, timeout_ms=5000, perpetual=True, dedup_store=store, fetcher=fetcher)

        result = await task.run()

        assert result.failed
        assert result.entries_fetched == 0
        assert queue.empty()
        assert store.get_snapshot(url) == frozenset({"previous"})
