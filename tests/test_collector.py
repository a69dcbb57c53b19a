"""
Tests for the feed collector, with HTTP faked by httpx.MockTransport.

Covers entry parsing, the per-source item cap, full-article enrichment,
per-source failure isolation and fetch bookkeeping on the registry.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest

from newsreel.news.collector import FeedCollector, NO_ITEMS_ERROR

LONG_BODY = " ".join(["Rescue teams worked through the night in the flooded valley."] * 10)


def rss(items: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Test</title><link>https://news.example.com</link>
<description>Test feed</description>{items}</channel></rss>"""


def rss_item(title="", link="", description="", pub_date="Mon, 06 Jan 2025 10:30:00 GMT"):
    parts = []
    if title:
        parts.append(f"<title>{title}</title>")
    if link:
        parts.append(f"<link>{link}</link>")
    if description:
        parts.append(f"<description>{description}</description>")
    if pub_date:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    return f"<item>{''.join(parts)}</item>"


def article_page(body: str) -> str:
    return f"""<html><head><title>Story</title></head><body>
<nav>Home | World | Sport</nav><article><p>{body}</p></article>
<footer>Copyright</footer></body></html>"""


def run_collect(registry, settings, routes, sources):
    """Collect with a transport answering from ``routes`` (url → (status, body))."""

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = routes.get(str(request.url), (404, "not found"))
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, text=body)

    collector = FeedCollector(registry, settings, transport=httpx.MockTransport(handler))
    return asyncio.run(collector.collect(sources))


class TestFeedParsing:
    """Tests for turning feed entries into RawItems."""

    def test_items_from_rss(self, registry, settings, make_source):
        source = make_source(name="Daily", url="https://daily.example.com/rss")
        routes = {
            source.url: (200, rss(rss_item(
                "Flood hits valley", "https://daily.example.com/a", LONG_BODY,
            ))),
        }
        items = run_collect(registry, settings, routes, [source])

        assert len(items) == 1
        item = items[0]
        assert item.title == "Flood hits valley"
        assert item.url == "https://daily.example.com/a"
        assert item.source == "Daily"
        assert item.content.startswith("Rescue teams")
        assert item.published_at == datetime(2025, 1, 6, 10, 30, tzinfo=timezone.utc)

    def test_html_snippet_reduced_to_text(self, registry, settings, make_source):
        source = make_source()
        snippet = "&lt;p&gt;" + LONG_BODY + "&lt;/p&gt;"
        routes = {source.url: (200, rss(rss_item("T", "https://x.example.com/1", snippet)))}
        items = run_collect(registry, settings, routes, [source])

        assert "<p>" not in items[0].content
        assert items[0].content.startswith("Rescue teams")

    def test_entries_without_title_or_link_skipped(self, registry, settings, make_source):
        source = make_source()
        feed = rss(
            rss_item("", "https://x.example.com/no-title", LONG_BODY)
            + rss_item("No link here", "", LONG_BODY)
            + rss_item("Complete", "https://x.example.com/ok", LONG_BODY)
        )
        items = run_collect(registry, settings, {source.url: (200, feed)}, [source])
        assert [i.title for i in items] == ["Complete"]

    def test_capped_at_max_items(self, registry, settings, make_source):
        source = make_source()
        feed = rss("".join(
            rss_item(f"Story {n}", f"https://x.example.com/{n}", LONG_BODY) for n in range(15)
        ))
        items = run_collect(registry, settings, {source.url: (200, feed)}, [source])
        assert len(items) == 10
        assert items[-1].title == "Story 9"

    def test_missing_date_defaults_to_now(self, registry, settings, make_source):
        source = make_source()
        feed = rss(rss_item("Undated", "https://x.example.com/u", LONG_BODY, pub_date=""))
        before = datetime.now(timezone.utc)
        items = run_collect(registry, settings, {source.url: (200, feed)}, [source])
        assert items[0].published_at >= before


class TestEnrichment:
    """Tests for full-article fetches on short snippets."""

    def test_short_snippet_replaced_by_article_body(self, registry, settings, make_source):
        source = make_source()
        link = "https://x.example.com/story"
        routes = {
            source.url: (200, rss(rss_item("Short", link, "Teaser only."))),
            link: (200, article_page(LONG_BODY)),
        }
        items = run_collect(registry, settings, routes, [source])
        assert items[0].content == LONG_BODY
        assert "Home | World" not in items[0].content

    def test_short_snippet_kept_when_page_fails(self, registry, settings, make_source):
        source = make_source()
        link = "https://x.example.com/gone"
        routes = {
            source.url: (200, rss(rss_item("Short", link, "Teaser only."))),
            link: (500, "server error"),
        }
        items = run_collect(registry, settings, routes, [source])
        assert items[0].content == "Teaser only."

    def test_long_snippet_not_enriched(self, registry, settings, make_source):
        source = make_source()
        link = "https://x.example.com/long"
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, text=rss(rss_item("Long", link, LONG_BODY)))

        collector = FeedCollector(registry, settings, transport=httpx.MockTransport(handler))
        asyncio.run(collector.collect([source]))
        assert requested == [source.url]


class TestIsolationAndBookkeeping:
    """Tests for per-source failure isolation and fetch accounting."""

    def test_failing_source_does_not_stop_others(self, registry, settings, make_source):
        good = make_source(name="Good")
        bad = make_source(name="Bad")
        timeout = make_source(name="Slow")
        routes = {
            good.url: (200, rss(rss_item("Fine", "https://good.example.com/1", LONG_BODY))),
            bad.url: (503, "unavailable"),
            timeout.url: (0, httpx.ReadTimeout("timed out")),
        }
        items = run_collect(registry, settings, routes, [bad, good, timeout])

        assert [i.source for i in items] == ["Good"]

        good_after = registry.get_by_id(good.id)
        assert good_after.fetch_count == 1
        assert good_after.success_count == 1
        assert good_after.avg_items_per_fetch == 1.0

        for failed in (bad, timeout):
            after = registry.get_by_id(failed.id)
            assert after.fetch_count == 1
            assert after.error_count == 1
            assert after.health_score == 0
            assert after.last_error

    def test_empty_feed_is_failed_attempt(self, registry, settings, make_source):
        source = make_source()
        run_collect(registry, settings, {source.url: (200, rss(""))}, [source])

        after = registry.get_by_id(source.id)
        assert after.error_count == 1
        assert after.last_error == NO_ITEMS_ERROR

    def test_garbage_feed_is_failed_attempt(self, registry, settings, make_source):
        source = make_source()
        run_collect(registry, settings, {source.url: (200, "<<<not a feed")}, [source])
        assert registry.get_by_id(source.id).error_count == 1

    def test_unsupported_kind_recorded(self, registry, settings, make_source):
        source = make_source(source_type="sitemap")
        items = run_collect(registry, settings, {}, [source])

        assert items == []
        after = registry.get_by_id(source.id)
        assert after.last_error == "unsupported source type: sitemap"

    def test_html_source(self, registry, settings, make_source):
        source = make_source(source_type="html", url="https://page.example.com/", selector="article")
        routes = {source.url: (200, article_page(LONG_BODY))}
        items = run_collect(registry, settings, routes, [source])

        assert len(items) == 1
        assert items[0].title == "Story"
        assert items[0].content == LONG_BODY
        assert registry.get_by_id(source.id).success_count == 1

    def test_no_sources(self, registry, settings):
        assert run_collect(registry, settings, {}, []) == []

    def test_bookkeeping_failure_raised_after_all_sources_settle(self, registry, settings, make_source):
        locked = make_source(name="Locked")
        fine = make_source(name="Fine")
        routes = {
            s.url: (200, rss(rss_item(f"{s.name} story", f"https://x.example.com/{s.id}", LONG_BODY)))
            for s in (locked, fine)
        }
        recorded = []
        real_record = registry.record_fetch_attempt

        def record(source_id, **kwargs):
            recorded.append(source_id)
            if source_id == locked.id:
                raise RuntimeError("database is locked")
            return real_record(source_id, **kwargs)

        with patch.object(registry, "record_fetch_attempt", side_effect=record):
            with pytest.raises(RuntimeError, match="database is locked"):
                run_collect(registry, settings, routes, [locked, fine])

        assert sorted(recorded) == sorted([locked.id, fine.id])
        assert registry.get_by_id(fine.id).success_count == 1
