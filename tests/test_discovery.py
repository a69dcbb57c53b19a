"""
Tests for source seeding and feed discovery.

HTTP is faked with httpx.MockTransport; each test maps URLs to responses.
"""

import asyncio

import httpx

from newsreel.config import SEED_SOURCES
from newsreel.sources.discovery import COMMON_FEED_PATHS, SourceDiscovery, find_feed_links, seed_sources

SITE = "https://site.example.com/"

RSS_FEED = """<?xml version="1.0"?><rss version="2.0"><channel><title>Site</title>
<link>https://site.example.com/</link><description>d</description>
<item><title>First</title><link>https://site.example.com/1</link></item>
</channel></rss>"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom"><title>Site</title><id>urn:site</id>
<updated>2025-01-06T10:00:00Z</updated>
<entry><title>First</title><id>urn:1</id><link href="https://site.example.com/1"/>
<updated>2025-01-06T10:00:00Z</updated></entry></feed>"""

HOMEPAGE = """<html><head><title>Site</title>
<link rel="alternate" type="application/rss+xml" href="/news.rss">
<link rel="stylesheet" href="/style.css">
</head><body><p>Welcome</p></body></html>"""


def transport(routes, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if seen is not None:
            seen.append(url)
        status, body = routes.get(url, (404, "not found"))
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)


def discovery(registry, settings, routes, seen=None):
    return SourceDiscovery(registry, settings, transport=transport(routes, seen), pause=0)


class TestSeeding:
    """Tests for loading the verified catalog."""

    def test_seed_adds_catalog(self, registry):
        result = seed_sources(registry)

        assert result.added == len(SEED_SOURCES)
        assert result.skipped == 0
        sources = registry.list_all()
        assert len(sources) == len(SEED_SOURCES)
        assert all(s.is_verified for s in sources)
        assert all(s.added_by == "system" for s in sources)

    def test_seed_twice_skips_existing(self, registry):
        seed_sources(registry)
        result = seed_sources(registry)

        assert result.added == 0
        assert result.skipped == len(SEED_SOURCES)

    def test_seed_keeps_catalog_credibility(self, registry):
        seed_sources(registry)
        bbc = registry.get_by_url("http://feeds.bbci.co.uk/news/rss.xml")
        assert bbc.credibility_score == 95
        assert bbc.health_score == 100


class TestFindFeedLinks:
    """Tests for advertised feed links."""

    def test_relative_links_resolved(self):
        assert find_feed_links(HOMEPAGE, SITE) == ["https://site.example.com/news.rss"]

    def test_atom_link_type(self):
        html = '<html><head><link type="application/atom+xml" href="https://cdn.example.com/a.xml"></head></html>'
        assert find_feed_links(html, SITE) == ["https://cdn.example.com/a.xml"]

    def test_no_links(self):
        assert find_feed_links("<html><body>nothing</body></html>", SITE) == []


class TestDiscoverFeeds:
    """Tests for candidate generation and validation."""

    def test_candidates_are_links_then_common_paths(self, registry, settings):
        finder = discovery(registry, settings, {SITE: (200, HOMEPAGE)})
        candidates = asyncio.run(finder.discover_feeds(SITE))

        assert candidates[0] == "https://site.example.com/news.rss"
        assert candidates[1:] == [f"https://site.example.com{p}" for p in COMMON_FEED_PATHS]

    def test_advertised_common_path_not_repeated(self, registry, settings):
        page = '<html><head><link type="application/rss+xml" href="/rss"></head></html>'
        finder = discovery(registry, settings, {SITE: (200, page)})
        candidates = asyncio.run(finder.discover_feeds(SITE))

        assert candidates.count("https://site.example.com/rss") == 1

    def test_validate_rss_and_atom(self, registry, settings):
        routes = {
            "https://site.example.com/rss": (200, RSS_FEED),
            "https://site.example.com/atom.xml": (200, ATOM_FEED),
        }
        finder = discovery(registry, settings, routes)

        assert asyncio.run(finder.validate_feed("https://site.example.com/rss")) == (True, "rss")
        assert asyncio.run(finder.validate_feed("https://site.example.com/atom.xml")) == (True, "atom")

    def test_validate_rejects_html_and_errors(self, registry, settings):
        routes = {
            "https://site.example.com/page": (200, HOMEPAGE),
            "https://site.example.com/boom": (200, httpx.ConnectError("refused")),
        }
        finder = discovery(registry, settings, routes)

        assert asyncio.run(finder.validate_feed("https://site.example.com/page"))[0] is False
        assert asyncio.run(finder.validate_feed("https://site.example.com/missing"))[0] is False
        assert asyncio.run(finder.validate_feed("https://site.example.com/boom"))[0] is False


class TestDiscoverAndAdd:
    """Tests for registering discovered feeds."""

    ROUTES = {
        SITE: (200, HOMEPAGE),
        "https://site.example.com/news.rss": (200, RSS_FEED),
        "https://site.example.com/atom.xml": (200, ATOM_FEED),
    }

    def test_valid_feeds_added_unverified(self, registry, settings):
        finder = discovery(registry, settings, self.ROUTES)
        result = asyncio.run(finder.discover_and_add(SITE, category="tech"))

        assert result.added == [
            "https://site.example.com/news.rss",
            "https://site.example.com/atom.xml",
        ]
        assert len(result.invalid) == len(COMMON_FEED_PATHS) - 1
        assert result.error is None

        atom = registry.get_by_url("https://site.example.com/atom.xml")
        assert atom.source_type == "atom"
        assert atom.is_verified is False
        assert atom.credibility_score == 50
        assert atom.added_by == "discovery"
        assert atom.category == "tech"
        assert atom.name == "site.example.com"

    def test_rerun_reports_existing(self, registry, settings):
        finder = discovery(registry, settings, self.ROUTES)
        asyncio.run(finder.discover_and_add(SITE))
        result = asyncio.run(finder.discover_and_add(SITE, name="Site"))

        assert result.added == []
        assert len(result.existing) == 2
        assert len(registry.list_all()) == 2

    def test_unreachable_site_reported(self, registry, settings):
        finder = discovery(registry, settings, {SITE: (503, "down")})
        result = asyncio.run(finder.discover_and_add(SITE))

        assert result.error
        assert result.candidates == []
        assert registry.list_all() == []


class TestBulkDiscover:
    """Tests for multi-site discovery."""

    def test_one_failing_site_does_not_stop_others(self, registry, settings):
        routes = dict(TestDiscoverAndAdd.ROUTES)
        routes["https://broken.example.com/"] = (200, httpx.ConnectError("refused"))
        finder = discovery(registry, settings, routes)

        results = asyncio.run(finder.bulk_discover(["https://broken.example.com/", SITE]))

        assert [r.website for r in results] == ["https://broken.example.com/", SITE]
        assert results[0].error
        assert len(results[1].added) == 2
