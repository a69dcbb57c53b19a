"""
Source seeding and feed discovery.

Seeding loads the verified catalog from ``config.SEED_SOURCES``. Discovery
finds candidate feeds on an arbitrary website (``<link rel="alternate">``
tags plus the usual feed paths), keeps the ones that actually parse as
feeds, and registers them as unverified sources at neutral credibility.
The health monitor takes it from there.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import feedparser
import httpx
from bs4 import BeautifulSoup

from newsreel.config import SEED_SOURCES, Settings, get_settings
from newsreel.schemas import DiscoveryResult, SeedResult, SourceCreate, SourceType
from newsreel.sources.registry import DuplicateSourceError, SourceRegistry

logger = logging.getLogger(__name__)

FEED_LINK_TYPES = ("application/rss+xml", "application/atom+xml")

COMMON_FEED_PATHS = [
    "/rss",
    "/feed",
    "/rss.xml",
    "/feed.xml",
    "/atom.xml",
    "/feeds/posts/default",
]

DISCOVERED_CREDIBILITY = 50


def seed_sources(registry: SourceRegistry) -> SeedResult:
    """Insert every catalog source whose URL is not registered yet."""
    result = SeedResult()
    for entry in SEED_SOURCES:
        if registry.get_by_url(entry["url"]):
            result.skipped += 1
            continue
        registry.add(SourceCreate(**entry, is_verified=True, added_by="system"))
        result.added += 1
    logger.info(f"Seeding complete: {result.added} added, {result.skipped} already exist")
    return result


def find_feed_links(html_content: str, base_url: str) -> List[str]:
    """Absolute hrefs of RSS/Atom ``<link>`` tags in a page."""
    soup = BeautifulSoup(html_content, "lxml")
    links = []
    for tag in soup.find_all("link", href=True):
        link_type = (tag.get("type") or "").lower()
        if link_type in FEED_LINK_TYPES:
            links.append(urljoin(base_url, tag["href"]))
    return links


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class SourceDiscovery:
    """Finds, validates and registers feeds for arbitrary websites."""

    def __init__(
        self,
        registry: SourceRegistry,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        pause: float = 1.0,
    ):
        self.registry = registry
        self.settings = settings or get_settings()
        self._client = client
        self._transport = transport
        self.pause = pause

    @asynccontextmanager
    async def _open_client(self):
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=self.settings.fetch_timeout,
            headers={"User-Agent": self.settings.fetch_user_agent},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            yield client

    async def discover_feeds(self, website_url: str, client: Optional[httpx.AsyncClient] = None) -> List[str]:
        """Candidate feed URLs for a site: advertised links, then common paths.

        Raises httpx errors if the site itself cannot be fetched.
        """
        async with self._maybe_client(client) as http:
            response = await http.get(website_url)
            response.raise_for_status()

        candidates = find_feed_links(response.text, str(response.url))
        origin = _origin(website_url)
        candidates.extend(f"{origin}{path}" for path in COMMON_FEED_PATHS)
        # Order-preserving dedup
        return list(dict.fromkeys(candidates))

    async def validate_feed(self, url: str, client: Optional[httpx.AsyncClient] = None) -> Tuple[bool, str]:
        """(is_valid, source_type) for a candidate feed URL."""
        try:
            async with self._maybe_client(client) as http:
                response = await http.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug(f"Feed candidate unreachable {url}: {e}")
            return False, ""

        feed = feedparser.parse(response.text)
        if feed.bozo and not feed.entries:
            return False, ""
        if not feed.get("version") and not feed.entries:
            return False, ""
        kind = SourceType.ATOM.value if feed.get("version", "").startswith("atom") else SourceType.RSS.value
        return True, kind

    async def discover_and_add(
        self,
        website_url: str,
        name: Optional[str] = None,
        category: Optional[str] = None,
    ) -> DiscoveryResult:
        """Discover feeds on a site and register the valid new ones as unverified."""
        result = DiscoveryResult(website=website_url)
        async with self._open_client() as client:
            try:
                result.candidates = await self.discover_feeds(website_url, client)
            except httpx.HTTPError as e:
                result.error = str(e) or type(e).__name__
                logger.warning(f"[FAIL] Discovery on {website_url}: {result.error}")
                return result

            for feed_url in result.candidates:
                valid, kind = await self.validate_feed(feed_url, client)
                if not valid:
                    result.invalid.append(feed_url)
                    continue
                try:
                    self.registry.add(SourceCreate(
                        name=name or urlparse(website_url).hostname or website_url,
                        url=feed_url,
                        source_type=kind,
                        category=category or "general",
                        credibility_score=DISCOVERED_CREDIBILITY,
                        is_verified=False,
                        added_by="discovery",
                    ))
                    result.added.append(feed_url)
                except DuplicateSourceError:
                    result.existing.append(feed_url)

        logger.info(
            f"Discovery on {website_url}: {len(result.added)} added, "
            f"{len(result.existing)} existing, {len(result.invalid)} invalid"
        )
        return result

    async def bulk_discover(self, websites: Iterable[str]) -> List[DiscoveryResult]:
        """Run discovery site by site with a pause in between."""
        results = []
        sites = list(websites)
        for i, website in enumerate(sites):
            try:
                results.append(await self.discover_and_add(website))
            except Exception as e:
                logger.warning(f"[FAIL] Discovery on {website}: {e}")
                results.append(DiscoveryResult(website=website, error=str(e) or type(e).__name__))
            if i < len(sites) - 1 and self.pause:
                await asyncio.sleep(self.pause)
        return results

    @asynccontextmanager
    async def _maybe_client(self, client: Optional[httpx.AsyncClient]):
        if client is not None:
            yield client
        else:
            async with self._open_client() as opened:
                yield opened
