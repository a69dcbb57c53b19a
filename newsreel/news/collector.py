"""
Feed collector: fetch raw items from every active source concurrently.

Each source is fetched in its own task. A failing source is logged and
booked as a failed attempt on the registry; it never takes the rest of
the run down with it. Results come back in the order the sources were
given, whichever finished first.

Per source:
  1. GET the feed (bounded timeout, bot user agent)
  2. Parse, keep the first MAX_ITEMS_PER_SOURCE entries
  3. Skip entries without a title or without a link
  4. Snippet from summary/content; if shorter than MIN_CONTENT_LENGTH,
     fetch the linked page and extract the body
  5. Book the attempt: success means no error AND at least one item
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, List, Optional

import feedparser
import httpx

from newsreel.config import Settings, get_settings
from newsreel.schemas import RawItem, Source, SourceType
from newsreel.sources.registry import SourceNotFoundError, SourceRegistry
from newsreel.news.scraper import (
    extract_article_text, fetch_article_text, html_to_text, page_title,
)

logger = logging.getLogger(__name__)

NO_ITEMS_ERROR = "no items returned"

_FEED_KINDS = {SourceType.RSS.value, SourceType.ATOM.value}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def entry_snippet(entry) -> str:
    """Plain-text snippet of a feed entry: summary first, then content."""
    raw = entry.get("summary") or ""
    if not raw:
        content = entry.get("content") or []
        if content:
            raw = content[0].get("value", "") or ""
    return html_to_text(raw)


def entry_published(entry) -> Optional[datetime]:
    """Entry timestamp as aware UTC, or None if the feed gave none."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


class FeedCollector:
    """Collects RawItems from sources and reports every attempt to the registry."""

    def __init__(
        self,
        registry: SourceRegistry,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.registry = registry
        self.settings = settings or get_settings()
        self._client = client
        self._transport = transport
        self._now = now

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

    async def collect(self, sources: List[Source]) -> List[RawItem]:
        """Fetch every source concurrently and return the union of their items."""
        if not sources:
            logger.info("No active sources to collect from")
            return []

        async with self._open_client() as client:
            # Let every task settle before the client closes
            results = await asyncio.gather(
                *[self._collect_source(source, client) for source in sources],
                return_exceptions=True,
            )

        # Source failures are handled per task; anything left is systemic
        for result in results:
            if isinstance(result, BaseException):
                raise result

        items = [item for batch in results for item in batch]
        ok = sum(1 for batch in results if batch)
        logger.info(f"Collected {len(items)} items from {ok}/{len(sources)} sources")
        return items

    async def _collect_source(self, source: Source, client: httpx.AsyncClient) -> List[RawItem]:
        error: Optional[str] = None
        items: List[RawItem] = []
        try:
            items = await self.fetch_source(source, client)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.warning(f"[FAIL] {source.name}: {error}")

        success = error is None and len(items) > 0
        if error is None and not items:
            error = NO_ITEMS_ERROR
            logger.warning(f"[FAIL] {source.name}: {NO_ITEMS_ERROR}")
        elif success:
            logger.info(f"[OK] {source.name}: {len(items)} items")

        try:
            self.registry.record_fetch_attempt(
                source.id, success=success, item_count=len(items),
                error=None if success else error,
            )
        except SourceNotFoundError:
            logger.warning(f"Source {source.name} was removed during collection")
        return items

    async def fetch_source(self, source: Source, client: httpx.AsyncClient) -> List[RawItem]:
        """Fetch one source by kind. Raises on network/parse failure."""
        kind = source.source_type
        if kind in _FEED_KINDS:
            return await self._fetch_feed(source, client)
        if kind == SourceType.HTML.value:
            return await self._fetch_page(source, client)
        raise ValueError(f"unsupported source type: {kind}")

    async def _fetch_feed(self, source: Source, client: httpx.AsyncClient) -> List[RawItem]:
        response = await client.get(source.url)
        response.raise_for_status()

        feed = feedparser.parse(response.text)
        if feed.bozo and not feed.entries:
            raise ValueError(f"malformed feed: {feed.get('bozo_exception', 'parse error')}")

        items = []
        for entry in feed.entries[:self.settings.max_items_per_source]:
            item = self._parse_entry(entry, source)
            if item:
                items.append(item)

        return list(await asyncio.gather(
            *[self._enrich(item, client, source.selector) for item in items]
        ))

    def _parse_entry(self, entry, source: Source) -> Optional[RawItem]:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            logger.debug(f"[SKIP] {source.name}: entry without title/link")
            return None
        return RawItem(
            title=title,
            content=entry_snippet(entry),
            url=link,
            source=source.name,
            published_at=entry_published(entry) or self._now(),
        )

    async def _enrich(self, item: RawItem, client: httpx.AsyncClient, selector: Optional[str]) -> RawItem:
        """Swap a short snippet for the full article body when one can be found."""
        min_length = self.settings.min_content_length
        if len(item.content) >= min_length:
            return item
        text = await fetch_article_text(item.url, client, selector=selector, min_length=min_length)
        if text:
            return item.model_copy(update={"content": text})
        return item

    async def _fetch_page(self, source: Source, client: httpx.AsyncClient) -> List[RawItem]:
        response = await client.get(source.url)
        response.raise_for_status()

        body = extract_article_text(
            response.text, selector=source.selector,
            min_length=self.settings.min_content_length,
        )
        if not body:
            return []
        return [RawItem(
            title=page_title(response.text) or source.name,
            content=body,
            url=str(response.url),
            source=source.name,
            published_at=self._now(),
        )]
