"""
Pipeline orchestrator: collect → dedupe → classify → persist → retention.

One run:
  1. Collect raw items from active sources (health >= COLLECT_MIN_HEALTH)
  2. Dedupe across sources, preferring the more credible source
  3. Skip items already stored (same title or same URL)
  4. Classify the rest in sequential batches of CLASSIFY_BATCH_SIZE, with
     CLASSIFY_BATCH_DELAY between batches (rate limiting)
  5. Persist accepted articles; duplicates on insert are ignored
  6. Delete articles older than RETENTION_DAYS

A classifier failure on one item is counted and the run goes on. Anything
else that escapes (e.g. the database going away) fails the run: the partial
stats are recorded and raised in a PipelineError.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

from newsreel.config import Settings, get_settings
from newsreel.database import Database
from newsreel.news.collector import FeedCollector
from newsreel.news.dedup import Deduplicator
from newsreel.schemas import PipelineStats, PublishedArticle, RawItem
from newsreel.sources.registry import SourceRegistry
from newsreel.tools.classifier import Classifier, get_classifier

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """A run failed as a whole. ``stats`` holds what was done before it did."""

    def __init__(self, message: str, stats: PipelineStats):
        super().__init__(message)
        self.stats = stats


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _batches(items: List[RawItem], size: int) -> List[List[RawItem]]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


class NewsPipeline:
    """Runs the full ingestion pipeline against one database."""

    def __init__(
        self,
        db: Database,
        settings: Optional[Settings] = None,
        registry: Optional[SourceRegistry] = None,
        collector: Optional[FeedCollector] = None,
        classifier: Optional[Classifier] = None,
        now: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.registry = registry or SourceRegistry(db)
        self.collector = collector or FeedCollector(self.registry, self.settings)
        self.classifier = classifier or get_classifier(self.settings)
        self._now = now
        self._sleep = sleep

    async def run(self) -> PipelineStats:
        stats = PipelineStats()
        started_at = self._now()
        start = time.monotonic()
        logger.info("Starting news pipeline")

        try:
            # Step 1: Collect
            sources = self.registry.list_active(min_health=self.settings.collect_min_health)
            raw_items = await self.collector.collect(sources)
            stats.collected = len(raw_items)

            if raw_items:
                # Step 2: Dedupe against live credibility
                deduplicator = Deduplicator(self.registry.credibility_map())
                unique = deduplicator.dedupe(raw_items)
                stats.deduplicated = len(unique)

                # Steps 3-4: Classify in rate-limited batches
                accepted = await self._classify_all(unique, stats)

                # Step 5: Persist
                for article in accepted:
                    if self.db.insert_article(article):
                        stats.saved += 1
                        logger.info(f"[SAVED] {article.headline[:60]}")
            else:
                logger.warning("No items collected")

            # Step 6: Retention
            stats.deleted = self.retention_sweep()

        except Exception as e:
            stats.duration = round(time.monotonic() - start, 2)
            stats.errors.append(str(e) or type(e).__name__)
            logger.error(f"Pipeline failed after {stats.duration}s: {e}")
            try:
                self._record_run(stats, "failed", started_at)
            except Exception as record_error:
                logger.error(f"Could not record failed run: {record_error}")
            raise PipelineError(f"Pipeline run failed: {e}", stats) from e

        stats.duration = round(time.monotonic() - start, 2)
        self._record_run(stats, "completed", started_at)
        logger.info(
            f"Pipeline complete in {stats.duration}s: collected={stats.collected} "
            f"unique={stats.deduplicated} accepted={stats.processed} saved={stats.saved} "
            f"failed={stats.failed} skipped={stats.skipped} deleted={stats.deleted}"
        )
        return stats

    async def _classify_all(self, items: List[RawItem], stats: PipelineStats) -> List[PublishedArticle]:
        accepted: List[PublishedArticle] = []
        batches = _batches(items, self.settings.classify_batch_size)
        for n, batch in enumerate(batches):
            results = await asyncio.gather(*[self._classify_one(item, stats) for item in batch])
            accepted.extend(r for r in results if r is not None)
            if n < len(batches) - 1 and self.settings.classify_batch_delay > 0:
                await self._sleep(self.settings.classify_batch_delay)
        return accepted

    async def _classify_one(self, item: RawItem, stats: PipelineStats) -> Optional[PublishedArticle]:
        if self.db.article_exists(item.title, item.url):
            stats.skipped += 1
            logger.debug(f"[SKIP] Already stored: {item.title[:60]}")
            return None

        try:
            verdict = await self.classifier.classify(f"{item.title}\n\n{item.content}", item.url)
        except Exception as e:
            stats.failed += 1
            logger.warning(f"[FAIL] Classifier error for {item.title[:60]}: {e}")
            return None

        if verdict is None or not verdict.is_breaking:
            stats.rejected += 1
            logger.debug(f"[REJECT] Not breaking: {item.title[:60]}")
            return None

        stats.processed += 1
        return PublishedArticle.from_verdict(item, verdict)

    def retention_sweep(self, days: Optional[int] = None) -> int:
        """Delete articles published more than ``days`` (default RETENTION_DAYS) ago."""
        days = self.settings.retention_days if days is None else days
        cutoff = self._now() - timedelta(days=days)
        deleted = self.db.delete_articles_older_than(cutoff)
        if deleted:
            logger.info(f"Deleted {deleted} articles older than {days} days")
        return deleted

    def _record_run(self, stats: PipelineStats, status: str, started_at: datetime) -> None:
        self.db.save_pipeline_run(
            stats, status=status, mock_mode=self.settings.mock_mode,
            started_at=started_at, completed_at=self._now(),
        )
