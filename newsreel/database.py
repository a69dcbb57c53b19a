"""
SQLite database: stores news sources, published articles and pipeline runs.

Tables:
  - news_sources: Source configuration plus live fetch statistics
  - articles: Classifier-accepted articles, unique on (headline, source_url)
  - pipeline_runs: Run history with status, counts, timing

Source rows are read and written by ``newsreel.sources.registry`` only.
Timestamps are stored as naive UTC.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    create_engine, Column, String, Integer, Float, Text, DateTime, Boolean,
    UniqueConstraint, or_,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from contextlib import contextmanager

from .config import get_settings
from .schemas import PipelineStats, PublishedArticle

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_storage(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware or naive datetime to naive UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def from_storage(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive stored datetime."""
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def dump_json(value) -> Optional[str]:
    return None if value is None else json.dumps(value)


def load_json(raw: Optional[str], default=None):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Unreadable JSON column value: {raw[:80]!r}")
        return default


# ── Models ───────────────────────────────────────────────────────────────────

class SourceModel(Base):
    """A configured news source and its fetch history."""
    __tablename__ = "news_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    url = Column(String(1000), nullable=False, unique=True)
    source_type = Column(String(20), nullable=False, default="rss")
    category = Column(String(100), default="general")
    language = Column(String(10), default="en")
    country = Column(String(10))
    credibility_score = Column(Integer, default=50)
    is_active = Column(Boolean, default=True, index=True)
    is_verified = Column(Boolean, default=False)

    selector = Column(String(500))
    fetch_config = Column(Text)  # JSON object

    # Health tracking
    last_fetch_at = Column(DateTime)
    last_success_at = Column(DateTime)
    last_error = Column(Text)
    fetch_count = Column(Integer, default=0)
    success_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    avg_items_per_fetch = Column(Float, default=0.0)
    health_score = Column(Integer, default=100)

    added_by = Column(String(50), default="manual")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", Text)  # JSON object


class ArticleModel(Base):
    """Published (classifier-accepted) article."""
    __tablename__ = "articles"
    __table_args__ = (
        UniqueConstraint("headline", "source_url", name="uq_article_headline_url"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    headline = Column(String(500), nullable=False)
    summary = Column(Text, default="")
    full_text = Column(Text, default="")
    source_url = Column(String(1000), nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)
    credibility_score = Column(Integer, default=50)
    is_breaking = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    meta = Column("metadata", Text)  # JSON object


class PipelineRunModel(Base):
    """Pipeline run history."""
    __tablename__ = "pipeline_runs"

    id = Column(String(50), primary_key=True)
    status = Column(String(20), default="running")
    mock_mode = Column(Boolean, default=False)
    collected = Column(Integer, default=0)
    deduplicated = Column(Integer, default=0)
    processed = Column(Integer, default=0)
    saved = Column(Integer, default=0)
    failed = Column(Integer, default=0)
    skipped = Column(Integer, default=0)
    rejected = Column(Integer, default=0)
    deleted = Column(Integer, default=0)
    errors = Column(Text)  # JSON array
    run_time_seconds = Column(Float, default=0)
    started_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime)


def _article_from_row(row: ArticleModel) -> PublishedArticle:
    return PublishedArticle(
        id=row.id,
        headline=row.headline,
        summary=row.summary or "",
        full_text=row.full_text or "",
        source_url=row.source_url,
        published_at=from_storage(row.timestamp),
        credibility_score=row.credibility_score,
        created_at=from_storage(row.created_at),
        is_breaking=bool(row.is_breaking),
        metadata=load_json(row.meta, {}),
    )


# ── Database class ───────────────────────────────────────────────────────────

class Database:
    """Database manager: one engine, sessions handed out per unit of work."""

    def __init__(self, database_url: Optional[str] = None):
        settings = get_settings()
        url = database_url or settings.database_url

        connect_args = {}
        if url.startswith("sqlite"):
            # Collector tasks and FastAPI's threadpool share the engine
            connect_args["check_same_thread"] = False
            path = url.split("///", 1)[-1]
            if path and path != ":memory:":
                Path(path).parent.mkdir(parents=True, exist_ok=True)

        self.url = url
        self.engine = create_engine(url, echo=False, connect_args=connect_args)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self):
        """Create all tables (safe to call multiple times)."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Session:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Articles ──────────────────────────────────────────────────────

    def insert_article(self, article: PublishedArticle) -> bool:
        """Insert an article. Returns False if (headline, source_url) already exists."""
        try:
            with self.get_session() as session:
                session.add(ArticleModel(
                    headline=article.headline,
                    summary=article.summary,
                    full_text=article.full_text,
                    source_url=article.source_url,
                    timestamp=to_storage(article.published_at),
                    credibility_score=article.credibility_score,
                    is_breaking=article.is_breaking,
                    created_at=to_storage(article.created_at) or utcnow(),
                    meta=dump_json(article.metadata),
                ))
        except IntegrityError:
            logger.debug(f"[DUP] Article already stored: {article.headline[:60]}")
            return False
        return True

    def article_exists(self, headline: str, source_url: str) -> bool:
        """True if any article has this headline or this source URL."""
        with self.get_session() as session:
            row = session.query(ArticleModel.id).filter(
                or_(ArticleModel.headline == headline, ArticleModel.source_url == source_url)
            ).first()
            return row is not None

    def list_articles(self, limit: int = 50, breaking_only: bool = True) -> List[PublishedArticle]:
        """Newest articles first."""
        with self.get_session() as session:
            q = session.query(ArticleModel)
            if breaking_only:
                q = q.filter(ArticleModel.is_breaking.is_(True))
            rows = q.order_by(ArticleModel.timestamp.desc(), ArticleModel.id.desc()).limit(limit).all()
            return [_article_from_row(r) for r in rows]

    def get_article(self, article_id: int) -> Optional[PublishedArticle]:
        with self.get_session() as session:
            row = session.get(ArticleModel, article_id)
            return _article_from_row(row) if row else None

    def delete_articles_older_than(self, cutoff: datetime) -> int:
        """Delete articles whose timestamp is strictly before ``cutoff``."""
        with self.get_session() as session:
            return session.query(ArticleModel).filter(
                ArticleModel.timestamp < to_storage(cutoff)
            ).delete(synchronize_session=False)

    def clear_articles(self) -> int:
        with self.get_session() as session:
            return session.query(ArticleModel).delete(synchronize_session=False)

    def count_articles(self) -> int:
        with self.get_session() as session:
            return session.query(ArticleModel).count()

    # ── Pipeline Runs ─────────────────────────────────────────────────

    def save_pipeline_run(
        self,
        stats: PipelineStats,
        status: str = "completed",
        mock_mode: bool = False,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
        run_id: Optional[str] = None,
    ) -> str:
        """Save a pipeline run record."""
        run_id = run_id or uuid.uuid4().hex[:12]
        with self.get_session() as session:
            run = PipelineRunModel(
                id=run_id,
                status=status,
                mock_mode=mock_mode,
                collected=stats.collected,
                deduplicated=stats.deduplicated,
                processed=stats.processed,
                saved=stats.saved,
                failed=stats.failed,
                skipped=stats.skipped,
                rejected=stats.rejected,
                deleted=stats.deleted,
                errors=json.dumps(stats.errors),
                run_time_seconds=stats.duration,
                started_at=to_storage(started_at) or utcnow(),
                completed_at=to_storage(completed_at) or utcnow(),
            )
            session.merge(run)  # merge = upsert
            return run_id

    def get_pipeline_runs(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Get recent pipeline runs."""
        with self.get_session() as session:
            runs = session.query(PipelineRunModel).order_by(
                PipelineRunModel.started_at.desc()
            ).limit(limit).all()
            return [
                {
                    "run_id": r.id,
                    "status": r.status,
                    "mock_mode": r.mock_mode,
                    "collected": r.collected,
                    "deduplicated": r.deduplicated,
                    "processed": r.processed,
                    "saved": r.saved,
                    "failed": r.failed,
                    "skipped": r.skipped,
                    "rejected": r.rejected,
                    "deleted": r.deleted,
                    "run_time_seconds": r.run_time_seconds,
                    "errors": load_json(r.errors, []),
                    "started_at": r.started_at.isoformat() if r.started_at else None,
                    "completed_at": r.completed_at.isoformat() if r.completed_at else None,
                }
                for r in runs
            ]


# ── Singleton ────────────────────────────────────────────────────────────────

_db: Optional[Database] = None


def get_database() -> Database:
    """Get or create database instance."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db
