"""News API router -- list/read published articles, trigger runs, retention."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from newsreel.api.dependencies import DB, AppSettings
from newsreel.news.collector import FeedCollector
from newsreel.orchestrator import NewsPipeline, PipelineError
from newsreel.schemas import PipelineStats
from newsreel.sources.registry import SourceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/news")
async def list_news(db: DB, limit: int = Query(100, ge=1, le=500)):
    """Breaking articles, newest first."""
    articles = db.list_articles(limit=limit)
    return {"count": len(articles), "articles": articles}


@router.get("/news/{article_id}")
async def get_news(article_id: int, db: DB):
    article = db.get_article(article_id)
    if article is None:
        raise HTTPException(status_code=404, detail="Article not found")
    return article


@router.delete("/news")
async def clear_news(db: DB):
    """Delete every stored article."""
    deleted = db.clear_articles()
    logger.info(f"Cleared {deleted} articles")
    return {"deleted": deleted}


@router.post("/news/clear-old")
async def clear_old_news(request: Request, db: DB, settings: AppSettings, days: Optional[int] = Query(None, ge=0)):
    """Retention sweep with an optional custom window."""
    pipeline = NewsPipeline(db, settings=settings, classifier=request.app.state.classifier)
    deleted = pipeline.retention_sweep(days)
    return {"deleted": deleted, "days": settings.retention_days if days is None else days}


@router.post("/scrape", response_model=PipelineStats)
async def run_pipeline(request: Request, db: DB, settings: AppSettings):
    """Run the full pipeline now. 409 if a run is already in progress."""
    lock = request.app.state.pipeline_lock
    if lock.locked():
        raise HTTPException(status_code=409, detail="Pipeline already running")

    async with lock:
        registry = SourceRegistry(db)
        pipeline = NewsPipeline(
            db,
            settings=settings,
            registry=registry,
            collector=FeedCollector(registry, settings, transport=request.app.state.transport),
            classifier=request.app.state.classifier,
        )
        try:
            return await pipeline.run()
        except PipelineError as e:
            raise HTTPException(
                status_code=500,
                detail={"error": str(e), "stats": e.stats.model_dump()},
            )
