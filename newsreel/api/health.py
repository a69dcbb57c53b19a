"""Health check router -- service status, DB status, config summary."""

from datetime import datetime, timezone

from fastapi import APIRouter

from newsreel.api.dependencies import DB, AppSettings

router = APIRouter()


@router.get("/")
async def root():
    return {"service": "Newsreel API", "version": "0.1.0"}


@router.get("/health")
async def health(db: DB, settings: AppSettings):
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "articles": db.count_articles(),
        "config": {
            "mock_mode": settings.mock_mode,
            "classifier_model": settings.classifier_model,
            "max_items_per_source": settings.max_items_per_source,
            "collect_min_health": settings.collect_min_health,
            "classify_batch_size": settings.classify_batch_size,
            "retention_days": settings.retention_days,
        },
    }
