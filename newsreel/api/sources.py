"""Sources API router -- source CRUD, seeding, discovery and health maintenance.

Routes only call the registry / monitor / discovery and marshal results.
Input problems come back as 400, unknown ids as 404.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from newsreel.api.dependencies import AppSettings, Monitor, Registry
from newsreel.schemas import (
    CleanupResult, DiscoveryResult, HealthCheckResult, RetryResult, SeedResult, Source,
    SourceUpdate,
)
from newsreel.sources.discovery import SourceDiscovery, seed_sources
from newsreel.sources.registry import (
    DuplicateSourceError, SourceNotFoundError, SourceValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sources")


class DiscoverRequest(BaseModel):
    url: str
    name: Optional[str] = None
    category: Optional[str] = None


class BulkDiscoverRequest(BaseModel):
    urls: List[str] = Field(min_length=1)


@router.get("")
async def list_sources(
    registry: Registry,
    active: bool = Query(False, description="Only active sources"),
    min_health: int = Query(0, ge=0, le=100),
):
    sources = registry.list_all(active_only=active, min_health=min_health)
    return {"count": len(sources), "sources": sources}


@router.get("/stats")
async def source_stats(monitor: Monitor):
    """Registry aggregates plus the health distribution."""
    return monitor.report()


@router.get("/{source_id}", response_model=Source)
async def get_source(source_id: int, registry: Registry):
    source = registry.get_by_id(source_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    return source


@router.post("", response_model=Source, status_code=201)
async def add_source(body: Dict[str, Any], registry: Registry):
    try:
        return registry.add(body)
    except (SourceValidationError, DuplicateSourceError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{source_id}", response_model=Source)
async def update_source(source_id: int, body: SourceUpdate, registry: Registry):
    try:
        return registry.upsert(body, source_id=source_id)
    except SourceNotFoundError:
        raise HTTPException(status_code=404, detail="Source not found")
    except (SourceValidationError, DuplicateSourceError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{source_id}")
async def delete_source(source_id: int, registry: Registry):
    if not registry.delete(source_id):
        raise HTTPException(status_code=404, detail="Source not found")
    return {"deleted": source_id}


@router.post("/seed", response_model=SeedResult)
async def seed(registry: Registry):
    return seed_sources(registry)


@router.post("/discover", response_model=DiscoveryResult)
async def discover(body: DiscoverRequest, request: Request, registry: Registry, settings: AppSettings):
    discovery = SourceDiscovery(registry, settings, transport=request.app.state.transport)
    return await discovery.discover_and_add(body.url, name=body.name, category=body.category)


@router.post("/discover/bulk", response_model=List[DiscoveryResult])
async def discover_bulk(body: BulkDiscoverRequest, request: Request, registry: Registry, settings: AppSettings):
    discovery = SourceDiscovery(registry, settings, transport=request.app.state.transport)
    return await discovery.bulk_discover(body.urls)


@router.post("/health-check", response_model=HealthCheckResult)
async def health_check(monitor: Monitor):
    return monitor.run_health_checks()


@router.post("/retry-disabled", response_model=RetryResult)
async def retry_disabled(monitor: Monitor):
    return monitor.retry_disabled()


@router.post("/cleanup", response_model=CleanupResult)
async def cleanup(monitor: Monitor):
    return monitor.cleanup_failed()
