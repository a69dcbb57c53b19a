"""FastAPI dependency injection -- Depends() patterns using app.state from lifespan."""

from typing import Annotated

from fastapi import Depends, Request

from newsreel.config import Settings
from newsreel.database import Database
from newsreel.sources.health import HealthMonitor
from newsreel.sources.registry import SourceRegistry


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> SourceRegistry:
    return SourceRegistry(request.app.state.db)


def get_monitor(registry: Annotated[SourceRegistry, Depends(get_registry)]) -> HealthMonitor:
    return HealthMonitor(registry)


# Type aliases for cleaner route signatures
DB = Annotated[Database, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Registry = Annotated[SourceRegistry, Depends(get_registry)]
Monitor = Annotated[HealthMonitor, Depends(get_monitor)]
