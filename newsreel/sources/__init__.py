"""
News sources: registry, health monitoring, seeding and discovery.

Modules:
- registry (SourceRegistry): CRUD and fetch bookkeeping, the only writer of source rows
- health (HealthMonitor): disable / retry / cleanup / promotion rules
- discovery (SourceDiscovery, seed_sources): catalog seeding and feed discovery
"""

from newsreel.sources.registry import (
    SourceRegistry, DuplicateSourceError, SourceNotFoundError, SourceValidationError,
)
from newsreel.sources.health import HealthMonitor
from newsreel.sources.discovery import SourceDiscovery, seed_sources
