"""
Run statistics and health-monitor result models.

These are what the orchestrator, the registry and the health monitor hand
back to callers (CLI, HTTP routes, tests). None of them are persisted
directly; pipeline runs are recorded from ``PipelineStats`` by the database
layer.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class PipelineStats(BaseModel):
    """Counters for one collect → dedupe → classify → persist run."""
    collected: int = 0
    deduplicated: int = 0
    processed: int = 0        # classifier accepted as breaking
    saved: int = 0
    failed: int = 0           # classifier raised
    skipped: int = 0          # already stored before classification
    rejected: int = 0         # classifier said not breaking / no verdict
    deleted: int = 0          # retention sweep
    duration: float = 0.0     # seconds
    errors: List[str] = Field(default_factory=list)


class SourceStats(BaseModel):
    """Registry-wide aggregates."""
    total: int = 0
    active: int = 0
    verified: int = 0
    avg_health: int = 0
    avg_credibility: int = 0
    total_fetches: int = 0
    total_successes: int = 0
    success_rate: int = 0


class HealthCheckResult(BaseModel):
    checked: int = 0
    disabled: List[str] = Field(default_factory=list)
    degraded: List[str] = Field(default_factory=list)
    promoted: List[str] = Field(default_factory=list)


class RetryResult(BaseModel):
    checked: int = 0
    re_enabled: List[str] = Field(default_factory=list)


class CleanupResult(BaseModel):
    removed: List[str] = Field(default_factory=list)


class HealthReport(BaseModel):
    """Aggregates plus how many sources sit in each health band."""
    stats: SourceStats
    distribution: Dict[str, int] = Field(default_factory=dict)


class MaintenanceResult(BaseModel):
    """Everything ``HealthMonitor.run_all`` did, in order."""
    health: HealthCheckResult
    retry: RetryResult
    cleanup: CleanupResult


class DiscoveryResult(BaseModel):
    website: str
    candidates: List[str] = Field(default_factory=list)
    added: List[str] = Field(default_factory=list)
    existing: List[str] = Field(default_factory=list)
    invalid: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class SeedResult(BaseModel):
    added: int = 0
    skipped: int = 0
