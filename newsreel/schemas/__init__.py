"""
Schemas package: all data models for the newsreel pipeline.

Models are organized by domain in submodules:
  - base.py: SourceType, HealthBand and score helpers
  - news.py: Source, SourceCreate, SourceUpdate, RawItem, ClassifierVerdict, PublishedArticle
  - pipeline.py: run statistics and health/discovery results
"""

from newsreel.schemas.base import (
    SourceType, HealthBand, clamp_score, round_half_up, percent, band_for,
)

from newsreel.schemas.news import (
    Source, SourceCreate, SourceUpdate, RawItem, ClassifierVerdict, PublishedArticle,
)

from newsreel.schemas.pipeline import (
    PipelineStats, SourceStats, HealthCheckResult, RetryResult, CleanupResult,
    HealthReport, MaintenanceResult, DiscoveryResult, SeedResult,
)

__all__ = [
    # base
    "SourceType", "HealthBand", "clamp_score", "round_half_up", "percent", "band_for",
    # news
    "Source", "SourceCreate", "SourceUpdate", "RawItem", "ClassifierVerdict", "PublishedArticle",
    # pipeline
    "PipelineStats", "SourceStats", "HealthCheckResult", "RetryResult", "CleanupResult",
    "HealthReport", "MaintenanceResult", "DiscoveryResult", "SeedResult",
]
