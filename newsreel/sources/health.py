"""
Source health monitor: promotion, demotion, retry and cleanup rules.

Walks the registry and moves sources through their lifecycle based on
accumulated fetch statistics:

  Active/Healthy   health >= 50, or too few fetches to judge
  Active/Degraded  fetch_count >= 5 and health < 50 (warning only)
  Disabled         fetch_count >= 10 and health < 20 → is_active = False
  Re-enabled       disabled for >= 7 days → active again, health reset to 50
  Removed          unverified, disabled, >= 20 fetches, health < 10,
                   retried >= 3 times → deleted

Credibility promotion: health >= 95 over >= 20 fetches earns +5
credibility (capped at 95) while credibility is below 90.

Every rule is idempotent. Re-running with unchanged stats changes nothing.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from newsreel.schemas import (
    CleanupResult, HealthBand, HealthCheckResult, HealthReport, MaintenanceResult,
    RetryResult, Source, band_for,
)
from newsreel.sources.registry import SourceRegistry

logger = logging.getLogger(__name__)

# ── Thresholds ───────────────────────────────────────────────────────────────

DEGRADED_MIN_FETCHES = 5
DEGRADED_HEALTH = 50

DISABLE_MIN_FETCHES = 10
DISABLE_HEALTH = 20
DISABLED_REASON = "Low health score"

RETRY_AFTER = timedelta(days=7)
RETRY_HEALTH = 50

PROMOTE_HEALTH = 95
PROMOTE_MIN_FETCHES = 20
PROMOTE_BELOW = 90
PROMOTE_STEP = 5
PROMOTE_CAP = 95

REMOVE_MIN_FETCHES = 20
REMOVE_HEALTH = 10
REMOVE_MIN_RETRIES = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class HealthMonitor:
    """Applies lifecycle rules to every source in the registry."""

    def __init__(self, registry: SourceRegistry, now: Callable[[], datetime] = _utcnow):
        self.registry = registry
        self._now = now

    # ── Health checks ─────────────────────────────────────────────────

    def run_health_checks(self) -> HealthCheckResult:
        """Disable failing sources, warn on degraded ones, promote reliable ones."""
        result = HealthCheckResult()
        for source in self.registry.list_all():
            result.checked += 1
            if source.is_active:
                if self._should_disable(source):
                    self._disable(source)
                    result.disabled.append(source.name)
                elif self._is_degraded(source):
                    logger.warning(
                        f"Degraded source: {source.name} (health {source.health_score}%, "
                        f"{source.fetch_count} fetches)"
                    )
                    result.degraded.append(source.name)
            if self._should_promote(source):
                self._promote(source)
                result.promoted.append(source.name)

        logger.info(
            f"Health checks complete: {len(result.disabled)} disabled, "
            f"{len(result.degraded)} degraded, {len(result.promoted)} promoted"
        )
        return result

    @staticmethod
    def _should_disable(source: Source) -> bool:
        return source.fetch_count >= DISABLE_MIN_FETCHES and source.health_score < DISABLE_HEALTH

    @staticmethod
    def _is_degraded(source: Source) -> bool:
        return source.fetch_count >= DEGRADED_MIN_FETCHES and source.health_score < DEGRADED_HEALTH

    @staticmethod
    def _should_promote(source: Source) -> bool:
        if source.health_score < PROMOTE_HEALTH or source.fetch_count < PROMOTE_MIN_FETCHES:
            return False
        if source.credibility_score >= PROMOTE_BELOW:
            return False
        # One promotion per observed fetch history
        return source.metadata.get("promoted_at_fetch_count") != source.fetch_count

    def _disable(self, source: Source) -> None:
        metadata = dict(source.metadata)
        metadata["disabled_reason"] = DISABLED_REASON
        metadata["disabled_at"] = self._now().isoformat()
        self.registry.update(source.id, {"is_active": False, "metadata": metadata})
        logger.info(f"[DISABLED] {source.name} (health {source.health_score}%)")

    def _promote(self, source: Source) -> None:
        new_score = min(source.credibility_score + PROMOTE_STEP, PROMOTE_CAP)
        metadata = dict(source.metadata)
        metadata["promoted_at_fetch_count"] = source.fetch_count
        self.registry.update(source.id, {"credibility_score": new_score, "metadata": metadata})
        logger.info(f"[PROMOTED] {source.name}: credibility {source.credibility_score} -> {new_score}")

    # ── Retry ─────────────────────────────────────────────────────────

    def retry_disabled(self) -> RetryResult:
        """Re-enable sources that have been disabled for at least a week."""
        result = RetryResult()
        now = self._now()
        for source in self.registry.list_all():
            if source.is_active:
                continue
            result.checked += 1
            disabled_at = _parse_time(source.metadata.get("disabled_at"))
            # No recorded disable time: treat as long overdue
            if disabled_at is not None and now - disabled_at < RETRY_AFTER:
                continue

            metadata = dict(source.metadata)
            metadata["re_enabled_at"] = now.isoformat()
            metadata["retry_count"] = int(metadata.get("retry_count") or 0) + 1
            self.registry.update(source.id, {
                "is_active": True,
                "health_score": RETRY_HEALTH,
                "metadata": metadata,
            })
            result.re_enabled.append(source.name)
            logger.info(f"[RETRY] Re-enabled {source.name} (retry #{metadata['retry_count']})")

        logger.info(f"Re-enabled {len(result.re_enabled)}/{result.checked} disabled sources")
        return result

    # ── Cleanup ───────────────────────────────────────────────────────

    def cleanup_failed(self) -> CleanupResult:
        """Delete unverified sources that kept failing across several retries."""
        result = CleanupResult()
        for source in self.registry.list_all():
            if self._should_remove(source):
                self.registry.delete(source.id)
                result.removed.append(source.name)
                logger.info(f"[REMOVED] {source.name} ({source.url})")
        logger.info(f"Cleanup complete: {len(result.removed)} sources removed")
        return result

    @staticmethod
    def _should_remove(source: Source) -> bool:
        retry_count = int(source.metadata.get("retry_count") or 0)
        return (
            not source.is_verified
            and not source.is_active
            and source.fetch_count >= REMOVE_MIN_FETCHES
            and source.health_score < REMOVE_HEALTH
            and retry_count >= REMOVE_MIN_RETRIES
        )

    # ── Reporting ─────────────────────────────────────────────────────

    def report(self) -> HealthReport:
        distribution = {band.value: 0 for band in HealthBand}
        for source in self.registry.list_all():
            distribution[band_for(source.health_score).value] += 1
        return HealthReport(stats=self.registry.stats(), distribution=distribution)

    def run_all(self) -> MaintenanceResult:
        """Health checks, then retry, then cleanup."""
        return MaintenanceResult(
            health=self.run_health_checks(),
            retry=self.retry_disabled(),
            cleanup=self.cleanup_failed(),
        )
