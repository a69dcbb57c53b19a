"""
Common enums and helpers shared by every schema module.

Scores in this system are integers on a 0-100 scale. Anything that
produces a score goes through ``clamp_score`` so stored values never
leave that range.
"""

from enum import Enum


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════════════════════

class SourceType(str, Enum):
    """How a source's endpoint is fetched and parsed."""
    RSS = "rss"
    ATOM = "atom"
    HTML = "html"
    API = "api"
    SITEMAP = "sitemap"


class HealthBand(str, Enum):
    """Buckets used by the health report."""
    EXCELLENT = "excellent"   # >= 90
    GOOD = "good"             # 70-89
    FAIR = "fair"             # 50-69
    POOR = "poor"             # < 50


# ══════════════════════════════════════════════════════════════════════════════
# SCORE HELPERS
# ══════════════════════════════════════════════════════════════════════════════

SCORE_MIN = 0
SCORE_MAX = 100


def clamp_score(value) -> int:
    """Coerce a score to an int inside [0, 100]."""
    if value is None:
        return SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, int(value)))


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer ``round(numerator / denominator)`` with halves rounded up.

    Python's ``round`` uses banker's rounding; scores must not depend on it.
    """
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def percent(part: int, whole: int) -> int:
    """``round(100 * part / whole)`` half-up, 0 when ``whole`` is 0."""
    return round_half_up(100 * part, whole)


def band_for(health_score: int) -> HealthBand:
    if health_score >= 90:
        return HealthBand.EXCELLENT
    if health_score >= 70:
        return HealthBand.GOOD
    if health_score >= 50:
        return HealthBand.FAIR
    return HealthBand.POOR
