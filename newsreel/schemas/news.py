"""
Source and article data models.

These models represent the raw material of the pipeline and its output:
the sources content is fetched from, the raw items those fetches produce,
and the articles that survive dedup and classification.

Flow: Source → RawItem → (dedup, classifier) → PublishedArticle
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator

from .base import SourceType, clamp_score


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════════════════════
# SOURCES
# ══════════════════════════════════════════════════════════════════════════════

class Source(BaseModel):
    """A configured content origin plus its live fetch statistics."""
    id: int
    name: str
    url: str
    source_type: SourceType = SourceType.RSS
    category: str = "general"
    language: str = "en"
    country: Optional[str] = None
    credibility_score: int = 50
    is_active: bool = True
    is_verified: bool = False

    # Fetch hints
    selector: Optional[str] = None
    fetch_config: Optional[Dict[str, Any]] = None

    # Health tracking (owned by SourceRegistry.record_fetch_attempt)
    last_fetch_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error: Optional[str] = None
    fetch_count: int = 0
    success_count: int = 0
    error_count: int = 0
    avg_items_per_fetch: float = 0.0
    health_score: int = 100

    added_by: str = "manual"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('credibility_score', 'health_score', mode='before')
    @classmethod
    def clamp_scores(cls, v):
        return clamp_score(v)

    @field_validator('metadata', mode='before')
    @classmethod
    def coerce_metadata(cls, v):
        return v or {}

    class Config:
        use_enum_values = True


class SourceCreate(BaseModel):
    """Input for adding a source by hand (or from discovery/seeding)."""
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    source_type: SourceType
    category: str = "general"
    language: str = "en"
    country: Optional[str] = None
    credibility_score: int = 50
    is_active: bool = True
    is_verified: bool = False
    selector: Optional[str] = None
    fetch_config: Optional[Dict[str, Any]] = None
    added_by: str = "manual"
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('name', 'url', mode='before')
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('credibility_score', mode='before')
    @classmethod
    def clamp_credibility(cls, v):
        return clamp_score(v)

    class Config:
        use_enum_values = True


class SourceUpdate(BaseModel):
    """Partial update. Only fields that were explicitly set are applied.

    Health score and fetch counters are not updatable here: they only
    change through fetch bookkeeping and the health monitor.
    """
    name: Optional[str] = None
    url: Optional[str] = None
    source_type: Optional[SourceType] = None
    category: Optional[str] = None
    language: Optional[str] = None
    country: Optional[str] = None
    credibility_score: Optional[int] = None
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None
    selector: Optional[str] = None
    fetch_config: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('credibility_score', mode='before')
    @classmethod
    def clamp_credibility(cls, v):
        return None if v is None else clamp_score(v)

    class Config:
        use_enum_values = True


# ══════════════════════════════════════════════════════════════════════════════
# ITEMS AND ARTICLES
# ══════════════════════════════════════════════════════════════════════════════

class RawItem(BaseModel):
    """One entry collected from a source, before dedup/classification.

    Lives for a single pipeline run and is never stored as-is.
    """
    title: str
    content: str = ""
    url: str
    source: str
    published_at: datetime = Field(default_factory=_now)


class ClassifierVerdict(BaseModel):
    """What the breaking-news classifier says about one item."""
    is_breaking: bool = Field(description="True only for genuinely new, urgent, newsworthy events")
    headline: str = Field(default="", description="Concise headline, max ~15 words")
    summary: str = Field(default="", description="2-3 sentence neutral summary")
    full_text: str = Field(default="", description="Cleaned body text of the story")
    credibility_score: int = Field(default=50, description="0-100 confidence the report is accurate")

    @field_validator('headline', 'summary', 'full_text', mode='before')
    @classmethod
    def coerce_str_fields(cls, v):
        if v is None:
            return ""
        return str(v)

    @field_validator('credibility_score', mode='before')
    @classmethod
    def clamp_credibility(cls, v):
        return clamp_score(v)


class PublishedArticle(BaseModel):
    """An accepted, classified article. Unique on (headline, source_url)."""
    id: Optional[int] = None
    headline: str
    summary: str = ""
    full_text: str = ""
    source_url: str
    published_at: datetime = Field(default_factory=_now)
    credibility_score: int = 50
    created_at: Optional[datetime] = None
    is_breaking: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('credibility_score', mode='before')
    @classmethod
    def clamp_credibility(cls, v):
        return clamp_score(v)

    @field_validator('metadata', mode='before')
    @classmethod
    def coerce_metadata(cls, v):
        return v or {}

    @classmethod
    def from_verdict(cls, item: RawItem, verdict: ClassifierVerdict) -> "PublishedArticle":
        """Build the stored article for an item the classifier accepted."""
        return cls(
            headline=verdict.headline or item.title,
            summary=verdict.summary,
            full_text=verdict.full_text or item.content,
            source_url=item.url,
            published_at=item.published_at,
            credibility_score=verdict.credibility_score,
            is_breaking=verdict.is_breaking,
            metadata={"source_name": item.source, "original_title": item.title},
        )
