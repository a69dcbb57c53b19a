"""
Configuration management for the Newsreel breaking-news pipeline.

Settings are read from environment variables (and an optional .env file).
The seed source catalog lives here too, next to the settings that control
how often and how hard those sources are hit.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str = Field(default="sqlite:///./data/news.db", alias="DATABASE_URL")

    # ── Collection ──
    # Every network call (feed, full article, discovery) is bounded by this.
    fetch_timeout: float = Field(default=10.0, alias="FETCH_TIMEOUT")
    fetch_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; NewsBot/1.0)",
        alias="FETCH_USER_AGENT",
    )
    # Only the first N feed entries are looked at per source per run
    max_items_per_source: int = Field(default=10, alias="MAX_ITEMS_PER_SOURCE")
    # Snippets shorter than this trigger a full-article fetch
    min_content_length: int = Field(default=200, alias="MIN_CONTENT_LENGTH")
    # Sources below this health score are not collected from
    collect_min_health: int = Field(default=30, alias="COLLECT_MIN_HEALTH")

    # ── Classification (rate limiting against the LLM provider) ──
    classify_batch_size: int = Field(default=5, alias="CLASSIFY_BATCH_SIZE")
    classify_batch_delay: float = Field(default=1.0, alias="CLASSIFY_BATCH_DELAY")
    classifier_model: str = Field(default="openai:gpt-4o-mini", alias="CLASSIFIER_MODEL")
    classifier_max_chars: int = Field(default=8000, alias="CLASSIFIER_MAX_CHARS")
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")

    # ── Retention ──
    retention_days: int = Field(default=7, alias="RETENTION_DAYS")

    # Keyword classifier instead of the LLM (no external calls)
    mock_mode: bool = Field(default=False, alias="MOCK_MODE")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Verified sources the registry is seeded with. Credibility is the starting
# point only; the health monitor adjusts it from fetch history.
SEED_SOURCES = [
    # ─────────────────────────────────────────────────────────────────────────
    # Major global news
    # ─────────────────────────────────────────────────────────────────────────
    {"name": "BBC News", "url": "http://feeds.bbci.co.uk/news/rss.xml", "source_type": "rss", "category": "world", "country": "UK", "credibility_score": 95},
    {"name": "Reuters", "url": "https://feeds.reuters.com/reuters/topNews", "source_type": "rss", "category": "world", "credibility_score": 95},
    {"name": "Associated Press", "url": "https://feeds.apnews.com/rss/apnews/topnews", "source_type": "rss", "category": "world", "credibility_score": 95},
    {"name": "NPR News", "url": "https://feeds.npr.org/1001/rss.xml", "source_type": "rss", "category": "us", "country": "US", "credibility_score": 90},
    {"name": "The Guardian", "url": "https://www.theguardian.com/world/rss", "source_type": "rss", "category": "world", "country": "UK", "credibility_score": 90},
    {"name": "Al Jazeera", "url": "https://www.aljazeera.com/xml/rss/all.xml", "source_type": "rss", "category": "world", "credibility_score": 85},
    {"name": "CNN Top Stories", "url": "http://rss.cnn.com/rss/cnn_topstories.rss", "source_type": "rss", "category": "us", "country": "US", "credibility_score": 80},
    {"name": "ABC News", "url": "https://abcnews.go.com/abcnews/topstories", "source_type": "rss", "category": "us", "country": "US", "credibility_score": 85},
    {"name": "World Health Organization", "url": "https://www.who.int/rss-feeds/news-english.xml", "source_type": "rss", "category": "health", "credibility_score": 100},

    # ─────────────────────────────────────────────────────────────────────────
    # International
    # ─────────────────────────────────────────────────────────────────────────
    {"name": "Deutsche Welle (DW)", "url": "https://rss.dw.com/rdf/rss-en-top", "source_type": "rss", "category": "world", "country": "DE", "credibility_score": 85},
    {"name": "France 24", "url": "https://www.france24.com/en/rss", "source_type": "rss", "category": "world", "country": "FR", "credibility_score": 85},
    {"name": "CBC News", "url": "https://www.cbc.ca/cmlink/rss-topstories", "source_type": "rss", "category": "world", "country": "CA", "credibility_score": 85},
    {"name": "Japan Times", "url": "https://www.japantimes.co.jp/feed/topstories", "source_type": "rss", "category": "world", "country": "JP", "credibility_score": 85},
    {"name": "RTÉ News (Ireland)", "url": "https://www.rte.ie/news/rss/news-headlines.xml", "source_type": "rss", "category": "world", "country": "IE", "credibility_score": 85},

    # ─────────────────────────────────────────────────────────────────────────
    # US, investigative, science and technology
    # ─────────────────────────────────────────────────────────────────────────
    {"name": "New York Times - World", "url": "https://rss.nytimes.com/services/xml/rss/nyt/World.xml", "source_type": "rss", "category": "world", "country": "US", "credibility_score": 95},
    {"name": "Washington Post", "url": "https://feeds.washingtonpost.com/rss/world", "source_type": "rss", "category": "us", "country": "US", "credibility_score": 90},
    {"name": "PBS NewsHour", "url": "https://www.pbs.org/newshour/feeds/rss/headlines", "source_type": "rss", "category": "us", "country": "US", "credibility_score": 90},
    {"name": "ProPublica", "url": "https://www.propublica.org/feeds/propublica/main", "source_type": "rss", "category": "investigative", "country": "US", "credibility_score": 95},
    {"name": "The Conversation", "url": "https://theconversation.com/articles.atom", "source_type": "atom", "category": "analysis", "credibility_score": 90},
    {"name": "NASA Breaking News", "url": "https://www.nasa.gov/rss/dyn/breaking_news.rss", "source_type": "rss", "category": "science", "country": "US", "credibility_score": 100},
    {"name": "Science Daily", "url": "https://www.sciencedaily.com/rss/all.xml", "source_type": "rss", "category": "science", "credibility_score": 90},
    {"name": "Ars Technica", "url": "https://feeds.arstechnica.com/arstechnica/index", "source_type": "rss", "category": "technology", "credibility_score": 90},
    {"name": "TechCrunch", "url": "https://techcrunch.com/feed/", "source_type": "rss", "category": "technology", "credibility_score": 85},
]
