"""
News ingestion: collection, body extraction and dedup.

Modules:
- collector (FeedCollector): concurrent per-source fetching with fetch bookkeeping
- scraper: full article body extraction (BeautifulSoup)
- dedup (Deduplicator): three-tier near-duplicate story merging
"""

from newsreel.news.collector import FeedCollector
from newsreel.news.dedup import Deduplicator, jaccard_similarity, extract_keywords
from newsreel.news.scraper import extract_article_text, fetch_article_text
