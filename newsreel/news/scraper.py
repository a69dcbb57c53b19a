"""
Article body extraction with BeautifulSoup.

Feed snippets are often a sentence or two. When a snippet is too short the
collector fetches the linked page and pulls the body out of it here.

APPROACH:
  - Drop page chrome (scripts, nav, header/footer, ads) first
  - Try a ranked list of content containers; first one with enough text wins
  - Fall back to joining every <p> on the page
  - Below the length floor, give up and let the caller keep the snippet
"""

import logging
from typing import List, Optional

import httpx
import soupsieve
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Removed before any extraction is attempted
NOISE_SELECTORS = "script, style, nav, header, footer, aside, iframe, .ad, .advertisement"

# Tried in order; the first match with enough text wins
CONTENT_SELECTORS: List[str] = [
    "article",
    '[role="article"]',
    ".article-content",
    ".post-content",
    ".entry-content",
    "main",
    ".story-body",
]

DEFAULT_MIN_LENGTH = 200


def _squash(text: str) -> str:
    return " ".join(text.split())


def html_to_text(fragment: str) -> str:
    """Reduce an HTML fragment (or plain text) to single-spaced text."""
    if not fragment:
        return ""
    if "<" not in fragment and "&" not in fragment:
        return _squash(fragment)
    soup = BeautifulSoup(fragment, "lxml")
    return _squash(soup.get_text(" ", strip=True))


def page_title(html_content: str) -> str:
    soup = BeautifulSoup(html_content, "lxml")
    if soup.title and soup.title.string:
        return _squash(soup.title.string)
    return ""


def extract_article_text(
    html_content: str,
    selector: Optional[str] = None,
    min_length: int = DEFAULT_MIN_LENGTH,
) -> Optional[str]:
    """Extract the article body from a full HTML page.

    Args:
        html_content: Raw page HTML
        selector: Source-specific CSS selector, tried before the ranked list
        min_length: Extracted text must be strictly longer than this

    Returns:
        The body text, or None if nothing long enough was found.
    """
    soup = BeautifulSoup(html_content, "lxml")
    for tag in soup.select(NOISE_SELECTORS):
        tag.decompose()

    selectors = ([selector] if selector else []) + CONTENT_SELECTORS
    for css in selectors:
        try:
            element = soup.select_one(css)
        except soupsieve.SelectorSyntaxError as e:
            # Bad selector hint on a source; move on to the ranked list
            logger.debug(f"Invalid selector {css!r}: {e}")
            continue
        if element is None:
            continue
        text = _squash(element.get_text(" ", strip=True))
        if len(text) > min_length:
            return text

    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    text = "\n".join(_squash(p) for p in paragraphs if p)
    if len(text) > min_length:
        return text
    return None


async def fetch_article_text(
    url: str,
    client: httpx.AsyncClient,
    selector: Optional[str] = None,
    min_length: int = DEFAULT_MIN_LENGTH,
) -> Optional[str]:
    """Fetch a linked article and extract its body. None on any failure."""
    if not url or url == "#":
        return None
    try:
        response = await client.get(url)
        if response.status_code != 200:
            logger.debug(f"HTTP {response.status_code} for {url}")
            return None
        return extract_article_text(response.text, selector=selector, min_length=min_length)
    except httpx.HTTPError as e:
        logger.debug(f"Scrape failed for {url}: {e}")
        return None
