"""
Cross-source story deduplication.

Many sources cover the same event with slightly different wording. Each
incoming item is compared against the representatives accepted so far
with a three-tier cascade (first tier that matches wins):

  1. TITLE:     token Jaccard of the titles > 0.7
  2. KEYWORD:   >= 2 shared event/proper-noun keywords AND title Jaccard > 0.4
  3. CONTENT:   both bodies < 500 chars AND Jaccard of their first 300 chars > 0.6

On a match the item from the more credible source is kept in the slot of
the existing representative; on a tie the first-seen item stays.
Credibility comes from the live source records (name → score), unknown
sources count as 50.

Token Jaccard: lower-case, whitespace split, keep tokens longer than 3
characters, |A ∩ B| / |A ∪ B|, and 0 if either side has no tokens.

Complexity is O(n²) comparisons in the worst case, fine for per-run
batches in the low hundreds.
"""

import logging
import re
from typing import Iterable, List, Mapping, Optional, Sequence, Set

from newsreel.schemas import RawItem

logger = logging.getLogger(__name__)

DEFAULT_CREDIBILITY = 50

# Newsworthy-event terms: disaster, conflict, political, health,
# civil unrest, announcements
EVENT_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"earthquake", r"tsunami", r"hurricane", r"flood", r"fire",
        r"explosion", r"attack", r"crash", r"collision",
        r"election", r"vote", r"summit", r"treaty", r"sanctions",
        r"outbreak", r"pandemic", r"virus", r"disease",
        r"protest", r"strike", r"riot", r"demonstration",
        r"launched", r"announced", r"revealed", r"discovered",
    )
]

KEYWORD_CONTENT_CHARS = 200


def _tokens(text: str) -> Set[str]:
    return {w for w in text.lower().split() if len(w) > 3}


def jaccard_similarity(a: str, b: str) -> float:
    """Token-set Jaccard index of two strings (tokens longer than 3 chars)."""
    tokens_a, tokens_b = _tokens(a), _tokens(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def extract_keywords(text: str) -> Set[str]:
    """Event terms plus capitalized words (a cheap proper-noun proxy)."""
    keywords = set()
    lowered = text.lower()
    for pattern in EVENT_PATTERNS:
        match = pattern.search(lowered)
        if match:
            keywords.add(match.group(0))
    for word in text.split():
        if len(word) > 3 and word[0].isupper():
            keywords.add(word.lower())
    return keywords


def _keyword_text(item: RawItem) -> str:
    return f"{item.title} {item.content[:KEYWORD_CONTENT_CHARS]}"


# ── Comparators ──────────────────────────────────────────────────────────────

class TitleComparator:
    """Tier 1: near-identical titles."""
    name = "title"

    def __init__(self, threshold: float = 0.7):
        self.threshold = threshold

    def matches(self, a: RawItem, b: RawItem) -> bool:
        return jaccard_similarity(a.title, b.title) > self.threshold


class KeywordComparator:
    """Tier 2: shared event keywords backed by moderate title overlap."""
    name = "keyword"

    def __init__(self, min_shared: int = 2, title_threshold: float = 0.4):
        self.min_shared = min_shared
        self.title_threshold = title_threshold

    def matches(self, a: RawItem, b: RawItem) -> bool:
        if jaccard_similarity(a.title, b.title) <= self.title_threshold:
            return False
        shared = extract_keywords(_keyword_text(a)) & extract_keywords(_keyword_text(b))
        return len(shared) >= self.min_shared


class ShortContentComparator:
    """Tier 3: two short bodies that open with mostly the same words."""
    name = "content"

    def __init__(self, max_length: int = 500, prefix_chars: int = 300, threshold: float = 0.6):
        self.max_length = max_length
        self.prefix_chars = prefix_chars
        self.threshold = threshold

    def matches(self, a: RawItem, b: RawItem) -> bool:
        if len(a.content) >= self.max_length or len(b.content) >= self.max_length:
            return False
        similarity = jaccard_similarity(
            a.content[:self.prefix_chars], b.content[:self.prefix_chars]
        )
        return similarity > self.threshold


def default_comparators() -> List:
    return [TitleComparator(), KeywordComparator(), ShortContentComparator()]


# ── Deduplicator ─────────────────────────────────────────────────────────────

class Deduplicator:
    """Collapses near-duplicate RawItems to one representative per story.

    Args:
        credibility: source name → credibility score (0-100)
        comparators: similarity tiers, tried in order; defaults to the
                     title → keyword → content cascade
    """

    def __init__(
        self,
        credibility: Optional[Mapping[str, int]] = None,
        comparators: Optional[Sequence] = None,
        default_credibility: int = DEFAULT_CREDIBILITY,
    ):
        self.credibility = dict(credibility or {})
        self.comparators = list(comparators) if comparators is not None else default_comparators()
        self.default_credibility = default_credibility

    def credibility_of(self, item: RawItem) -> int:
        return self.credibility.get(item.source, self.default_credibility)

    def same_story(self, a: RawItem, b: RawItem) -> Optional[str]:
        """Name of the first comparator that matches, else None."""
        for comparator in self.comparators:
            if comparator.matches(a, b):
                return comparator.name
        return None

    def dedupe(self, items: Iterable[RawItem]) -> List[RawItem]:
        """Reduce ``items`` to one representative per story, first-seen order.

        Passes repeat until one merges nothing, so running dedupe on its own
        output is a no-op.
        """
        current = list(items)
        initial = len(current)
        while True:
            reduced = self._single_pass(current)
            if len(reduced) == len(current):
                break
            current = reduced

        removed = initial - len(current)
        if removed:
            logger.info(f"Dedup: {initial} -> {len(current)} items ({removed} duplicates)")
        return current

    def _single_pass(self, items: List[RawItem]) -> List[RawItem]:
        unique: List[RawItem] = []
        for item in items:
            for i, existing in enumerate(unique):
                tier = self.same_story(item, existing)
                if tier is None:
                    continue
                if self.credibility_of(item) > self.credibility_of(existing):
                    logger.debug(
                        f"[DUP:{tier}] Replacing {existing.source} with {item.source}: {item.title[:60]}"
                    )
                    unique[i] = item
                else:
                    logger.debug(f"[DUP:{tier}] Skipping {item.source}: {item.title[:60]}")
                break
            else:
                unique.append(item)
        return unique
