"""
Breaking-news classifier.

The pipeline treats classification as a black box:

    await classifier.classify(text, source_url) -> ClassifierVerdict | None

None (or ``is_breaking=False``) means "do not publish". Exceptions are left
to the caller, which counts them as failed items.

Implementations:
  - LLMClassifier: pydantic-ai agent with a structured ClassifierVerdict output
  - MockClassifier: keyword rules, no external calls (MOCK_MODE)
"""

import logging
import os
from typing import Optional, Protocol

from pydantic_ai import Agent

from newsreel.config import Settings, get_settings
from newsreel.news.dedup import EVENT_PATTERNS
from newsreel.schemas import ClassifierVerdict

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    async def classify(self, text: str, source_url: str) -> Optional[ClassifierVerdict]:
        ...


# ── System prompt ─────────────────────────────────────────────────────

EDITOR_PROMPT = """\
You are a professional news editor for a breaking news outlet. You are given \
raw content scraped from a news source and decide whether it qualifies as \
BREAKING NEWS: recent, significant, urgent and newsworthy.

If it IS breaking news, set is_breaking=true and write:
- headline: compelling, factual, max 100 characters
- summary: 2-3 sentences, max 200 characters
- full_text: a 400-600 word rewrite in professional journalism style
- credibility_score: 0-100, from source reliability and content quality

If it is NOT breaking news (evergreen features, opinion, listicles, old \
news, promotions), set is_breaking=false and leave the other fields empty.
"""


def build_prompt(text: str, source_url: str, max_chars: int) -> str:
    return f"CONTENT:\n{text[:max_chars]}\n\nSOURCE: {source_url}"


class LLMClassifier:
    """Classifies items with a pydantic-ai agent.

    The agent is built on first use so constructing the classifier never
    needs provider credentials. Pass ``agent`` to supply a preconfigured one
    (e.g. an agent on pydantic-ai's ``TestModel``).
    """

    def __init__(self, settings: Optional[Settings] = None, agent: Optional[Agent] = None):
        self.settings = settings or get_settings()
        self._agent = agent

    @property
    def agent(self) -> Agent:
        if self._agent is None:
            if self.settings.openai_api_key:
                os.environ.setdefault("OPENAI_API_KEY", self.settings.openai_api_key)
            self._agent = Agent(
                self.settings.classifier_model,
                output_type=ClassifierVerdict,
                system_prompt=EDITOR_PROMPT,
                retries=1,
            )
        return self._agent

    async def classify(self, text: str, source_url: str) -> Optional[ClassifierVerdict]:
        prompt = build_prompt(text, source_url, self.settings.classifier_max_chars)
        result = await self.agent.run(prompt)
        verdict = result.output
        if not verdict.is_breaking:
            return None
        return verdict


class MockClassifier:
    """Accepts anything that mentions a newsworthy event. Deterministic."""

    def __init__(self, credibility_score: int = 70):
        self.credibility_score = credibility_score

    async def classify(self, text: str, source_url: str) -> Optional[ClassifierVerdict]:
        if not any(p.search(text) for p in EVENT_PATTERNS):
            return None
        headline, _, body = text.strip().partition("\n")
        body = body.strip()
        return ClassifierVerdict(
            is_breaking=True,
            headline=headline[:100],
            summary=body[:200],
            full_text=body,
            credibility_score=self.credibility_score,
        )


def get_classifier(settings: Optional[Settings] = None) -> Classifier:
    """Classifier for the current settings (mock when MOCK_MODE is on)."""
    settings = settings or get_settings()
    if settings.mock_mode:
        logger.info("MOCK_MODE: using keyword classifier")
        return MockClassifier()
    return LLMClassifier(settings)
