"""
Article summarization: truncated article text in, mood sentence and bullet
points out.

Global config
- llm.model, llm.timeout, llm.summary_max_tokens
- club.name (used in the prompt)
"""

from __future__ import annotations

import datetime
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import SummarySchemaError
from ..core.llm import StructuredLLM
from ..core.models import Article, Bullet, Summary
from ..core.tokenizer import TokenizerAdapter
from .truncator import truncate_articles

logger = logging.getLogger(__name__)

SUMMARY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "mood": {"type": "string"},
        "items": {
            "type": "array",
            "items": {"type": "string"},
        },
    },
    "required": ["mood", "items"],
    "additionalProperties": False,
}

_PROMPT = """
You are a {club} fan and supporter. You have access to some news published about the club from the last 24 hours.

Analyze all the provided articles and create a summary of the key developments and trends from the past 24 hours.

Return only a JSON object with this structure:
{{
  "mood": string,
  "items": [string, string, ...]
}}

The "mood" string should be a ONE-SENTENCE summary stating whether the news is mostly positive, mostly negative, or mixed, and very briefly why.

Each item in the "items" array of string is a bullet point summarizing some news/development. Feel free to end the bullet point text with an appropriate emoji. Don't repeat the same story across multiple bullet points, even if there are multiple articles talking about it.

Feel free to be biased towards our beloved club. Use casual language and emojis.
Feel free to ignore articles that are not relevant or that seem to be ads.
Please do not use clickbait titles, summaries, or language. Be concise. Do not include live streaming information.
The most important areas that fans would care about are potential transfers, injuries, player/team stats, and match summaries/previews.
"""

_DATE_NOTE = (
    "Today's date is {today}. Even though articles are published either today or yesterday, "
    "they may be referencing events and news that happened a long time ago. Don't summarize those, "
    "as they have likely been covered by previous summaries."
)


@dataclass(frozen=True)
class RawSummary:
    mood: str
    items: List[str]

    @classmethod
    def from_json(cls, content: str) -> "RawSummary":
        try:
            data = json.loads(content)
        except (TypeError, ValueError) as exc:
            raise SummarySchemaError(f"Failed to parse AI JSON summary: {exc}") from exc
        if not isinstance(data, dict):
            raise SummarySchemaError("Summary response must be a JSON object")
        mood = data.get("mood")
        items = data.get("items")
        if not isinstance(mood, str):
            raise SummarySchemaError("Summary response 'mood' must be a string")
        if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
            raise SummarySchemaError("Summary response 'items' must be an array of strings")
        return cls(mood=mood.strip(), items=[i.strip() for i in items])

    def to_summary(self, date: Optional[datetime.date] = None) -> Summary:
        """Build a Summary of unevaluated bullets, dropping blank items."""
        bullets = [Bullet(text=t) for t in self.items if t]
        return Summary(mood=self.mood, items=bullets, date=date or datetime.date.today())


def build_system_prompt(club_name: str, today: Optional[datetime.date] = None) -> str:
    today = today or datetime.date.today()
    return _PROMPT.format(club=club_name) + _DATE_NOTE.format(today=today.isoformat())


class ArticleSummarizer:
    """Fit articles into the token budget and ask the model for a digest."""

    def __init__(
        self,
        llm: StructuredLLM,
        tokenizer: TokenizerAdapter,
        *,
        club_name: str,
        budget: Optional[Dict[str, int]] = None,
        max_tokens: int = 1000,
    ):
        self.llm = llm
        self.tokenizer = tokenizer
        self.club_name = club_name
        self.budget = budget or {}
        self.max_tokens = max_tokens

    def summarize(self, articles: Sequence[Article], *, today: Optional[datetime.date] = None) -> Summary:
        logger.debug("Starting summarization with %d articles", len(articles))
        combined_text = truncate_articles(articles, self.tokenizer, **self.budget)
        logger.debug("Content truncated, final length: %d characters", len(combined_text))

        content = self.llm.complete_json(
            system=build_system_prompt(self.club_name, today),
            user=combined_text,
            schema_name="club_summary",
            schema=SUMMARY_SCHEMA,
            max_tokens=self.max_tokens,
        )
        logger.debug("Summary response content: %s", content)
        summary = RawSummary.from_json(content).to_summary(today)
        logger.info("Summarizer produced %d bullet points", len(summary.items))
        return summary


__all__ = ["ArticleSummarizer", "RawSummary", "SUMMARY_SCHEMA", "build_system_prompt"]
