"""
Novelty filter: decide which candidate bullets are new relative to the
last published digest.

The model sees the published bullet texts and the candidate texts and answers
``{"results": [bool, ...]}`` in candidate order. The response is decoded into a
``DedupResponse``; any shape problem raises ``ClassificationSchemaError`` and a
wrong number of decisions raises ``ResultCountMismatch``, so callers never
persist a partially classified batch.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set

from ..core.errors import ClassificationSchemaError, ResultCountMismatch
from ..core.llm import StructuredLLM
from ..core.models import Bullet, Summary

logger = logging.getLogger(__name__)

DEDUP_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "results": {
            "type": "array",
            "items": {"type": "boolean"},
        }
    },
    "required": ["results"],
    "additionalProperties": False,
}

_SYSTEM_PROMPT = """
You are a helpful assistant for summarizing {club} news.

You are given:
- A list of bullet points that were recently included in previous daily summaries
- A list of new candidate bullet points for today's summary

Your job is to compare each candidate bullet to all the previous ones and decide:
  - true  -> if this bullet is **meaningfully different** and should be included
  - false -> if it is **too similar or repetitive**, and should be discarded

Sometimes, today's bullet points are repetitive as well; please also give false to a bullet point if there is another bullet point from today that is making the same point.

The goal is to end up with a list of "true" bullet points that are informative but not repetitive.

Respond only with a structured JSON array of true/false, in the same order as the candidate bullets.
"""


@dataclass(frozen=True)
class ClassificationRequest:
    previous_texts: List[str]
    candidate_texts: List[str]

    def to_prompt(self) -> str:
        previous = "\n".join(f"- {t}" for t in self.previous_texts)
        candidates = "\n".join(f"- {t}" for t in self.candidate_texts)
        return f"PREVIOUS BULLETS:\n{previous}\n\nCANDIDATE BULLETS:\n{candidates}"


@dataclass(frozen=True)
class DedupResponse:
    results: List[bool]

    @classmethod
    def from_json(cls, content: str) -> "DedupResponse":
        """Decode the classifier's JSON text, validating its shape strictly."""
        try:
            data = json.loads(content)
        except (TypeError, ValueError) as exc:
            raise ClassificationSchemaError(f"Classifier response is not valid JSON: {exc}") from exc
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> "DedupResponse":
        if not isinstance(data, dict):
            raise ClassificationSchemaError("Classifier response must be a JSON object")
        extra = set(data) - {"results"}
        if extra:
            raise ClassificationSchemaError(f"Unexpected keys in classifier response: {sorted(extra)}")
        results = data.get("results")
        if not isinstance(results, list):
            raise ClassificationSchemaError("Classifier response 'results' must be an array")
        # bool is the only accepted item type; 0/1 integers are rejected
        if not all(isinstance(r, bool) for r in results):
            raise ClassificationSchemaError("Classifier response 'results' must contain only booleans")
        return cls(results=list(results))


class Classifier(Protocol):
    """Collaborator that returns the raw JSON answer for a request."""

    def classify(self, request: ClassificationRequest) -> str:
        ...


class OpenAIClassifier:
    """Classification collaborator backed by an OpenAI structured-output call."""

    def __init__(self, llm: StructuredLLM, *, club_name: str = "the club", max_tokens: int = 500,
                 service_tier: Optional[str] = None):
        self.llm = llm
        self.club_name = club_name
        self.max_tokens = max_tokens
        self.service_tier = service_tier

    def classify(self, request: ClassificationRequest) -> str:
        extra = {"service_tier": self.service_tier} if self.service_tier else None
        return self.llm.complete_json(
            system=_SYSTEM_PROMPT.format(club=self.club_name),
            user=request.to_prompt(),
            schema_name="dedup_filter",
            schema=DEDUP_SCHEMA,
            max_tokens=self.max_tokens,
            extra=extra,
        )


def _enforce_exact_duplicates(
    published_texts: Sequence[str],
    candidates: Sequence[Bullet],
    decisions: List[bool],
) -> List[bool]:
    """Reject candidates that repeat a published text or an earlier accepted candidate."""
    published: Set[str] = set(published_texts)
    accepted: Set[str] = set()
    out: List[bool] = []
    for bullet, decision in zip(candidates, decisions):
        if decision and bullet.text in published:
            logger.debug("Overriding acceptance of already published bullet: %s", bullet.text)
            decision = False
        elif decision and bullet.text in accepted:
            logger.debug("Overriding acceptance of duplicate candidate: %s", bullet.text)
            decision = False
        if decision:
            accepted.add(bullet.text)
        out.append(decision)
    return out


class NoveltyFilter:
    """Classify candidate bullets against the published baseline."""

    def __init__(self, classifier: Classifier):
        self.classifier = classifier

    def classify(self, published_texts: Sequence[str], candidates: Sequence[Bullet]) -> List[bool]:
        """Return one decision per candidate, in candidate order.

        Raises:
            ClassificationSchemaError: Malformed classifier response.
            ResultCountMismatch: Decision count differs from candidate count.
            LLMRequestError: The collaborator call itself failed.
        """
        if not candidates:
            return []
        request = ClassificationRequest(
            previous_texts=list(published_texts),
            candidate_texts=[b.text for b in candidates],
        )
        response = DedupResponse.from_json(self.classifier.classify(request))
        if len(response.results) != len(candidates):
            raise ResultCountMismatch(expected=len(candidates), received=len(response.results))
        return _enforce_exact_duplicates(request.previous_texts, candidates, response.results)

    def apply(self, published: Sequence[Bullet], summary: Summary) -> Summary:
        """Return a copy of *summary* whose bullets carry the filter's decisions."""
        decisions = self.classify([b.text for b in published], summary.items)
        items = [bullet.decided(ok) for bullet, ok in zip(summary.items, decisions)]
        accepted = sum(1 for ok in decisions if ok)
        logger.info("The deduplicator accepted %d bullet points.", accepted)
        logger.info(
            "The deduplicator rejected %d bullet points. To check what was rejected, run 'club-digest bullets --rejected'.",
            len(decisions) - accepted,
        )
        return summary.with_items(items)


__all__ = [
    "ClassificationRequest",
    "DedupResponse",
    "Classifier",
    "OpenAIClassifier",
    "NoveltyFilter",
    "DEDUP_SCHEMA",
]
