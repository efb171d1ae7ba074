"""
Token-budget truncation of article bodies.

Fits a list of articles into a fixed model context window. Titles are never
touched; bodies are levelled down starting from the longest one, so short
articles keep their full text while outliers are trimmed towards the length
of the runner-up. Bodies at or below ``min_body_tokens`` are never trimmed,
which means the result can stay over budget (best effort).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..core.errors import BudgetUnsatisfiable
from ..core.models import Article
from ..core.tokenizer import TokenizerAdapter

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOTAL_TOKENS = 100_000
DEFAULT_MIN_BODY_TOKENS = 40
DEFAULT_SEPARATOR_TOKENS = 6


@dataclass
class TokenBudgetPlan:
    """Per-article body token counts chosen by the truncator."""

    title_tokens: List[int]
    body_tokens: List[int]
    keep_body_tokens: List[int]
    total_tokens: int
    max_total_tokens: int

    @property
    def over_budget(self) -> bool:
        return self.total_tokens > self.max_total_tokens

    @property
    def trimmed(self) -> bool:
        return self.keep_body_tokens != self.body_tokens


def _two_largest_trimmable(keep: Sequence[int], floor: int) -> Optional[Tuple[int, int]]:
    """Return (index of max, index of second max) among bodies above *floor*.

    The first index wins ties for the maximum. When only one body is
    trimmable both indices are the same.
    """
    candidates = [i for i, k in enumerate(keep) if k > floor]
    if not candidates:
        return None
    ordered = sorted(candidates, key=lambda i: (-keep[i], i))
    imax = ordered[0]
    isecond = ordered[1] if len(ordered) > 1 else imax
    return imax, isecond


def plan_budget(
    articles: Sequence[Article],
    tokenizer: TokenizerAdapter,
    *,
    max_total_tokens: int = DEFAULT_MAX_TOTAL_TOKENS,
    min_body_tokens: int = DEFAULT_MIN_BODY_TOKENS,
    separator_tokens: int = DEFAULT_SEPARATOR_TOKENS,
) -> TokenBudgetPlan:
    """Decide how many body tokens to keep for each article.

    Args:
        articles: Articles in presentation order.
        tokenizer: Adapter used to count tokens.
        max_total_tokens: Ceiling for titles + kept bodies + separators.
        min_body_tokens: Floor below which no body is trimmed.
        separator_tokens: Allowance per article for the blank-line joins.

    Returns:
        The plan; ``plan.over_budget`` is True when the floor was reached
        before the ceiling.
    """
    title_tokens = [tokenizer.count(a.title) for a in articles]
    body_tokens = [tokenizer.count(a.body) for a in articles]
    keep = list(body_tokens)

    total = sum(title_tokens) + sum(keep) + separator_tokens * len(articles)
    logger.debug("Initial token count: %d (max allowed: %d)", total, max_total_tokens)

    iteration = 0
    while total > max_total_tokens:
        iteration += 1
        needed = total - max_total_tokens

        pair = _two_largest_trimmable(keep, min_body_tokens)
        if pair is None:
            break
        imax, isecond = pair
        max_len = keep[imax]
        target_len = max(keep[isecond], min_body_tokens)
        diff = max_len - target_len

        # Equal-length bodies: still shave at least one token so the loop progresses
        if diff == 0:
            diff = max(1, min(max_len - min_body_tokens, needed))

        shave = min(diff, needed)
        keep[imax] -= shave
        total -= shave
        logger.debug(
            "Truncation iteration %d: shaved %d tokens from article %d (now %d), total %d",
            iteration, shave, imax, keep[imax], total,
        )

    return TokenBudgetPlan(
        title_tokens=title_tokens,
        body_tokens=body_tokens,
        keep_body_tokens=keep,
        total_tokens=total,
        max_total_tokens=max_total_tokens,
    )


def _join(pairs: Sequence[Tuple[str, str]]) -> str:
    return "\n\n".join(f"{title}\n\n{body}" for title, body in pairs)


def truncate_articles(
    articles: Sequence[Article],
    tokenizer: TokenizerAdapter,
    *,
    max_total_tokens: int = DEFAULT_MAX_TOTAL_TOKENS,
    min_body_tokens: int = DEFAULT_MIN_BODY_TOKENS,
    separator_tokens: int = DEFAULT_SEPARATOR_TOKENS,
    strict: bool = False,
) -> str:
    """Return the combined title/body text of *articles* fitted to the budget.

    When everything fits, bodies are reproduced verbatim. Otherwise each body
    is cut to its planned token count by decoding a token prefix.

    Raises:
        TokenizationFailure: The tokenizer failed; no partial text is produced.
        BudgetUnsatisfiable: Only with ``strict=True``, when trimming stopped at
            the floor while still over budget.
    """
    if not articles:
        return ""

    plan = plan_budget(
        articles,
        tokenizer,
        max_total_tokens=max_total_tokens,
        min_body_tokens=min_body_tokens,
        separator_tokens=separator_tokens,
    )

    if plan.over_budget:
        if strict:
            raise BudgetUnsatisfiable(plan.total_tokens, plan.max_total_tokens)
        logger.warning(
            "Token budget unsatisfiable: %d tokens remain after trimming every body to %d (limit %d); "
            "continuing with best-effort text",
            plan.total_tokens, min_body_tokens, plan.max_total_tokens,
        )

    if not plan.trimmed:
        logger.debug("No body needs trimming, keeping article text verbatim")
        return _join([(a.title, a.body) for a in articles])

    pairs = []
    for i, article in enumerate(articles):
        kept = plan.keep_body_tokens[i]
        logger.debug("Article %d: keeping %d of %d body tokens", i, kept, plan.body_tokens[i])
        pairs.append((article.title, tokenizer.decode_prefix(article.body, kept)))
    combined = _join(pairs)
    logger.info(
        "Truncated article bodies to fit %d tokens (estimated total %d)",
        plan.max_total_tokens, plan.total_tokens,
    )
    return combined


def truncator_settings(config: dict) -> dict:
    """Extract truncate_articles keyword arguments from config['budget']."""
    budget = config.get('budget') or {}
    return {
        'max_total_tokens': int(budget.get('max_total_tokens', DEFAULT_MAX_TOTAL_TOKENS)),
        'min_body_tokens': int(budget.get('min_body_tokens', DEFAULT_MIN_BODY_TOKENS)),
        'separator_tokens': int(budget.get('separator_tokens', DEFAULT_SEPARATOR_TOKENS)),
    }


__all__ = [
    "TokenBudgetPlan",
    "plan_budget",
    "truncate_articles",
    "truncator_settings",
    "DEFAULT_MAX_TOTAL_TOKENS",
    "DEFAULT_MIN_BODY_TOKENS",
    "DEFAULT_SEPARATOR_TOKENS",
]
