"""Merge today's bullets with accepted-but-unpublished bullets from earlier runs."""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence, Set

from ..core.models import Bullet

logger = logging.getLogger(__name__)


def merge_carryover(today: Sequence[Bullet], carryover: Iterable[Bullet]) -> List[Bullet]:
    """Return today's bullets followed by carryover bullets with unseen text.

    Carryover bullets are cloned with ``accepted=None`` so the novelty filter
    judges them again. Deduplication uses exact string equality only: case,
    whitespace and punctuation differences make two bullets distinct. A text
    repeated within today's list is kept once, at its first position.
    """
    merged: List[Bullet] = []
    seen: Set[str] = set()

    for bullet in today:
        if bullet.text in seen:
            continue
        seen.add(bullet.text)
        merged.append(bullet)
    today_count = len(merged)

    for bullet in carryover:
        if bullet.text in seen:
            continue
        seen.add(bullet.text)
        merged.append(bullet.pending())

    logger.debug("Merged %d today bullets with %d carryover bullets", today_count, len(merged) - today_count)
    return merged


__all__ = ["merge_carryover"]
