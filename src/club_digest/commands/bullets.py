"""
Bullets command: inspect what the store holds for the novelty filter.

- published: accepted bullets of the latest sent fetch (the dedup baseline)
- carryover: accepted bullets of unsent fetches since then
- rejected: bullets rejected in the most recent fetch
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..core.command_context import CommandContext
from ..core.models import Bullet

logger = logging.getLogger(__name__)

KINDS = ("published", "carryover", "rejected")


def run(config_path: Optional[str] = None, kind: str = "published") -> List[Bullet]:
    """Return the bullets of the requested *kind*."""
    if kind not in KINDS:
        raise ValueError(f"Unknown bullet selection '{kind}', expected one of {', '.join(KINDS)}")

    with CommandContext(config_path) as ctx:
        if kind == "published":
            bullets = ctx.db.fetch_latest_published_bullets()
        elif kind == "carryover":
            bullets = ctx.db.fetch_carryover_bullets()
        else:
            bullets = ctx.db.fetch_latest_rejected_bullets()

    logger.debug("Loaded %d %s bullets", len(bullets), kind)
    return bullets
