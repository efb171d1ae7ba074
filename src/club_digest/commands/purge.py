"""
Purge command: delete old fetches (articles, summaries and bullets cascade)
or reset the whole store.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.command_context import CommandContext

logger = logging.getLogger(__name__)


def run(config_path: Optional[str] = None, days: Optional[int] = None, all_data: bool = False) -> int:
    """Remove fetches older than *days* days, or everything with *all_data*.

    Returns the number of fetches deleted.
    """
    if days is None and not all_data:
        raise ValueError("Specify days or all_data=True")
    if days is not None and days < 0:
        raise ValueError("days must be a non-negative integer")

    with CommandContext(config_path) as ctx:
        if all_data:
            deleted = len(ctx.db.list_fetches())
            ctx.db.reset()
            logger.info("All data purged (%d fetches)", deleted)
            return deleted
        deleted = ctx.db.purge_fetches_older_than(days)

    logger.info("Purged %d fetches older than %d days", deleted, days)
    return deleted
