from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from .commands import bullets as bullets_cmd
from .commands import purge as purge_cmd
from .commands import run as run_cmd
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH
from .core.database import DatabaseManager
from .core.models import Bullet

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = str(DEFAULT_CONFIG_PATH)

__all__ = [
    'run',
    'bullets',
    'purge',
    'status',
]


def run(
    *,
    no_ai: bool = False,
    no_email: bool = False,
    no_telegram: bool = False,
    config_path: Optional[str] = None,
) -> run_cmd.RunResult:
    """Run the scrape/summarize/publish pipeline programmatically.

    Args:
        no_ai: Only scrape articles; skip summarization and notifications.
        no_email: Skip email notifications.
        no_telegram: Skip Telegram notifications.
        config_path: Path to main YAML config; defaults to data_dir/config/config.yaml.
    """
    cfg_path = config_path or _DEFAULT_CONFIG
    return run_cmd.run(cfg_path, no_ai=no_ai, no_email=no_email, no_telegram=no_telegram)


def bullets(kind: str = 'published', config_path: Optional[str] = None) -> List[Bullet]:
    """Return published, carryover or rejected bullets from the store."""
    cfg_path = config_path or _DEFAULT_CONFIG
    return bullets_cmd.run(cfg_path, kind)


def purge(days: Optional[int] = None, all_data: bool = False, config_path: Optional[str] = None) -> int:
    """Purge fetches from the database.

    Args:
        days: When provided, removes fetches generated more than N days ago
              (the latest published fetch is always kept).
        all_data: If True, clears the database and reinitializes the schema.
        config_path: Path to main YAML config; defaults to data_dir/config/config.yaml.
    """
    if days is None and not all_data:
        raise ValueError("Specify days or all_data=True")
    cfg_path = config_path or _DEFAULT_CONFIG
    return purge_cmd.run(cfg_path, days, all_data)


def status(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return configuration and database status for programmatic use."""
    cfg_path = config_path or _DEFAULT_CONFIG
    info: Dict[str, Any] = {'config_path': cfg_path}
    if not os.path.exists(cfg_path):
        info.update({'valid': False, 'error': f'Config file not found: {cfg_path}'})
        return info
    try:
        cm = ConfigManager(cfg_path)
        valid = cm.validate_config()
        info['valid'] = bool(valid)
        if not valid:
            return info
        cfg = cm.load_config()
        db = DatabaseManager(cfg)
        info.update({
            'club': cm.get_club_name(),
            'enabled_sources': sorted(cm.get_enabled_sources()),
            'db_path': db.db_path,
            'stats': db.get_stats(),
        })
        return info
    except Exception as e:
        info.update({'valid': False, 'error': str(e)})
        return info
