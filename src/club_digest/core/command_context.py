"""
Command context for shared initialization across CLI commands.

Loads and validates the config, then opens the store, so command modules
start from a ready ``ctx.config`` and ``ctx.db``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .config import ConfigManager
from .database import DatabaseManager
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class CommandContext:
    """Encapsulates config loading, validation and database setup.

    Example:
        ```python
        with CommandContext(config_path) as ctx:
            bullets = ctx.db.fetch_latest_published_bullets()
        ```
    """

    def __init__(self, config_path: Optional[str] = None, *, config_manager: Optional[ConfigManager] = None):
        """Initialize command context with config and database.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        self.config_manager = config_manager or ConfigManager(config_path)

        if not self.config_manager.validate_config():
            raise ConfigurationError("Invalid configuration. Run 'club-digest status' for details.")

        self.config = self.config_manager.load_config()
        self.db = DatabaseManager(self.config)

        logger.debug(f"CommandContext initialized with config from {self.config_manager.config_path}")

    @property
    def base_dir(self) -> str:
        return self.config_manager.base_dir

    def get_setting(self, section: str, key: str, default: Any = None) -> Any:
        """Get ``config[section][key]`` or *default* when unset."""
        value = self.config_manager.get_section(section).get(key)
        return default if value is None else value

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.db.close_all_connections()
