"""Configuration management for the YAML config file."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .paths import get_data_dir

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = get_data_dir() / "config"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"

_SECRET_PLACEHOLDERS = {
    "openai.env": "# Placeholder OpenAI key file. Put OPENAI_API_KEY=sk-... here.\n",
    "email_password.env": "# Placeholder SMTP password file. Replace with real credentials.\n",
    "telegram_token.env": "# Placeholder Telegram bot token file. Replace with the token from @BotFather.\n",
}

_DEFAULT_CONFIG_TEMPLATE = """# Auto-generated default configuration for club-digest
# Edit the values below, then run `club-digest run` again.
database:
  path: "club_digest.sqlite3"

club:
  name: "Liverpool FC"

llm:
  model: "gpt-4o-2024-08-06"
  api_key_env: "OPENAI_API_KEY"
  api_key_file: "secrets/openai.env"
  timeout: 60
  summary_max_tokens: 1000
  dedup_max_tokens: 500
  dedup_service_tier: "flex"

budget:
  encoding: "o200k_base"
  max_total_tokens: 100000
  min_body_tokens: 40
  separator_tokens: 6

sources:
  thisisanfield:
    name: "This Is Anfield"
    url: "https://www.thisisanfield.com/feed/"
    enabled: true
  football365:
    name: "Football365"
    url: "https://www.football365.com/liverpool/feed"
    enabled: true

scrape:
  max_workers: 8
  queue_size: 200
  timeout: 20
  max_age_hours: 48
  retries: 3

run:
  timeout: 900

notifications:
  mark_sent_on_failure: true

email:
  enabled: true
  # subject: "Liverpool FC news summary"  (defaults to "<club.name> news summary")
  recipients: []
  smtp:
    host: "smtp.mail.me.com"
    port: 587
    starttls: true
    username: ""
    password_file: "secrets/email_password.env"
    timeout: 20

telegram:
  enabled: true
  bot_token_env: "TELEGRAM_BOT_TOKEN"
  bot_token_file: "secrets/telegram_token.env"
  chat_ids: []
  timeout: 20
"""


def _write_template(path: Path, content: str) -> None:
    """Write templated YAML content to disk with a trailing newline."""
    path.write_text(content.strip() + "\n", encoding="utf-8")


class ConfigManager:
    """Manages loading and validation of the YAML configuration file."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the manager and ensure a baseline config exists."""
        path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        if not path.is_absolute():
            path = path.resolve()
        self.config_path = str(path)
        self.base_dir = str(path.parent)
        self._config = None
        self.created = self._ensure_default_config()

    def load_config(self) -> Dict[str, Any]:
        """Load the main configuration file."""
        if self._config is None:
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self._config = yaml.safe_load(f) or {}
                logger.info(f"Loaded configuration from {self.config_path}")
            except Exception as e:
                logger.error(f"Failed to load config from {self.config_path}: {e}")
                raise

        return self._config

    def _ensure_default_config(self) -> bool:
        """Create the default config file and secrets placeholders if missing.

        Returns True when config.yaml was created by this call.
        """
        config_file = Path(self.config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        created = False
        if not config_file.exists():
            _write_template(config_file, _DEFAULT_CONFIG_TEMPLATE)
            created = True
            logger.info("Created default config.yaml at %s", config_file)

        secrets_dir = Path(self.base_dir) / "secrets"
        # Only seed placeholders if the directory doesn't exist (one-time initialization)
        if not secrets_dir.exists():
            secrets_dir.mkdir(parents=True, exist_ok=True)
            for filename, content in _SECRET_PLACEHOLDERS.items():
                target = secrets_dir / filename
                try:
                    target.write_text(content, encoding="utf-8")
                except OSError as exc:
                    logger.warning("Failed to create placeholder secret %s: %s", target, exc)

        return created

    def resolve_path(self, value: str) -> Path:
        """Resolve a config-relative path (secrets files etc.)."""
        candidate = Path(str(value)).expanduser()
        if not candidate.is_absolute():
            candidate = (Path(self.base_dir) / candidate).resolve()
        return candidate

    def get_section(self, name: str) -> Dict[str, Any]:
        """Return a top-level mapping section, or an empty dict."""
        section = self.load_config().get(name)
        return section if isinstance(section, dict) else {}

    def get_club_name(self) -> str:
        return str(self.get_section('club').get('name') or 'the club')

    def get_enabled_sources(self) -> Dict[str, Dict[str, Any]]:
        """Get all enabled news sources from the main configuration."""
        sources = self.get_section('sources')

        enabled_sources = {}
        for source_name, source_config in sources.items():
            if source_config.get('enabled', True):
                enabled_sources[source_name] = source_config

        return enabled_sources

    def get_email_recipients(self) -> List[str]:
        return [str(r) for r in (self.get_section('email').get('recipients') or []) if str(r).strip()]

    def get_telegram_chat_ids(self) -> List[str]:
        return [str(c) for c in (self.get_section('telegram').get('chat_ids') or []) if str(c).strip()]

    def validate_config(self) -> bool:
        """Validate the configuration file."""
        try:
            config = self.load_config()
            if not isinstance(config, dict):
                logger.error("Configuration root must be a mapping")
                return False

            required_sections = ['database', 'llm', 'sources']
            for section in required_sections:
                if section not in config:
                    logger.error(f"Missing required section '{section}' in main config")
                    return False

            db_config = config['database'] or {}
            if not isinstance(db_config, dict) or not db_config.get('path'):
                logger.error("Missing required database path 'path'")
                return False

            sources = config['sources']
            if not isinstance(sources, dict):
                logger.error("'sources' must be a mapping of source keys to settings")
                return False
            for key, source in sources.items():
                if not isinstance(source, dict) or not str(source.get('url') or '').strip():
                    logger.error(f"Source '{key}' must define a non-empty 'url'")
                    return False

            budget = config.get('budget') or {}
            for key in ('max_total_tokens', 'min_body_tokens', 'separator_tokens'):
                if key in budget:
                    value = budget[key]
                    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                        logger.error(f"budget.{key} must be a non-negative integer")
                        return False

            for section in ('llm', 'run'):
                value = (config.get(section) or {}).get('timeout')
                if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                    logger.error(f"{section}.timeout must be a positive number")
                    return False

            for section, key in (('email', 'recipients'), ('telegram', 'chat_ids')):
                value = (config.get(section) or {}).get(key)
                if value is not None and not isinstance(value, list):
                    logger.error(f"{section}.{key} must be a list")
                    return False

            logger.info("Configuration validation passed")
            return True

        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False

    def validate_features(self, *, no_ai: bool = False, no_email: bool = False, no_telegram: bool = False) -> List[str]:
        """Return human-readable problems for the channels that are enabled.

        Only configuration needed by enabled features is checked, so
        ``--no-email``/``--no-telegram`` runs work without those credentials.
        """
        problems: List[str] = []
        email_cfg = self.get_section('email')
        if not no_ai and not no_email and email_cfg.get('enabled', True):
            smtp = email_cfg.get('smtp') or {}
            if not smtp.get('host') or not smtp.get('username'):
                problems.append(
                    "Email configuration is missing but email notifications are enabled. "
                    "Use --no-email to skip email notifications or configure email.smtp."
                )
        telegram_cfg = self.get_section('telegram')
        if not no_ai and not no_telegram and telegram_cfg.get('enabled', True):
            if not (telegram_cfg.get('bot_token') or telegram_cfg.get('bot_token_file')
                    or telegram_cfg.get('bot_token_env')):
                problems.append(
                    "Telegram bot token is missing but telegram notifications are enabled. "
                    "Use --no-telegram to skip telegram notifications or configure telegram.bot_token."
                )
        return problems


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CONFIG_DIR",
]
