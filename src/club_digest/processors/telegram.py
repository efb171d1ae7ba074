"""
Digest delivery through the Telegram Bot API.

One ``sendMessage`` request per configured chat id. The bot token comes from
``telegram.bot_token``, ``telegram.bot_token_file`` (relative to the config
directory) or the environment variable named by ``telegram.bot_token_env``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from ..core.errors import NotificationFailure

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
# Bot API hard limit per message
MAX_MESSAGE_LENGTH = 4096


def _read_token_file(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        if '=' in line:
            line = line.split('=', 1)[1].strip().strip('"').strip("'")
        if line:
            return line
    return None


def _split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Split on blank lines so bullets stay whole when the digest is long."""
    if len(text) <= limit:
        return [text]
    chunks: List[str] = []
    current = ""
    for block in text.split("\n\n"):
        candidate = f"{current}\n\n{block}" if current else block
        if len(candidate) <= limit:
            current = candidate
            continue
        if current:
            chunks.append(current)
        while len(block) > limit:
            chunks.append(block[:limit])
            block = block[limit:]
        current = block
    if current:
        chunks.append(current)
    return chunks


class TelegramSender:
    """Post the plain-text digest to Telegram chats."""

    def __init__(self, token: str, *, timeout: float = 20.0, session: Optional[requests.Session] = None):
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict[str, Any], config_dir: Optional[str] = None) -> "TelegramSender":
        tg = config.get('telegram') or {}
        token = str(tg.get('bot_token') or '').strip()
        if not token and tg.get('bot_token_file'):
            path = Path(str(tg['bot_token_file'])).expanduser()
            if not path.is_absolute() and config_dir:
                path = Path(config_dir) / path
            token = _read_token_file(path) or ''
        if not token:
            token = os.environ.get(tg.get('bot_token_env') or 'TELEGRAM_BOT_TOKEN', '').strip()
        return cls(token, timeout=float(tg.get('timeout') or 20))

    def send(self, recipients: List[str], plain_text: str) -> None:
        """Send *plain_text* to every chat id.

        Raises:
            NotificationFailure: Missing token, malformed chat id, or an API/HTTP
                error for any chat.
        """
        if not recipients:
            logger.info("No Telegram chat ids configured; skipping Telegram")
            return
        if not self.token:
            raise NotificationFailure("telegram", "Telegram bot token not configured")

        url = f"{API_BASE}/bot{self.token}/sendMessage"
        for chat_id in recipients:
            try:
                int(str(chat_id))
            except ValueError:
                raise NotificationFailure("telegram", "chat id must be an integer", recipient=str(chat_id))
            for chunk in _split_message(plain_text):
                try:
                    resp = self.session.post(
                        url,
                        json={"chat_id": str(chat_id), "text": chunk},
                        timeout=self.timeout,
                    )
                    resp.raise_for_status()
                    payload = resp.json()
                except (requests.RequestException, ValueError) as exc:
                    # avoid leaking the token embedded in the request URL
                    message = str(exc).replace(self.token, "***")
                    raise NotificationFailure("telegram", message, recipient=str(chat_id)) from exc
                if not isinstance(payload, dict):
                    raise NotificationFailure(
                        "telegram", f"unexpected sendMessage reply: {type(payload).__name__}", recipient=str(chat_id)
                    )
                if not payload.get("ok", False):
                    raise NotificationFailure(
                        "telegram", payload.get("description") or "sendMessage failed", recipient=str(chat_id)
                    )
            logger.info("Telegram message sent to chat %s", chat_id)


__all__ = ["TelegramSender", "MAX_MESSAGE_LENGTH"]
