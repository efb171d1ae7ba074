"""
Plain-text digest delivery over SMTP.

Settings live under ``config['email']``:
- subject (defaults to "<club.name> news summary"), recipients
- smtp.host, smtp.port, smtp.username, smtp.starttls, smtp.timeout
- smtp.password (discouraged), smtp.password_file, or SMTP_PASSWORD env var

Port 465 (or ``ssl: true``) uses implicit TLS; otherwise the connection is
upgraded with STARTTLS. Uses only the Python standard library.
"""

from __future__ import annotations

import logging
import os
import smtplib
import ssl
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.errors import NotificationFailure

logger = logging.getLogger(__name__)

SUBJECT_TEMPLATE = "{club} news summary"
FALLBACK_SUBJECT = "News summary"


def default_subject(club_name: Optional[str] = None) -> str:
    """Subject line used when ``email.subject`` is not set."""
    club_name = (club_name or "").strip()
    return SUBJECT_TEMPLATE.format(club=club_name) if club_name else FALLBACK_SUBJECT


class SMTPSender:
    """Send emails via SMTP using settings under config['email']['smtp']."""

    def __init__(self, smtp_cfg: Dict[str, Any], config_dir: Optional[str] = None) -> None:
        """Initialize SMTP connection parameters and optional password lookup directory."""
        self.host = str(smtp_cfg.get('host') or '')
        self.port = int(smtp_cfg.get('port') or 587)
        self.username = str(smtp_cfg.get('username') or '')
        self.password = str(smtp_cfg.get('password') or '')  # discouraged; prefer file
        self.password_file = smtp_cfg.get('password_file')
        self.use_ssl = bool(smtp_cfg.get('ssl', self.port == 465))
        self.starttls = bool(smtp_cfg.get('starttls', not self.use_ssl))
        self.timeout = float(smtp_cfg.get('timeout') or 20)
        self.from_addr = str(smtp_cfg.get('from') or self.username)
        self._config_dir = Path(config_dir).expanduser().resolve() if config_dir else None

    def _load_password(self) -> str:
        """Fetch SMTP password via inline config, password file, or environment fallback."""
        if self.password:
            return self.password
        if self.password_file:
            candidate = Path(str(self.password_file)).expanduser()
            if not candidate.is_absolute() and self._config_dir:
                candidate = (self._config_dir / candidate).resolve()
            if os.path.exists(candidate):
                with open(candidate, 'r', encoding='utf-8') as f:
                    lines = [ln.strip() for ln in f if ln.strip() and not ln.lstrip().startswith('#')]
                if lines:
                    return lines[0]
        return os.environ.get('SMTP_PASSWORD', '')

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        if self.starttls:
            server.starttls(context=context)
        return server

    def send(self, recipients: List[str], plain_text: str, *, subject: Optional[str] = None) -> None:
        """Send *plain_text* to every recipient, one message each.

        Raises:
            NotificationFailure: Incomplete configuration, an SMTP error or a
                message that cannot be built (e.g. a malformed address).
        """
        subject = subject or FALLBACK_SUBJECT
        if not recipients:
            logger.info("No email recipients configured; skipping email")
            return
        if not self.host or not self.port or not self.username:
            raise NotificationFailure("email", "SMTP configuration incomplete: host/port/username required")
        password = self._load_password()
        if not password:
            raise NotificationFailure(
                "email",
                "SMTP password not found. Set email.smtp.password_file or SMTP_PASSWORD.",
            )

        try:
            with self._connect() as server:
                server.login(self.username, password)
                for rcpt in recipients:
                    msg = EmailMessage()
                    msg['Subject'] = subject
                    msg['From'] = self.from_addr
                    msg['To'] = rcpt
                    msg.set_content(plain_text)
                    server.send_message(msg)
                    logger.info("Email sent to %s", rcpt)
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            raise NotificationFailure("email", str(exc)) from exc


def sender_from_config(config: Dict[str, Any], config_dir: Optional[str] = None) -> SMTPSender:
    email_cfg = config.get('email') or {}
    return SMTPSender(email_cfg.get('smtp') or {}, config_dir=config_dir)


__all__ = ["SMTPSender", "sender_from_config", "default_subject"]
