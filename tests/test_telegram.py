"""Tests for Telegram digest delivery."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest
import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from club_digest.core.errors import NotificationFailure  # noqa: E402
from club_digest.processors.telegram import MAX_MESSAGE_LENGTH, TelegramSender  # noqa: E402


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.responses:
            return self.responses.pop(0)
        return FakeResponse({"ok": True})


def test_one_message_per_chat():
    session = FakeSession()
    sender = TelegramSender("123:abc", timeout=7, session=session)

    sender.send(["111", "-222"], "Mood\n\n- bullet")

    assert [p[1]["chat_id"] for p in session.posts] == ["111", "-222"]
    assert session.posts[0][0] == "https://api.telegram.org/bot123:abc/sendMessage"
    assert session.posts[0][1]["text"] == "Mood\n\n- bullet"
    assert session.posts[0][2] == 7


def test_long_digest_is_split_on_blank_lines():
    session = FakeSession()
    bullets = [f"- {'x' * 1000} {i}" for i in range(6)]
    text = "\n\n".join(["Mood"] + bullets)

    TelegramSender("t", session=session).send(["1"], text)

    chunks = [p[1]["text"] for p in session.posts]
    assert len(chunks) > 1
    assert all(len(c) <= MAX_MESSAGE_LENGTH for c in chunks)
    assert "\n\n".join(chunks) == text


def test_api_error_raises_notification_failure():
    session = FakeSession([FakeResponse({"ok": False, "description": "chat not found"})])

    with pytest.raises(NotificationFailure) as excinfo:
        TelegramSender("t", session=session).send(["1"], "hi")

    assert excinfo.value.recipient == "1"
    assert "chat not found" in str(excinfo.value)


def test_http_error_does_not_leak_token():
    class LeakySession(FakeSession):
        def post(self, url, json=None, timeout=None):
            raise requests.ConnectionError(f"failed to reach {url}")

    with pytest.raises(NotificationFailure) as excinfo:
        TelegramSender("secret-token", session=LeakySession()).send(["1"], "hi")

    assert "secret-token" not in str(excinfo.value)


def test_invalid_chat_id_and_missing_token():
    with pytest.raises(NotificationFailure):
        TelegramSender("t", session=FakeSession()).send(["@channel"], "hi")
    with pytest.raises(NotificationFailure):
        TelegramSender("", session=FakeSession()).send(["1"], "hi")


def test_token_from_file_then_env(tmp_path, monkeypatch):
    (tmp_path / "secrets").mkdir()
    token_file = tmp_path / "secrets" / "telegram_token.env"
    token_file.write_text("# placeholder\nTELEGRAM_BOT_TOKEN=999:zzz\n", encoding="utf-8")
    config = {"telegram": {"bot_token_file": "secrets/telegram_token.env", "bot_token_env": "TG_TOKEN"}}

    assert TelegramSender.from_config(config, str(tmp_path)).token == "999:zzz"

    token_file.write_text("# placeholder only\n", encoding="utf-8")
    monkeypatch.setenv("TG_TOKEN", "env-token")
    assert TelegramSender.from_config(config, str(tmp_path)).token == "env-token"


def test_non_object_reply_raises_notification_failure():
    session = FakeSession([FakeResponse(["unexpected"])])

    with pytest.raises(NotificationFailure) as excinfo:
        TelegramSender("t", session=session).send(["1"], "hi")

    assert excinfo.value.channel == "telegram"
    assert "list" in str(excinfo.value)
