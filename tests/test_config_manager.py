"""Tests for configuration management defaults and validation."""

from __future__ import annotations

from pathlib import Path
import sys
import textwrap

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from club_digest.core.config import ConfigManager  # noqa: E402


def write_config(path: Path, body: str) -> Path:
    path.write_text(textwrap.dedent(body).strip() + "\n", encoding="utf-8")
    return path


def test_config_manager_creates_defaults(tmp_path):
    """When pointed at an empty directory, default config and secrets are created."""

    config_path = tmp_path / "config.yaml"
    assert not config_path.exists()

    cfg = ConfigManager(str(config_path))

    assert cfg.created is True
    assert config_path.exists(), "config.yaml should be created on first run"

    secrets_dir = tmp_path / "secrets"
    assert secrets_dir.is_dir(), "secrets directory should be created for credential storage"
    for name in ("openai.env", "email_password.env", "telegram_token.env"):
        assert (secrets_dir / name).exists()

    data = cfg.load_config()
    assert isinstance(data, dict)
    assert data["budget"]["max_total_tokens"] == 100000
    assert cfg.validate_config() is True

    # second construction finds the existing file
    assert ConfigManager(str(config_path)).created is False


def test_existing_secrets_are_not_overwritten(tmp_path):
    secrets_dir = tmp_path / "secrets"
    secrets_dir.mkdir()
    (secrets_dir / "openai.env").write_text("OPENAI_API_KEY=sk-real\n", encoding="utf-8")

    ConfigManager(str(tmp_path / "config.yaml"))

    assert (secrets_dir / "openai.env").read_text(encoding="utf-8") == "OPENAI_API_KEY=sk-real\n"
    assert not (secrets_dir / "telegram_token.env").exists()


def test_enabled_sources_and_recipients(tmp_path):
    config_path = write_config(
        tmp_path / "config.yaml",
        """
        database:
          path: "db.sqlite3"
        llm: {}
        sources:
          primary:
            url: "https://example.com/a.xml"
          disabled:
            url: "https://example.com/b.xml"
            enabled: false
        email:
          recipients: ["fan@example.com", ""]
        telegram:
          chat_ids: [12345, "-100"]
        """,
    )

    cfg = ConfigManager(str(config_path))

    assert list(cfg.get_enabled_sources()) == ["primary"]
    assert cfg.get_email_recipients() == ["fan@example.com"]
    assert cfg.get_telegram_chat_ids() == ["12345", "-100"]
    assert cfg.get_club_name() == "the club"


def test_validation_rejects_bad_values(tmp_path):
    base = textwrap.dedent(
        """
        database:
          path: "db.sqlite3"
        llm: {}
        sources:
          feed:
            url: "https://example.com/a.xml"
        """
    )
    assert ConfigManager(str(write_config(tmp_path / "ok.yaml", base))).validate_config() is True

    missing_url = base.replace('url: "https://example.com/a.xml"', 'name: "No URL"')
    assert ConfigManager(str(write_config(tmp_path / "a.yaml", missing_url))).validate_config() is False

    bad_budget = base + "\nbudget:\n  max_total_tokens: -5\n"
    assert ConfigManager(str(write_config(tmp_path / "b.yaml", bad_budget))).validate_config() is False

    bad_timeout = base + "\nrun:\n  timeout: 0\n"
    assert ConfigManager(str(write_config(tmp_path / "c.yaml", bad_timeout))).validate_config() is False

    no_llm = base.replace("llm: {}\n", "")
    assert ConfigManager(str(write_config(tmp_path / "d.yaml", no_llm))).validate_config() is False


def test_validate_features_only_checks_enabled_channels(tmp_path):
    cfg = ConfigManager(str(tmp_path / "config.yaml"))

    problems = cfg.validate_features()
    assert len(problems) == 1 and "--no-email" in problems[0]

    assert cfg.validate_features(no_email=True) == []
    assert cfg.validate_features(no_ai=True) == []
