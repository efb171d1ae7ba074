"""Tests for the click command line and the programmatic API."""

from __future__ import annotations

from pathlib import Path
import sys
import textwrap

import pytest
from click.testing import CliRunner

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import club_digest  # noqa: E402
from club_digest.cli import cli  # noqa: E402
from club_digest.core.database import DatabaseManager  # noqa: E402
from club_digest.core.models import Bullet, Summary  # noqa: E402


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("CLUB_DIGEST_DATA_DIR", str(tmp_path / "data"))
    db_path = tmp_path / "digest.sqlite3"
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        textwrap.dedent(
            f"""
            database:
              path: "{db_path.as_posix()}"
            llm: {{}}
            sources:
              feed:
                url: "https://news.example.com/feed"
            """
        ).strip() + "\n",
        encoding="utf-8",
    )
    db = DatabaseManager({'database': {'path': str(db_path)}})
    published = db.create_fetch("2000-01-01T00:00:00.000000+00:00")
    db.insert_summary(published, Summary(mood="m", items=[Bullet("old", True), Bullet("meh", False)]))
    db.mark_sent(published)
    pending = db.create_fetch()
    db.insert_summary(pending, Summary(mood="m", items=[Bullet("waiting", True), Bullet("nope", False)]))
    return str(config_path), db


def test_bullets_command_lists_each_kind(env):
    config_path, _ = env
    runner = CliRunner()

    published = runner.invoke(cli, ["--config", config_path, "bullets"])
    carryover = runner.invoke(cli, ["--config", config_path, "bullets", "--carryover"])
    rejected = runner.invoke(cli, ["--config", config_path, "bullets", "--rejected"])

    assert published.exit_code == 0 and published.output.strip() == "- old"
    assert carryover.output.strip() == "- waiting"
    assert rejected.output.strip() == "- nope"


def test_status_reports_counts(env):
    config_path, _ = env

    result = CliRunner().invoke(cli, ["--config", config_path, "status"])

    assert result.exit_code == 0
    assert "Configuration is valid" in result.output
    assert "Fetches: 2 (1 published)" in result.output


def test_purge_requires_an_option(env):
    config_path, _ = env

    result = CliRunner().invoke(cli, ["--config", config_path, "purge"])

    assert result.exit_code == 1


def test_purge_days_keeps_latest_published(env):
    config_path, db = env

    result = CliRunner().invoke(cli, ["--config", config_path, "purge", "--days", "7"])

    assert result.exit_code == 0
    assert len(db.list_fetches()) == 2


def test_programmatic_api(env):
    config_path, db = env

    assert [b.text for b in club_digest.bullets("carryover", config_path=config_path)] == ["waiting"]
    assert club_digest.status(config_path)["stats"]["bullets"] == 4
    assert club_digest.purge(all_data=True, config_path=config_path) == 2
    assert db.list_fetches() == []
    with pytest.raises(ValueError):
        club_digest.purge(config_path=config_path)
