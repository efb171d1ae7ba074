"""Command-line entry point for club-digest."""

from __future__ import annotations

import logging
import sys

import click

from . import status as status_api
from .commands import bullets as bullets_cmd
from .commands import purge as purge_cmd
from .commands import run as run_cmd
from .core.config import DEFAULT_CONFIG_PATH
from .core.paths import resolve_data_path

# Setup logging early so submodules inherit sane defaults
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

LOG_FILENAME = "club_digest.log"


def _attach_file_log() -> None:
    """Mirror log records into data_dir/logs/club_digest.log."""
    root = logging.getLogger()
    log_path = resolve_data_path("logs", LOG_FILENAME, ensure_parent=True)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_path):
            return
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)


@click.group()
@click.option(
    "--config",
    default=str(DEFAULT_CONFIG_PATH),
    show_default=True,
    help="Path to config file (defaults to data_dir/config/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool) -> None:
    """club-digest - daily football club news digest with repeat filtering."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        _attach_file_log()
    except OSError as exc:
        logging.getLogger(__name__).warning("File logging disabled: %s", exc)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command("run")
@click.option("--no-ai", is_flag=True, help="Only scrape articles; skip summarization and notifications")
@click.option("--no-email", is_flag=True, help="Skip email notifications")
@click.option("--no-telegram", is_flag=True, help="Skip Telegram notifications")
@click.pass_context
def run(ctx: click.Context, no_ai: bool, no_email: bool, no_telegram: bool) -> None:
    """Scrape news, summarize, filter repeats and send the digest."""
    try:
        result = run_cmd.run(
            ctx.obj["config_path"],
            no_ai=no_ai,
            no_email=no_email,
            no_telegram=no_telegram,
        )
        if result.status == "config_created":
            click.echo(f"📝 Config file created at {ctx.obj['config_path']}. Please edit it and run again.")
        elif result.status == "no_new_articles":
            click.echo("✅ No new articles found. Everything is up to date.")
        elif result.status == "scraped_only":
            click.echo(f"✅ Stored {result.articles} new articles (fetch {result.fetch_id}); AI steps skipped")
        elif result.status == "unpublished":
            click.echo(f"⚠️  Digest stored for fetch {result.fetch_id} but not marked as sent")
        else:
            click.echo(f"✅ Digest published for fetch {result.fetch_id}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Run failed: {exc}", err=True)
        sys.exit(1)


@cli.command("bullets")
@click.option("--published", "kind", flag_value="published", default=True, help="Latest published bullets (default)")
@click.option("--carryover", "kind", flag_value="carryover", help="Accepted bullets not yet published")
@click.option("--rejected", "kind", flag_value="rejected", help="Bullets rejected in the latest fetch")
@click.pass_context
def bullets(ctx: click.Context, kind: str) -> None:
    """Show bullets stored for the novelty filter."""
    try:
        items = bullets_cmd.run(ctx.obj["config_path"], kind)
        if not items:
            click.echo(f"No {kind} bullets.")
            return
        for bullet in items:
            click.echo(f"- {bullet.text}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Bullets command failed: {exc}", err=True)
        sys.exit(1)


@cli.command("purge")
@click.option("--days", type=int, help="Remove fetches generated more than DAYS days ago")
@click.option("--all", "all_data", is_flag=True, help="Clear the whole database")
@click.pass_context
def purge(ctx: click.Context, days: int | None, all_data: bool) -> None:
    """Remove old fetches with their articles, summaries and bullets."""
    if days is None and not all_data:
        click.echo("Error: Must specify either --days X or --all", err=True)
        sys.exit(1)

    try:
        deleted = purge_cmd.run(ctx.obj["config_path"], days, all_data)
        if all_data:
            click.echo(f"✅ All data purged successfully ({deleted} fetches)")
        else:
            click.echo(f"✅ {deleted} fetches older than {days} days purged successfully")
    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Purge command failed: {exc}", err=True)
        sys.exit(1)


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show system status and configuration."""
    info = status_api(ctx.obj["config_path"])
    click.echo(f"📄 Config file: {info['config_path']}")
    if not info.get("valid"):
        click.echo(f"❌ Configuration validation failed{': ' + info['error'] if info.get('error') else ''}")
        return
    click.echo("✅ Configuration is valid")
    click.echo(f"⚽ Club: {info['club']}")
    click.echo(f"📡 Enabled sources: {', '.join(info['enabled_sources']) or 'none'}")
    click.echo(f"🗄️  Database: {info['db_path']}")
    stats = info["stats"]
    click.echo(
        f"   Fetches: {stats['fetches']} ({stats['published']} published), "
        f"articles: {stats['articles']}, bullets: {stats['bullets']}"
    )
    click.echo(f"   Last published: {stats['last_published_at'] or 'never'}")


if __name__ == "__main__":  # pragma: no cover - script entry
    cli()
