"""
Run command: scrape new articles, summarize them, drop repeated bullets and
send the digest.

Steps
1. Load config (stop after creating a default one) and check enabled features.
2. Scrape enabled sources concurrently into a new fetch; stop if nothing is new.
3. Summarize the fetch's articles within the token budget.
4. Merge carryover bullets, classify against the last published digest.
5. Store summary + bullets atomically, notify, then mark the fetch as sent.

Every collaborator can be injected, which is how the tests run the pipeline
offline.
"""

from __future__ import annotations

import datetime
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from ..core.command_context import CommandContext
from ..core.config import ConfigManager
from ..core.errors import ConfigurationError, NotificationFailure, RunTimeout
from ..core.llm import StructuredLLM
from ..core.models import Summary
from ..core.text_utils import format_summary_plain_text
from ..core.tokenizer import TokenizerAdapter
from ..processors.article_writer import collect_articles
from ..processors.carryover import merge_carryover
from ..processors.emailer import default_subject, sender_from_config
from ..processors.feed_source import sources_from_config
from ..processors.novelty_filter import Classifier, NoveltyFilter, OpenAIClassifier
from ..processors.summarizer import ArticleSummarizer
from ..processors.telegram import TelegramSender
from ..processors.truncator import truncator_settings

logger = logging.getLogger(__name__)

DEFAULT_RUN_TIMEOUT = 900.0


@dataclass
class RunResult:
    """What a run did; ``status`` is one of config_created, no_new_articles,
    scraped_only, published or unpublished."""

    status: str
    fetch_id: Optional[int] = None
    articles: int = 0
    summary: Optional[Summary] = None
    notifications: Dict[str, bool] = field(default_factory=dict)


class _Deadline:
    def __init__(self, seconds: float):
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    def check(self, stage: str) -> None:
        if time.monotonic() > self.expires_at:
            raise RunTimeout(f"Run exceeded {self.seconds:.0f}s before {stage}")


def _notify(channels: Dict[str, Callable[[], None]]) -> Dict[str, bool]:
    """Run every channel concurrently; a failing channel does not affect the others."""
    outcomes: Dict[str, bool] = {}
    if not channels:
        return outcomes
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = {name: pool.submit(send) for name, send in channels.items()}
        for name, future in futures.items():
            try:
                future.result()
                outcomes[name] = True
                logger.info(f"{name.capitalize()} notification(s) sent.")
            except NotificationFailure as exc:
                outcomes[name] = False
                logger.error(f"{name.capitalize()} notification(s) failed: {exc}")
            except Exception as exc:
                outcomes[name] = False
                logger.exception(f"{name.capitalize()} notification(s) failed unexpectedly: {exc}")
    return outcomes


def run(
    config_path: Optional[str] = None,
    *,
    no_ai: bool = False,
    no_email: bool = False,
    no_telegram: bool = False,
    sources: Optional[Sequence] = None,
    tokenizer: Optional[TokenizerAdapter] = None,
    llm: Optional[StructuredLLM] = None,
    classifier: Optional[Classifier] = None,
    email_sender=None,
    telegram_sender=None,
    today: Optional[datetime.date] = None,
) -> RunResult:
    """Execute one scrape/summarize/publish cycle.

    Args:
        config_path: Path to main config file
        no_ai: Only scrape; no summary is generated and nothing is sent
        no_email: Skip email notifications
        no_telegram: Skip Telegram notifications
        sources, tokenizer, llm, classifier, email_sender, telegram_sender:
            Optional collaborators replacing the ones built from config

    Raises:
        ConfigurationError: Invalid config or missing credentials for an enabled channel
        RunTimeout: ``run.timeout`` expired; nothing is marked as sent
        TokenizationFailure, LLMRequestError, ResponseSchemaError, PersistenceFailure:
            Fatal step failures; the fetch stays unsent
    """
    cfg_mgr = ConfigManager(config_path)
    if cfg_mgr.created:
        logger.info(
            "Config file created at %s. Please edit it and restart the app.", cfg_mgr.config_path
        )
        return RunResult(status="config_created")

    ctx = CommandContext(config_manager=cfg_mgr)
    problems = cfg_mgr.validate_features(no_ai=no_ai, no_email=no_email, no_telegram=no_telegram)
    for problem in problems:
        logger.error(problem)
    if problems:
        raise ConfigurationError(problems[0])

    config = ctx.config
    db = ctx.db
    deadline = _Deadline(float(ctx.get_setting('run', 'timeout', DEFAULT_RUN_TIMEOUT)))

    known_urls = db.load_existing_urls()
    logger.debug("Loaded %d existing article URLs from DB", len(known_urls))

    if sources is None:
        sources = sources_from_config(config)
    fetch_id = db.create_fetch()
    written = collect_articles(
        sources,
        db,
        fetch_id,
        known_urls=known_urls,
        max_workers=int(ctx.get_setting('scrape', 'max_workers', 8)),
        queue_size=int(ctx.get_setting('scrape', 'queue_size', 200)),
        deadline=deadline.expires_at,
    )
    if written == 0:
        db.delete_fetch(fetch_id)
        logger.info("No new articles found. Everything is up to date.")
        return RunResult(status="no_new_articles")
    logger.info("Writing %d new articles to the DB finished.", written)

    if no_ai:
        logger.info("--no-ai flag set, skipping AI processing and summary sending")
        return RunResult(status="scraped_only", fetch_id=fetch_id, articles=written)

    # Summarize
    deadline.check("summarization")
    club_name = cfg_mgr.get_club_name()
    if tokenizer is None:
        tokenizer = TokenizerAdapter.from_name(ctx.get_setting('budget', 'encoding'))
    if llm is None:
        llm = StructuredLLM.from_config(config, ctx.base_dir)
    summarizer = ArticleSummarizer(
        llm,
        tokenizer,
        club_name=club_name,
        budget=truncator_settings(config),
        max_tokens=int(ctx.get_setting('llm', 'summary_max_tokens', 1000)),
    )
    articles = db.load_articles_for_fetch(fetch_id)
    summary = summarizer.summarize(articles, today=today)

    # Deduplicate against the last published digest
    deadline.check("deduplication")
    published = db.fetch_latest_published_bullets()
    logger.info(
        "These are the published bullet points that will be deduplicated against: %s",
        [b.text for b in published],
    )
    carryover = db.fetch_carryover_bullets()
    merged = summary.with_items(merge_carryover(summary.items, carryover))
    logger.debug("These are today's bullet candidates: %s", [b.text for b in merged.items])

    if classifier is None:
        classifier = OpenAIClassifier(
            llm,
            club_name=club_name,
            max_tokens=int(ctx.get_setting('llm', 'dedup_max_tokens', 500)),
            service_tier=ctx.get_setting('llm', 'dedup_service_tier'),
        )
    processed = NoveltyFilter(classifier).apply(published, merged)

    deadline.check("persisting the summary")
    db.insert_summary(fetch_id, processed)

    # Notify
    deadline.check("sending notifications")
    plain_text = format_summary_plain_text(processed)
    channels: Dict[str, Callable[[], None]] = {}

    email_cfg = cfg_mgr.get_section('email')
    if no_email:
        logger.info("--no-email flag set, skipping email notifications")
    elif email_cfg.get('enabled', True):
        sender = email_sender or sender_from_config(config, ctx.base_dir)
        recipients = cfg_mgr.get_email_recipients()
        subject = email_cfg.get('subject') or default_subject(club_name)
        channels['email'] = lambda: sender.send(recipients, plain_text, subject=subject)

    telegram_cfg = cfg_mgr.get_section('telegram')
    if no_telegram:
        logger.info("--no-telegram flag set, skipping telegram notifications")
    elif telegram_cfg.get('enabled', True):
        bot = telegram_sender or TelegramSender.from_config(config, ctx.base_dir)
        chat_ids = cfg_mgr.get_telegram_chat_ids()
        channels['telegram'] = lambda: bot.send(chat_ids, plain_text)

    outcomes = _notify(channels)

    mark_on_failure = bool(ctx.get_setting('notifications', 'mark_sent_on_failure', True))
    if mark_on_failure or all(outcomes.values()):
        db.mark_sent(fetch_id)
        status = "published"
    else:
        failed: List[str] = [name for name, ok in outcomes.items() if not ok]
        logger.warning(
            "Fetch %d left unsent because %s failed; its accepted bullets carry over to the next run",
            fetch_id, ", ".join(failed),
        )
        status = "unpublished"

    return RunResult(
        status=status,
        fetch_id=fetch_id,
        articles=written,
        summary=processed,
        notifications=outcomes,
    )
