"""Tests for token-budget truncation."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from club_digest.core.errors import BudgetUnsatisfiable, TokenizationFailure  # noqa: E402
from club_digest.core.models import Article  # noqa: E402
from club_digest.core.tokenizer import TokenizerAdapter  # noqa: E402
from club_digest.processors.truncator import (  # noqa: E402
    plan_budget,
    truncate_articles,
    truncator_settings,
)


class WordEncoding:
    """One token per whitespace-separated word."""

    def __init__(self):
        self.vocab = []
        self.index = {}

    def encode(self, text, **kwargs):
        ids = []
        for word in text.split():
            if word not in self.index:
                self.index[word] = len(self.vocab)
                self.vocab.append(word)
            ids.append(self.index[word])
        return ids

    def decode(self, ids):
        return " ".join(self.vocab[i] for i in ids)


class BrokenEncoding:
    def encode(self, text, **kwargs):
        raise RuntimeError("boom")

    def decode(self, ids):
        raise RuntimeError("boom")


def words(prefix, n):
    return " ".join(f"{prefix}{i}" for i in range(n))


@pytest.fixture
def tokenizer():
    return TokenizerAdapter(WordEncoding())


def test_longest_body_is_trimmed_first(tokenizer):
    articles = [Article("T1", words("a", 30)), Article("T2", words("b", 80))]

    plan = plan_budget(articles, tokenizer, max_total_tokens=90, min_body_tokens=10, separator_tokens=6)

    assert plan.keep_body_tokens == [30, 46]
    assert plan.total_tokens == 90
    assert not plan.over_budget

    text = truncate_articles(articles, tokenizer, max_total_tokens=90, min_body_tokens=10, separator_tokens=6)
    assert text == f"T1\n\n{words('a', 30)}\n\nT2\n\n{words('b', 46)}"


def test_untouched_when_within_budget(tokenizer):
    articles = [Article("Title one", "first  body\nwith breaks"), Article("Title two", "second")]

    text = truncate_articles(articles, tokenizer, max_total_tokens=1000)

    # verbatim join, original whitespace kept
    assert text == "Title one\n\nfirst  body\nwith breaks\n\nTitle two\n\nsecond"


def test_empty_article_list_gives_empty_text(tokenizer):
    assert truncate_articles([], tokenizer) == ""


@pytest.mark.parametrize(
    "lengths,max_total,floor",
    [
        ([5, 200, 120, 120], 150, 20),
        ([50, 50, 50], 60, 10),
        ([300], 100, 40),
        ([3, 4, 5], 1, 2),
        ([100, 90, 80, 70, 60], 250, 15),
    ],
)
def test_fits_or_floors_and_never_below_floor(tokenizer, lengths, max_total, floor):
    articles = [Article(f"t{i}", words(f"w{i}_", n)) for i, n in enumerate(lengths)]

    plan = plan_budget(articles, tokenizer, max_total_tokens=max_total, min_body_tokens=floor, separator_tokens=6)

    if plan.total_tokens > max_total:
        assert all(k == floor or b < floor for k, b in zip(plan.keep_body_tokens, plan.body_tokens))
    for kept, original in zip(plan.keep_body_tokens, plan.body_tokens):
        assert kept <= original
        if kept < original:
            assert kept >= floor
        if original <= floor:
            assert kept == original


def test_equal_bodies_still_make_progress(tokenizer):
    articles = [Article("x", words("a", 50)), Article("y", words("b", 50))]

    plan = plan_budget(articles, tokenizer, max_total_tokens=70, min_body_tokens=10, separator_tokens=0)

    # first of the tied bodies absorbs the shave
    assert plan.total_tokens == 70
    assert plan.keep_body_tokens == [18, 50]


def test_over_budget_is_best_effort_by_default(tokenizer, caplog):
    articles = [Article("t", words("a", 30)), Article("u", words("b", 30))]

    text = truncate_articles(articles, tokenizer, max_total_tokens=10, min_body_tokens=20, separator_tokens=6)

    assert text == f"t\n\n{words('a', 20)}\n\nu\n\n{words('b', 20)}"
    assert "unsatisfiable" in caplog.text


def test_over_budget_raises_in_strict_mode(tokenizer):
    articles = [Article("t", words("a", 30))]

    with pytest.raises(BudgetUnsatisfiable) as excinfo:
        truncate_articles(articles, tokenizer, max_total_tokens=10, min_body_tokens=20, strict=True)

    assert excinfo.value.max_total_tokens == 10
    assert excinfo.value.total_tokens == 1 + 20 + 6


def test_tokenizer_errors_are_fatal():
    broken = TokenizerAdapter(BrokenEncoding())

    with pytest.raises(TokenizationFailure):
        truncate_articles([Article("t", "body")], broken)


def test_truncator_settings_reads_budget_section():
    settings = truncator_settings({'budget': {'max_total_tokens': 500, 'min_body_tokens': 5}})

    assert settings == {'max_total_tokens': 500, 'min_body_tokens': 5, 'separator_tokens': 6}
