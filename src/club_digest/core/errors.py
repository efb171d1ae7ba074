"""Exception hierarchy shared by the digest pipeline.

Fatal errors (tokenization, LLM, schema, persistence, timeout) abort a run
before anything is marked as sent. ``BudgetUnsatisfiable`` and
``NotificationFailure`` are usually logged and swallowed by their callers.
"""

from __future__ import annotations

from typing import Optional


class DigestError(Exception):
    """Base class for every error raised by club_digest."""


class ConfigurationError(DigestError):
    """Configuration is missing or invalid for an enabled feature."""


class TokenizationFailure(DigestError):
    """The tokenizer could not be loaded or failed while encoding/decoding."""


class BudgetUnsatisfiable(DigestError):
    """All trimmable bodies reached the floor and the text is still over budget."""

    def __init__(self, total_tokens: int, max_total_tokens: int):
        super().__init__(
            f"Token budget unsatisfiable: {total_tokens} tokens after trimming, "
            f"limit is {max_total_tokens}"
        )
        self.total_tokens = total_tokens
        self.max_total_tokens = max_total_tokens


class LLMRequestError(DigestError):
    """The language model call timed out, failed, or returned no content."""


class ResponseSchemaError(DigestError):
    """A structured model response did not match the expected schema."""


class SummarySchemaError(ResponseSchemaError):
    """The summarizer response is not a ``{"mood": str, "items": [str]}`` object."""


class ClassificationSchemaError(ResponseSchemaError):
    """The novelty classifier response is not a ``{"results": [bool]}`` object."""


class ResultCountMismatch(ClassificationSchemaError):
    """The classifier returned a different number of decisions than candidates."""

    def __init__(self, expected: int, received: int):
        super().__init__(f"Classifier returned {received} results, expected {expected}")
        self.expected = expected
        self.received = received


class PersistenceFailure(DigestError):
    """A store transaction failed and was rolled back."""


class NotificationFailure(DigestError):
    """Delivering the digest over one notification channel failed."""

    def __init__(self, channel: str, message: str, *, recipient: Optional[str] = None):
        target = f" ({recipient})" if recipient else ""
        super().__init__(f"{channel}{target}: {message}")
        self.channel = channel
        self.recipient = recipient


class RunTimeout(DigestError):
    """The overall run deadline expired."""


__all__ = [
    "DigestError",
    "ConfigurationError",
    "TokenizationFailure",
    "BudgetUnsatisfiable",
    "LLMRequestError",
    "ResponseSchemaError",
    "SummarySchemaError",
    "ClassificationSchemaError",
    "ResultCountMismatch",
    "PersistenceFailure",
    "NotificationFailure",
    "RunTimeout",
]
