"""Thin adapter around a byte-pair-encoding tokenizer.

The truncator only needs two operations: count the tokens of a string and
decode the first N tokens of a string. Any object exposing ``encode(text)``
and ``decode(ids)`` works; production uses a ``tiktoken`` encoding.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from .errors import TokenizationFailure

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "o200k_base"


class TokenizerAdapter:
    """Count and prefix-decode tokens with an underlying encoding."""

    def __init__(self, encoding: Any):
        self._encoding = encoding

    @classmethod
    def from_name(cls, name: Optional[str] = None) -> "TokenizerAdapter":
        """Load a ``tiktoken`` encoding by name (``o200k_base`` by default)."""
        encoding_name = name or DEFAULT_ENCODING
        try:
            import tiktoken

            encoding = tiktoken.get_encoding(encoding_name)
        except Exception as exc:
            raise TokenizationFailure(f"Could not load tokenizer '{encoding_name}': {exc}") from exc
        logger.debug("Loaded tokenizer encoding '%s'", encoding_name)
        return cls(encoding)

    def encode(self, text: str) -> List[int]:
        if not text:
            return []
        try:
            # Scraped text may contain "<|endoftext|>"; encode it as plain text
            return list(self._encoding.encode(text, disallowed_special=()))
        except Exception as exc:
            raise TokenizationFailure(f"Tokenizer failed to encode text: {exc}") from exc

    def count(self, text: str) -> int:
        """Return the number of tokens in *text*."""
        return len(self.encode(text))

    def decode_prefix(self, text: str, n: int) -> str:
        """Return the text of the first *n* tokens of *text*."""
        if n <= 0 or not text:
            return ""
        ids = self.encode(text)
        if n >= len(ids):
            ids_to_keep = ids
        else:
            ids_to_keep = ids[:n]
        try:
            return self._encoding.decode(ids_to_keep)
        except Exception as exc:
            raise TokenizationFailure(f"Tokenizer failed to decode {len(ids_to_keep)} tokens: {exc}") from exc


__all__ = ["TokenizerAdapter", "DEFAULT_ENCODING"]
