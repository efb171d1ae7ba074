"""
OpenAI access shared by the summarizer and the novelty classifier.

Behavior
- API key from llm.api_key_file, the managed secrets directory, or the
  environment variable named by llm.api_key_env (OPENAI_API_KEY by default).
- Requests use strict JSON-schema structured output and an explicit timeout.
- Any transport error, timeout, refusal or empty content raises LLMRequestError;
  parsing the returned JSON is left to the caller.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from openai import OpenAI

from .config import DEFAULT_CONFIG_DIR
from .errors import ConfigurationError, LLMRequestError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-2024-08-06"
DEFAULT_TIMEOUT = 60.0
_KEY_FILENAME = "openai.env"


def _load_key_from_file(path: str) -> Optional[str]:
    """Read an API key from a file, tolerating KEY=value or raw key formats."""
    if not os.path.exists(path):
        return None
    with open(path, 'r', encoding='utf-8') as f:
        content = f.read().strip()
    if '=' in content:
        for line in content.splitlines():
            if line.strip().startswith('OPENAI_API_KEY'):
                parts = line.split('=', 1)
                val = parts[1].strip().strip('"').strip("'")
                if val:
                    return val
        return None
    return content or None


def resolve_api_key(config: Dict[str, Any], config_base_dir: Optional[str] = None) -> str:
    """Resolve the OpenAI API key from the config directory or environment."""
    llm_cfg = (config.get('llm') or {})
    env_var = llm_cfg.get('api_key_env') or 'OPENAI_API_KEY'
    base_dir = Path(config_base_dir) if config_base_dir else Path(DEFAULT_CONFIG_DIR)
    candidate_files: List[Path] = []

    key_file_cfg = (llm_cfg.get('api_key_file') or '').strip()
    if key_file_cfg:
        key_path = Path(key_file_cfg).expanduser()
        candidate_files.append(key_path if key_path.is_absolute() else base_dir / key_path)

    candidate_files.append(base_dir / 'secrets' / _KEY_FILENAME)

    for path in candidate_files:
        key = _load_key_from_file(str(path))
        if key:
            return key

    key = os.environ.get(env_var)
    if key:
        return key

    raise ConfigurationError(
        "Missing OpenAI API key. Set %s or place the key in %s"
        % (env_var, base_dir / 'secrets' / _KEY_FILENAME)
    )


class StructuredLLM:
    """Chat Completions client that returns schema-constrained JSON text."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Any = None,
    ):
        self.model = model
        self.timeout = timeout
        self._client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    @classmethod
    def from_config(cls, config: Dict[str, Any], config_base_dir: Optional[str] = None) -> "StructuredLLM":
        llm_cfg = config.get('llm') or {}
        return cls(
            resolve_api_key(config, config_base_dir),
            llm_cfg.get('model') or DEFAULT_MODEL,
            timeout=float(llm_cfg.get('timeout', DEFAULT_TIMEOUT)),
        )

    def complete_json(
        self,
        *,
        system: str,
        user: str,
        schema_name: str,
        schema: Dict[str, Any],
        max_tokens: int,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Send one request and return the raw JSON content of the first choice."""
        response_format = {
            "type": "json_schema",
            "json_schema": {"name": schema_name, "schema": schema, "strict": True},
        }
        start = time.monotonic()
        logger.debug("Calling %s for '%s' with %.0fs timeout", self.model, schema_name, self.timeout)
        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                response_format=response_format,
                max_tokens=max_tokens,
                timeout=self.timeout,
                **(extra or {}),
            )
        except Exception as exc:
            elapsed = time.monotonic() - start
            raise LLMRequestError(
                f"OpenAI request '{schema_name}' failed after {elapsed:.1f}s: {exc}"
            ) from exc
        logger.debug("OpenAI call '%s' completed in %.1fs", schema_name, time.monotonic() - start)

        for choice in (resp.choices or []):
            content = (choice.message.content or "").strip()
            if content:
                return content
        raise LLMRequestError(f"No valid content in OpenAI response for '{schema_name}'")


__all__ = ["StructuredLLM", "resolve_api_key", "DEFAULT_MODEL", "DEFAULT_TIMEOUT"]
