"""Lightweight OpenAI client helper.

Centralises API-key handling so the rest of the codebase can simply do:

    from feedback_stats.openai_client import chat_completion

and get back the text of the first choice.
"""
from __future__ import annotations

import os
import threading
from typing import Any, Dict, List, Optional

from openai import OpenAI


class OpenAIClientError(RuntimeError):
    """Raised when client configuration is invalid (e.g., missing API key)."""


_DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1")

_client: Optional[OpenAI] = None
_client_lock = threading.Lock()


def _ensure_api_key_present() -> str:
    """Return the ``OPENAI_API_KEY`` env var or raise.

    Raises
    ------
    OpenAIClientError
        If the env var is missing or empty.
    """

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise OpenAIClientError("OPENAI_API_KEY environment variable is not set.")
    return api_key


def get_openai_client() -> OpenAI:
    """Return a shared :class:`openai.OpenAI` client, creating it on first use."""
    global _client

    with _client_lock:
        if _client is None:
            _client = OpenAI(
                api_key=_ensure_api_key_present(),
                organization=os.getenv("OPENAI_ORG") or None,
            )
        return _client


def reset_client() -> None:
    """Forget the cached client so the next call re-reads the environment."""
    global _client

    with _client_lock:
        _client = None


def chat_completion(
    messages: List[Dict[str, str]],
    *,
    model: str = _DEFAULT_MODEL,
    **kwargs: Any,
) -> str:
    """Run a chat completion and return the first choice's text.

    Parameters
    ----------
    messages
        Chat messages in OpenAI format.
    model
        Model id to use (default: ``OPENAI_MODEL`` or ``gpt-4.1``).
    kwargs
        Additional parameters forwarded to ``chat.completions.create``.
    """

    client = get_openai_client()
    completion = client.chat.completions.create(
        model=model, messages=messages, **kwargs
    )
    return completion.choices[0].message.content or ""
