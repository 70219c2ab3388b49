"""Generate a short narrative over a session's comment buckets using OpenAI."""
from __future__ import annotations

import logging
from typing import Sequence

from feedback_stats.models import CommentEntry, CompiledStats
from feedback_stats.openai_client import chat_completion

_logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are a helpful assistant summarizing student feedback about a training "
    "session. You receive the average rating and three groups of comments: from "
    "the highest rated, typical and lowest rated responses. Write a concise "
    "summary (<=120 words, neutral tone) of what students liked and what should "
    "improve. Do not quote comments verbatim or mention individual students."
)


def _comment_block(title: str, comments: Sequence[CommentEntry]) -> str:
    if not comments:
        return f"{title}:\n(none)"
    lines = "\n".join(f'- "{c.text}" ({c.avg_rating:.2f})' for c in comments)
    return f"{title}:\n{lines}"


def _build_user_prompt(stats: CompiledStats) -> str:
    return "\n\n".join(
        [
            f"Responses: {stats.total_responses}. Average rating: {stats.avg_rating:.2f} / 5.",
            _comment_block("Highest rated", stats.top_comments),
            _comment_block("Typical", stats.avg_comments),
            _comment_block("Lowest rated", stats.least_rated_comments),
            "Please produce the summary paragraph.",
        ]
    )


def generate_summary(
    stats: CompiledStats,
    *,
    max_tokens: int = 220,
    temperature: float = 0.4,
    max_length_chars: int = 800,
) -> str:
    """Summarize the comment buckets of *stats* in one paragraph.

    Returns an empty string when no bucket holds a comment.
    Raises RuntimeError after two failed attempts.
    """

    if not (stats.top_comments or stats.avg_comments or stats.least_rated_comments):
        return ""

    messages = [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": _build_user_prompt(stats)},
    ]

    for attempt in (1, 2):
        try:
            content = chat_completion(
                messages, temperature=temperature, max_tokens=max_tokens
            ).strip()
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Summary generation attempt %d failed: %s", attempt, exc)
            if attempt == 2:
                raise RuntimeError("OpenAI summary generation failed") from exc
            continue
        if len(content) > max_length_chars:
            content = content[:max_length_chars].rstrip() + "…"
        return content
    return ""
