"""Aggregate raw session responses into a frozen :class:`CompiledStats`.

The module is a pipeline of pure functions: every response is summarized
once, and the global aggregates, the rating distribution, the comment buckets
and the per-question tallies are all derived from those summaries.  Nothing
here performs I/O or keeps state between calls, so :func:`compile_stats` may
run concurrently for different sessions.
"""

from __future__ import annotations

import datetime
import itertools
import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from feedback_stats.models import (
    Answer,
    AnswerKind,
    ChoiceAnswer,
    CommentEntry,
    CompiledStats,
    FreeTextAnswer,
    QuestionStats,
    RatingAnswer,
    Response,
)
from feedback_stats.reporting import config

logger = logging.getLogger(__name__)

__all__ = [
    "ResponseSummary",
    "compile_stats",
    "empty_stats",
    "extract_comments",
    "round_half_up",
    "split_buckets",
    "summarize_response",
]


@dataclass(frozen=True, slots=True)
class ResponseSummary:
    """Per-response view used by every later step.

    ``avg_rating`` is *None* when the response carried no usable rating; such
    responses take no part in rating statistics or comment bucketing.
    """

    response_id: str
    ratings: Tuple[float, ...]
    avg_rating: Optional[float]
    text_comments: Tuple[str, ...]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float, places: int = config.RATING_DECIMALS) -> float:
    """Round *value* to *places* decimals, halves away from zero for positives."""
    factor = 10**places
    return math.floor(value * factor + 0.5) / factor


def _rating_bucket(value: float) -> Optional[int]:
    bucket = math.floor(value + 0.5)
    if config.RATING_MIN <= bucket <= config.RATING_MAX:
        return bucket
    return None


def _usable_rating(answer: RatingAnswer) -> Optional[float]:
    """Return the rating value, or *None* if it cannot be aggregated.

    Only finite numbers inside the 1..5 scale are usable, so no mean built
    from them can leave the scale either.
    """
    value = answer.value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    if not config.RATING_MIN <= value <= config.RATING_MAX:
        return None
    return float(value)


def _zero_distribution() -> Dict[int, int]:
    return {rating: 0 for rating in range(config.RATING_MIN, config.RATING_MAX + 1)}


def _distribution(values: Iterable[float]) -> Dict[int, int]:
    counts = Counter(_rating_bucket(v) for v in values)
    counts.pop(None, None)
    distribution = _zero_distribution()
    distribution.update(counts)
    return distribution


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------


def summarize_response(response: Response) -> ResponseSummary:
    """Reduce *response* to its usable ratings and non-blank comments."""
    ratings: List[float] = []
    comments: List[str] = []
    for answer in response.answers:
        if isinstance(answer, RatingAnswer):
            value = _usable_rating(answer)
            if value is None:
                logger.debug(
                    "Discarding rating %r for question %s in response %s",
                    answer.value,
                    answer.question_id,
                    response.id,
                )
                continue
            ratings.append(value)
        elif isinstance(answer, FreeTextAnswer):
            if isinstance(answer.text, str) and answer.text.strip():
                comments.append(answer.text)

    avg = sum(ratings) / len(ratings) if ratings else None
    return ResponseSummary(
        response_id=response.id,
        ratings=tuple(ratings),
        avg_rating=avg,
        text_comments=tuple(comments),
    )


def split_buckets(
    rated: Sequence[ResponseSummary],
) -> Tuple[List[ResponseSummary], List[ResponseSummary], List[ResponseSummary]]:
    """Split rated summaries into ``(high, middle, low)`` by rank.

    Summaries are ordered by average rating, highest first; equal averages
    keep their input order.  The top and bottom ``ceil(N * BUCKET_FRACTION)``
    entries form the high and low buckets (low is reversed so the worst comes
    first) and whatever lies between is the middle.  Slicing is done by index
    without rebalancing, so with a single rated response that response lands
    in both the high and the low bucket.
    """
    ordered = sorted(rated, key=lambda s: s.avg_rating, reverse=True)
    total = len(ordered)
    top_count = math.ceil(total * config.BUCKET_FRACTION)
    bottom_count = math.ceil(total * config.BUCKET_FRACTION)

    high = ordered[:top_count]
    low = ordered[total - bottom_count :][::-1]
    middle = ordered[top_count : total - bottom_count]
    return high, middle, low


def extract_comments(
    bucket: Sequence[ResponseSummary],
    limit: int = config.MAX_COMMENTS_PER_BUCKET,
) -> Tuple[CommentEntry, ...]:
    """Take up to *limit* comments from *bucket*, one response at a time."""
    pairs = (
        (summary, text) for summary in bucket for text in summary.text_comments
    )
    return tuple(
        CommentEntry(
            text=text,
            avg_rating=round_half_up(summary.avg_rating),
            response_id=summary.response_id,
        )
        for summary, text in itertools.islice(pairs, limit)
    )


def _question_stats(responses: Sequence[Response]) -> Dict[str, QuestionStats]:
    grouped: Dict[str, List[Answer]] = {}
    for response in responses:
        for answer in response.answers:
            grouped.setdefault(answer.question_id, []).append(answer)

    out: Dict[str, QuestionStats] = {}
    for question_id, answers in grouped.items():
        # A question is typed by the first answer seen for it.
        kind = answers[0].kind
        if kind is AnswerKind.RATING:
            values = [
                v
                for v in (
                    _usable_rating(a) for a in answers if isinstance(a, RatingAnswer)
                )
                if v is not None
            ]
            avg = round_half_up(sum(values) / len(values)) if values else 0.0
            out[question_id] = QuestionStats(
                kind=kind,
                count=len(answers),
                avg=avg,
                distribution=_distribution(values),
            )
        elif kind is AnswerKind.CHOICE:
            option_counts = Counter(
                a.selected for a in answers if isinstance(a, ChoiceAnswer)
            )
            out[question_id] = QuestionStats(
                kind=kind, count=len(answers), option_counts=dict(option_counts)
            )
        else:
            out[question_id] = QuestionStats(kind=kind, count=len(answers))
    return out


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def empty_stats(compiled_at: datetime.datetime) -> CompiledStats:
    """Return the fully zeroed stats used for a session without responses."""
    return CompiledStats(
        total_responses=0,
        avg_rating=0,
        top_rating=0,
        least_rating=0,
        rating_distribution=_zero_distribution(),
        top_comments=(),
        avg_comments=(),
        least_rated_comments=(),
        compiled_at=compiled_at,
        question_stats={},
    )


def compile_stats(
    responses: Iterable[Response],
    *,
    compiled_at: Optional[datetime.datetime] = None,
) -> CompiledStats:
    """Compile *responses* into :class:`CompiledStats`.

    Output depends on input order only through the tie-break among responses
    with equal average ratings.  Malformed ratings are discarded rather than
    rejected, so the function does not raise for any list of responses.
    """
    responses = list(responses)
    compiled_at = compiled_at or datetime.datetime.now(datetime.timezone.utc)

    if not responses:
        return empty_stats(compiled_at)

    summaries = [summarize_response(r) for r in responses]
    rated = [s for s in summaries if s.avg_rating is not None]
    averages = [s.avg_rating for s in rated]

    high, middle, low = split_buckets(rated)

    stats = CompiledStats(
        total_responses=len(responses),
        avg_rating=round_half_up(sum(averages) / len(averages)) if averages else 0,
        top_rating=round_half_up(max(averages)) if averages else 0,
        least_rating=round_half_up(min(averages)) if averages else 0,
        rating_distribution=_distribution(
            itertools.chain.from_iterable(s.ratings for s in summaries)
        ),
        top_comments=extract_comments(high),
        avg_comments=extract_comments(middle),
        least_rated_comments=extract_comments(low),
        compiled_at=compiled_at,
        question_stats=_question_stats(responses),
    )
    logger.debug(
        "Compiled stats: responses=%d rated=%d buckets=%d/%d/%d",
        stats.total_responses,
        len(rated),
        len(high),
        len(middle),
        len(low),
    )
    return stats
