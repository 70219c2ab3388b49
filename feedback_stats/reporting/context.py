"""Context dataclass for rendering a closed session's report.

``ReportContext`` holds every value used by ``templates/report.md.j2``.  It is
built only from the frozen ``compiled_stats`` of a closed session, never from
raw responses, so a report always matches the stored record.
"""
from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from feedback_stats.analysis.summary import generate_summary
from feedback_stats.models import CommentEntry, CompiledStats
from feedback_stats.reporting import config
from feedback_stats.session_data import SessionData

__all__ = [
    "DistributionRow",
    "ReportContext",
    "build_report_context",
]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DistributionRow:
    """One line of the rating distribution chart."""

    rating: int
    count: int
    bar: str


@dataclass(slots=True)
class ReportContext:
    """Container with all fields used by the report template."""

    # Header & meta
    session_id: str
    topic: str
    closed_on: str  # ISO-8601 date string (UTC)
    trainer_name: Optional[str] = None
    college_name: Optional[str] = None

    # Rating aggregates
    total_responses: int = 0
    avg_rating: float = 0
    top_rating: float = 0
    least_rating: float = 0
    distribution: List[DistributionRow] = field(default_factory=list)

    # Comment buckets
    top_comments: List[Dict[str, Any]] = field(default_factory=list)
    avg_comments: List[Dict[str, Any]] = field(default_factory=list)
    least_rated_comments: List[Dict[str, Any]] = field(default_factory=list)

    # Per-question rows
    questions: List[Dict[str, Any]] = field(default_factory=list)

    summary: str = ""
    version: str = "1"

    def to_dict(self) -> Dict[str, Any]:  # noqa: D401 – simple helper
        """Return a *plain* ``dict`` (recursively) for Jinja rendering."""
        return asdict(self)

    __call__ = to_dict


def _distribution_rows(
    distribution: Dict[int, int], max_bar: int = config.MAX_DISTRIBUTION_BAR
) -> List[DistributionRow]:
    """Return rows from 5 down to 1 with bars scaled to the largest bucket."""
    peak = max(distribution.values(), default=0) or 1
    rows = []
    for rating in range(config.RATING_MAX, config.RATING_MIN - 1, -1):
        count = distribution.get(rating, 0)
        width = max(1 if count else 0, round(count * max_bar / peak))
        rows.append(DistributionRow(rating=rating, count=count, bar="█" * width))
    return rows


def _comment_dicts(comments: Sequence[CommentEntry]) -> List[Dict[str, Any]]:
    return [{"text": c.text, "avg_rating": c.avg_rating} for c in comments]


def _question_rows(stats: CompiledStats) -> List[Dict[str, Any]]:
    rows = []
    for question_id, qs in list(stats.question_stats.items())[: config.MAX_QUESTIONS]:
        if qs.avg is not None:
            detail = f"avg {qs.avg:.2f}"
        elif qs.option_counts:
            detail = ", ".join(
                f"{option}: {count}"
                for option, count in sorted(
                    qs.option_counts.items(), key=lambda kv: (-kv[1], kv[0])
                )
            )
        else:
            detail = ""
        rows.append(
            {
                "question_id": question_id,
                "kind": qs.kind.value,
                "count": qs.count,
                "detail": detail,
            }
        )
    return rows


def build_report_context(
    session: SessionData, *, include_summary: bool = True
) -> ReportContext:
    """Convert a closed *session* into :class:`ReportContext`.

    The narrative summary is optional; if it cannot be generated the report
    is built without it.

    Raises
    ------
    ValueError
        If *session* has no compiled stats yet.
    """
    stats = session.compiled_stats
    if stats is None:
        raise ValueError(f"Session {session.session_id} has no compiled stats.")

    summary = ""
    if include_summary:
        try:
            summary = generate_summary(stats)
        except Exception as exc:  # noqa: BLE001 – summary is optional
            logger.warning(
                "Summary generation failed for session %s: %s", session.session_id, exc
            )

    closed_at = session.closed_at or stats.compiled_at
    return ReportContext(
        session_id=session.session_id,
        topic=session.topic,
        closed_on=closed_at.strftime("%Y-%m-%d"),
        trainer_name=session.trainer_name,
        college_name=session.college_name,
        total_responses=stats.total_responses,
        avg_rating=stats.avg_rating,
        top_rating=stats.top_rating,
        least_rating=stats.least_rating,
        distribution=_distribution_rows(stats.rating_distribution),
        top_comments=_comment_dicts(stats.top_comments),
        avg_comments=_comment_dicts(stats.avg_comments),
        least_rated_comments=_comment_dicts(stats.least_rated_comments),
        questions=_question_rows(stats),
        summary=summary,
        version=os.getenv("REPORT_VERSION", "0.1"),
    )
