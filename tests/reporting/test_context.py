"""Unit tests for ReportContext building."""
from __future__ import annotations

import datetime

import pytest

from feedback_stats.models import ChoiceAnswer, FreeTextAnswer, RatingAnswer, Response
from feedback_stats.reporting import config
from feedback_stats.reporting.aggregator import compile_stats
from feedback_stats.reporting.context import (
    ReportContext,
    _distribution_rows,
    build_report_context,
)
from feedback_stats.session_data import SessionData


def _closed_session() -> SessionData:
    responses = [
        Response(
            id=f"r{i}",
            answers=(
                RatingAnswer("clarity", v),
                FreeTextAnswer("notes", f"comment {i}"),
                ChoiceAnswer("pace", "Too fast" if v < 3 else "Just right"),
            ),
        )
        for i, v in enumerate([5, 4, 4, 3, 2, 1])
    ]
    session = SessionData("sess-ctx", "Operating systems", trainer_name="Dr. Rao")
    session.close(
        compile_stats(responses),
        closed_at=datetime.datetime(2025, 6, 12, 17, 0, tzinfo=datetime.timezone.utc),
    )
    return session


def test_build_report_context(monkeypatch):
    monkeypatch.setattr(
        "feedback_stats.reporting.context.generate_summary", lambda stats: "All good."
    )

    ctx = build_report_context(_closed_session())

    assert ctx.session_id == "sess-ctx"
    assert ctx.topic == "Operating systems"
    assert ctx.closed_on == "2025-06-12"
    assert ctx.trainer_name == "Dr. Rao"
    assert ctx.total_responses == 6
    assert ctx.avg_rating == 3.17
    assert ctx.summary == "All good."
    assert [row.rating for row in ctx.distribution] == [5, 4, 3, 2, 1]
    assert [row.count for row in ctx.distribution] == [1, 2, 1, 1, 1]
    assert ctx.top_comments[0] == {"text": "comment 0", "avg_rating": 5.0}
    assert ctx.least_rated_comments[0] == {"text": "comment 5", "avg_rating": 1.0}


def test_question_rows(monkeypatch):
    monkeypatch.setattr(
        "feedback_stats.reporting.context.generate_summary", lambda stats: ""
    )

    rows = {row["question_id"]: row for row in build_report_context(_closed_session()).questions}

    assert rows["clarity"]["detail"] == "avg 3.17"
    assert rows["pace"]["detail"] == "Just right: 4, Too fast: 2"
    assert rows["notes"]["detail"] == ""
    assert rows["notes"]["count"] == 6


def test_summary_failure_is_swallowed(monkeypatch):
    def _boom(_stats):
        raise RuntimeError("OpenAI down")

    monkeypatch.setattr("feedback_stats.reporting.context.generate_summary", _boom)

    ctx = build_report_context(_closed_session())

    assert ctx.summary == ""
    assert ctx.total_responses == 6


def test_summary_can_be_disabled(monkeypatch):
    def _fail(_stats):  # pragma: no cover – must not run
        raise AssertionError("summary should not be requested")

    monkeypatch.setattr("feedback_stats.reporting.context.generate_summary", _fail)

    ctx = build_report_context(_closed_session(), include_summary=False)

    assert ctx.summary == ""


def test_open_session_has_no_report():
    with pytest.raises(ValueError):
        build_report_context(SessionData("open", "topic"), include_summary=False)


def test_distribution_bars_scale_to_peak():
    rows = _distribution_rows({1: 0, 2: 1, 3: 0, 4: 10, 5: 5}, max_bar=10)
    bars = {row.rating: row.bar for row in rows}

    assert len(bars[4]) == 10
    assert len(bars[5]) == 5
    assert len(bars[2]) == 1  # non-zero buckets always get a mark
    assert bars[1] == bars[3] == ""


def test_to_dict_roundtrip(monkeypatch):
    monkeypatch.setattr(
        "feedback_stats.reporting.context.generate_summary", lambda stats: ""
    )
    ctx = build_report_context(_closed_session())

    as_dict = ctx.to_dict()

    assert as_dict["session_id"] == ctx.session_id
    assert as_dict["distribution"][0] == {
        "rating": 5,
        "count": 1,
        "bar": ctx.distribution[0].bar,
    }
    assert ctx() == as_dict


def test_default_lists_are_empty():
    ctx = ReportContext(session_id="s", topic="t", closed_on="2025-01-01")

    assert ctx.distribution == []
    assert ctx.top_comments == []
    assert ctx.questions == []
    assert len(ctx.to_dict()["questions"]) <= config.MAX_QUESTIONS
