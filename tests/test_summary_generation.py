"""Tests for generate_summary utility."""
from __future__ import annotations

import pytest

import feedback_stats.analysis.summary as sm
from feedback_stats.models import FreeTextAnswer, RatingAnswer, Response
from feedback_stats.reporting.aggregator import compile_stats


def _stats_with_comments():
    return compile_stats(
        [
            Response(id="r1", answers=(RatingAnswer("q", 5), FreeTextAnswer("c", "Great labs"))),
            Response(id="r2", answers=(RatingAnswer("q", 2), FreeTextAnswer("c", "Too fast"))),
        ]
    )


def test_generate_summary_normal(monkeypatch):
    captured = {}

    def _fake_chat(messages, **kwargs):
        captured["prompt"] = messages[1]["content"]
        return "  Overall, feedback is positive.  "

    monkeypatch.setattr(sm, "chat_completion", _fake_chat)

    result = sm.generate_summary(_stats_with_comments())

    assert result == "Overall, feedback is positive."
    assert "Great labs" in captured["prompt"]
    assert "Too fast" in captured["prompt"]
    assert "Average rating: 3.50" in captured["prompt"]


def test_generate_summary_without_comments(monkeypatch):
    def _fail(*_, **__):  # pragma: no cover – must not run
        raise AssertionError("should not call OpenAI")

    monkeypatch.setattr(sm, "chat_completion", _fail)

    assert sm.generate_summary(compile_stats([])) == ""


def test_truncation(monkeypatch):
    monkeypatch.setattr(sm, "chat_completion", lambda *_, **__: "a" * 1000)

    truncated = sm.generate_summary(_stats_with_comments())

    assert truncated.endswith("…")
    assert len(truncated) <= 801


def test_retry_then_fail(monkeypatch):
    calls = []

    def _flaky(*_, **__):
        calls.append(1)
        raise ConnectionError("network")

    monkeypatch.setattr(sm, "chat_completion", _flaky)

    with pytest.raises(RuntimeError):
        sm.generate_summary(_stats_with_comments())
    assert len(calls) == 2


def test_retry_recovers(monkeypatch):
    outcomes = iter([ConnectionError("network"), "Recovered."])

    def _flaky(*_, **__):
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(sm, "chat_completion", _flaky)

    assert sm.generate_summary(_stats_with_comments()) == "Recovered."
