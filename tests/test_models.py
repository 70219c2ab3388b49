"""Tests for raw document parsing into typed answers and responses."""
from __future__ import annotations

import datetime

import pytest

from feedback_stats.models import (
    AnswerKind,
    ChoiceAnswer,
    FreeTextAnswer,
    RatingAnswer,
    Response,
    parse_answer,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"questionId": "q1", "type": "rating", "value": 4}, RatingAnswer("q1", 4.0)),
        ({"questionId": "q1", "type": "rating", "value": "3"}, RatingAnswer("q1", 3.0)),
        ({"questionId": "q2", "type": "text", "value": "nice"}, FreeTextAnswer("q2", "nice")),
        ({"questionId": "q2", "kind": "freeText", "value": "ok"}, FreeTextAnswer("q2", "ok")),
        ({"questionId": "q3", "type": "mcq", "value": "A"}, ChoiceAnswer("q3", "A")),
        ({"questionId": "q3", "type": "choice", "value": "B"}, ChoiceAnswer("q3", "B")),
        # legacy value keys
        ({"questionId": "q4", "type": "rating", "rating": 5}, RatingAnswer("q4", 5.0)),
        ({"questionId": "q5", "type": "comment", "comment": "hi"}, FreeTextAnswer("q5", "hi")),
        ({"questionId": "q6", "type": "select", "selectValue": "3rd Year"}, ChoiceAnswer("q6", "3rd Year")),
        # untyped legacy answers, kind taken from the value key
        ({"questionId": "q7", "rating": 4}, RatingAnswer("q7", 4.0)),
        ({"questionId": "q8", "comment": "more labs"}, FreeTextAnswer("q8", "more labs")),
        ({"questionId": "q9", "selectValue": "CSE"}, ChoiceAnswer("q9", "CSE")),
    ],
)
def test_parse_answer_accepts_known_shapes(raw, expected):
    assert parse_answer(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "rating:5",
        {"questionId": "q1", "type": "rating"},
        {"questionId": "q1", "type": "rating", "value": None},
        {"questionId": "q1", "type": "rating", "value": "five"},
        {"questionId": "q1", "type": "rating", "value": True},
        {"questionId": "q1", "type": "rating", "value": ""},
        {"questionId": "q1", "type": "text", "value": "   "},
        {"questionId": "q1", "type": "text", "value": 12},
        {"questionId": "q1", "type": "boolean", "value": True},
        {"type": "rating", "value": 4},
        {"questionId": "q1", "value": 4},
        {"questionId": "q1", "rating": None},
        {"questionId": "q1", "comment": "  "},
    ],
)
def test_parse_answer_drops_malformed(raw):
    assert parse_answer(raw) is None


def test_answer_kinds():
    assert RatingAnswer("q", 1).kind is AnswerKind.RATING
    assert FreeTextAnswer("q", "t").kind is AnswerKind.FREE_TEXT
    assert ChoiceAnswer("q", "c").kind is AnswerKind.CHOICE
    assert AnswerKind.FREE_TEXT.value == "freeText"


def test_response_from_dict():
    doc = {
        "id": "abc",
        "submittedAt": "2025-02-01T10:30:00Z",
        "answers": [
            {"questionId": "q1", "type": "rating", "value": 4},
            {"questionId": "q2", "type": "text", "value": "clear examples"},
            {"questionId": "q3", "type": "mystery", "value": "?"},
        ],
    }

    response = Response.from_dict(doc)

    assert response.id == "abc"
    assert response.answers == (
        RatingAnswer("q1", 4.0),
        FreeTextAnswer("q2", "clear examples"),
    )
    assert response.submitted_at == datetime.datetime(
        2025, 2, 1, 10, 30, tzinfo=datetime.timezone.utc
    )


def test_response_from_dict_timestamp_variants():
    epoch = Response.from_dict({"id": "e", "submittedAt": 0})
    naive = Response.from_dict({"id": "n", "submittedAt": datetime.datetime(2025, 1, 1)})
    missing = Response.from_dict({"id": "m"})

    assert epoch.submitted_at == datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
    assert naive.submitted_at.tzinfo is datetime.timezone.utc
    assert missing.submitted_at.tzinfo is not None
    assert missing.answers == ()


def test_response_from_dict_requires_id():
    with pytest.raises(ValueError):
        Response.from_dict({"answers": []})


def test_response_from_dict_reads_untyped_legacy_answers():
    doc = {
        "id": "old-1",
        "answers": [
            {"questionId": "q1", "rating": 5},
            {"questionId": "q2", "comment": "loved the demos"},
            {"questionId": "q3", "selectValue": "2nd Year"},
        ],
    }

    response = Response.from_dict(doc)

    assert response.answers == (
        RatingAnswer("q1", 5.0),
        FreeTextAnswer("q2", "loved the demos"),
        ChoiceAnswer("q3", "2nd Year"),
    )


def test_direct_naive_timestamp_is_taken_as_utc():
    response = Response(id="r1", submitted_at=datetime.datetime(2025, 1, 1, 8, 0))

    assert response.submitted_at == datetime.datetime(
        2025, 1, 1, 8, 0, tzinfo=datetime.timezone.utc
    )


def test_response_is_immutable():
    response = Response(id="r1")
    with pytest.raises(AttributeError):
        response.id = "r2"  # type: ignore[misc]
