"""Data structures shared by the repository, the engine and the reporting pipeline.

Answers are a tagged union of three frozen dataclasses.  Each variant carries a
class-level ``kind`` so callers can dispatch either with ``isinstance`` or by
comparing ``answer.kind``.
"""

from __future__ import annotations

import datetime
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class AnswerKind(str, Enum):
    """Enumeration of supported answer shapes."""

    RATING = "rating"
    FREE_TEXT = "freeText"
    CHOICE = "choice"


@dataclass(frozen=True, slots=True)
class RatingAnswer:
    """A 1..5 rating given to one question."""

    kind: ClassVar[AnswerKind] = AnswerKind.RATING

    question_id: str
    value: float


@dataclass(frozen=True, slots=True)
class FreeTextAnswer:
    """A free-form comment."""

    kind: ClassVar[AnswerKind] = AnswerKind.FREE_TEXT

    question_id: str
    text: str


@dataclass(frozen=True, slots=True)
class ChoiceAnswer:
    """One option picked from the question's declared options."""

    kind: ClassVar[AnswerKind] = AnswerKind.CHOICE

    question_id: str
    selected: str


Answer = Union[RatingAnswer, FreeTextAnswer, ChoiceAnswer]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True, slots=True)
class Response:
    """One respondent's full submission to a session.  Never mutated."""

    id: str
    answers: Tuple[Answer, ...] = ()
    submitted_at: datetime.datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        # Naive timestamps are taken as UTC so every response sorts together.
        if self.submitted_at.tzinfo is None:
            object.__setattr__(
                self,
                "submitted_at",
                self.submitted_at.replace(tzinfo=datetime.timezone.utc),
            )

    @classmethod
    def from_dict(cls, doc: Mapping[str, Any]) -> "Response":
        """Build a :class:`Response` from a raw stored document.

        Unknown answer kinds and answers without a usable value are dropped.

        Raises
        ------
        ValueError
            If the document has no ``id``.
        """
        response_id = doc.get("id")
        if not response_id:
            raise ValueError("Response document is missing an id.")

        answers = []
        for raw in doc.get("answers") or []:
            answer = parse_answer(raw)
            if answer is None:
                logger.debug(
                    "Dropping malformed answer in response %s: %r", response_id, raw
                )
                continue
            answers.append(answer)

        return cls(
            id=str(response_id),
            answers=tuple(answers),
            submitted_at=_parse_timestamp(doc.get("submittedAt")),
        )


# ---------------------------------------------------------------------------
# Raw document parsing
# ---------------------------------------------------------------------------

_KIND_ALIASES: Dict[str, AnswerKind] = {
    "rating": AnswerKind.RATING,
    "text": AnswerKind.FREE_TEXT,
    "freetext": AnswerKind.FREE_TEXT,
    "comment": AnswerKind.FREE_TEXT,
    "mcq": AnswerKind.CHOICE,
    "choice": AnswerKind.CHOICE,
    "select": AnswerKind.CHOICE,
}

# Older documents stored the value under a kind-specific key.
_LEGACY_VALUE_KEYS: Dict[AnswerKind, str] = {
    AnswerKind.RATING: "rating",
    AnswerKind.FREE_TEXT: "comment",
    AnswerKind.CHOICE: "selectValue",
}


def _parse_rating_value(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _legacy_kind(raw: Mapping[str, Any]) -> Optional[AnswerKind]:
    # Untyped legacy answers are identified by whichever value key they carry.
    for kind, key in _LEGACY_VALUE_KEYS.items():
        if raw.get(key) is not None:
            return kind
    return None


def parse_answer(raw: Any) -> Optional[Answer]:
    """Return the typed answer for a raw ``{questionId, type, value}`` mapping.

    Returns *None* for anything that cannot be represented.
    """
    if not isinstance(raw, Mapping):
        return None

    kind_raw = raw.get("type", raw.get("kind"))
    if kind_raw:
        kind = _KIND_ALIASES.get(str(kind_raw).lower())
    else:
        kind = _legacy_kind(raw)
    if kind is None:
        return None

    question_id = raw.get("questionId")
    if question_id is None:
        return None
    question_id = str(question_id)

    value = raw.get("value")
    if value is None:
        value = raw.get(_LEGACY_VALUE_KEYS[kind])
    if value is None:
        return None

    if kind is AnswerKind.RATING:
        rating = _parse_rating_value(value)
        return RatingAnswer(question_id, rating) if rating is not None else None

    if not isinstance(value, str) or not value.strip():
        return None
    if kind is AnswerKind.FREE_TEXT:
        return FreeTextAnswer(question_id, value)
    return ChoiceAnswer(question_id, value)


def _parse_timestamp(raw: Any) -> datetime.datetime:
    if isinstance(raw, datetime.datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=datetime.timezone.utc)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return datetime.datetime.fromtimestamp(raw, tz=datetime.timezone.utc)
    if isinstance(raw, str) and raw:
        try:
            parsed = datetime.datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable submittedAt %r; using current time", raw)
        else:
            return parsed if parsed.tzinfo else parsed.replace(
                tzinfo=datetime.timezone.utc
            )
    return _utcnow()


# ---------------------------------------------------------------------------
# Compiled output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CommentEntry:
    """A comment picked for one of the three buckets."""

    text: str
    avg_rating: float
    response_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "avgRating": self.avg_rating,
            "responseId": self.response_id,
        }


@dataclass(frozen=True, slots=True)
class QuestionStats:
    """Per-question tally.  Only the fields relevant to ``kind`` are set."""

    kind: AnswerKind
    count: int
    avg: Optional[float] = None
    distribution: Optional[Dict[int, int]] = None
    option_counts: Optional[Dict[str, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.kind.value, "count": self.count}
        if self.avg is not None:
            out["avg"] = self.avg
        if self.distribution is not None:
            out["distribution"] = dict(self.distribution)
        if self.option_counts is not None:
            out["optionCounts"] = dict(self.option_counts)
        return out


@dataclass(frozen=True, slots=True)
class CompiledStats:
    """Frozen statistical summary attached to a session once it is closed.

    ``rating_distribution`` counts individual rating answers, so its values
    sum to the number of rating answers rather than to ``total_responses``.
    """

    total_responses: int
    avg_rating: float
    top_rating: float
    least_rating: float
    rating_distribution: Dict[int, int]
    top_comments: Tuple[CommentEntry, ...]
    avg_comments: Tuple[CommentEntry, ...]
    least_rated_comments: Tuple[CommentEntry, ...]
    compiled_at: datetime.datetime
    question_stats: Dict[str, QuestionStats] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase record stored on the session document."""
        return {
            "totalResponses": self.total_responses,
            "avgRating": self.avg_rating,
            "topRating": self.top_rating,
            "leastRating": self.least_rating,
            "ratingDistribution": dict(self.rating_distribution),
            "topComments": [c.to_dict() for c in self.top_comments],
            "avgComments": [c.to_dict() for c in self.avg_comments],
            "leastRatedComments": [c.to_dict() for c in self.least_rated_comments],
            "questionStats": {
                qid: qs.to_dict() for qid, qs in self.question_stats.items()
            },
            "compiledAt": self.compiled_at.isoformat(),
        }
