import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from feedback_stats.models import CompiledStats


class SessionStatus(str, Enum):
    """Lifecycle states of a feedback session."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class SessionData:
    """Represents a feedback session and, once closed, its frozen stats.

    A session is created *active* and accepts responses until it is closed,
    either manually or when ``expires_at`` passes.  Closing writes
    ``compiled_stats``, ``closed_at`` and the *inactive* status together via
    :py:meth:`close`.
    """

    def __init__(
        self,
        session_id: str,
        topic: str,
        trainer_name: Optional[str] = None,  # Instructor the feedback is about
        college_name: Optional[str] = None,
        session_date: Optional[str] = None,  # ISO date the session took place
        questions: Optional[List[Dict[str, Any]]] = None,
        ttl_hours: Optional[float] = None,  # Hours until automatic close
    ):
        """
        Initializes a new, active session.

        Args:
            session_id: The unique identifier for the session.
            topic: What the session was about; shown in reports.
            trainer_name: Optional name of the instructor being reviewed.
            college_name: Optional name of the institution.
            session_date: Optional ISO date string of the session.
            questions: Question definitions as stored by the form builder.
                Opaque to this package apart from being carried along.
            ttl_hours: Optional lifetime; *None* means no automatic close.
        """
        self.session_id: str = session_id
        self.topic: str = topic
        self.trainer_name: Optional[str] = trainer_name
        self.college_name: Optional[str] = college_name
        self.session_date: Optional[str] = session_date
        self.questions: List[Dict[str, Any]] = list(questions or [])
        self.created_at: datetime.datetime = datetime.datetime.now(
            datetime.timezone.utc
        )
        self.last_accessed_at: datetime.datetime = self.created_at
        self.expires_at: Optional[datetime.datetime] = (
            self.created_at + datetime.timedelta(hours=ttl_hours)
            if ttl_hours is not None
            else None
        )
        self.status: SessionStatus = SessionStatus.ACTIVE
        self.compiled_stats: Optional[CompiledStats] = None
        self.closed_at: Optional[datetime.datetime] = None
        # Scheduler task that will auto-close this session, if any
        self.expiry_task_id: Optional[int] = None

    @property
    def is_active(self) -> bool:  # noqa: D401 – property
        """Return *True* while the session accepts responses."""
        return self.status is SessionStatus.ACTIVE

    def time_remaining(self) -> Optional[float]:
        """Return remaining seconds until expiry or *None* if unlimited."""
        if self.expires_at is None:
            return None
        return max(
            0.0,
            (
                self.expires_at - datetime.datetime.now(datetime.timezone.utc)
            ).total_seconds(),
        )

    def close(
        self,
        compiled_stats: CompiledStats,
        closed_at: Optional[datetime.datetime] = None,
    ) -> None:
        """Attach *compiled_stats* and mark the session inactive.

        Calling this on an already closed session replaces the previous stats
        wholesale.
        """
        now = closed_at or datetime.datetime.now(datetime.timezone.utc)
        self.compiled_stats = compiled_stats
        self.status = SessionStatus.INACTIVE
        self.closed_at = now
        self.last_accessed_at = now

    def to_dict(self) -> Dict[str, Any]:
        """Return the session record in its stored camelCase shape."""
        return {
            "id": self.session_id,
            "topic": self.topic,
            "assignedTrainer": self.trainer_name,
            "collegeName": self.college_name,
            "sessionDate": self.session_date,
            "questions": list(self.questions),
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "closedAt": self.closed_at.isoformat() if self.closed_at else None,
            "compiledStats": (
                self.compiled_stats.to_dict() if self.compiled_stats else None
            ),
        }

    def __repr__(self) -> str:
        parts = [
            f"session_id='{self.session_id}'",
            f"topic='{self.topic}'",
            f"status='{self.status.value}'",
            f"created_at='{self.created_at.isoformat()}'",
        ]
        if self.trainer_name:
            parts.append(f"trainer_name='{self.trainer_name}'")
        if self.expires_at:
            parts.append(f"expires_at='{self.expires_at.isoformat()}'")
        if self.compiled_stats is not None:
            parts.append(f"total_responses={self.compiled_stats.total_responses}")
        return f"SessionData({', '.join(parts)})"
