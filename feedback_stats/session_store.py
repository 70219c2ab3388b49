import contextlib
import datetime
import logging
import threading
from typing import Callable, Dict, Iterator, Optional, TypeVar

from feedback_stats.exceptions import SessionClosedError, SessionNotFoundError
from feedback_stats.models import CompiledStats
from feedback_stats.session_data import SessionData

T = TypeVar("T")


class ThreadSafeSessionStore:
    """A thread-safe store for feedback sessions and their frozen stats."""

    def __init__(self, max_active_sessions: Optional[int] = None):
        """Create a new :class:`ThreadSafeSessionStore`.

        Args:
            max_active_sessions: Optional maximum number of sessions that may be
                *active* at once.  :pydata:`None` (default) means unlimited.
                Closed sessions do not count towards the limit.
        """
        self._sessions: Dict[str, SessionData] = {}
        self._lock = threading.Lock()
        # Held by closes and by response intake; always taken before _lock.
        self._intake_lock = threading.Lock()
        # None == unlimited
        self._max_active = (
            max_active_sessions if (max_active_sessions or 0) > 0 else None
        )
        self._logger = logging.getLogger(__name__)

    def add_session(self, session_data: SessionData) -> None:
        """
        Adds a new session to the store.
        Raises ValueError if a session with the same ID already exists or the
        active-session limit is reached.
        """
        with self._lock:
            if self._max_active is not None:
                active = sum(1 for s in self._sessions.values() if s.is_active)
                if active >= self._max_active:
                    raise ValueError(
                        "Maximum active session limit reached. "
                        "Close existing sessions and try again."
                    )

            if session_data.session_id in self._sessions:
                raise ValueError(
                    f"Session with ID {session_data.session_id} already exists."
                )
            self._sessions[session_data.session_id] = session_data

    def get_session(self, session_id: str) -> Optional[SessionData]:
        """Retrieves a session by its ID. Returns None if not found."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session:
                session.last_accessed_at = datetime.datetime.now(datetime.timezone.utc)
            return session

    def modify_session(
        self,
        session_id: str,
        modifier: Callable[[SessionData], None],
    ) -> SessionData:
        """Atomically apply *modifier* to the session inside the lock.

        The *modifier* callback receives the current :class:`SessionData`
        instance and may mutate it in-place.  Other readers never observe a
        partially applied modification.

        Args:
            session_id: ID of the session to modify.
            modifier: A callable that will be executed with the session as its only
                argument while the internal lock is held.

        Returns:
            The modified :class:`SessionData` instance for convenience.

        Raises:
            SessionNotFoundError: If *session_id* does not exist in the store.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Session with ID {session_id} not found.")

            modifier(session)
            session.last_accessed_at = datetime.datetime.now(datetime.timezone.utc)
            return session

    def remove_session(self, session_id: str) -> Optional[SessionData]:
        """Removes a session by its ID. Returns the removed session or None if not found."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def get_all_sessions(self) -> Dict[str, SessionData]:
        """Returns a shallow copy of all sessions currently in the store."""
        with self._lock:
            return dict(self._sessions)

    def get_active_sessions(self) -> Dict[str, SessionData]:
        """Return copy of the sessions still accepting responses."""
        with self._lock:
            return {
                sid: session
                for sid, session in self._sessions.items()
                if session.is_active
            }

    def count(self) -> int:
        """Returns the total number of stored sessions, open or closed."""
        with self._lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Response intake
    # ------------------------------------------------------------------

    def accept_response(self, session_id: str, record: Callable[[], T]) -> T:
        """Run *record* while *session_id* is known to be accepting responses.

        No close can start or finish while *record* runs, so a recorded
        response is always seen by the next close.

        Raises
        ------
        SessionNotFoundError
            If the session does not exist.
        SessionClosedError
            If the session is no longer active; *record* is not called.
        """
        with self._intake_lock:
            session = self.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(f"Session {session_id} not found.")
            if not session.is_active:
                raise SessionClosedError(f"Session {session_id} is closed.")
            return record()

    @contextlib.contextmanager
    def intake_paused(self) -> Iterator[None]:
        """Block :meth:`accept_response` for the duration of the ``with`` body."""
        with self._intake_lock:
            yield

    # ------------------------------------------------------------------
    # Close helper
    # ------------------------------------------------------------------

    def close_session(
        self, session_id: str, compiled_stats: CompiledStats
    ) -> SessionData:
        """Write *compiled_stats* and the inactive status in one update.

        A re-close overwrites previously stored stats.

        Raises
        ------
        SessionNotFoundError
            If the session does not exist.  Nothing is written in that case.
        """
        session = self.modify_session(
            session_id, lambda s: s.close(compiled_stats)
        )
        self._logger.info(
            "session_closed",
            extra={
                "session_id": session_id,
                "total_responses": compiled_stats.total_responses,
            },
        )
        return session
