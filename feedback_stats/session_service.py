"""Close a feedback session and freeze its compiled stats onto it.

The close is a three-step sequence: fetch every response, compile them, then
write the stats and the inactive status in one store update.  A failure in
either I/O step leaves the session exactly as it was.  Response intake is
paused for the whole sequence, so no submission can slip in between the
fetch and the status change.
"""
from __future__ import annotations

import logging

from feedback_stats.exceptions import (
    RepositoryFetchError,
    SessionNotFoundError,
    SessionWriteError,
)
from feedback_stats.reporting.aggregator import compile_stats
from feedback_stats.response_repository import ThreadSafeResponseRepository
from feedback_stats.session_data import SessionData
from feedback_stats.session_store import ThreadSafeSessionStore

logger = logging.getLogger(__name__)


def close_session_with_stats(
    session_id: str,
    *,
    session_store: ThreadSafeSessionStore,
    response_repository: ThreadSafeResponseRepository,
) -> SessionData:
    """Compile all responses for *session_id* and close the session.

    Closing an already closed session recomputes the stats and replaces them.

    Raises
    ------
    SessionNotFoundError
        If the session is unknown, before or during the write.
    RepositoryFetchError
        If responses could not be fetched; the engine is not invoked.
    SessionWriteError
        If the store update failed; the session keeps its prior state.
    """
    with session_store.intake_paused():
        return _close_locked(session_id, session_store, response_repository)


def _close_locked(
    session_id: str,
    session_store: ThreadSafeSessionStore,
    response_repository: ThreadSafeResponseRepository,
) -> SessionData:
    if session_store.get_session(session_id) is None:
        raise SessionNotFoundError(f"Session {session_id} not found for closing.")

    try:
        responses = response_repository.fetch_all_responses(session_id)
    except Exception as exc:
        logger.error(
            "Failed to fetch responses for session %s: %s",
            session_id,
            exc,
            exc_info=True,
        )
        raise RepositoryFetchError(
            f"Could not fetch responses for session {session_id}."
        ) from exc

    stats = compile_stats(responses)

    try:
        session = session_store.close_session(session_id, stats)
    except SessionNotFoundError:
        raise
    except Exception as exc:
        logger.error(
            "Failed to store compiled stats for session %s: %s",
            session_id,
            exc,
            exc_info=True,
        )
        raise SessionWriteError(
            f"Could not store compiled stats for session {session_id}."
        ) from exc

    logger.info(
        "Closed session %s with %d response(s), avg rating %.2f",
        session_id,
        stats.total_responses,
        stats.avg_rating,
    )
    return session
