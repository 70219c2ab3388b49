import atexit
import logging
import os
import uuid  # For generating unique session and response IDs
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from dotenv import load_dotenv
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from feedback_stats.models import Answer, Response, parse_answer
from feedback_stats.reporting.render import post_report_to_slack
from feedback_stats.response_repository import ThreadSafeResponseRepository
from feedback_stats.scheduler import Scheduler
from feedback_stats.session_data import SessionData
from feedback_stats.session_service import close_session_with_stats
from feedback_stats.session_store import ThreadSafeSessionStore

# Load environment variables from .env file
load_dotenv()

# Set up logging
logging_level = os.environ.get("FEEDBACK_LOG_LEVEL", "INFO")
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging_level
)
logger = logging.getLogger(__name__)

_FALLBACK_TTL_HOURS = 24.0


def _get_max_sessions_from_env() -> Optional[int]:  # noqa: WPS430 – tiny helper
    raw_val = os.getenv("MAX_ACTIVE_SESSIONS")
    if not raw_val:
        return None
    try:
        parsed = int(raw_val)
    except ValueError:
        logger.warning("Invalid MAX_ACTIVE_SESSIONS value '%s'; must be integer.", raw_val)
        return None
    if parsed <= 0:
        logger.warning("Ignoring MAX_ACTIVE_SESSIONS=%s (must be positive int)", raw_val)
        return None
    return parsed


def _get_default_ttl_hours() -> float:
    raw_val = os.getenv("DEFAULT_SESSION_TTL_HOURS", str(_FALLBACK_TTL_HOURS))
    try:
        parsed = float(raw_val)
    except ValueError:
        logger.error(
            "Invalid DEFAULT_SESSION_TTL_HOURS '%s'. Falling back to %s.",
            raw_val,
            _FALLBACK_TTL_HOURS,
        )
        return _FALLBACK_TTL_HOURS
    if parsed <= 0:
        logger.error(
            "Invalid DEFAULT_SESSION_TTL_HOURS '%s'. Must be positive. Falling back to %s.",
            raw_val,
            _FALLBACK_TTL_HOURS,
        )
        return _FALLBACK_TTL_HOURS
    return parsed


session_store = ThreadSafeSessionStore(max_active_sessions=_get_max_sessions_from_env())
response_repository = ThreadSafeResponseRepository()

# Shared pool for expiry callbacks
executor = ThreadPoolExecutor(max_workers=4)
scheduler = Scheduler(executor)


def _slack_client() -> Optional[WebClient]:
    token = os.getenv("SLACK_BOT_TOKEN")
    return WebClient(token=token) if token else None


# ------------------------------------------------------------------
# Session lifecycle
# ------------------------------------------------------------------


def open_session(
    topic: str,
    *,
    trainer_name: Optional[str] = None,
    college_name: Optional[str] = None,
    session_date: Optional[str] = None,
    questions: Optional[List[Dict[str, Any]]] = None,
    ttl_hours: Optional[float] = None,
) -> SessionData:
    """Create an active session and schedule its automatic close."""
    ttl = ttl_hours if ttl_hours is not None else _get_default_ttl_hours()
    if ttl <= 0:
        raise ValueError("ttl_hours must be positive.")

    session = SessionData(
        session_id=str(uuid.uuid4()),
        topic=topic,
        trainer_name=trainer_name,
        college_name=college_name,
        session_date=session_date,
        questions=questions,
        ttl_hours=ttl,
    )
    session_store.add_session(session)
    session.expiry_task_id = scheduler.schedule(
        ttl * 3600, _expire_session, session.session_id
    )
    logger.info(
        "Opened session %s on '%s' (expires in %.1f h)",
        session.session_id,
        topic,
        ttl,
    )
    return session


def submit_response(
    session_id: str,
    answers: Iterable[Union[Answer, Mapping[str, Any]]],
    *,
    device_id: Optional[str] = None,
) -> Response:
    """Record a student's submission for an active session.

    *answers* may mix typed answers and raw ``{questionId, type, value}``
    mappings; raw entries that cannot be parsed are dropped.

    Raises
    ------
    SessionNotFoundError
        If the session does not exist.
    SessionClosedError
        If the session no longer accepts responses.
    AlreadySubmittedError
        If *device_id* already submitted to this session.
    """
    typed: List[Answer] = []
    for answer in answers:
        parsed = parse_answer(answer) if isinstance(answer, Mapping) else answer
        if parsed is None:
            logger.debug("Dropping malformed answer for session %s: %r", session_id, answer)
            continue
        typed.append(parsed)

    response = Response(id=str(uuid.uuid4()), answers=tuple(typed))
    # The active check and the append happen under one intake lock.
    return session_store.accept_response(
        session_id,
        lambda: response_repository.add_response(
            session_id, response, device_id=device_id
        ),
    )


def close_session(
    session_id: str, *, client: Optional[WebClient] = None
) -> SessionData:
    """Close *session_id* with freshly compiled stats and publish its report.

    Errors from fetching or storing propagate and leave the session open.
    Report publishing is best-effort.
    """
    closed = close_session_with_stats(
        session_id,
        session_store=session_store,
        response_repository=response_repository,
    )
    # Expiry stays scheduled if the close above raised.
    if closed.expiry_task_id is not None:
        scheduler.cancel(closed.expiry_task_id)
    _publish_report(closed, client if client is not None else _slack_client())
    return closed


def _publish_report(session: SessionData, client: Optional[WebClient]) -> None:
    channel = os.getenv("SLACK_REPORT_CHANNEL")
    if client is None or not channel:
        logger.debug("Report publishing skipped for session %s", session.session_id)
        return
    try:
        post_report_to_slack(session=session, client=client, channel=channel)
    except SlackApiError as exc:
        logger.warning(
            "Failed to post report for session %s: %s",
            session.session_id,
            exc.response.get("error", str(exc)),
        )
    except Exception:
        logger.exception("Error posting report for session %s", session.session_id)


def _expire_session(session_id: str) -> None:
    """Callback run by Scheduler when a session reaches its time limit."""
    try:
        session = session_store.get_session(session_id)
        if session is None or not session.is_active:
            logger.debug("Expiry callback: session %s already closed/absent", session_id)
            return

        closed = close_session_with_stats(
            session_id,
            session_store=session_store,
            response_repository=response_repository,
        )
        logger.info(
            "session_expired",
            extra={
                "session_id": session_id,
                "total_responses": closed.compiled_stats.total_responses,
            },
        )
        _publish_report(closed, _slack_client())
    except Exception:  # pragma: no cover – ensure scheduler thread survives
        logger.exception("Error expiring session %s", session_id)


def shutdown_executor():
    """Gracefully shut down scheduler and thread pool executor."""
    logger.info("Shutting down scheduler and thread pool executor...")
    # Stop scheduler first so it doesn't submit new tasks while executor is shutting down
    try:
        scheduler.shutdown()
    except Exception:  # pragma: no cover – ensure shutdown continues
        logger.exception("Error shutting down scheduler")

    executor.shutdown(wait=True)
    logger.info("Scheduler and thread pool executor shut down gracefully.")


# Register the shutdown function to be called on exit
atexit.register(shutdown_executor)
