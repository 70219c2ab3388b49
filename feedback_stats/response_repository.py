import logging
import threading
from typing import Dict, List, Optional, Set

from feedback_stats.exceptions import AlreadySubmittedError
from feedback_stats.models import Response


class ThreadSafeResponseRepository:
    """Append-only, in-memory store of raw responses grouped by session.

    ``fetch_all_responses`` returns responses in ascending ``submitted_at``
    order, falling back to insertion order for equal timestamps.  The stats
    engine breaks rating ties by input order, so this ordering is part of the
    repository contract.
    """

    def __init__(self) -> None:
        self._responses: Dict[str, List[Response]] = {}
        self._response_ids: Dict[str, Set[str]] = {}
        self._device_ids: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def add_response(
        self, session_id: str, response: Response, device_id: Optional[str] = None
    ) -> Response:
        """Append *response* to *session_id*.

        Raises
        ------
        AlreadySubmittedError
            If the response id, or the optional *device_id*, was already
            recorded for this session.
        """
        with self._lock:
            seen_ids = self._response_ids.setdefault(session_id, set())
            if response.id in seen_ids:
                raise AlreadySubmittedError(
                    f"Response {response.id} already recorded for session {session_id}."
                )
            seen_devices = self._device_ids.setdefault(session_id, set())
            if device_id is not None and device_id in seen_devices:
                raise AlreadySubmittedError(
                    f"Device {device_id} already submitted feedback for session {session_id}."
                )

            self._responses.setdefault(session_id, []).append(response)
            seen_ids.add(response.id)
            if device_id is not None:
                seen_devices.add(device_id)

        self._logger.info(
            "response_received",
            extra={"session_id": session_id, "response_id": response.id},
        )
        return response

    def fetch_all_responses(self, session_id: str) -> List[Response]:
        """Return every response for *session_id*, oldest submission first."""
        with self._lock:
            responses = list(self._responses.get(session_id, ()))
        # sorted() is stable, so equal timestamps keep insertion order.
        return sorted(responses, key=lambda r: r.submitted_at)

    def count_responses(self, session_id: str) -> int:
        """Return how many responses were submitted for *session_id*."""
        with self._lock:
            return len(self._responses.get(session_id, ()))
