"""Delayed callbacks for session expiry.

A single daemon thread sleeps until the earliest task is due and then hands
it to a shared ThreadPoolExecutor, so no thread is spawned per timer.

• schedule() – run a callable after a delay (seconds); returns a task id.
• cancel()   – drop a pending task, e.g. when a session is closed by hand
  before it expires.
• shutdown() – stop the background thread; tasks not yet due are dropped.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Set, Tuple

logger = logging.getLogger(__name__)


class _PendingTask:
    """Heap entry for a scheduled callback."""

    __slots__ = ("due_at", "task_id", "callback", "args", "kwargs")

    def __init__(
        self,
        due_at: float,
        task_id: int,
        callback: Callable[..., Any],
        args: Tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        self.due_at = due_at
        self.task_id = task_id
        self.callback = callback
        self.args = args
        self.kwargs = kwargs

    # Ties on due_at are broken by task_id.
    def __lt__(self, other: "_PendingTask") -> bool:  # type: ignore[override]
        return (self.due_at, self.task_id) < (other.due_at, other.task_id)


class Scheduler:
    """A minimal, thread-safe scheduler for delayed, cancellable callbacks."""

    def __init__(self, executor: ThreadPoolExecutor) -> None:
        self._executor = executor
        self._cond = threading.Condition()
        self._heap: list[_PendingTask] = []
        self._pending_ids: Set[int] = set()
        self._ids = itertools.count()
        self._running = True
        self._thread = threading.Thread(
            target=self._loop, daemon=True, name="session-expiry"
        )
        self._thread.start()
        logger.info("Scheduler started.")

    def schedule(
        self,
        delay_seconds: float,
        callback: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> int:
        """Run *callback* after *delay_seconds* and return its task id."""
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        task = _PendingTask(
            time.monotonic() + delay_seconds, next(self._ids), callback, args, kwargs
        )
        with self._cond:
            heapq.heappush(self._heap, task)
            self._pending_ids.add(task.task_id)
            self._cond.notify()
        return task.task_id

    def cancel(self, task_id: int) -> bool:
        """Cancel a pending task.

        Returns *True* if the task was still pending, *False* if it already
        ran, was cancelled before or never existed.
        """
        with self._cond:
            if task_id not in self._pending_ids:
                return False
            self._pending_ids.discard(task_id)
            self._cond.notify()
        logger.debug("Cancelled scheduled task %s", task_id)
        return True

    def pending_count(self) -> int:
        """Return the number of tasks still waiting to run."""
        with self._cond:
            return len(self._pending_ids)

    def shutdown(self) -> None:
        """Stop the scheduler and wait for the background thread to finish."""
        with self._cond:
            self._running = False
            self._cond.notify()
        self._thread.join()
        logger.info("Scheduler shut down.")

    def _loop(self) -> None:
        while True:
            with self._cond:
                while self._running and not self._heap:
                    self._cond.wait()
                if not self._running:
                    break
                task = self._heap[0]
                if task.task_id not in self._pending_ids:
                    # Cancelled; discard lazily.
                    heapq.heappop(self._heap)
                    continue
                delay = task.due_at - time.monotonic()
                if delay > 0:
                    self._cond.wait(timeout=delay)
                    continue
                heapq.heappop(self._heap)
                self._pending_ids.discard(task.task_id)
            # Submit outside the lock to avoid deadlocks.
            try:
                self._executor.submit(task.callback, *task.args, **task.kwargs)
            except Exception:  # pragma: no cover – log and keep going
                logger.exception("Error submitting scheduled task %s", task.task_id)
