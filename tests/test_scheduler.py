"""Unit tests for the expiry Scheduler."""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from feedback_stats.scheduler import Scheduler


class TestScheduler:
    """Verify Scheduler executes, cancels and shuts down cleanly."""

    def test_schedule_executes_callback_after_delay(self):
        executed = threading.Event()

        def _callback(arg: str) -> None:
            assert arg == "hello"
            executed.set()

        with ThreadPoolExecutor(max_workers=2) as executor:
            sched = Scheduler(executor)
            sched.schedule(0.05, _callback, "hello")

            assert executed.wait(0.5), "Scheduled callback did not execute in time"
            sched.shutdown()

    def test_callbacks_run_in_due_order(self):
        order = []
        done = threading.Event()

        def _record(label: str) -> None:
            order.append(label)
            if len(order) == 2:
                done.set()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            sched.schedule(0.15, _record, "late")
            sched.schedule(0.05, _record, "early")

            assert done.wait(1.0)
            sched.shutdown()

        assert order == ["early", "late"]

    def test_cancel_prevents_execution(self):
        executed = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            task_id = sched.schedule(0.1, executed.set)

            assert sched.cancel(task_id) is True
            assert sched.pending_count() == 0
            time.sleep(0.25)
            sched.shutdown()

        assert not executed.is_set()

    def test_cancel_unknown_or_finished_task_returns_false(self):
        executed = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            task_id = sched.schedule(0.01, executed.set)
            assert executed.wait(0.5)

            assert sched.cancel(task_id) is False
            assert sched.cancel(9999) is False
            sched.shutdown()

    def test_schedule_negative_delay_raises(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            with pytest.raises(ValueError):
                sched.schedule(-1, lambda: None)
            sched.shutdown()

    def test_shutdown_stops_background_thread(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            sched = Scheduler(executor)
            assert sched._thread.is_alive()
            sched.shutdown()
            assert not sched._thread.is_alive()
