import threading
import unittest
from typing import List

from feedback_stats.models import CompiledStats, RatingAnswer, Response
from feedback_stats.reporting.aggregator import compile_stats
from feedback_stats.session_data import SessionData
from feedback_stats.session_store import ThreadSafeSessionStore


class TestModifySession(unittest.TestCase):
    """Unit tests for modify_session and concurrent closes."""

    def setUp(self) -> None:
        self.store = ThreadSafeSessionStore()
        self.session_id = "s1"
        self.store.add_session(SessionData(self.session_id, "Databases"))

    def test_modify_updates_fields_atomically(self):
        def modifier(s: SessionData) -> None:
            s.trainer_name = "Dr. Kulkarni"

        modified = self.store.modify_session(self.session_id, modifier)
        self.assertEqual(modified.trainer_name, "Dr. Kulkarni")
        self.assertEqual(
            self.store.get_session(self.session_id).trainer_name, "Dr. Kulkarni"
        )

    def test_modify_raises_for_missing_session(self):
        with self.assertRaises(ValueError):
            self.store.modify_session("missing", lambda s: None)

    def test_concurrent_closes_leave_one_complete_record(self):
        num_threads = 20
        candidates: List[CompiledStats] = [
            compile_stats(
                [Response(id=f"r{i}", answers=(RatingAnswer("q", 1 + i % 5),))]
            )
            for i in range(num_threads)
        ]

        def worker(idx: int) -> None:
            self.store.close_session(self.session_id, candidates[idx])

        threads = [
            threading.Thread(target=worker, args=(i,)) for i in range(num_threads)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        final = self.store.get_session(self.session_id)
        self.assertFalse(final.is_active)
        self.assertTrue(any(final.compiled_stats is c for c in candidates))


if __name__ == "__main__":
    unittest.main()
