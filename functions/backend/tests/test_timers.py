import threading
import time
import unittest

from backend.db import InMemoryDbClient
from backend.knocks import KnockRegistry
from backend.push import InMemoryPushGateway
from backend.sessions import InMemorySessionStore
from backend.timers import TimerScheduler
from main_testing_utils import create_mock_group
from shared.constants import CONFIRMED_KNOCK_TYPE


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TimerSchedulerTests(unittest.TestCase):
    def setUp(self):
        self.scheduler = TimerScheduler()

    def tearDown(self):
        self.scheduler.shutdown()

    def test_runs_task_after_delay(self):
        fired = threading.Event()
        start = time.monotonic()

        self.scheduler.call_later(0.05, fired.set)

        self.assertTrue(fired.wait(2))
        self.assertGreaterEqual(time.monotonic() - start, 0.05)
        self.assertTrue(_wait_for(lambda: self.scheduler.pending() == 0))

    def test_failing_task_is_logged(self):
        def boom():
            raise RuntimeError("boom")

        with self.assertLogs("backend.timers", level="ERROR"):
            self.scheduler.call_later(0, boom)
            self.assertTrue(_wait_for(lambda: self.scheduler.pending() == 0))

    def test_shutdown_cancels_pending(self):
        fired = threading.Event()
        self.scheduler.call_later(0.2, fired.set)

        self.scheduler.shutdown()

        self.assertFalse(fired.wait(0.4))
        with self.assertRaises(RuntimeError):
            self.scheduler.call_later(0, fired.set)


class RegistryWithRealTimersTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.push = InMemoryPushGateway()
        self.registry = KnockRegistry(
            db=self.db,
            sessions=InMemorySessionStore(),
            push=self.push,
            scheduler=TimerScheduler(),
            ttl_seconds=0.5,
            confirm_delay_seconds=0.05,
        )
        self.group = create_mock_group(self.db, {"A": "tok-a", "B": "tok-b"})

    def tearDown(self):
        self.registry.shutdown()

    def test_confirm_then_expire(self):
        knock_id = self.registry.initiate_knock("A", self.group, "1.2.3.4").knock_id

        self.assertTrue(self.registry.report_address("B", knock_id, "1.2.3.4"))

        self.assertTrue(
            _wait_for(lambda: len(self.push.sent_of_type(CONFIRMED_KNOCK_TYPE)) == 1)
        )
        self.assertTrue(_wait_for(lambda: self.registry.open_knocks() == 0))


if __name__ == "__main__":
    unittest.main()
