"""Tests for ``chatbot_widget.scheduler``.

Intervals are a few tens of milliseconds; assertions leave headroom for
a slow event loop.
"""

import asyncio
import unittest

from chatbot_widget.scheduler import AutoRefreshScheduler


class TestAutoRefreshScheduler(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self) -> None:
        self.ticks = 0

        async def refresh() -> None:
            self.ticks += 1

        self.scheduler = AutoRefreshScheduler(refresh)

    async def asyncTearDown(self) -> None:
        self.scheduler.stop()

    async def test_ticks_repeatedly(self) -> None:
        self.scheduler.start(20)
        await asyncio.sleep(0.15)
        self.assertGreaterEqual(self.ticks, 2)

    async def test_start_twice_keeps_one_timer(self) -> None:
        self.scheduler.start(50)
        first = self.scheduler._handle
        self.scheduler.start(50)
        self.assertTrue(first.cancelled())
        self.assertFalse(self.scheduler._handle.cancelled())

        await asyncio.sleep(0.13)
        # One timer gives 2 ticks here; a duplicate timer would give 4.
        self.assertLessEqual(self.ticks, 3)
        self.assertGreaterEqual(self.ticks, 1)

    async def test_stop_prevents_further_ticks(self) -> None:
        self.scheduler.start(20)
        await asyncio.sleep(0.07)
        self.scheduler.stop()
        seen = self.ticks
        await asyncio.sleep(0.08)
        self.assertEqual(self.ticks, seen)
        self.assertFalse(self.scheduler.running)

    async def test_stop_before_first_tick(self) -> None:
        self.scheduler.start(30)
        self.scheduler.stop()
        await asyncio.sleep(0.08)
        self.assertEqual(self.ticks, 0)

    async def test_failed_tick_keeps_running(self) -> None:
        calls = 0

        async def flaky() -> None:
            nonlocal calls
            calls += 1
            raise ConnectionError("config server down")

        scheduler = AutoRefreshScheduler(flaky)
        with self.assertLogs("chatbot_widget", level="WARNING"):
            scheduler.start(20)
            await asyncio.sleep(0.15)
        scheduler.stop()
        self.assertGreaterEqual(calls, 2)

    async def test_in_flight_tick_does_not_reschedule_after_stop(self) -> None:
        release = asyncio.Event()
        calls = 0

        async def slow() -> None:
            nonlocal calls
            calls += 1
            await release.wait()

        scheduler = AutoRefreshScheduler(slow)
        scheduler.start(10)
        await asyncio.sleep(0.05)
        self.assertEqual(calls, 1)
        scheduler.stop()
        release.set()
        await asyncio.sleep(0.05)
        self.assertEqual(calls, 1)
        self.assertFalse(scheduler.running)

    async def test_rejects_non_positive_interval(self) -> None:
        with self.assertRaises(ValueError):
            self.scheduler.start(0)


if __name__ == "__main__":
    unittest.main()
