#=============================================================================
# File        : tests/test_timers.py
# Project     : SlabHunter v1.0
# Component   : Timer Queue Test Suite
# Description : Deadline ordering, cancellation and thread resilience
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2026-10-19
#=============================================================================

import threading
import time

import pytest

from slabhunter.timers import TimerQueue


@pytest.fixture
def timers():
    queue = TimerQueue(name="SlabHunter-Test-Deadlines")
    yield queue
    queue.stop()


class TestTimerQueue:

    def test_callback_runs_with_args(self, timers):
        fired = threading.Event()
        seen = []

        def callback(a, b):
            seen.append((a, b))
            fired.set()

        timers.call_later(0.01, callback, 1, "two")
        assert fired.wait(2.0)
        assert seen == [(1, "two")]

    def test_deadline_order(self, timers, wait_for):
        order = []
        timers.call_later(0.06, order.append, "late")
        timers.call_later(0.0, order.append, "now")
        timers.call_later(0.03, order.append, "soon")

        assert wait_for(lambda: len(order) == 3)
        assert order == ["now", "soon", "late"]

    def test_cancelled_callback_never_runs(self, timers):
        called = []
        handle = timers.call_later(0.05, called.append, "x")
        handle.cancel()
        handle.cancel()  # idempotent

        assert handle.cancelled
        time.sleep(0.15)
        assert called == []
        assert timers.pending == 0

    def test_pending_count(self, timers):
        handles = [timers.call_later(60, lambda: None) for _ in range(3)]
        assert timers.pending == 3
        handles[0].cancel()
        assert timers.pending == 2

    def test_heap_rebuilt_after_mass_cancellation(self, timers):
        handles = [timers.call_later(60, lambda: None) for _ in range(300)]
        for handle in handles[:200]:
            handle.cancel()
        assert timers.pending == 100
        assert len(timers._heap) < 300

    def test_failing_callback_does_not_stop_thread(self, timers):
        def boom():
            raise RuntimeError("boom")

        fired = threading.Event()
        timers.call_later(0.0, boom)
        timers.call_later(0.02, fired.set)
        assert fired.wait(2.0)

    def test_stop_rejects_new_timers(self, timers):
        called = []
        timers.call_later(0.05, called.append, "x")
        timers.stop()
        time.sleep(0.1)
        assert called == []
        with pytest.raises(RuntimeError):
            timers.call_later(0.0, lambda: None)
