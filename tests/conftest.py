#=============================================================================
# File        : tests/conftest.py
# Project     : SlabHunter v1.0
# Component   : Shared Test Fixtures
# Description : Fresh pools, hand-driven deadlines and engine factories
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2026-10-19
#=============================================================================

import sys
import time
from pathlib import Path
from typing import Callable, List

import pytest

# Add slabhunter to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from slabhunter.buffers import BufferPool
from slabhunter.config import SlabHunterConfig
from slabhunter.core import SlabHunter, teardown
from slabhunter.guards.buffer_guard import reset_performance_stats
from slabhunter.timers import TimerHandle


class ManualTimers:
    """Timer queue whose deadlines only fire when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self._handles: List[TimerHandle] = []

    def call_later(self, delay_s, callback, *args):
        handle = TimerHandle(self.now + max(0.0, delay_s), callback, args, None)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._handles if not handle.cancelled)

    def advance(self, seconds: float) -> int:
        """Move time forward and run every due deadline; returns how many ran."""
        self.now += seconds
        due = sorted((h for h in self._handles if h.when <= self.now and not h.cancelled),
                     key=lambda h: h.when)
        self._handles = [h for h in self._handles if h not in due and not h.cancelled]
        for handle in due:
            handle._run()
        return len(due)

    def stop(self, timeout: float = 2.0) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()


@pytest.fixture
def pool():
    """A fresh buffer pool so tests never share slabs."""
    return BufferPool()


@pytest.fixture
def manual_timers():
    return ManualTimers()


@pytest.fixture
def make_hunter(pool, manual_timers):
    """Build installed engines on the test pool with hand-driven deadlines."""
    created = []

    def factory(**overrides) -> SlabHunter:
        timers = overrides.pop('timers', manual_timers)
        config = SlabHunterConfig().merge(**overrides)
        hunter = SlabHunter(config, pool=pool, timers=timers)
        hunter.install()
        created.append(hunter)
        return hunter

    yield factory

    for hunter in created:
        hunter.dispose()


@pytest.fixture
def wait_for():
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait_for


@pytest.fixture(autouse=True)
def clean_guard_state(pool):
    reset_performance_stats()
    yield
    teardown(pool)
