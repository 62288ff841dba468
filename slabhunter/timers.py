#=============================================================================
# File        : slabhunter/timers.py
# Project     : SlabHunter v1.0
# Component   : Timers - Deadline Scheduling
# Description : Single background thread serving all leak deadlines
#               • Heap-ordered deadlines with O(1) cancellation
#               • Lazy removal of cancelled handles with periodic rebuild
#               • Callback failures logged, never fatal to the thread
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: heapq, threading, time, logging
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Any, Callable, List, Optional, Tuple

_logger = logging.getLogger(__name__)

# Rebuild the heap once this share of it is cancelled handles
_CANCELLED_SHARE = 0.5
_MIN_REBUILD_SIZE = 100


class TimerHandle:
    """Handle returned by :meth:`TimerQueue.call_later`."""

    __slots__ = ('when', '_callback', '_args', '_cancelled', '_queue')

    def __init__(self, when: float, callback: Callable[..., Any], args: Tuple[Any, ...],
                 queue: Optional["TimerQueue"]):
        self.when = when
        self._callback = callback
        self._args = args
        self._cancelled = False
        self._queue = queue

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._callback = None
        self._args = ()
        queue = self._queue
        if queue is not None:
            queue._handle_cancelled(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self) -> None:
        callback, args = self._callback, self._args
        self._callback = None
        self._args = ()
        if callback is not None:
            callback(*args)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "pending"
        return f"TimerHandle(when={self.when:.3f}, {state})"


class TimerQueue:
    """
    Runs callbacks after a delay on one daemon thread.

    The thread starts lazily on the first :meth:`call_later`. Callbacks run
    outside the queue lock, one at a time, in deadline order.
    """

    def __init__(self, name: str = "SlabHunter-Deadlines") -> None:
        self._name = name
        self._cond = threading.Condition(threading.Lock())
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()
        self._cancelled_count = 0
        self._thread: Optional[threading.Thread] = None
        self._stopped = False

    def call_later(self, delay_s: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Schedule ``callback(*args)`` to run in ``delay_s`` seconds."""
        when = time.monotonic() + max(0.0, delay_s)
        with self._cond:
            if self._stopped:
                raise RuntimeError("TimerQueue is stopped")
            handle = TimerHandle(when, callback, args, self)
            heapq.heappush(self._heap, (when, next(self._seq), handle))
            if self._thread is None:
                self._thread = threading.Thread(target=self._run_loop, name=self._name, daemon=True)
                self._thread.start()
            self._cond.notify()
        return handle

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._heap) - self._cancelled_count

    def stop(self, timeout: float = 2.0) -> None:
        """Drop all pending timers and join the thread."""
        with self._cond:
            self._stopped = True
            for _, _, handle in self._heap:
                handle._queue = None
                handle.cancel()
            self._heap.clear()
            self._cancelled_count = 0
            self._cond.notify()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=timeout)

    def _handle_cancelled(self, handle: TimerHandle) -> None:
        with self._cond:
            # Already popped for running, or dropped by stop()
            if handle._queue is not self:
                return
            handle._queue = None
            self._cancelled_count += 1
            size = len(self._heap)
            if size > _MIN_REBUILD_SIZE and self._cancelled_count > size * _CANCELLED_SHARE:
                self._heap = [entry for entry in self._heap if not entry[2].cancelled]
                heapq.heapify(self._heap)
                self._cancelled_count = 0

    def _next_due(self) -> Optional[TimerHandle]:
        """Block until a handle is due; ``None`` once stopped."""
        with self._cond:
            while not self._stopped:
                while self._heap and self._heap[0][2].cancelled:
                    heapq.heappop(self._heap)
                    self._cancelled_count -= 1

                if not self._heap:
                    self._cond.wait()
                    continue

                delay = self._heap[0][0] - time.monotonic()
                if delay > 0:
                    self._cond.wait(delay)
                    continue

                _, _, handle = heapq.heappop(self._heap)
                handle._queue = None
                return handle
            return None

    def _run_loop(self) -> None:
        _logger.debug("Deadline thread started")
        while True:
            handle = self._next_due()
            if handle is None:
                break
            try:
                handle._run()
            except Exception:
                _logger.exception("Deadline callback failed")
        _logger.debug("Deadline thread stopped")
