#=============================================================================
# File        : slabhunter/lifecycle.py
# Project     : SlabHunter v1.0
# Component   : Lifecycle Tracker - Finalizers Racing Leak Deadlines
# Description : Decides, per tracked allocation, between "freed in time" and
#               "leak candidate"
#               • weakref.finalize watch on the allocation itself
#               • Deadline timer per allocation key
#               • Deferred release queue safe against GC re-entrancy
#               • Single lock serializing registry and aggregator access
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Weak References, Threading
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: weakref, threading, traceback, registry, aggregator, timers
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import collections
import logging
import threading
import traceback
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterator, Optional

from .aggregator import LeakAggregator
from .registry import IdentityRegistry
from .timers import TimerHandle, TimerQueue

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationRecord:
    """Metadata captured when a trackable allocation is made."""
    key: int
    own_length: int
    slab_length: int
    stack: traceback.StackSummary

    @property
    def capture_site(self) -> str:
        """The allocation stack, outermost frame first."""
        frames = traceback.StackSummary.from_list(list(reversed(self.stack)))
        return ''.join(frames.format())


class LifecycleTracker:
    """
    Arms a finalizer and a deadline for every tracked allocation.

    Whichever fires first decides the outcome:

    - finalizer first: the deadline is cancelled and the key released, no
      leak is ever recorded.
    - deadline first: the allocation is recorded as a leak candidate. The key
      stays registered until its finalizer eventually runs, so live retainer
      counts stay exact for keys already flagged.

    Finalizers can run in any thread, including in the middle of a garbage
    collection triggered while this tracker holds its lock. They therefore
    only enqueue the key; the queue is drained under the lock before any
    bookkeeping is read or written, and before a deadline decides.
    """

    def __init__(self, registry: IdentityRegistry, aggregator: LeakAggregator,
                 timers: TimerQueue, ms_leak_cutoff: float) -> None:
        self._registry = registry
        self._aggregator = aggregator
        self._timers = timers
        self._delay_s = ms_leak_cutoff / 1000.0
        self._lock = threading.Lock()
        self._pending_releases: Deque[int] = collections.deque()
        self._deadlines: Dict[int, TimerHandle] = {}
        self._records: Dict[int, AllocationRecord] = {}
        self._finalizers: Dict[int, weakref.finalize] = {}
        self._disposed = False

        self.stats = {
            'armed': 0,
            'reclaimed_in_time': 0,
            'reclaimed_after_deadline': 0,
            'deadlines_fired': 0,
        }

    @contextmanager
    def synchronized(self) -> Iterator[None]:
        """Hold the tracker lock with all pending releases applied."""
        with self._lock:
            self._drain_releases()
            yield

    def arm(self, allocation: Any, record: AllocationRecord) -> bool:
        """
        Watch ``allocation``; must be called inside :meth:`synchronized`.

        Returns False (nothing armed) once the tracker is disposed.
        """
        if self._disposed:
            return False
        key = record.key
        # Record first: a due deadline reads it before taking the lock
        self._records[key] = record
        try:
            self._deadlines[key] = self._timers.call_later(self._delay_s, self._on_deadline, key)
        except Exception:
            del self._records[key]
            raise
        finalizer = weakref.finalize(allocation, self._on_reclaimed, key)
        finalizer.atexit = False
        self._finalizers[key] = finalizer
        self.stats['armed'] += 1
        return True

    @property
    def pending_deadlines(self) -> int:
        with self.synchronized():
            return len(self._deadlines)

    def dispose(self) -> None:
        """Cancel all deadlines and detach all finalizers."""
        with self.synchronized():
            self._disposed = True
            for handle in self._deadlines.values():
                handle.cancel()
            self._deadlines.clear()
            for finalizer in self._finalizers.values():
                finalizer.detach()
            self._finalizers.clear()
            self._records.clear()

    # --------- Callbacks ---------

    def _on_reclaimed(self, key: int) -> None:
        self._pending_releases.append(key)
        # Non-blocking: the lock may be held by this very thread (GC during
        # bookkeeping); the holder or the next caller drains the queue.
        if self._lock.acquire(blocking=False):
            try:
                self._drain_releases()
            finally:
                self._lock.release()

    def _on_deadline(self, key: int) -> None:
        # Formatting reads source files; keep it outside the lock
        record = self._records.get(key)
        if record is None:
            return  # reclaimed first, or disposed
        capture_site = record.capture_site

        with self.synchronized():
            if self._deadlines.pop(key, None) is None:
                return  # reclaimed while the site was formatted
            self._records.pop(key, None)
            self.stats['deadlines_fired'] += 1
            self._aggregator.record(capture_site, key, record.own_length, record.slab_length)

    def _drain_releases(self) -> None:
        while self._pending_releases:
            key = self._pending_releases.popleft()
            self._finalizers.pop(key, None)
            handle = self._deadlines.pop(key, None)
            if handle is not None:
                handle.cancel()
                self._records.pop(key, None)
                self.stats['reclaimed_in_time'] += 1
            elif self._registry.is_live(key):
                self.stats['reclaimed_after_deadline'] += 1
            self._registry.release(key)
