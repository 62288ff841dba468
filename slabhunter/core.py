#=============================================================================
# File        : slabhunter/core.py
# Project     : SlabHunter v1.0
# Component   : Core Orchestrator - Slab Leak Detection Engine
# Description : Primary orchestration layer for buffer leak detection
#               • SlabHunter engine owning registry, tracker and aggregator
#               • setup() entry point returning a stats accessor
#               • Polling mode pushing overviews to a logging sink
#               • Single activation per pool, explicit disposal
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading, Weak References
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: config, buffers, registry, timers, lifecycle, aggregator,
#               report, sampling, guards
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import atexit
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from . import buffers
from .aggregator import LeakAggregator
from .buffers import BufferPool
from .config import DEFAULT_BIG_BUFFER_CUTOFF, DEFAULT_MS_LEAK_CUTOFF, SlabHunterConfig
from .guards.buffer_guard import (
    get_performance_stats, install_buffer_guard, uninstall_buffer_guard
)
from .lifecycle import LifecycleTracker
from .registry import IdentityRegistry
from .report import LeakOverview
from .sampling import MemoryTracker
from .timers import TimerQueue

_logger = logging.getLogger(__name__)

# Configure safe logging defaults for the whole package
_package_logger = logging.getLogger('slabhunter')
if _package_logger.level == logging.NOTSET:
    _package_logger.setLevel(logging.WARNING)  # Only WARN/ERROR by default

# Add console handler only if none exists
if not _package_logger.handlers and not logging.getLogger().handlers:
    _console_handler = logging.StreamHandler()
    _console_handler.setLevel(logging.WARNING)
    _formatter = logging.Formatter('[SlabHunter] %(levelname)s: %(message)s')
    _console_handler.setFormatter(_formatter)
    _package_logger.addHandler(_console_handler)

StatsAccessor = Callable[[], LeakOverview]

# One engine per instrumented pool
_hunters: Dict[BufferPool, "SlabHunter"] = {}
_hunters_lock = threading.RLock()


class SlabHunter:
    """
    Leak detection engine for one buffer pool.

    Owns the identity registry, lifecycle tracker, leak aggregator and the
    deadline thread. Nothing is instrumented until :meth:`install`; the pool
    is restored and the deadline thread stopped by :meth:`dispose`.
    """

    def __init__(self, config: Optional[SlabHunterConfig] = None,
                 pool: Optional[BufferPool] = None,
                 timers: Optional[TimerQueue] = None) -> None:
        self.config = config or SlabHunterConfig()
        self.pool = pool if pool is not None else buffers.default_pool

        self._owns_timers = timers is None
        self._timers = timers if timers is not None else TimerQueue()

        self.registry = IdentityRegistry()
        self.aggregator = LeakAggregator(
            self.registry,
            big_buffer_cutoff=self.config.big_buffer_cutoff,
            compact_every=self.config.compact_every,
        )
        self.tracker = LifecycleTracker(
            self.registry, self.aggregator, self._timers, self.config.ms_leak_cutoff
        )
        self.memory = MemoryTracker()

        self._lock = threading.RLock()
        self._installed = False
        self._disposed = False
        self._start_time = 0.0
        self._watcher: Optional[threading.Thread] = None
        self._watch_stop = threading.Event()

    # --------- Lifecycle ---------

    def install(self) -> bool:
        """Instrument the pool. Returns False if nothing was installed."""
        with self._lock:
            if self._disposed:
                raise RuntimeError("SlabHunter has been disposed")
            if self._installed:
                _logger.warning("SlabHunter already installed")
                return False
            if not self.config.is_enabled():
                _logger.info("SlabHunter disabled by kill switch")
                return False

            if not install_buffer_guard(self.pool, self.config, self.registry, self.tracker):
                return False

            self._installed = True
            self._start_time = time.time()
            self.memory.set_baseline()
            _logger.info(
                f"SlabHunter installed (leak cutoff {self.config.ms_leak_cutoff:g}ms, "
                f"big buffer cutoff {self.config.big_buffer_cutoff}B)"
            )
            return True

    def dispose(self) -> None:
        """Restore the pool and discard all pending deadlines and finalizers."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            self.stop_watching()
            if self._installed:
                uninstall_buffer_guard(self.pool)
                self._installed = False
            self.tracker.dispose()
            if self._owns_timers:
                self._timers.stop()

        with _hunters_lock:
            if _hunters.get(self.pool) is self:
                del _hunters[self.pool]
        _logger.info("SlabHunter disposed")

    @property
    def is_installed(self) -> bool:
        return self._installed

    def __enter__(self) -> "SlabHunter":
        self.install()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    # --------- Reporting ---------

    def overview(self) -> LeakOverview:
        """Compute the current leak overview."""
        with self.tracker.synchronized():
            return self.aggregator.compute_overview()

    def status(self) -> Dict[str, Any]:
        """Bookkeeping sizes, tracker counters and process memory."""
        with self.tracker.synchronized():
            status = {
                'is_installed': self._installed,
                'uptime_seconds': time.time() - self._start_time if self._start_time else 0.0,
                'tracked_allocations': len(self.registry),
                'live_slabs': self.registry.slab_count,
                'leak_sites': self.aggregator.site_count,
                'leak_entries': self.aggregator.entry_count,
                'tracker_stats': dict(self.tracker.stats),
            }
        status['pending_deadlines'] = self.tracker.pending_deadlines
        status['guard_stats'] = get_performance_stats()
        status['rss_mb'] = self.memory.get_rss_mb()
        status['memory_growth_mb'] = self.memory.get_growth_mb()
        status['watching'] = self._watcher is not None
        status['configuration'] = {
            'ms_leak_cutoff': self.config.ms_leak_cutoff,
            'big_buffer_cutoff': self.config.big_buffer_cutoff,
            'slab_retainer_ratio': self.config.slab_retainer_ratio,
            'stack_limit': self.config.stack_limit,
        }
        return status

    def render(self) -> str:
        """Overview text prefixed with the current process RSS."""
        return f"Process RSS: {self.memory.get_rss_mb():.1f}MB\n{self.overview()}"

    # --------- Polling mode ---------

    def watch(self, interval_s: Optional[float] = None,
              sink: Optional[Callable[[str], Any]] = None) -> None:
        """Push the rendered overview to ``sink`` every ``interval_s`` seconds."""
        with self._lock:
            if self._watcher is not None:
                _logger.warning("SlabHunter is already watching")
                return

            interval = self.config.log_interval_s if interval_s is None else max(0.05, interval_s)
            emit = sink if sink is not None else _logger.warning
            self._watch_stop.clear()

            def watch_loop():
                _logger.debug("Leak watcher started")
                while not self._watch_stop.wait(interval):
                    try:
                        emit(self.render())
                    except Exception as e:
                        _logger.error(f"Leak watcher failed to emit report: {e}")
                _logger.debug("Leak watcher stopped")

            self._watcher = threading.Thread(target=watch_loop, name="SlabHunter-Watcher", daemon=True)
            self._watcher.start()

    def stop_watching(self) -> None:
        with self._lock:
            watcher = self._watcher
            if watcher is None:
                return
            self._watch_stop.set()
            if watcher.is_alive() and watcher is not threading.current_thread():
                watcher.join(timeout=2.0)
            self._watcher = None


def setup(ms_leak_cutoff: float = DEFAULT_MS_LEAK_CUTOFF,
          big_buffer_cutoff: int = DEFAULT_BIG_BUFFER_CUTOFF,
          *,
          pool: Optional[BufferPool] = None,
          config: Optional[SlabHunterConfig] = None) -> StatsAccessor:
    """
    Start hunting leaks on ``pool`` and return a stats accessor.

    Args:
        ms_leak_cutoff: Milliseconds an allocation may live before it is a
            leak candidate
        big_buffer_cutoff: Size in bytes from which a buffer is a big buffer
        pool: Pool to instrument (default: ``buffers.default_pool``)
        config: Pre-built configuration; overrides the two cutoffs

    Calling it again for an instrumented pool returns the existing accessor.
    Raises RuntimeError if the pool is held by an engine not created here.
    """
    pool = pool if pool is not None else buffers.default_pool
    with _hunters_lock:
        existing = _hunters.get(pool)
        if existing is not None:
            _logger.warning("SlabHunter already active on this pool; reusing it")
            return existing.overview

        if config is None:
            config = SlabHunterConfig(ms_leak_cutoff=ms_leak_cutoff, big_buffer_cutoff=big_buffer_cutoff)

        hunter = SlabHunter(config, pool=pool)
        try:
            installed = hunter.install()
        except Exception as e:
            _logger.error(f"Failed to start SlabHunter: {e}")
            hunter.dispose()
            raise
        if not installed and config.is_enabled():
            # Pool is instrumented by an engine built outside setup()
            hunter.dispose()
            raise RuntimeError("Pool is already instrumented by another SlabHunter; "
                               "dispose it before calling setup()")
        _hunters[pool] = hunter
        return hunter.overview


def get_hunter(pool: Optional[BufferPool] = None) -> Optional[SlabHunter]:
    """The engine installed by :func:`setup` for ``pool``, if any."""
    pool = pool if pool is not None else buffers.default_pool
    with _hunters_lock:
        return _hunters.get(pool)


def teardown(pool: Optional[BufferPool] = None) -> None:
    """Dispose the engine installed by :func:`setup` for ``pool``."""
    hunter = get_hunter(pool)
    if hunter is not None:
        hunter.dispose()


def _cleanup_on_exit():
    """Restore instrumented pools on interpreter exit."""
    with _hunters_lock:
        hunters = list(_hunters.values())
    for hunter in hunters:
        try:
            hunter.dispose()
        except Exception as e:
            _logger.debug(f"Error disposing SlabHunter on exit: {e}")


atexit.register(_cleanup_on_exit)
