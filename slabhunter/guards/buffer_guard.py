#=============================================================================
# File        : slabhunter/guards/buffer_guard.py
# Project     : SlabHunter v1.0
# Component   : Buffer Guard - Allocation Interception
# Description : Runtime instrumentation of BufferPool.alloc_unsafe()
#               • Monkey-patches a pool's fast allocation path
#               • Classifies big buffers and potential slab retainers
#               • Captures call sites with internal frames stripped
#               • Re-entrancy guard and fail-safe bookkeeping
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Runtime Monkey Patching, Weak References
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: sys, traceback, threading, lifecycle, registry
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import logging
import os
import sys
import threading
import time
import traceback
from typing import Any, Callable, Dict, Tuple

from ..buffers import Buffer, BufferPool
from ..config import SlabHunterConfig
from ..lifecycle import AllocationRecord, LifecycleTracker
from ..registry import IdentityRegistry

_logger = logging.getLogger(__name__)

# Frames from anywhere in the package are stripped from capture sites
_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__))) + os.sep

# Pools currently instrumented -> (original allocator, was it an instance attribute)
_installed_pools: Dict[BufferPool, Tuple[Callable[[int], Buffer], bool]] = {}
_install_lock = threading.Lock()

# Performance metrics for overhead monitoring
_perf_stats = {
    'trackable_allocs': 0,
    'tracked_allocs': 0,
    'tracking_overhead_ns': 0,
    'avg_overhead_ns': 0.0,
    'tracking_errors': 0,
}

# Set while this thread is inside guard bookkeeping
_thread_local = threading.local()


def capture_stack(limit: int) -> traceback.StackSummary:
    """
    Capture the caller's stack, innermost frame first, without package frames.

    Source lines are not read here; they load lazily when the stack is
    formatted.
    """
    frame = sys._getframe(1)
    while frame is not None and frame.f_code.co_filename.startswith(_PACKAGE_DIR):
        frame = frame.f_back
    if frame is None:
        return traceback.StackSummary()
    return traceback.StackSummary.extract(traceback.walk_stack(frame), limit=limit, lookup_lines=False)


def install_buffer_guard(pool: BufferPool, config: SlabHunterConfig,
                         registry: IdentityRegistry, tracker: LifecycleTracker) -> bool:
    """
    Instrument ``pool.alloc_unsafe`` with leak tracking.

    Returns False (and changes nothing) if the pool is already instrumented.
    """
    with _install_lock:
        if pool in _installed_pools:
            _logger.warning("Buffer guard already installed on this pool")
            return False

        original_alloc_unsafe = pool.alloc_unsafe

        def guarded_alloc_unsafe(size: int) -> Buffer:
            """Replacement for BufferPool.alloc_unsafe() with leak tracking."""
            res = original_alloc_unsafe(size)

            # Untracked allocations leave every counter and flag untouched
            own_length = res.byte_length
            slab = res.buffer
            slab_length = slab.byte_length
            if not config.is_trackable(own_length, slab_length):
                return res

            # Allocations made by our own bookkeeping are never tracked
            if getattr(_thread_local, 'busy', False):
                return res

            _perf_stats['trackable_allocs'] += 1

            start_time = time.perf_counter_ns()
            _thread_local.busy = True
            try:
                stack = capture_stack(config.stack_limit)
                with tracker.synchronized():
                    key = registry.register(slab)
                    try:
                        armed = tracker.arm(res, AllocationRecord(key, own_length, slab_length, stack))
                    except Exception:
                        registry.release(key)
                        raise
                    if not armed:
                        registry.release(key)
                if armed:
                    _perf_stats['tracked_allocs'] += 1
            except Exception as e:
                # Tracking must never break the host allocation
                _perf_stats['tracking_errors'] += 1
                _logger.error(f"Buffer tracking failed for {own_length}-byte allocation: {e}")
            finally:
                _thread_local.busy = False
                _perf_stats['tracking_overhead_ns'] += time.perf_counter_ns() - start_time
                _perf_stats['avg_overhead_ns'] = (
                    _perf_stats['tracking_overhead_ns'] / max(_perf_stats['tracked_allocs'], 1)
                )
            return res

        _installed_pools[pool] = (original_alloc_unsafe, 'alloc_unsafe' in vars(pool))
        pool.alloc_unsafe = guarded_alloc_unsafe
        _logger.info("Buffer guard installed successfully")
        return True


def uninstall_buffer_guard(pool: BufferPool) -> None:
    """Restore the pool's original allocator."""
    with _install_lock:
        entry = _installed_pools.pop(pool, None)
        if entry is None:
            return

        original, was_instance_attr = entry
        if was_instance_attr:
            pool.alloc_unsafe = original
        else:
            del pool.alloc_unsafe
        _logger.info("Buffer guard uninstalled")


def is_guard_installed(pool: BufferPool) -> bool:
    return pool in _installed_pools


def get_performance_stats() -> Dict[str, Any]:
    """Allocation counts and tracking overhead across all instrumented pools."""
    stats = dict(_perf_stats)
    trackable = stats['trackable_allocs']
    stats['tracked_ratio'] = stats['tracked_allocs'] / trackable if trackable else 0.0
    stats['installed_pools'] = len(_installed_pools)
    return stats


def reset_performance_stats() -> None:
    """Reset performance statistics (for testing/benchmarking)."""
    global _perf_stats
    _perf_stats = {
        'trackable_allocs': 0,
        'tracked_allocs': 0,
        'tracking_overhead_ns': 0,
        'avg_overhead_ns': 0.0,
        'tracking_errors': 0,
    }
