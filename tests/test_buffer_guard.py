#=============================================================================
# File        : tests/test_buffer_guard.py
# Project     : SlabHunter v1.0
# Component   : Buffer Guard Test Suite
# Description : Allocation interception, classification and fail-safety
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2026-10-19
#=============================================================================

from slabhunter.buffers import BufferPool
from slabhunter.guards import (
    get_performance_stats, install_buffer_guard, is_guard_installed
)
from slabhunter.guards import buffer_guard
from slabhunter.guards.buffer_guard import _PACKAGE_DIR, capture_stack


class TestInstallation:

    def test_install_and_uninstall(self, make_hunter, pool):
        assert 'alloc_unsafe' not in vars(pool)
        hunter = make_hunter()
        assert is_guard_installed(pool)
        assert 'alloc_unsafe' in vars(pool)

        hunter.dispose()
        assert not is_guard_installed(pool)
        assert 'alloc_unsafe' not in vars(pool)
        assert pool.alloc_unsafe(10).byte_length == 10

    def test_second_install_is_refused(self, make_hunter, pool):
        hunter = make_hunter()
        patched = pool.alloc_unsafe
        assert install_buffer_guard(pool, hunter.config, hunter.registry, hunter.tracker) is False
        assert pool.alloc_unsafe is patched

    def test_other_pools_untouched(self, make_hunter):
        other = BufferPool()
        make_hunter()
        assert not is_guard_installed(other)
        assert 'alloc_unsafe' not in vars(other)


class TestClassification:

    def test_allocation_returned_unchanged(self, make_hunter, pool):
        make_hunter()
        buf = pool.alloc_unsafe(100)
        assert buf.byte_length == 100
        assert buf.buffer.byte_length == 8192

    def test_small_view_of_large_slab_is_tracked(self, make_hunter, pool):
        hunter = make_hunter()
        kept = pool.alloc_unsafe(100)
        assert len(hunter.registry) == 1
        assert hunter.tracker.pending_deadlines == 1
        assert kept is not None

    def test_big_buffer_is_tracked(self, make_hunter, pool):
        hunter = make_hunter()
        kept = pool.alloc_unsafe(10_000)
        assert len(hunter.registry) == 1
        assert kept.buffer.byte_length == 10_000

    def test_moderate_view_is_not_tracked(self, make_hunter, pool):
        hunter = make_hunter()
        kept = pool.alloc_unsafe(1000)
        assert len(hunter.registry) == 0
        assert hunter.tracker.pending_deadlines == 0
        stats = get_performance_stats()
        assert stats['trackable_allocs'] == 0
        assert stats['tracked_allocs'] == 0
        assert kept is not None

    def test_untracked_path_leaves_stats_untouched(self, make_hunter, pool):
        make_hunter()
        before = get_performance_stats()
        kept = [pool.alloc_unsafe(1000) for _ in range(50)]
        assert get_performance_stats() == before
        assert len(kept) == 50

    def test_views_of_one_slab_share_an_entry(self, make_hunter, pool):
        hunter = make_hunter()
        kept = [pool.alloc_unsafe(100) for _ in range(5)]
        assert len(hunter.registry) == 5
        assert hunter.registry.slab_count == 1
        assert len(kept) == 5

    def test_reentrant_allocations_are_not_tracked(self, make_hunter, pool):
        hunter = make_hunter()
        buffer_guard._thread_local.busy = True
        try:
            kept = pool.alloc_unsafe(100)
        finally:
            buffer_guard._thread_local.busy = False
        assert len(hunter.registry) == 0
        assert kept.byte_length == 100


class TestCaptureSite:

    def test_capture_stack_skips_package_frames(self):
        stack = capture_stack(10)
        assert stack[0].name == "test_capture_stack_skips_package_frames"
        assert all(not frame.filename.startswith(_PACKAGE_DIR) for frame in stack)

    def test_capture_site_points_at_caller(self, make_hunter, pool, manual_timers):
        hunter = make_hunter(ms_leak_cutoff=1000)
        kept = pool.alloc_unsafe(100)
        manual_timers.advance(1.0)

        site = hunter.overview().slab_leaks[0].location
        assert "in test_capture_site_points_at_caller" in site
        assert _PACKAGE_DIR not in site
        assert "kept = pool.alloc_unsafe(100)" in site
        assert kept is not None

    def test_stack_limit(self, make_hunter, pool, manual_timers):
        hunter = make_hunter(stack_limit=1)
        kept = pool.alloc_unsafe(100)
        manual_timers.advance(60.0)

        site = hunter.overview().slab_leaks[0].location
        assert site.count('File "') == 1
        assert kept is not None


class TestFailSafety:

    def test_tracking_failure_returns_allocation(self, make_hunter, pool, monkeypatch):
        hunter = make_hunter()

        def broken_arm(allocation, record):
            raise RuntimeError("tracker exploded")

        monkeypatch.setattr(hunter.tracker, 'arm', broken_arm)
        buf = pool.alloc_unsafe(100)

        assert buf.byte_length == 100
        assert len(hunter.registry) == 0
        stats = get_performance_stats()
        assert stats['tracking_errors'] == 1
        assert stats['tracked_allocs'] == 0

    def test_disposed_tracker_leaves_no_keys(self, make_hunter, pool):
        hunter = make_hunter()
        hunter.tracker.dispose()
        kept = pool.alloc_unsafe(100)
        assert len(hunter.registry) == 0
        assert get_performance_stats()['tracked_allocs'] == 0
        assert kept is not None

    def test_performance_stats(self, make_hunter, pool):
        make_hunter()
        kept = [pool.alloc_unsafe(100), pool.alloc_unsafe(1000)]
        stats = get_performance_stats()
        assert stats['trackable_allocs'] == 1
        assert stats['tracked_allocs'] == 1
        assert stats['tracked_ratio'] == 1.0
        assert stats['installed_pools'] == 1
        assert len(kept) == 2
