#=============================================================================
# File        : tests/test_sampling.py
# Project     : SlabHunter v1.0
# Component   : Process Memory Test Suite
# Description : RSS caching, baseline growth and provider selection
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2026-10-19
#=============================================================================

from slabhunter.sampling import MemoryProvider, MemoryTracker, NullProvider, PsutilProvider


class FakeProvider:

    def __init__(self, readings):
        self.readings = list(readings)
        self.calls = 0

    def get_rss_mb(self):
        self.calls += 1
        return self.readings.pop(0)

    def get_peak_mb(self):
        return None


class TestMemoryTracker:

    def test_psutil_is_default_provider(self):
        tracker = MemoryTracker()
        assert tracker.get_provider_type() == "PsutilProvider"
        assert tracker.is_available()
        assert tracker.get_rss_mb() > 0

    def test_providers_satisfy_protocol(self):
        assert isinstance(PsutilProvider(), MemoryProvider)
        assert isinstance(NullProvider(), MemoryProvider)

    def test_readings_are_cached(self):
        provider = FakeProvider([10.0, 20.0])
        tracker = MemoryTracker(provider)
        assert tracker.get_rss_mb() == 10.0
        assert tracker.get_rss_mb() == 10.0
        assert provider.calls == 1

    def test_growth_since_baseline(self):
        provider = FakeProvider([100.0, 130.0])
        tracker = MemoryTracker(provider)
        assert tracker.get_growth_mb() is None

        tracker.set_baseline()
        tracker._last_measurement = 0.0  # expire the cache
        assert tracker.get_growth_mb() == 30.0

    def test_null_provider(self):
        tracker = MemoryTracker(NullProvider())
        assert not tracker.is_available()
        assert tracker.get_rss_mb() == 0.0
        assert tracker.get_peak_mb() is None
