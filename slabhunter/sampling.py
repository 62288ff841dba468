#=============================================================================
# File        : slabhunter/sampling.py
# Project     : SlabHunter v1.0
# Component   : Sampling - Process Memory Measurement
# Description : Process memory context for leak reports
#               • psutil-backed RSS measurement with short-lived cache
#               • Baseline and growth tracking
#               • Null provider when the process cannot be inspected
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, psutil
# Standards   : PEP 8, Type Hints, Cross-platform Compatibility
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: os, time, logging, psutil
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import logging
import os
import time
from typing import Optional, Protocol, runtime_checkable

import psutil

_logger = logging.getLogger(__name__)


@runtime_checkable
class MemoryProvider(Protocol):
    """Protocol for memory measurement providers."""

    def get_rss_mb(self) -> float:
        """Get current RSS memory usage in MB."""
        ...

    def get_peak_mb(self) -> Optional[float]:
        """Get peak memory usage in MB if available."""
        ...


class PsutilProvider:
    """Memory provider using psutil."""

    def __init__(self, pid: Optional[int] = None) -> None:
        self._process = psutil.Process(pid or os.getpid())

    def get_rss_mb(self) -> float:
        try:
            return self._process.memory_info().rss / (1024 * 1024)
        except psutil.Error:
            return 0.0

    def get_peak_mb(self) -> Optional[float]:
        try:
            memory_info = self._process.memory_info()
            if hasattr(memory_info, 'peak_wset'):  # Windows
                return memory_info.peak_wset / (1024 * 1024)
            return None
        except psutil.Error:
            return None


class NullProvider:
    """Null memory provider when no measurement is available."""

    def get_rss_mb(self) -> float:
        return 0.0

    def get_peak_mb(self) -> Optional[float]:
        return None


class MemoryTracker:
    """RSS tracking with a baseline, cached briefly to keep polling cheap."""

    def __init__(self, provider: Optional[MemoryProvider] = None) -> None:
        if provider is not None:
            self._provider = provider
        else:
            self._provider = self._detect_provider()

        self._baseline_mb: Optional[float] = None
        self._last_measurement = 0.0
        self._measurement_cache = 0.0
        self._cache_duration = 0.1  # Cache for 100ms to reduce overhead

    @staticmethod
    def _detect_provider() -> MemoryProvider:
        try:
            return PsutilProvider()
        except psutil.Error as e:
            _logger.warning(f"Process memory unavailable, RSS will read as 0: {e}")
            return NullProvider()

    def set_baseline(self) -> None:
        """Set current memory usage as baseline for growth calculations."""
        self._baseline_mb = self.get_rss_mb()

    def get_rss_mb(self) -> float:
        """Get current RSS memory usage in MB with caching."""
        now = time.monotonic()
        if self._last_measurement and now - self._last_measurement < self._cache_duration:
            return self._measurement_cache

        self._measurement_cache = self._provider.get_rss_mb()
        self._last_measurement = now
        return self._measurement_cache

    def get_peak_mb(self) -> Optional[float]:
        return self._provider.get_peak_mb()

    def get_growth_mb(self) -> Optional[float]:
        """Get memory growth since baseline in MB."""
        if self._baseline_mb is None:
            return None

        current = self.get_rss_mb()
        return max(0.0, current - self._baseline_mb)

    def is_available(self) -> bool:
        return not isinstance(self._provider, NullProvider)

    def get_provider_type(self) -> str:
        return type(self._provider).__name__
