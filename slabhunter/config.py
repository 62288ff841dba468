#=============================================================================
# File        : slabhunter/config.py
# Project     : SlabHunter v1.0
# Component   : Configuration - SlabHunter Configuration Dataclass
# Description : Central configuration with validation and env overrides
#               • Leak cutoff and big-buffer cutoff knobs
#               • Slab-retainer heuristic ratio
#               • Environment variable overrides for ops
#               • Kill-switch for production safety
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses
# Standards   : PEP 8, Type Hints, Immutable Configuration
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: dataclasses, typing, os
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

DEFAULT_MS_LEAK_CUTOFF = 60_000
DEFAULT_BIG_BUFFER_CUTOFF = 4000
DEFAULT_SLAB_RETAINER_RATIO = 10  # ad-hoc: views using <10% of their slab


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None: return default
    return v.strip().lower() in {"1", "true", "yes", "on"}

def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None: return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None: return default
    try:
        return int(v)
    except ValueError:
        return default


@dataclass(frozen=True)
class SlabHunterConfig:
    """
    SlabHunter runtime configuration.

    Defaults:
      - allocations alive for more than a minute are leak candidates
      - buffers of 4000 bytes or more count as big buffers
      - a view using less than a tenth of its slab is a potential retainer
    """
    ms_leak_cutoff: float = DEFAULT_MS_LEAK_CUTOFF
    big_buffer_cutoff: int = DEFAULT_BIG_BUFFER_CUTOFF
    slab_retainer_ratio: int = DEFAULT_SLAB_RETAINER_RATIO

    # Frames kept per capture site
    stack_limit: int = 10

    # Polling surface
    log_interval_s: float = 120.0

    # Leak bucket compaction runs every N recorded leaks
    compact_every: int = 1024

    kill_switch: bool = False  # hard-off (e.g., SLABHUNTER_KILL_SWITCH=1)

    def __post_init__(self):
        if self.ms_leak_cutoff < 0:
            raise ValueError(f"ms_leak_cutoff must be >= 0, got {self.ms_leak_cutoff}")
        if self.big_buffer_cutoff < 0:
            raise ValueError(f"big_buffer_cutoff must be >= 0, got {self.big_buffer_cutoff}")
        if self.slab_retainer_ratio < 1:
            raise ValueError(f"slab_retainer_ratio must be >= 1, got {self.slab_retainer_ratio}")
        if self.stack_limit < 1:
            raise ValueError(f"stack_limit must be >= 1, got {self.stack_limit}")
        if self.compact_every < 1:
            raise ValueError(f"compact_every must be >= 1, got {self.compact_every}")

        # Apply normalized values into frozen dataclass
        object.__setattr__(self, "log_interval_s", max(0.05, self.log_interval_s))

    # --------- Factory helpers ---------

    @staticmethod
    def from_env(base: Optional["SlabHunterConfig"] = None) -> "SlabHunterConfig":
        """
        Build config from environment variables, overlaying a base config.
        Supported envs:
          SLABHUNTER_MS_LEAK_CUTOFF
          SLABHUNTER_BIG_BUFFER_CUTOFF
          SLABHUNTER_SLAB_RETAINER_RATIO
          SLABHUNTER_STACK_LIMIT
          SLABHUNTER_LOG_INTERVAL_S
          SLABHUNTER_COMPACT_EVERY
          SLABHUNTER_KILL_SWITCH (0|1)
        """
        base = base or SlabHunterConfig()
        return replace(
            base,
            ms_leak_cutoff=_env_float("SLABHUNTER_MS_LEAK_CUTOFF", base.ms_leak_cutoff),
            big_buffer_cutoff=_env_int("SLABHUNTER_BIG_BUFFER_CUTOFF", base.big_buffer_cutoff),
            slab_retainer_ratio=_env_int("SLABHUNTER_SLAB_RETAINER_RATIO", base.slab_retainer_ratio),
            stack_limit=_env_int("SLABHUNTER_STACK_LIMIT", base.stack_limit),
            log_interval_s=_env_float("SLABHUNTER_LOG_INTERVAL_S", base.log_interval_s),
            compact_every=_env_int("SLABHUNTER_COMPACT_EVERY", base.compact_every),
            kill_switch=_env_bool("SLABHUNTER_KILL_SWITCH", base.kill_switch),
        )

    def merge(self, **overrides) -> "SlabHunterConfig":
        """Return a copy with provided fields overridden (immutably)."""
        return replace(self, **overrides)

    # --------- Convenience getters ---------

    def is_enabled(self) -> bool:
        return not self.kill_switch

    @property
    def leak_cutoff_s(self) -> float:
        return self.ms_leak_cutoff / 1000.0

    def is_trackable(self, own_length: int, slab_length: int) -> bool:
        """Big buffer, or a view occupying a small fraction of its slab."""
        return (own_length >= self.big_buffer_cutoff
                or slab_length >= self.slab_retainer_ratio * own_length)
