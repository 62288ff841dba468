#=============================================================================
# File        : slabhunter/__init__.py
# Project     : SlabHunter v1.0
# Component   : Package Initialization
# Description : Buffer leak and slab-retention detection for long-running
#               Python processes
#               • Big buffers held past a time cutoff
#               • Small views pinning much larger shared slabs
#               • Call-site grouped, retainer-normalised reports
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading, Weak References
# Standards   : PEP 8, Type Hints, Dataclasses
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: typing, threading, weakref, psutil
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

"""
SlabHunter - Buffer Leak and Slab Retention Detection

Instruments a pooled buffer allocator and flags allocations still alive after
a cutoff: big standalone buffers, and small views that keep an entire shared
slab from being reclaimed.

Quick Start:
    import slabhunter
    from slabhunter.buffers import alloc_unsafe

    get_leak_stats = slabhunter.setup(ms_leak_cutoff=60_000)

    # Your application code here, allocating through alloc_unsafe()

    print(get_leak_stats())
"""

__version__ = "1.0.0"
__author__ = "Kyle Clouthier"
__license__ = "MIT"

from .core import (
    SlabHunter,
    setup,
    get_hunter,
    teardown,
)

from .config import SlabHunterConfig

from .buffers import (
    Buffer,
    BufferPool,
    Slab,
    alloc_unsafe,
    default_pool,
)

from .report import (
    LeakOverview,
    BigBufferLeak,
    SlabLeak,
    format_bytes,
)

__all__ = [
    # Core functions
    "setup",
    "get_hunter",
    "teardown",
    "SlabHunter",

    # Configuration
    "SlabHunterConfig",

    # Allocator
    "Buffer",
    "BufferPool",
    "Slab",
    "alloc_unsafe",
    "default_pool",

    # Reporting
    "LeakOverview",
    "BigBufferLeak",
    "SlabLeak",
    "format_bytes",

    # Metadata
    "__version__",
    "__author__",
    "__license__",
]
