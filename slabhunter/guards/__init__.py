#=============================================================================
# File        : slabhunter/guards/__init__.py
# Project     : SlabHunter v1.0
# Component   : Guards Package - Runtime Instrumentation Exports
# Description : Package initialization for allocator instrumentation
#               • Buffer pool guard exports
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Runtime Instrumentation
# Standards   : PEP 8, Type Hints, Safe Monkey Patching
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: buffer_guard
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from .buffer_guard import (
    install_buffer_guard,
    uninstall_buffer_guard,
    is_guard_installed,
    capture_stack,
    get_performance_stats,
    reset_performance_stats
)

__all__ = [
    "install_buffer_guard",
    "uninstall_buffer_guard",
    "is_guard_installed",
    "capture_stack",
    "get_performance_stats",
    "reset_performance_stats",
]
