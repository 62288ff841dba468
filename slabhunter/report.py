#=============================================================================
# File        : slabhunter/report.py
# Project     : SlabHunter v1.0
# Component   : Report - Leak Overview Data Structures and Rendering
# Description : Value types for leak overviews and their text rendering
#               • BigBufferLeak / SlabLeak per call-site entries
#               • LeakOverview with totals, text sections and JSON export
#               • Human-readable byte sizes (metric units)
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, JSON
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: json, dataclasses, typing
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

_UNITS = ("B", "kB", "MB", "GB", "TB", "PB")


def format_bytes(num_bytes: Union[int, float]) -> str:
    """Render a byte count in metric units with one decimal, e.g. ``8.1 kB``."""
    value = float(num_bytes)
    sign = "-" if value < 0 else ""
    value = abs(value)

    if value < 1000:
        text = f"{value:.1f}".rstrip("0").rstrip(".")
        return f"{sign}{text} B"

    unit = 0
    while value >= 1000 and unit < len(_UNITS) - 1:
        value /= 1000
        unit += 1
    return f"{sign}{value:.1f} {_UNITS[unit]}"


@dataclass(frozen=True)
class BigBufferLeak:
    """Big buffers from one call site that outlived the leak cutoff."""
    location: str
    amount: int
    total_leaked_bytes: int

    @property
    def average_bytes(self) -> float:
        return self.total_leaked_bytes / self.amount if self.amount else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'location': self.location,
            'amount': self.amount,
            'total_leaked_bytes': self.total_leaked_bytes,
        }


@dataclass(frozen=True)
class SlabLeak:
    """
    Slab retainers from one call site that outlived the leak cutoff.

    ``total_leaked_bytes`` is the raw unused slab space behind each retainer;
    ``normalised_total_leaked_bytes`` splits each slab's waste evenly across
    its live retainers so shared slabs are only counted once overall.
    """
    location: str
    amount: int
    total_leaked_bytes: int
    normalised_total_leaked_bytes: float

    @property
    def average_bytes(self) -> float:
        return self.total_leaked_bytes / self.amount if self.amount else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'location': self.location,
            'amount': self.amount,
            'total_leaked_bytes': self.total_leaked_bytes,
            'normalised_total_leaked_bytes': self.normalised_total_leaked_bytes,
        }


@dataclass(frozen=True)
class LeakOverview:
    """Snapshot of potential leaks, sorted by size (largest first). Hashable."""
    big_buffer_leaks: Tuple[BigBufferLeak, ...] = ()
    slab_leaks: Tuple[SlabLeak, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "big_buffer_leaks", tuple(self.big_buffer_leaks))
        object.__setattr__(self, "slab_leaks", tuple(self.slab_leaks))

    @property
    def total_big_buffer_leaks(self) -> int:
        return sum(leak.total_leaked_bytes for leak in self.big_buffer_leaks)

    @property
    def total_slab_leaks(self) -> float:
        return sum(leak.normalised_total_leaked_bytes for leak in self.slab_leaks)

    @property
    def big_buffer_overview(self) -> str:
        lines = ["Big buffer potential leaks:"]
        for leak in self.big_buffer_leaks:
            lines.append(
                f"{leak.amount} leaks of big buffers of avg size {format_bytes(leak.average_bytes)} "
                f"(total: {format_bytes(leak.total_leaked_bytes)}) {leak.location}"
            )
        return "\n".join(lines) + "\n"

    @property
    def slab_overview(self) -> str:
        lines = ["Slab retainers potential leaks:"]
        for leak in self.slab_leaks:
            lines.append(
                f"{leak.amount} leaks of avg {format_bytes(leak.average_bytes)} "
                f"(total: {format_bytes(leak.normalised_total_leaked_bytes)} normalised against retainers) "
                f"{leak.location}"
            )
        return "\n".join(lines) + "\n"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'big_buffer_leaks': [leak.to_dict() for leak in self.big_buffer_leaks],
            'slab_leaks': [leak.to_dict() for leak in self.slab_leaks],
            'total_big_buffer_leaks': self.total_big_buffer_leaks,
            'total_slab_leaks': self.total_slab_leaks,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        return "\n".join([
            self.big_buffer_overview,
            self.slab_overview,
            f"Total potential big buffer leaks: {format_bytes(self.total_big_buffer_leaks)}",
            f"Total potential slab-retainer leaks: {format_bytes(self.total_slab_leaks)}",
        ])
