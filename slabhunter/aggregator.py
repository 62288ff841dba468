#=============================================================================
# File        : slabhunter/aggregator.py
# Project     : SlabHunter v1.0
# Component   : Leak Aggregator - Call-Site Buckets and Overview Reduction
# Description : Buckets leak candidates by capture site and reduces them
#               • Append-only buckets keyed by capture site
#               • Big-buffer and slab-retainer reductions
#               • Retainer-normalised slab waste
#               • Compaction of entries already reclaimed
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: registry, report
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from .config import DEFAULT_BIG_BUFFER_CUTOFF
from .registry import IdentityRegistry
from .report import BigBufferLeak, LeakOverview, SlabLeak

_logger = logging.getLogger(__name__)


@dataclass
class LeakBucket:
    """Leak candidates recorded for one capture site, in classification order."""
    keys: List[int] = field(default_factory=list)
    own_lengths: List[int] = field(default_factory=list)
    slab_lengths: List[int] = field(default_factory=list)

    def append(self, key: int, own_length: int, slab_length: int) -> None:
        self.keys.append(key)
        self.own_lengths.append(own_length)
        self.slab_lengths.append(slab_length)

    def retain_live(self, registry: IdentityRegistry) -> int:
        """Drop entries whose key is no longer registered; return how many went."""
        live = [i for i, key in enumerate(self.keys) if registry.is_live(key)]
        dropped = len(self.keys) - len(live)
        if dropped:
            self.keys = [self.keys[i] for i in live]
            self.own_lengths = [self.own_lengths[i] for i in live]
            self.slab_lengths = [self.slab_lengths[i] for i in live]
        return dropped

    def __len__(self) -> int:
        return len(self.keys)


class LeakAggregator:
    """
    Collects allocations that outlived the leak cutoff, grouped by call site.

    Keys in a bucket may since have been reclaimed. Those entries are skipped
    at report time and compacted away: keys are never reused, so a released
    key cannot come back and pruning it never changes a report.
    """

    def __init__(self, registry: IdentityRegistry,
                 big_buffer_cutoff: int = DEFAULT_BIG_BUFFER_CUTOFF,
                 compact_every: int = 1024) -> None:
        self._registry = registry
        self.big_buffer_cutoff = big_buffer_cutoff
        self._compact_every = compact_every
        self._buckets: Dict[str, LeakBucket] = {}
        self._since_compaction = 0
        self.total_recorded = 0

    def record(self, capture_site: str, key: int, own_length: int, slab_length: int) -> None:
        bucket = self._buckets.get(capture_site)
        if bucket is None:
            bucket = LeakBucket()
            self._buckets[capture_site] = bucket
        bucket.append(key, own_length, slab_length)
        self.total_recorded += 1

        self._since_compaction += 1
        if self._since_compaction >= self._compact_every:
            self.compact()

    def compact(self) -> int:
        """Prune reclaimed entries and empty buckets; return entries dropped."""
        dropped = 0
        for site in list(self._buckets):
            bucket = self._buckets[site]
            dropped += bucket.retain_live(self._registry)
            if not bucket:
                del self._buckets[site]
        self._since_compaction = 0
        if dropped:
            _logger.debug(f"Compacted {dropped} reclaimed leak entries")
        return dropped

    def compute_overview(self) -> LeakOverview:
        self.compact()

        registry = self._registry
        slab_leaks: List[SlabLeak] = []
        big_buffer_leaks: List[BigBufferLeak] = []

        for location, bucket in self._buckets.items():
            amount = 0
            total_leaked = 0
            normalised_total_leaked = 0.0
            big_amount = 0
            big_total_leaked = 0

            for key, own_size, slab_size in zip(bucket.keys, bucket.own_lengths, bucket.slab_lengths):
                retainers = registry.retainer_count(key)
                if retainers == 0:
                    continue  # reclaimed

                if own_size >= self.big_buffer_cutoff:
                    big_amount += 1
                    big_total_leaked += own_size

                slab_leak = slab_size - own_size
                if slab_leak > 0:
                    amount += 1
                    total_leaked += slab_leak
                    normalised_total_leaked += slab_leak / retainers

            if amount > 0:
                slab_leaks.append(SlabLeak(
                    location=location,
                    amount=amount,
                    total_leaked_bytes=total_leaked,
                    normalised_total_leaked_bytes=normalised_total_leaked,
                ))
            if big_amount > 0:
                big_buffer_leaks.append(BigBufferLeak(
                    location=location,
                    amount=big_amount,
                    total_leaked_bytes=big_total_leaked,
                ))

        slab_leaks.sort(key=lambda leak: leak.normalised_total_leaked_bytes, reverse=True)
        big_buffer_leaks.sort(key=lambda leak: leak.total_leaked_bytes, reverse=True)
        return LeakOverview(big_buffer_leaks=big_buffer_leaks, slab_leaks=slab_leaks)

    @property
    def site_count(self) -> int:
        return len(self._buckets)

    @property
    def entry_count(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def bucket_for(self, capture_site: str) -> LeakBucket:
        return self._buckets[capture_site]

    def sites(self) -> List[str]:
        return list(self._buckets)
