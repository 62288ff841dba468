#=============================================================================
# File        : slabhunter/registry.py
# Project     : SlabHunter v1.0
# Component   : Identity Registry - Allocation Keys and Slab Ownership
# Description : Bidirectional bookkeeping between allocation keys and slabs
#               • Monotonic, never reused allocation keys
#               • Weak slab references (bookkeeping never pins memory)
#               • Live retainer counts per slab
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Weak References
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: itertools, weakref
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import itertools
import weakref
from typing import Dict, Optional, Set

from .buffers import Slab


class IdentityRegistry:
    """
    Maps allocation keys to their backing slabs and back.

    Slabs are held through ``weakref.ref`` objects. A ref keeps the hash of
    its referent once computed and compares by identity after the referent
    dies, so the ref stored for a key keeps addressing the same slab entry
    even when the slab itself has already been collected.

    Not thread-safe on its own; callers serialize access (see
    :class:`slabhunter.lifecycle.LifecycleTracker`).
    """

    def __init__(self) -> None:
        self._counter = itertools.count()
        self._key_to_slab: Dict[int, weakref.ref] = {}
        self._slab_to_keys: Dict[weakref.ref, Set[int]] = {}

    def register(self, slab: Slab) -> int:
        """Allocate a fresh key and attach it to ``slab``."""
        key = next(self._counter)
        ref = weakref.ref(slab)
        hash(ref)  # cache while the slab is alive

        keys = self._slab_to_keys.get(ref)
        if keys is None:
            keys = set()
            self._slab_to_keys[ref] = keys
        keys.add(key)
        self._key_to_slab[key] = ref
        return key

    def release(self, key: int) -> bool:
        """Forget ``key``; drop its slab entry once no keys remain. Idempotent."""
        ref = self._key_to_slab.pop(key, None)
        if ref is None:
            return False

        keys = self._slab_to_keys.get(ref)
        if keys is not None:
            keys.discard(key)
            if not keys:
                del self._slab_to_keys[ref]
        return True

    def resolve_slab(self, key: int) -> Optional[Slab]:
        ref = self._key_to_slab.get(key)
        if ref is None:
            return None
        return ref()

    def is_live(self, key: int) -> bool:
        return key in self._key_to_slab

    def retainer_count(self, key: int) -> int:
        """Number of live keys sharing ``key``'s slab (0 once released)."""
        ref = self._key_to_slab.get(key)
        if ref is None:
            return 0
        return len(self._slab_to_keys[ref])

    def keys_for(self, slab: Slab) -> Set[int]:
        return set(self._slab_to_keys.get(weakref.ref(slab), ()))

    @property
    def slab_count(self) -> int:
        return len(self._slab_to_keys)

    def __len__(self) -> int:
        return len(self._key_to_slab)

    def __contains__(self, key: int) -> bool:
        return key in self._key_to_slab

    def __repr__(self) -> str:
        return f"IdentityRegistry(keys={len(self)}, slabs={self.slab_count})"
