#=============================================================================
# File        : slabhunter/buffers.py
# Project     : SlabHunter v1.0
# Component   : Buffers - Pooled Buffer Allocator
# Description : Slab-backed buffer allocator instrumented by the buffer guard
#               • Shared slabs carved into small views
#               • Dedicated slabs for large requests
#               • Weak-referenceable buffers and slabs for lifecycle tracking
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, memoryview
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-19
# Modified    : 2026-10-19 (Initial creation)
# Dependencies: threading
# License     : MIT License
# Copyright   : © 2026 Kyle Clouthier. Released under MIT License.
#=============================================================================

from __future__ import annotations

import threading
from typing import Union

DEFAULT_POOL_SIZE = 8 * 1024


class Slab:
    """
    A backing block that one or more buffers view into.

    Identity is the object itself, never its contents. The length is fixed
    at creation.
    """

    __slots__ = ('_data', '_byte_length', '__weakref__')

    def __init__(self, byte_length: int):
        self._data = bytearray(byte_length)
        self._byte_length = byte_length

    @property
    def byte_length(self) -> int:
        return self._byte_length

    def __repr__(self) -> str:
        return f"Slab(byte_length={self._byte_length}, id=0x{id(self):x})"


class Buffer:
    """A fixed-length view over part of a :class:`Slab`."""

    __slots__ = ('_slab', '_offset', '_view', '__weakref__')

    def __init__(self, slab: Slab, offset: int, length: int):
        if offset < 0 or length < 0 or offset + length > slab.byte_length:
            raise ValueError(f"View [{offset}, {offset + length}) outside slab of {slab.byte_length} bytes")
        self._slab = slab
        self._offset = offset
        self._view = memoryview(slab._data)[offset:offset + length]

    @property
    def buffer(self) -> Slab:
        """The backing slab."""
        return self._slab

    @property
    def byte_offset(self) -> int:
        return self._offset

    @property
    def byte_length(self) -> int:
        return self._view.nbytes

    def __len__(self) -> int:
        return self._view.nbytes

    def __getitem__(self, index):
        return self._view[index]

    def __setitem__(self, index, value) -> None:
        self._view[index] = value

    def __bytes__(self) -> bytes:
        return self._view.tobytes()

    def tobytes(self) -> bytes:
        return self._view.tobytes()

    def fill(self, value: int) -> "Buffer":
        self._view[:] = bytes([value]) * self._view.nbytes
        return self

    def __repr__(self) -> str:
        return f"Buffer(byte_length={self.byte_length}, byte_offset={self._offset}, slab={self._slab!r})"


class BufferPool:
    """
    Allocator that services small requests from a shared slab.

    Requests smaller than half the pool size are carved out of the current
    slab; a fresh slab is started when the current one cannot fit the
    request. Larger requests get a dedicated slab of exactly their size.
    """

    def __init__(self, pool_size: int = DEFAULT_POOL_SIZE):
        if pool_size < 8:
            raise ValueError(f"pool_size must be >= 8, got {pool_size}")
        self.pool_size = pool_size
        self._lock = threading.Lock()
        self._slab = Slab(pool_size)
        self._offset = 0
        self.slabs_created = 1

    def alloc_unsafe(self, size: int) -> Buffer:
        """Allocate a buffer of ``size`` bytes whose contents are unspecified."""
        if isinstance(size, bool) or not isinstance(size, int):
            raise TypeError(f"size must be an int, got {type(size).__name__}")
        if size < 0:
            raise ValueError(f"size must be >= 0, got {size}")

        if size == 0:
            return Buffer(Slab(0), 0, 0)

        if size < (self.pool_size >> 1):
            with self._lock:
                if size > self.pool_size - self._offset:
                    self._slab = Slab(self.pool_size)
                    self._offset = 0
                    self.slabs_created += 1
                buf = Buffer(self._slab, self._offset, size)
                self._offset += size
                # Keep views 8-byte aligned
                if self._offset & 0x7:
                    self._offset = (self._offset | 0x7) + 1
                return buf

        return Buffer(Slab(size), 0, size)

    def from_bytes(self, data: Union[bytes, bytearray, memoryview]) -> Buffer:
        """Allocate a buffer through :meth:`alloc_unsafe` and copy ``data`` in."""
        buf = self.alloc_unsafe(len(data))
        buf[:] = data
        return buf

    def __repr__(self) -> str:
        return f"BufferPool(pool_size={self.pool_size}, offset={self._offset})"


default_pool = BufferPool()


def alloc_unsafe(size: int) -> Buffer:
    """Allocate from :data:`default_pool`, honouring any installed guard."""
    return default_pool.alloc_unsafe(size)
