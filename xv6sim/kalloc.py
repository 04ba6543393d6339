"""Physical page allocator with per-page reference counts."""

from __future__ import annotations

import threading
from typing import List, Optional

from .errors import panic

PGSIZE = 4096
PGSHIFT = 12


def pgroundup(addr: int) -> int:
    """Round ``addr`` up to a page boundary."""
    return (addr + PGSIZE - 1) & ~(PGSIZE - 1)


class PageAllocator:
    """Hands out 4096-byte pages between ``kernel_end`` and ``phystop``."""

    def __init__(self, kernel_end: int, phystop: int) -> None:
        if kernel_end < 0 or phystop <= kernel_end:
            raise ValueError("phystop must lie above kernel_end")
        self.kernel_end = kernel_end
        self.phystop = phystop
        self._lock = threading.Lock()
        self._freelist: List[int] = []
        self._free_pages = 0
        self._refcount = [0] * (phystop >> PGSHIFT)

    def free_range(self, start: int, end: int) -> None:
        """Put every whole page in ``[start, end)`` on the free list."""
        for page in range(pgroundup(start), end - PGSIZE + 1, PGSIZE):
            with self._lock:
                self._refcount[page >> PGSHIFT] = 0
            self.free(page)

    def free(self, addr: int) -> None:
        """Drop a reference to a page; it is freed when none remain."""
        if addr % PGSIZE or addr < self.kernel_end or addr >= self.phystop:
            panic("kfree")
        with self._lock:
            index = addr >> PGSHIFT
            if self._refcount[index] > 0:
                self._refcount[index] -= 1
            if self._refcount[index] == 0:
                self._free_pages += 1
                self._freelist.append(addr)

    def alloc(self) -> Optional[int]:
        """Take a page off the free list, or return None when memory is exhausted."""
        with self._lock:
            if not self._freelist:
                return None
            addr = self._freelist.pop()
            self._free_pages -= 1
            self._refcount[addr >> PGSHIFT] = 1
            return addr

    def free_pages(self) -> int:
        """Number of pages on the free list."""
        with self._lock:
            return self._free_pages

    def _check(self, addr: int, what: str) -> None:
        if addr < self.kernel_end or addr >= self.phystop:
            panic(what)

    def increment_ref(self, addr: int) -> None:
        self._check(addr, "incrementReferenceCount")
        with self._lock:
            index = addr >> PGSHIFT
            self._refcount[index] = (self._refcount[index] + 1) & 0xFFFFFFFF

    def decrement_ref(self, addr: int) -> None:
        self._check(addr, "decrementReferenceCount")
        with self._lock:
            index = addr >> PGSHIFT
            self._refcount[index] = (self._refcount[index] - 1) & 0xFFFFFFFF

    def ref_count(self, addr: int) -> int:
        self._check(addr, "getReferenceCount")
        with self._lock:
            return self._refcount[addr >> PGSHIFT]