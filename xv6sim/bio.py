"""Buffer cache: locked, reference-counted copies of disk blocks in MRU order."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List

from .errors import panic
from .layout import BSIZE
from .ramdisk import RamDisk

NBUF = 30


@dataclass(eq=False)
class Buffer:
    """A cached copy of one disk block."""

    dev: int = 0
    blockno: int = 0
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE), repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def locked(self) -> bool:
        """Whether some caller currently holds this buffer."""
        return self._lock.locked()


class BufferCache:
    """A fixed pool of buffers; the most recently released comes first."""

    def __init__(self, disk: RamDisk, nbuf: int = NBUF) -> None:
        if nbuf < 1:
            raise ValueError("the cache needs at least one buffer")
        self.disk = disk
        self._lock = threading.Lock()
        self._mru: List[Buffer] = [Buffer() for _ in range(nbuf)]

    def _bget(self, dev: int, blockno: int) -> Buffer:
        with self._lock:
            buf = next(
                (b for b in self._mru if b.dev == dev and b.blockno == blockno), None
            )
            if buf is not None:
                buf.refcnt += 1
            else:
                buf = next(
                    (b for b in reversed(self._mru) if b.refcnt == 0 and not b.dirty),
                    None,
                )
                if buf is None:
                    panic("bget: no buffers")
                buf.dev = dev
                buf.blockno = blockno
                buf.valid = False
                buf.dirty = False
                buf.refcnt = 1
        buf._lock.acquire()
        return buf

    def _iderw(self, buf: Buffer) -> None:
        if not buf.locked:
            panic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            panic("iderw: nothing to do")
        if buf.dev != self.disk.dev:
            panic(f"iderw: request not for disk {self.disk.dev}")
        if buf.dirty:
            buf.dirty = False
            self.disk.write_block(buf.blockno, buf.data)
        else:
            buf.data[:] = self.disk.read_block(buf.blockno)
        buf.valid = True

    def bread(self, dev: int, blockno: int) -> Buffer:
        """Return a locked buffer holding the contents of the block."""
        buf = self._bget(dev, blockno)
        if not buf.valid:
            self._iderw(buf)
        return buf

    def bwrite(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.locked:
            panic("bwrite")
        buf.dirty = True
        self._iderw(buf)

    def brelse(self, buf: Buffer) -> None:
        """Release a locked buffer; unused buffers move to the front."""
        if not buf.locked:
            panic("brelse")
        buf._lock.release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._mru.remove(buf)
                self._mru.insert(0, buf)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buffer]:
        """Hold the block's buffer for the duration of a ``with`` block."""
        buf = self.bread(dev, blockno)
        try:
            yield buf
        finally:
            self.brelse(buf)