"""Write-ahead redo log grouping file system operations into transactions."""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from typing import Iterator, List, Tuple

from .bio import Buffer, BufferCache
from .errors import panic
from .layout import BSIZE, SuperBlock

LOGSIZE = 30
MAXOPBLOCKS = 10


class Log:
    """Collects blocks written by concurrent operations and commits them together.

    On disk the log is a header block (a count and the home block numbers)
    followed by copies of the logged blocks.
    """

    def __init__(self, cache: BufferCache, dev: int, sb: SuperBlock) -> None:
        if 4 * (1 + LOGSIZE) >= BSIZE:
            panic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.logsize = LOGSIZE
        self.maxopblocks = MAXOPBLOCKS
        self._cond = threading.Condition()
        self._outstanding = 0
        self._committing = False
        self._blocks: List[int] = []
        self._recover()

    @property
    def pending(self) -> Tuple[int, ...]:
        """Home block numbers logged in the current transaction."""
        return tuple(self._blocks)

    def _read_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            (n,) = struct.unpack_from("<i", buf.data)
            if not 0 <= n <= self.logsize:
                panic("read_head: bad log header")
            self._blocks = list(struct.unpack_from(f"<{n}i", buf.data, 4))

    def _write_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            n = len(self._blocks)
            struct.pack_into(f"<i{n}i", buf.data, 0, n, *self._blocks)
            self.cache.bwrite(buf)

    def _install_trans(self) -> None:
        for tail, home in enumerate(self._blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as lbuf, \
                    self.cache.block(self.dev, home) as dbuf:
                dbuf.data[:] = lbuf.data
                self.cache.bwrite(dbuf)

    def _write_log(self) -> None:
        for tail, home in enumerate(self._blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as to, \
                    self.cache.block(self.dev, home) as src:
                to.data[:] = src.data
                self.cache.bwrite(to)

    def _recover(self) -> None:
        self._read_head()
        self._install_trans()
        self._blocks = []
        self._write_head()

    def _commit(self) -> None:
        if self._blocks:
            self._write_log()
            self._write_head()
            self._install_trans()
            self._blocks = []
            self._write_head()

    def begin_op(self) -> None:
        """Start an operation, waiting while a commit runs or space is short."""
        with self._cond:
            while (
                self._committing
                or len(self._blocks) + (self._outstanding + 1) * self.maxopblocks
                > self.logsize
            ):
                self._cond.wait()
            self._outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; the last one out commits the transaction."""
        do_commit = False
        with self._cond:
            self._outstanding -= 1
            if self._committing:
                panic("log.committing")
            if self._outstanding == 0:
                do_commit = True
                self._committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            self._commit()
            with self._cond:
                self._committing = False
                self._cond.notify_all()

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer in the transaction and pin it in the cache."""
        if len(self._blocks) >= self.logsize or len(self._blocks) >= self.size - 1:
            panic("too big a transaction")
        if self._outstanding < 1:
            panic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self._blocks:
                self._blocks.append(buf.blockno)
            buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator["Log"]:
        """Run the body between begin_op and end_op."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()