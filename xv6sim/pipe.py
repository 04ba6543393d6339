"""A bounded in-memory pipe with blocking reads and writes."""

from __future__ import annotations

import errno
import threading
from typing import Union

PIPESIZE = 512

BytesLike = Union[bytes, bytearray, memoryview]


class Pipe:
    """A byte channel holding at most PIPESIZE unread bytes.

    Writers block while the pipe is full and readers block while it is
    empty, until the other side makes room, supplies data or closes.
    """

    def __init__(self) -> None:
        self.capacity = PIPESIZE
        self.readopen = True
        self.writeopen = True
        self._buf = bytearray()
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        """Whether both ends have been closed."""
        return not self.readopen and not self.writeopen

    def __len__(self) -> int:
        with self._cond:
            return len(self._buf)

    def write(self, data: BytesLike) -> int:
        """Write all of ``data``, waiting for room; returns the byte count.

        Raises BrokenPipeError if the pipe fills up with its read end closed.
        """
        data = bytes(data)
        pos = 0
        with self._cond:
            while pos < len(data):
                while len(self._buf) == self.capacity:
                    if not self.readopen:
                        raise BrokenPipeError(errno.EPIPE, "pipe read end closed")
                    self._cond.notify_all()
                    self._cond.wait()
                room = self.capacity - len(self._buf)
                self._buf += data[pos:pos + room]
                pos += room
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, waiting while the pipe is empty and writable.

        Returns an empty result once the pipe is empty and its write end closed.
        """
        n = max(n, 0)
        with self._cond:
            while not self._buf and self.writeopen:
                self._cond.wait()
            chunk = bytes(self._buf[:n])
            del self._buf[:n]
            self._cond.notify_all()
        return chunk

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()