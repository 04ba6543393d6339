"""Open file objects: a shared table of reference-counted files over
inodes and pipes."""

from __future__ import annotations

import dataclasses
import errno
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from .errors import panic
from .fs import FileSystem, Inode, Stat
from .layout import BSIZE
from .pipe import Pipe

NFILE = 100

BytesLike = Union[bytes, bytearray, memoryview]


class FileType(Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """One open file: what it refers to, how it may be used and where it is."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Optional[Pipe] = None
    ip: Optional[Inode] = None
    off: int = 0


class FileTable:
    """A fixed pool of file objects shared by all open descriptors."""

    def __init__(self, fs: FileSystem, nfile: int = NFILE) -> None:
        self.fs = fs
        self._lock = threading.Lock()
        self._files: List[File] = [File() for _ in range(nfile)]

    def alloc(self) -> File:
        """Take an unused file object. Raises OSError when the table is full."""
        with self._lock:
            f = next((f for f in self._files if f.ref == 0), None)
            if f is None:
                raise OSError(errno.ENFILE, "file table full")
            f.ref = 1
            return f

    def dup(self, f: File) -> File:
        """Take another reference to ``f``."""
        with self._lock:
            if f.ref < 1:
                panic("filedup")
            f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; the last one releases the pipe end or inode."""
        with self._lock:
            if f.ref < 1:
                panic("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            ff = dataclasses.replace(f)
            f.type = FileType.NONE
        if ff.type is FileType.PIPE and ff.pipe is not None:
            ff.pipe.close(ff.writable)
        elif ff.type is FileType.INODE and ff.ip is not None:
            with self.fs.log.transaction():
                self.fs.iput(ff.ip)

    def stat(self, f: File) -> Stat:
        """Metadata of the inode behind ``f``. Raises ValueError for other files."""
        if f.type is not FileType.INODE or f.ip is None:
            raise ValueError("file has no inode")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stati(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        """Read up to ``n`` bytes from ``f``, advancing its offset."""
        if not f.readable:
            raise PermissionError(errno.EBADF, "file not open for reading")
        if f.type is FileType.PIPE and f.pipe is not None:
            return f.pipe.read(n)
        if f.type is FileType.INODE and f.ip is not None:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        panic("fileread")

    def write(self, f: File, data: BytesLike) -> int:
        """Write all of ``data`` to ``f``; returns the byte count.

        Inode writes go a few blocks per transaction so that no single
        transaction outgrows the log.
        """
        if not f.writable:
            raise PermissionError(errno.EBADF, "file not open for writing")
        data = bytes(data)
        if f.type is FileType.PIPE and f.pipe is not None:
            return f.pipe.write(data)
        if f.type is FileType.INODE and f.ip is not None:
            chunk = ((self.fs.log.logsize - 1 - 1 - 2) // 2) * BSIZE
            i = 0
            while i < len(data):
                piece = data[i:i + chunk]
                with self.fs.log.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        written = self.fs.writei(f.ip, piece, f.off)
                        f.off += written
                    finally:
                        self.fs.iunlock(f.ip)
                if written != len(piece):
                    panic("short filewrite")
                i += written
            return len(data)
        panic("filewrite")

    def pipealloc(self) -> Tuple[File, File]:
        """Create a pipe; returns its read-end and write-end files."""
        f0 = self.alloc()
        try:
            f1 = self.alloc()
        except OSError:
            self.close(f0)
            raise
        pipe = Pipe()
        f0.type, f0.readable, f0.writable, f0.pipe = FileType.PIPE, True, False, pipe
        f1.type, f1.readable, f1.writable, f1.pipe = FileType.PIPE, False, True, pipe
        return f0, f1