"""File system core: block allocation, the inode cache, inode contents,
directories and path lookup."""

from __future__ import annotations

import struct
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .bio import BufferCache
from .cstring import strncmp
from .errors import panic
from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    T_DEV,
    T_DIR,
    Dirent,
    DiskInode,
    SuperBlock,
    bblock,
    iblock,
)
from .log import Log

NINODE = 50
NDEV = 10

_ADDR = struct.Struct("<I")


@dataclass
class Stat:
    """Metadata about a file."""

    dev: int = 0
    ino: int = 0
    type: int = 0
    nlink: int = 0
    size: int = 0


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus cache book-keeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: List[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def locked(self) -> bool:
        """Whether some caller holds this inode's lock."""
        return self._lock.locked()


def skipelem(path: str) -> Optional[Tuple[str, str]]:
    """Split off the first path element.

    Returns ``(name, rest)`` where ``rest`` has no leading slashes, or None
    when no element is left. Names are cut to DIRSIZ bytes.
    """
    stripped = path.lstrip("/")
    if not stripped:
        return None
    elem, _, rest = stripped.partition("/")
    name = elem.encode("utf-8", "surrogateescape")[:DIRSIZ].decode(
        "utf-8", "surrogateescape"
    )
    return name, rest.lstrip("/")


def namecmp(s: str, t: str) -> int:
    """Compare two directory entry names over at most DIRSIZ bytes."""
    return strncmp(s, t, DIRSIZ)


class FileSystem:
    """Inodes, files and directories on one device, updated through a log.

    Devices are registered in ``devsw`` by major number; each is an object
    with ``read(n)`` and ``write(data)`` methods.
    """

    def __init__(self, cache: BufferCache, log: Log, dev: int = 1) -> None:
        self.cache = cache
        self.log = log
        self.dev = dev
        with cache.block(dev, 1) as buf:
            self.sb = SuperBlock.unpack(bytes(buf.data))
        self._icache = [Inode() for _ in range(NINODE)]
        self._icache_lock = threading.Lock()
        self.devsw: Dict[int, Any] = {}

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self.cache.block(self.dev, bno) as buf:
            buf.data[:] = bytes(BSIZE)
            self.log.log_write(buf)

    def _claim_bit(self, base: int) -> Optional[int]:
        with self.cache.block(self.dev, bblock(base, self.sb)) as buf:
            for bi in range(min(BPB, self.sb.size - base)):
                mask = 1 << (bi % 8)
                if not buf.data[bi // 8] & mask:
                    buf.data[bi // 8] |= mask
                    self.log.log_write(buf)
                    return base + bi
        return None

    def _balloc(self) -> int:
        for base in range(0, self.sb.size, BPB):
            block = self._claim_bit(base)
            if block is not None:
                self._bzero(block)
                return block
        panic("balloc: out of blocks")

    def _bfree(self, block: int) -> None:
        with self.cache.block(self.dev, bblock(block, self.sb)) as buf:
            bi = block % BPB
            mask = 1 << (bi % 8)
            if not buf.data[bi // 8] & mask:
                panic("freeing free block")
            buf.data[bi // 8] &= ~mask & 0xFF
            self.log.log_write(buf)

    # Inodes.

    def _inode_offset(self, inum: int) -> int:
        return (inum % IPB) * DiskInode.SIZE

    def ialloc(self, type_: int) -> Inode:
        """Allocate a free on-disk inode of the given type and return it unlocked."""
        for inum in range(1, self.sb.ninodes):
            off = self._inode_offset(inum)
            with self.cache.block(self.dev, iblock(inum, self.sb)) as buf:
                din = DiskInode.unpack(bytes(buf.data[off:off + DiskInode.SIZE]))
                if din.type != 0:
                    continue
                buf.data[off:off + DiskInode.SIZE] = DiskInode(type=type_).pack()
                self.log.log_write(buf)
            return self._iget(self.dev, inum)
        panic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        off = self._inode_offset(ip.inum)
        din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
        with self.cache.block(ip.dev, iblock(ip.inum, self.sb)) as buf:
            buf.data[off:off + DiskInode.SIZE] = din.pack()
            self.log.log_write(buf)

    def _iget(self, dev: int, inum: int) -> Inode:
        with self._icache_lock:
            empty = None
            for ip in self._icache:
                if ip.ref > 0 and ip.dev == dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                panic("iget: no inodes")
            empty.dev = dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        with self._icache_lock:
            ip.ref += 1
        return ip

    def ilock(self, ip: Optional[Inode]) -> None:
        """Lock ``ip``, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            panic("ilock")
        ip._lock.acquire()
        if not ip.valid:
            off = self._inode_offset(ip.inum)
            with self.cache.block(ip.dev, iblock(ip.inum, self.sb)) as buf:
                din = DiskInode.unpack(bytes(buf.data[off:off + DiskInode.SIZE]))
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                panic("ilock: no type")

    def iunlock(self, ip: Optional[Inode]) -> None:
        """Unlock ``ip``."""
        if ip is None or not ip.locked or ip.ref < 1:
            panic("iunlock")
        ip._lock.release()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; the last one to an unlinked inode frees it on disk."""
        with self._icache_lock:
            release = ip.ref == 1 and ip.valid and ip.nlink == 0
        if release:
            self._itrunc(ip)
            ip.type = 0
            self.iupdate(ip)
        with self._icache_lock:
            if release:
                ip.valid = False
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        """Unlock, then drop a reference."""
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as buf:
                (addr,) = _ADDR.unpack_from(buf.data, 4 * bn)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(buf.data, 4 * bn, addr)
                    self.log.log_write(buf)
            return addr
        panic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as buf:
                entries = struct.unpack_from(f"<{NINDIRECT}I", buf.data)
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        """Return the stat information of ``ip``."""
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    def _device(self, ip: Inode, op: str) -> Any:
        device = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        handler = getattr(device, op, None)
        if handler is None:
            raise ValueError(f"no {op} handler for device {ip.major}")
        return handler

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``; the result stops at end of file.

        Raises ValueError for an offset past the end or an unknown device.
        """
        if ip.type == T_DEV:
            return self._device(ip, "read")(n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read at {off} outside file of size {ip.size}")
        n = min(n, ip.size - off)
        pieces = []
        end = off + n
        while off < end:
            m = min(end - off, BSIZE - off % BSIZE)
            with self.cache.block(ip.dev, self._bmap(ip, off // BSIZE)) as buf:
                start = off % BSIZE
                pieces.append(bytes(buf.data[start:start + m]))
            off += m
        return b"".join(pieces)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at ``off``, growing the file; returns the bytes written.

        Raises ValueError for an offset past the end, a write beyond the
        largest file, or an unknown device.
        """
        data = bytes(data)
        if ip.type == T_DEV:
            return self._device(ip, "write")(data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at {off} outside file of size {ip.size}")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write beyond maximum file size")
        pos = 0
        while pos < n:
            m = min(n - pos, BSIZE - off % BSIZE)
            with self.cache.block(ip.dev, self._bmap(ip, off // BSIZE)) as buf:
                start = off % BSIZE
                buf.data[start:start + m] = data[pos:pos + m]
                self.log.log_write(buf)
            pos += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode, start: int = 0):
        for off in range(start, dp.size, Dirent.SIZE):
            raw = self.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                panic("dirlink read")
            yield off, Dirent.unpack(raw)

    def dirlookup(self, dp: Inode, name: str) -> Optional[Tuple[Inode, int]]:
        """Find ``name`` in directory ``dp``; returns the inode and entry offset."""
        if dp.type != T_DIR:
            panic("dirlookup not DIR")
        for off, de in self._entries(dp):
            if de.inum != 0 and namecmp(name, de.name) == 0:
                return self._iget(dp.dev, de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry ``(name, inum)`` to directory ``dp``.

        Raises FileExistsError if the name is already present.
        """
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(name)
        slot = next((off for off, de in self._entries(dp) if de.inum == 0), dp.size)
        if self.writei(dp, Dirent(inum, name).pack(), slot) != Dirent.SIZE:
            panic("dirlink")

    # Paths.

    def _namex(
        self, path: str, parent: bool, cwd: Optional[Inode]
    ) -> Optional[Tuple[Inode, str]]:
        if path.startswith("/") or cwd is None:
            ip = self._iget(self.dev, ROOTINO)
        else:
            ip = self.idup(cwd)
        rest = path
        while True:
            elem = skipelem(rest)
            if elem is None:
                break
            name, rest = elem
            self.ilock(ip)
            if ip.type != T_DIR:
                self.iunlockput(ip)
                return None
            if parent and rest == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            self.iunlockput(ip)
            if found is None:
                return None
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip, ""

    def namei(self, path: str, cwd: Optional[Inode] = None) -> Optional[Inode]:
        """Look up ``path``, relative paths from ``cwd`` (the root if none)."""
        found = self._namex(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(
        self, path: str, cwd: Optional[Inode] = None
    ) -> Optional[Tuple[Inode, str]]:
        """Return the parent directory of ``path`` and its final element."""
        return self._namex(path, True, cwd)