"""On-disk file system format: constants, structures and block arithmetic."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar, List

ROOTINO = 1
BSIZE = 512
NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT
DIRSIZ = 14
BPB = BSIZE * 8

T_DIR = 1
T_FILE = 2
T_DEV = 3


def _check_length(data: bytes, size: int, what: str) -> None:
    if len(data) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


@dataclass
class SuperBlock:
    """Describes the disk layout."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<7I")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        try:
            return self._STRUCT.pack(
                self.size, self.nblocks, self.ninodes, self.nlog,
                self.logstart, self.inodestart, self.bmapstart,
            )
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def unpack(cls, data: bytes) -> "SuperBlock":
        _check_length(data, cls.SIZE, "superblock")
        return cls(*cls._STRUCT.unpack_from(data))


@dataclass
class DiskInode:
    """On-disk inode structure."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: List[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(f"<4hI{NDIRECT + 1}I")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"inode needs {NDIRECT + 1} block addresses")
        try:
            return self._STRUCT.pack(
                self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
            )
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def unpack(cls, data: bytes) -> "DiskInode":
        _check_length(data, cls.SIZE, "inode")
        type_, major, minor, nlink, size, *addrs = cls._STRUCT.unpack_from(data)
        return cls(type_, major, minor, nlink, size, list(addrs))


@dataclass
class Dirent:
    """A directory entry: inode number and a name of at most DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(f"<H{DIRSIZ}s")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        encoded = self.name.encode("utf-8", "surrogateescape")
        try:
            return self._STRUCT.pack(self.inum, encoded)
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def unpack(cls, data: bytes) -> "Dirent":
        _check_length(data, cls.SIZE, "directory entry")
        inum, raw = cls._STRUCT.unpack_from(data)
        name = raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
        return cls(inum, name)


IPB = BSIZE // DiskInode.SIZE


def iblock(inum: int, sb: SuperBlock) -> int:
    """Block holding inode ``inum``."""
    return inum // IPB + sb.inodestart


def bblock(block: int, sb: SuperBlock) -> int:
    """Bitmap block holding the bit for ``block``."""
    return block // BPB + sb.bmapstart