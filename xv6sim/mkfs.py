"""Builds a file system image holding a root directory and some files."""

from __future__ import annotations

import struct
import sys
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    T_DIR,
    T_FILE,
    Dirent,
    DiskInode,
    SuperBlock,
    iblock,
)
from .log import LOGSIZE

FSSIZE = 1000
NINODES = 200

Files = Union[Mapping[str, bytes], Iterable[Tuple[str, bytes]]]


class _ImageBuilder:
    def __init__(self, fssize: int, ninodes: int, nlog: int) -> None:
        self.fssize = fssize
        self.ninodes = ninodes
        self.nbitmap = fssize // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = nlog
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("image too small for its metadata")
        self.sb = SuperBlock(
            size=fssize,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.messages: List[str] = [
            f"nmeta {self.nmeta} (boot, super, log blocks {nlog} inode blocks "
            f"{self.ninodeblocks}, bitmap blocks {self.nbitmap}) blocks "
            f"{self.nblocks} total {fssize}"
        ]
        self.image = bytearray(fssize * BSIZE)
        self.image[BSIZE:BSIZE + SuperBlock.SIZE] = self.sb.pack()
        self.freeinode = 1
        self.freeblock = self.nmeta

    def _rsect(self, sec: int) -> bytearray:
        return bytearray(self.image[sec * BSIZE:(sec + 1) * BSIZE])

    def _wsect(self, sec: int, data: bytes) -> None:
        self.image[sec * BSIZE:(sec + 1) * BSIZE] = data

    def _inode_slot(self, inum: int) -> Tuple[int, int]:
        return iblock(inum, self.sb), (inum % IPB) * DiskInode.SIZE

    def _rinode(self, inum: int) -> DiskInode:
        sec, offset = self._inode_slot(inum)
        return DiskInode.unpack(self._rsect(sec)[offset:])

    def _winode(self, inum: int, din: DiskInode) -> None:
        sec, offset = self._inode_slot(inum)
        block = self._rsect(sec)
        block[offset:offset + DiskInode.SIZE] = din.pack()
        self._wsect(sec, block)

    def _alloc_block(self) -> int:
        if self.freeblock >= self.fssize:
            raise ValueError("out of data blocks")
        block = self.freeblock
        self.freeblock += 1
        return block

    def ialloc(self, type_: int) -> int:
        inum = self.freeinode
        if inum >= self.ninodes:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self._winode(inum, DiskInode(type=type_, nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        din = self._rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                block = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(
                    struct.unpack(f"<{NINDIRECT}I", self._rsect(din.addrs[NDIRECT]))
                )
                slot = fbn - NDIRECT
                if indirect[slot] == 0:
                    indirect[slot] = self._alloc_block()
                    self._wsect(din.addrs[NDIRECT], struct.pack(f"<{NINDIRECT}I", *indirect))
                block = indirect[slot]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            buf = self._rsect(block)
            start = off - fbn * BSIZE
            buf[start:start + n1] = data[pos:pos + n1]
            self._wsect(block, buf)
            pos += n1
            off += n1
        din.size = off
        self._winode(inum, din)

    def balloc(self, used: int) -> None:
        self.messages.append(f"balloc: first {used} blocks have been allocated")
        if used >= BPB:
            raise ValueError("too many blocks for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self.messages.append(f"balloc: write bitmap block at sector {self.sb.bmapstart}")
        self._wsect(self.sb.bmapstart, bitmap)

    def build(self, files: Iterable[Tuple[str, bytes]]) -> bytes:
        rootino = self.ialloc(T_DIR)
        if rootino != ROOTINO:
            raise ValueError("root directory did not get the root inode")
        self.iappend(rootino, Dirent(rootino, ".").pack())
        self.iappend(rootino, Dirent(rootino, "..").pack())
        for name, data in files:
            if "/" in name:
                raise ValueError(f"file name may not contain '/': {name!r}")
            inum = self.ialloc(T_FILE)
            encoded = name.encode("utf-8", "surrogateescape")[:DIRSIZ]
            self.iappend(rootino, Dirent(inum, encoded.decode("utf-8", "surrogateescape")).pack())
            self.iappend(inum, bytes(data))

        din = self._rinode(rootino)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self._winode(rootino, din)

        self.balloc(self.freeblock)
        return bytes(self.image)


def _pairs(files: Files) -> List[Tuple[str, bytes]]:
    if isinstance(files, Mapping):
        return list(files.items())
    return list(files)


def make_image(files: Files) -> bytes:
    """Return a file system image whose root directory holds ``files``."""
    return _ImageBuilder(FSSIZE, NINODES, LOGSIZE).build(_pairs(files))


def build_image(path: Union[str, Path], files: Files) -> None:
    """Write an image holding ``files`` to ``path``."""
    Path(path).write_bytes(make_image(files))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point: ``mkfs fs.img files...``."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    target, paths = args[0], args[1:]
    files = []
    for name in paths:
        if "/" in name:
            sys.stderr.write(f"mkfs: {name}: file name may not contain '/'\n")
            return 1
        try:
            data = Path(name).read_bytes()
        except OSError as exc:
            sys.stderr.write(f"{name}: {exc.strerror}\n")
            return 1
        files.append((name[1:] if name.startswith("_") else name, data))
    builder = _ImageBuilder(FSSIZE, NINODES, LOGSIZE)
    try:
        image = builder.build(files)
    except ValueError as exc:
        sys.stderr.write(f"mkfs: {exc}\n")
        return 1
    try:
        Path(target).write_bytes(image)
    except OSError as exc:
        sys.stderr.write(f"{target}: {exc.strerror}\n")
        return 1
    for message in builder.messages:
        print(message)
    return 0