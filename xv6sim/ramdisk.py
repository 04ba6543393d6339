"""A disk held in memory, addressed in BSIZE blocks."""

from __future__ import annotations

from typing import Union

from .errors import panic
from .layout import BSIZE

ImageLike = Union[bytes, bytearray, memoryview]


class RamDisk:
    """Serves block reads and writes for one device from an in-memory image.

    A ``bytearray`` image is used in place, so writes are visible to its owner;
    any other bytes-like image is copied.
    """

    def __init__(self, image: ImageLike, dev: int = 1) -> None:
        self._data = image if isinstance(image, bytearray) else bytearray(image)
        self.dev = dev
        self._nblocks = len(self._data) // BSIZE

    def size(self) -> int:
        """Number of whole blocks on the disk."""
        return self._nblocks

    @property
    def image(self) -> bytes:
        """A copy of the whole disk image."""
        return bytes(self._data)

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self._nblocks:
            panic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        """Return the contents of block ``blockno``."""
        offset = self._offset(blockno)
        return bytes(self._data[offset:offset + BSIZE])

    def write_block(self, blockno: int, data: ImageLike) -> None:
        """Replace the contents of block ``blockno`` with ``data``."""
        if len(data) != BSIZE:
            raise ValueError(f"block data must be {BSIZE} bytes, got {len(data)}")
        offset = self._offset(blockno)
        self._data[offset:offset + BSIZE] = data