"""NUL-terminated string helpers with C semantics."""

from __future__ import annotations

from itertools import islice, takewhile, zip_longest
from typing import IO, AnyStr, Union

StrLike = Union[str, bytes, bytearray]


def _as_bytes(s: StrLike) -> bytes:
    if isinstance(s, (bytes, bytearray)):
        return bytes(s)
    return s.encode("utf-8", "surrogateescape")


def _terminated(s: StrLike) -> bytes:
    return _as_bytes(s).split(b"\0", 1)[0]


def strncmp(p: StrLike, q: StrLike, n: int) -> int:
    """Compare at most ``n`` bytes; the end of a string counts as NUL."""
    for a, b in islice(zip_longest(_as_bytes(p), _as_bytes(q), fillvalue=0), max(n, 0)):
        if a == 0 or a != b:
            return a - b
    return 0


def strcmp(p: StrLike, q: StrLike) -> int:
    """Compare two strings up to their terminating NUL."""
    for a, b in zip_longest(_as_bytes(p), _as_bytes(q), fillvalue=0):
        if a == 0 or a != b:
            return a - b
    return 0


def strncpy(src: StrLike, n: int) -> bytes:
    """Return the ``n``-byte field strncpy would fill: truncated or NUL padded."""
    n = max(n, 0)
    return _terminated(src)[:n].ljust(n, b"\0")


def safestrcpy(src: StrLike, n: int) -> bytes:
    """Return what fits in ``n`` bytes with room for a NUL, without the NUL."""
    if n <= 0:
        return b""
    return _terminated(src)[: n - 1]


def atoi(s: StrLike) -> int:
    """Parse leading decimal digits; no sign or whitespace is accepted."""
    digits = bytes(takewhile(lambda c: 0x30 <= c <= 0x39, _as_bytes(s)))
    value = int(digits) if digits else 0
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def gets(stream: IO[AnyStr], limit: int) -> AnyStr:
    """Read one line of at most ``limit - 1`` characters, keeping the newline."""
    pieces = []
    empty = None
    while len(pieces) + 1 < limit:
        c = stream.read(1)
        if empty is None:
            empty = c[:0]
        if not c:
            break
        pieces.append(c)
        if c in ("\n", "\r", b"\n", b"\r"):
            break
    if empty is None:
        return b""  # type: ignore[return-value]
    return empty.join(pieces)