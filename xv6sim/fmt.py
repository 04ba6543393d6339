"""A small printf that understands %d, %x, %p, %s, %c and %%."""

from __future__ import annotations

import io
from typing import IO, Any, Iterator

_DIGITS = "0123456789ABCDEF"


def format_int(value: int, base: int, signed: bool) -> str:
    """Render ``value`` as a 32-bit integer in ``base``."""
    if not 2 <= base <= len(_DIGITS):
        raise ValueError(f"unsupported base {base}")
    x = value & 0xFFFFFFFF
    negative = bool(signed and x & 0x80000000)
    if negative:
        x = -x & 0xFFFFFFFF
    digits = []
    while True:
        x, r = divmod(x, base)
        digits.append(_DIGITS[r])
        if x == 0:
            break
    if negative:
        digits.append("-")
    return "".join(reversed(digits))


def _next(values: Iterator[Any]) -> Any:
    try:
        return next(values)
    except StopIteration:
        raise ValueError("not enough arguments for format string") from None


def _string(arg: Any) -> str:
    if arg is None:
        return "(null)"
    if isinstance(arg, (bytes, bytearray)):
        return bytes(arg).decode("utf-8", "replace")
    return str(arg)


def _char(arg: Any) -> str:
    if isinstance(arg, int):
        return chr(arg & 0xFF)
    return str(arg)[:1]


def sprintf(fmt: str, *args: Any) -> str:
    """Format ``args`` according to ``fmt`` and return the text."""
    values = iter(args)
    out = []
    pending = False
    for c in fmt:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        pending = False
        if c == "d":
            out.append(format_int(_next(values), 10, True))
        elif c in "xp":
            out.append(format_int(_next(values), 16, False))
        elif c == "s":
            out.append(_string(_next(values)))
        elif c == "c":
            out.append(_char(_next(values)))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def _is_binary(stream: IO[Any]) -> bool:
    if isinstance(stream, (io.RawIOBase, io.BufferedIOBase)):
        return True
    return "b" in getattr(stream, "mode", "")


def fprintf(stream: IO[Any], fmt: str, *args: Any) -> None:
    """Format ``args`` and write the result to ``stream``."""
    text = sprintf(fmt, *args)
    stream.write(text.encode("utf-8") if _is_binary(stream) else text)