"""Console line discipline: echoed, editable input and character output."""

from __future__ import annotations

import io
import threading
from typing import IO, Any, Iterable, List, Union

from .fmt import format_int

INPUT_BUF = 128
BACKSPACE = 0x100

CharsLike = Union[str, bytes, bytearray, Iterable[int]]


def _ctrl(letter: str) -> int:
    return ord(letter) - ord("@")


CTRL_D = _ctrl("D")
CTRL_H = _ctrl("H")
CTRL_P = _ctrl("P")
CTRL_U = _ctrl("U")
DEL = 0x7F


def _codes(chars: CharsLike) -> List[int]:
    if isinstance(chars, str):
        return [ord(c) for c in chars]
    return list(chars)


def _is_binary(stream: IO[Any]) -> bool:
    if isinstance(stream, (io.RawIOBase, io.BufferedIOBase)):
        return True
    return "b" in getattr(stream, "mode", "")


class Console:
    """Collects typed characters into lines and echoes everything to ``output``.

    Typed input is edited in place (backspace, kill line) and becomes
    readable once a newline or end-of-file arrives, or the buffer fills.
    An instance can serve as a device: it has ``read(n)`` and ``write(data)``.
    """

    def __init__(self, output: IO[Any]) -> None:
        self.output = output
        self._binary = _is_binary(output)
        self._cond = threading.Condition()
        self._buf: List[int] = [0] * INPUT_BUF
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index

    def _putc(self, c: int) -> None:
        text = "\b \b" if c == BACKSPACE else chr(c & 0xFF)
        self.output.write(text.encode("latin-1") if self._binary else text)

    def interrupt(self, chars: CharsLike) -> bool:
        """Feed typed characters; returns True if a process listing was asked for."""
        doprocdump = False
        with self._cond:
            for c in _codes(chars):
                if c < 0:
                    break
                if c == CTRL_P:
                    doprocdump = True
                elif c == CTRL_U:
                    while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n"):
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c in (CTRL_H, DEL):
                    if self._e != self._w:
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self._e % INPUT_BUF] = c
                    self._e += 1
                    self._putc(c)
                    if c in (ord("\n"), CTRL_D) or self._e == self._r + INPUT_BUF:
                        self._w = self._e
                        self._cond.notify_all()
        return doprocdump

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, stopping after a newline; waits for input.

        End-of-file (Control-D) ends the read; if some bytes came first it is
        kept so that the next read returns nothing.
        """
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self._r == self._w:
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == CTRL_D:
                    if n < target:
                        self._r -= 1
                    break
                out.append(c & 0xFF)
                n -= 1
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data: Union[bytes, bytearray, memoryview, str]) -> int:
        """Print ``data``; returns the number of characters written."""
        codes = data.encode("latin-1") if isinstance(data, str) else bytes(data)
        with self._cond:
            for c in codes:
                self._putc(c & 0xFF)
        return len(codes)


def kprintf(fmt: str, *args: Any) -> str:
    """Format like the kernel's printer: only %d, %x, %p, %s and %%."""
    values = iter(args)

    def take() -> Any:
        try:
            return next(values)
        except StopIteration:
            raise ValueError("not enough arguments for format string") from None

    out = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, "")
        if not c:
            break
        if c == "d":
            out.append(format_int(take(), 10, True))
        elif c in "xp":
            out.append(format_int(take(), 16, False).lower())
        elif c == "s":
            s = take()
            if s is None:
                out.append("(null)")
            elif isinstance(s, (bytes, bytearray)):
                out.append(bytes(s).decode("utf-8", "replace"))
            else:
                out.append(str(s))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)