"""A simple grep supporting the ^ . * $ operators."""

from __future__ import annotations

import sys
from typing import IO, Any, List, Optional, Sequence

_BUFSIZE = 1024


def _match_here(regex: str, text: str) -> bool:
    if not regex:
        return True
    if len(regex) >= 2 and regex[1] == "*":
        return _match_star(regex[0], regex[2:], text)
    if regex == "$":
        return not text
    if text and (regex[0] == "." or regex[0] == text[0]):
        return _match_here(regex[1:], text[1:])
    return False


def _match_star(c: str, regex: str, text: str) -> bool:
    while True:
        if _match_here(regex, text):
            return True
        if not text or (text[0] != c and c != "."):
            return False
        text = text[1:]


def match(pattern: str, text: str) -> bool:
    """Whether ``pattern`` matches anywhere in ``text``."""
    if pattern.startswith("^"):
        return _match_here(pattern[1:], text)
    return any(_match_here(pattern, text[start:]) for start in range(len(text) + 1))


def _as_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return value


def grep(pattern: Any, stream: IO[Any], out: IO[Any]) -> None:
    """Copy lines of ``stream`` that match ``pattern`` to ``out``.

    Input is read in buffer-sized pieces; a piece holding no newline is
    dropped, as is a final line without one.
    """
    pattern = _as_text(pattern)
    pending = None
    while True:
        size = _BUFSIZE - 1 - (len(pending) if pending is not None else 0)
        chunk = stream.read(size)
        if not chunk:
            break
        pending = chunk if pending is None else pending + chunk
        newline = b"\n" if isinstance(chunk, (bytes, bytearray)) else "\n"
        *lines, rest = pending.split(newline)
        for line in lines:
            if match(pattern, _as_text(line)):
                out.write(line + newline)
        pending = rest if lines else pending[:0]


def _binary_stdout() -> Any:
    return getattr(sys.stdout, "buffer", sys.stdout)


def _binary_stdin() -> Any:
    return getattr(sys.stdin, "buffer", sys.stdin)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point: ``grep pattern [file ...]``."""
    args: List[str] = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = args[0], args[1:]
    out = _binary_stdout()
    try:
        if not paths:
            grep(pattern, _binary_stdin(), out)
            return 0
        for path in paths:
            try:
                handle = open(path, "rb")
            except OSError:
                out.write(f"grep: cannot open {path}\n".encode())
                return 1
            with handle:
                grep(pattern, handle, out)
        return 0
    finally:
        out.flush()