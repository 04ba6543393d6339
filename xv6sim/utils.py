"""Small file utilities run against a process's file system calls."""

from __future__ import annotations

import io
import sys as _sys
from typing import IO, Any, Sequence

from .fmt import fprintf
from .layout import DIRSIZ, T_DIR, T_FILE, Dirent
from .sysfile import O_RDONLY, FileSyscalls, SyscallError

_CHUNK = 512
_PATHBUF = 512


def _write(out: IO[Any], data: bytes) -> None:
    binary = isinstance(out, (io.RawIOBase, io.BufferedIOBase)) or "b" in getattr(
        out, "mode", ""
    )
    out.write(data if binary else data.decode("utf-8", "replace"))


def fmtname(path: str) -> str:
    """The last path element, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def ls(sys: FileSyscalls, path: str, out: IO[Any]) -> None:
    """List a file, or each entry of a directory, as 'name type inode size'."""
    try:
        fd = sys.open(path, O_RDONLY)
    except SyscallError:
        fprintf(_sys.stderr, "ls: cannot open %s\n", path)
        return
    try:
        try:
            st = sys.fstat(fd)
        except SyscallError:
            fprintf(_sys.stderr, "ls: cannot stat %s\n", path)
            return
        if st.type == T_FILE:
            fprintf(out, "%s %d %d %d\n", fmtname(path), st.type, st.ino, st.size)
        elif st.type == T_DIR:
            if len(path) + 1 + DIRSIZ + 1 > _PATHBUF:
                fprintf(out, "ls: path too long\n")
                return
            while True:
                raw = sys.read(fd, Dirent.SIZE)
                if len(raw) != Dirent.SIZE:
                    break
                de = Dirent.unpack(raw)
                if de.inum == 0:
                    continue
                entry = f"{path}/{de.name}"
                try:
                    est = sys.stat(entry)
                except SyscallError:
                    fprintf(out, "ls: cannot stat %s\n", entry)
                    continue
                fprintf(out, "%s %d %d %d\n", fmtname(entry), est.type, est.ino, est.size)
    finally:
        sys.close(fd)


def _cat_fd(sys: FileSyscalls, fd: int, out: IO[Any]) -> bool:
    while True:
        try:
            data = sys.read(fd, _CHUNK)
        except SyscallError:
            fprintf(out, "cat: read error\n")
            return False
        if not data:
            return True
        _write(out, data)


def cat(sys: FileSyscalls, paths: Sequence[str], out: IO[Any]) -> None:
    """Copy each file to ``out``, or descriptor 0 when no paths are given.

    Stops at the first file that cannot be opened or read.
    """
    if not paths:
        _cat_fd(sys, 0, out)
        return
    for path in paths:
        try:
            fd = sys.open(path, O_RDONLY)
        except SyscallError:
            fprintf(out, "cat: cannot open %s\n", path)
            return
        try:
            ok = _cat_fd(sys, fd, out)
        finally:
            sys.close(fd)
        if not ok:
            return


def echo(args: Sequence[str]) -> str:
    """The text echo prints: the arguments separated by spaces, then a newline."""
    if not args:
        return ""
    return " ".join(args) + "\n"


def ln(sys: FileSyscalls, old: str, new: str, err: IO[Any]) -> bool:
    """Link ``new`` to ``old``; reports failure on ``err`` and returns success."""
    try:
        sys.link(old, new)
    except SyscallError:
        fprintf(err, "link %s %s: failed\n", old, new)
        return False
    return True


def mkdir(sys: FileSyscalls, paths: Sequence[str], err: IO[Any]) -> None:
    """Create each directory, stopping at the first failure."""
    if not paths:
        fprintf(err, "Usage: mkdir files...\n")
        return
    for path in paths:
        try:
            sys.mkdir(path)
        except SyscallError:
            fprintf(err, "mkdir: %s failed to create\n", path)
            break


def rm(sys: FileSyscalls, paths: Sequence[str], err: IO[Any]) -> None:
    """Remove each name, stopping at the first failure."""
    if not paths:
        fprintf(err, "Usage: rm files...\n")
        return
    for path in paths:
        try:
            sys.unlink(path)
        except SyscallError:
            fprintf(err, "rm: %s failed to delete\n", path)
            break