"""File system calls for one process: descriptors, paths and directories."""

from __future__ import annotations

import errno
import functools
from typing import Callable, List, Optional, Tuple, TypeVar, Union

from .bio import BufferCache
from .errors import panic
from .file import File, FileTable, FileType
from .fs import FileSystem, Inode, Stat, namecmp
from .layout import T_DEV, T_DIR, T_FILE, Dirent, SuperBlock
from .log import Log
from .ramdisk import RamDisk

NOFILE = 16
ROOTDEV = 1

O_RDONLY = 0x000
O_WRONLY = 0x001
O_RDWR = 0x002
O_CREATE = 0x200

BytesLike = Union[bytes, bytearray, memoryview]
_F = TypeVar("_F", bound=Callable)


class SyscallError(OSError):
    """A system call failed; ``errno`` says why."""


def _syscall(method: _F) -> _F:
    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except SyscallError:
            raise
        except FileExistsError as exc:
            raise SyscallError(errno.EEXIST, f"already exists: {exc}") from exc
        except OSError as exc:
            raise SyscallError(exc.errno or errno.EIO, exc.strerror or str(exc)) from exc
        except ValueError as exc:
            raise SyscallError(errno.EINVAL, str(exc)) from exc

    return wrapper  # type: ignore[return-value]


class FileSyscalls:
    """The file-related system calls of a single process."""

    def __init__(self, fs: FileSystem, files: FileTable, nofile: int = NOFILE) -> None:
        self.fs = fs
        self.files = files
        self.ofile: List[Optional[File]] = [None] * nofile
        with fs.log.transaction():
            self.cwd: Inode = fs.namei("/")

    def _file(self, fd: int) -> File:
        f = self.ofile[fd] if 0 <= fd < len(self.ofile) else None
        if f is None:
            raise SyscallError(errno.EBADF, f"bad file descriptor {fd}")
        return f

    def _fdalloc(self, f: File) -> int:
        for fd, slot in enumerate(self.ofile):
            if slot is None:
                self.ofile[fd] = f
                return fd
        raise SyscallError(errno.EMFILE, "too many open files")

    @_syscall
    def dup(self, fd: int) -> int:
        """Return a new descriptor for the same open file."""
        f = self._file(fd)
        newfd = self._fdalloc(f)
        self.files.dup(f)
        return newfd

    @_syscall
    def read(self, fd: int, n: int) -> bytes:
        """Read up to ``n`` bytes from ``fd``."""
        f = self._file(fd)
        if n < 0:
            raise SyscallError(errno.EINVAL, "negative read size")
        return self.files.read(f, n)

    @_syscall
    def write(self, fd: int, data: BytesLike) -> int:
        """Write ``data`` to ``fd``; returns the byte count."""
        return self.files.write(self._file(fd), data)

    @_syscall
    def close(self, fd: int) -> None:
        """Release descriptor ``fd``."""
        f = self._file(fd)
        self.ofile[fd] = None
        self.files.close(f)

    @_syscall
    def fstat(self, fd: int) -> Stat:
        """Metadata of the file open on ``fd``."""
        return self.files.stat(self._file(fd))

    def stat(self, path: str) -> Stat:
        """Metadata of the file at ``path``."""
        fd = self.open(path, O_RDONLY)
        try:
            return self.fstat(fd)
        finally:
            self.close(fd)

    @_syscall
    def link(self, old: str, new: str) -> None:
        """Make ``new`` another name for the file ``old``."""
        fs = self.fs
        with fs.log.transaction():
            ip = fs.namei(old, self.cwd)
            if ip is None:
                raise SyscallError(errno.ENOENT, f"no such file: {old}")
            fs.ilock(ip)
            if ip.type == T_DIR:
                fs.iunlockput(ip)
                raise SyscallError(errno.EPERM, f"cannot link a directory: {old}")
            ip.nlink += 1
            fs.iupdate(ip)
            fs.iunlock(ip)
            try:
                found = fs.nameiparent(new, self.cwd)
                if found is None:
                    raise SyscallError(errno.ENOENT, f"no such directory for: {new}")
                dp, name = found
                fs.ilock(dp)
                try:
                    if dp.dev != ip.dev:
                        raise SyscallError(errno.EXDEV, "cross-device link")
                    fs.dirlink(dp, name, ip.inum)
                finally:
                    fs.iunlockput(dp)
            except OSError:
                fs.ilock(ip)
                ip.nlink -= 1
                fs.iupdate(ip)
                fs.iunlockput(ip)
                raise
            fs.iput(ip)

    def _isdirempty(self, dp: Inode) -> bool:
        for off in range(2 * Dirent.SIZE, dp.size, Dirent.SIZE):
            raw = self.fs.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                panic("isdirempty: readi")
            if Dirent.unpack(raw).inum != 0:
                return False
        return True

    @_syscall
    def unlink(self, path: str) -> None:
        """Remove the directory entry ``path``."""
        fs = self.fs
        with fs.log.transaction():
            found = fs.nameiparent(path, self.cwd)
            if found is None:
                raise SyscallError(errno.ENOENT, f"no such file: {path}")
            dp, name = found
            fs.ilock(dp)
            try:
                if namecmp(name, ".") == 0 or namecmp(name, "..") == 0:
                    raise SyscallError(errno.EINVAL, f"cannot unlink {name}")
                hit = fs.dirlookup(dp, name)
                if hit is None:
                    raise SyscallError(errno.ENOENT, f"no such file: {path}")
                ip, off = hit
                fs.ilock(ip)
                if ip.nlink < 1:
                    panic("unlink: nlink < 1")
                if ip.type == T_DIR and not self._isdirempty(ip):
                    fs.iunlockput(ip)
                    raise SyscallError(errno.ENOTEMPTY, f"directory not empty: {path}")
                if fs.writei(dp, bytes(Dirent.SIZE), off) != Dirent.SIZE:
                    panic("unlink: writei")
                if ip.type == T_DIR:
                    dp.nlink -= 1
                    fs.iupdate(dp)
            finally:
                fs.iunlockput(dp)
            ip.nlink -= 1
            fs.iupdate(ip)
            fs.iunlockput(ip)

    def _create(self, path: str, type_: int, major: int, minor: int) -> Inode:
        fs = self.fs
        found = fs.nameiparent(path, self.cwd)
        if found is None:
            raise SyscallError(errno.ENOENT, f"no such directory for: {path}")
        dp, name = found
        fs.ilock(dp)
        hit = fs.dirlookup(dp, name)
        if hit is not None:
            ip = hit[0]
            fs.iunlockput(dp)
            fs.ilock(ip)
            if type_ == T_FILE and ip.type == T_FILE:
                return ip
            fs.iunlockput(ip)
            raise SyscallError(errno.EEXIST, f"already exists: {path}")

        ip = fs.ialloc(type_)
        fs.ilock(ip)
        ip.major = major
        ip.minor = minor
        ip.nlink = 1
        fs.iupdate(ip)

        if type_ == T_DIR:
            dp.nlink += 1
            fs.iupdate(dp)
            try:
                fs.dirlink(ip, ".", ip.inum)
                fs.dirlink(ip, "..", dp.inum)
            except FileExistsError:
                panic("create dots")
        try:
            fs.dirlink(dp, name, ip.inum)
        except FileExistsError:
            panic("create: dirlink")
        fs.iunlockput(dp)
        return ip

    @_syscall
    def open(self, path: str, omode: int) -> int:
        """Open ``path`` with the O_* flags in ``omode``; returns a descriptor."""
        fs = self.fs
        with fs.log.transaction():
            if omode & O_CREATE:
                ip = self._create(path, T_FILE, 0, 0)
            else:
                ip = fs.namei(path, self.cwd)
                if ip is None:
                    raise SyscallError(errno.ENOENT, f"no such file: {path}")
                fs.ilock(ip)
                if ip.type == T_DIR and omode != O_RDONLY:
                    fs.iunlockput(ip)
                    raise SyscallError(errno.EISDIR, f"is a directory: {path}")
            try:
                f = self.files.alloc()
            except OSError:
                fs.iunlockput(ip)
                raise
            try:
                fd = self._fdalloc(f)
            except SyscallError:
                self.files.close(f)
                fs.iunlockput(ip)
                raise
            fs.iunlock(ip)
        f.type = FileType.INODE
        f.ip = ip
        f.off = 0
        f.readable = not omode & O_WRONLY
        f.writable = bool(omode & (O_WRONLY | O_RDWR))
        return fd

    @_syscall
    def mkdir(self, path: str) -> None:
        """Create the directory ``path``."""
        with self.fs.log.transaction():
            self.fs.iunlockput(self._create(path, T_DIR, 0, 0))

    @_syscall
    def mknod(self, path: str, major: int, minor: int) -> None:
        """Create a device file at ``path``."""
        with self.fs.log.transaction():
            self.fs.iunlockput(self._create(path, T_DEV, major, minor))

    @_syscall
    def chdir(self, path: str) -> None:
        """Make ``path`` the current directory."""
        fs = self.fs
        with fs.log.transaction():
            ip = fs.namei(path, self.cwd)
            if ip is None:
                raise SyscallError(errno.ENOENT, f"no such directory: {path}")
            fs.ilock(ip)
            if ip.type != T_DIR:
                fs.iunlockput(ip)
                raise SyscallError(errno.ENOTDIR, f"not a directory: {path}")
            fs.iunlock(ip)
            fs.iput(self.cwd)
            self.cwd = ip

    @_syscall
    def pipe(self) -> Tuple[int, int]:
        """Create a pipe; returns its read and write descriptors."""
        rf, wf = self.files.pipealloc()
        try:
            fd0 = self._fdalloc(rf)
        except SyscallError:
            self.files.close(rf)
            self.files.close(wf)
            raise
        try:
            fd1 = self._fdalloc(wf)
        except SyscallError:
            self.ofile[fd0] = None
            self.files.close(rf)
            self.files.close(wf)
            raise
        return fd0, fd1


def boot(image: Union[bytes, bytearray]) -> FileSyscalls:
    """Mount a file system image and return the calls of a process rooted at '/'.

    A ``bytearray`` image is updated in place.
    """
    disk = RamDisk(image, ROOTDEV)
    cache = BufferCache(disk)
    with cache.block(ROOTDEV, 1) as buf:
        sb = SuperBlock.unpack(bytes(buf.data))
    log = Log(cache, ROOTDEV, sb)
    fs = FileSystem(cache, log, ROOTDEV)
    return FileSyscalls(fs, FileTable(fs))