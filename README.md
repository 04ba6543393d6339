# xv6sim

`xv6sim` models the storage and I/O layers of a small teaching Unix kernel
in plain Python. You can build a disk image, mount a file system from it and
drive it through the same file system calls a user program would make. Every
layer can also be used on its own.

## What is inside

- **On-disk layout** (`xv6sim.layout`): `SuperBlock`, `DiskInode` and
  `Dirent`, each with `pack()` and `unpack()`, plus the block arithmetic
  helpers `iblock` and `bblock`. Blocks are 512 bytes, names at most 14
  bytes, and a file at most 12 direct plus 128 indirect blocks.
- **Image builder** (`xv6sim.mkfs`): `make_image(files)` returns a
  1000-block image with 200 inodes, a root directory and the given files;
  `build_image(path, files)` writes one to disk.
- **RAM disk and buffer cache** (`xv6sim.ramdisk`, `xv6sim.bio`): `RamDisk`
  block storage and a `BufferCache` of locked, reference-counted buffers
  that recycles the least recently used clean buffer. `BufferCache.block()`
  holds a buffer for the length of a `with` block.
- **Write-ahead log** (`xv6sim.log`): `Log` groups block writes of
  concurrent operations into one transaction, commits when the last
  operation ends, and replays a committed transaction when it is opened.
  `Log.transaction()` wraps `begin_op`/`end_op`.
- **File system** (`xv6sim.fs`): `FileSystem` with the inode cache, direct
  and indirect block mapping, `readi`/`writei`, directories (`dirlookup`,
  `dirlink`) and path lookup (`namei`, `nameiparent`).
- **Files and pipes** (`xv6sim.file`, `xv6sim.pipe`): a `FileTable` of
  reference-counted `File` objects over inodes and bounded, blocking `Pipe`s.
- **File system calls** (`xv6sim.sysfile`): `FileSyscalls` offers `open`,
  `read`, `write`, `close`, `dup`, `fstat`, `stat`, `link`, `unlink`,
  `mkdir`, `mknod`, `chdir` and `pipe` for one process, with failures raised
  as `SyscallError` (an `OSError` with an `errno`). `boot(image)` mounts an
  image and returns such an object rooted at `/`.
- **Page allocator** (`xv6sim.kalloc`): `PageAllocator`, a free list of
  4096-byte pages with per-page reference counts, as used for copy-on-write
  fork.
- **Console and keyboard** (`xv6sim.console`, `xv6sim.kbd`): `Console`
  does line editing of typed input (backspace, Control-U, Control-D as end
  of file) and echoes to an output stream; `KeyboardDecoder` and `decode`
  turn PC keyboard scan codes into characters. `kprintf` is the kernel's
  formatter (`%d %x %p %s %%`).
- **Formatting and strings** (`xv6sim.fmt`, `xv6sim.cstring`): `sprintf`,
  `fprintf` and `format_int` with 32-bit integer semantics, and
  NUL-terminated string helpers such as `strncmp`, `safestrcpy`, `atoi` and
  `gets`.
- **Shell parser** (`xv6sim.shell`): `parsecmd` turns a command line into a
  tree of `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd` and `BackCmd` nodes.
- **User utilities** (`xv6sim.utils`, `xv6sim.grep`): `ls`, `cat`, `ln`,
  `mkdir` and `rm` working through a `FileSyscalls` object, `echo` and
  `fmtname`, and a tiny `grep` whose `match` knows `^`, `.`, `*` and `$`.

A kernel panic is raised as `xv6sim.errors.KernelPanic`; a malformed shell
line raises `xv6sim.errors.ShellSyntaxError`.

## Installing

```
pip install .
```

No third-party libraries are needed at run time. Install the `test` extra
to run the test suite:

```
pip install ".[test]"
pytest
```

## Command-line tools

Build a file system image holding some host files. A leading underscore is
dropped from each file name inside the image, and names must not contain a
slash:

```
xv6sim-mkfs fs.img README.md _cat
```

Search files, or standard input when none are named, with the simple
regular-expression matcher:

```
xv6sim-grep '^re.*ion$' notes.txt
```

## Using it from Python

```python
from xv6sim.grep import match
from xv6sim.fmt import sprintf
from xv6sim.shell import parsecmd

match("^ab*c$", "abbbc")            # True
sprintf("%d %x %s", -5, 255, "hi")  # '-5 FF hi'

tree = parsecmd("cat < in | grep x > out; echo done &")
```

Working with a whole file system:

```python
import sys

from xv6sim.mkfs import make_image
from xv6sim.sysfile import O_CREATE, O_RDONLY, O_RDWR, boot
from xv6sim.utils import cat, ls

proc = boot(bytearray(make_image({"hello": b"hi\n"})))

fd = proc.open("notes", O_CREATE | O_RDWR)
proc.write(fd, b"first line\n")
proc.close(fd)

fd = proc.open("notes", O_RDONLY)
proc.read(fd, 100)                  # b'first line\n'
proc.close(fd)

proc.mkdir("docs")
proc.link("notes", "docs/notes")
ls(proc, ".", sys.stdout)           # name, type, inode number and size per entry
cat(proc, ["hello"], sys.stdout)    # prints 'hi'
```

`boot` updates a `bytearray` image in place, so the modified disk can be
kept afterwards.

## What it does not do

There are no processes in the simulation: no scheduler, `fork`, `exec`,
`wait` or `kill`, and no virtual memory beyond the page allocator's
bookkeeping. The shell module only parses command lines; nothing runs the
resulting command trees. Disks live in memory only, and there are no
interrupt controllers, timers or hardware drivers.