import dataclasses
import struct

import pytest

from xv6sim.bio import BufferCache
from xv6sim.errors import KernelPanic
from xv6sim.layout import BSIZE, SuperBlock
from xv6sim.log import Log
from xv6sim.mkfs import make_image
from xv6sim.ramdisk import RamDisk


def _setup(image=None):
    disk = RamDisk(bytearray(make_image({})) if image is None else image)
    sb = SuperBlock.unpack(disk.read_block(1))
    cache = BufferCache(disk)
    return disk, sb, cache


def _header_count(disk, sb):
    return struct.unpack_from("<i", disk.read_block(sb.logstart))[0]


def _modify(cache, log, blockno, fill):
    with cache.block(1, blockno) as buf:
        buf.data[:] = fill * BSIZE
        log.log_write(buf)


def test_commit_installs_blocks_and_clears_header():
    disk, sb, cache = _setup()
    log = Log(cache, 1, sb)
    target = sb.size - 1
    log.begin_op()
    _modify(cache, log, target, b"a")
    assert log.pending == (target,)
    log.end_op()
    assert disk.read_block(target) == b"a" * BSIZE
    assert log.pending == ()
    assert _header_count(disk, sb) == 0


def test_writes_are_absorbed():
    disk, sb, cache = _setup()
    log = Log(cache, 1, sb)
    target = sb.size - 2
    with log.transaction():
        _modify(cache, log, target, b"1")
        _modify(cache, log, target, b"2")
        assert log.pending == (target,)
    assert disk.read_block(target) == b"2" * BSIZE


def test_commit_waits_for_last_operation():
    disk, sb, cache = _setup()
    log = Log(cache, 1, sb)
    target = sb.size - 3
    before = disk.read_block(target)
    log.begin_op()
    log.begin_op()
    _modify(cache, log, target, b"n")
    log.end_op()
    assert disk.read_block(target) == before
    assert log.pending == (target,)
    log.end_op()
    assert disk.read_block(target) == b"n" * BSIZE


def test_log_write_outside_transaction_panics():
    disk, sb, cache = _setup()
    log = Log(cache, 1, sb)
    with cache.block(1, sb.size - 1) as buf:
        with pytest.raises(KernelPanic, match="outside of trans"):
            log.log_write(buf)


def test_transaction_larger_than_log_panics():
    disk, sb, cache = _setup()
    small = dataclasses.replace(sb, nlog=3)
    log = Log(cache, 1, small)
    log.begin_op()
    _modify(cache, log, sb.size - 1, b"x")
    _modify(cache, log, sb.size - 2, b"y")
    with cache.block(1, sb.size - 3) as buf:
        with pytest.raises(KernelPanic, match="too big a transaction"):
            log.log_write(buf)


def test_recovery_replays_committed_log():
    image = bytearray(make_image({}))
    sb = SuperBlock.unpack(image[BSIZE:2 * BSIZE])
    target = sb.size - 1
    first_log_block = (sb.logstart + 1) * BSIZE
    image[first_log_block:first_log_block + BSIZE] = b"r" * BSIZE
    struct.pack_into("<ii", image, sb.logstart * BSIZE, 1, target)
    disk = RamDisk(image)
    log = Log(BufferCache(disk), 1, sb)
    assert disk.read_block(target) == b"r" * BSIZE
    assert _header_count(disk, sb) == 0
    assert log.pending == ()


def test_empty_commit_leaves_disk_untouched():
    disk, sb, cache = _setup()
    log = Log(cache, 1, sb)
    before = disk.image
    with log.transaction():
        pass
    assert disk.image == before