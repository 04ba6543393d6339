import struct

import pytest

from xv6sim.layout import (
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
from xv6sim.log import LOGSIZE
from xv6sim.mkfs import FSSIZE, NINODES, build_image, main, make_image


def _block(image, n):
    return image[n * BSIZE:(n + 1) * BSIZE]


def _sb(image):
    return SuperBlock.unpack(_block(image, 1))


def _inode(image, inum):
    sb = _sb(image)
    data = _block(image, iblock(inum, sb))
    return DiskInode.unpack(data[(inum % IPB) * DiskInode.SIZE:])


def _file_blocks(image, din):
    count = (din.size + BSIZE - 1) // BSIZE
    addrs = din.addrs[:NDIRECT]
    if count > NDIRECT:
        addrs += list(struct.unpack(f"<{NINDIRECT}I", _block(image, din.addrs[NDIRECT])))
    return addrs[:count]


def _read_file(image, inum):
    din = _inode(image, inum)
    data = b"".join(_block(image, a) for a in _file_blocks(image, din))
    return data[:din.size]


def _root_entries(image):
    raw = _read_file(image, ROOTINO)
    entries = [Dirent.unpack(raw[off:off + Dirent.SIZE]) for off in range(0, len(raw), Dirent.SIZE)]
    return [(e.name, e.inum) for e in entries if e.inum]


def _bit(image, block):
    bitmap = _block(image, _sb(image).bmapstart)
    return bool(bitmap[block // 8] & (1 << (block % 8)))


def test_superblock_layout():
    image = make_image({})
    sb = _sb(image)
    assert len(image) == FSSIZE * BSIZE
    assert sb.size == FSSIZE
    assert sb.ninodes == NINODES
    assert sb.nlog == LOGSIZE
    assert sb.logstart == 2
    assert sb.inodestart == 2 + LOGSIZE
    assert sb.bmapstart == sb.inodestart + NINODES // IPB + 1
    assert sb.nblocks + sb.bmapstart + 1 == sb.size


def test_root_directory_has_dot_entries():
    image = make_image({})
    root = _inode(image, ROOTINO)
    assert root.type == T_DIR
    assert root.nlink == 1
    assert root.size % BSIZE == 0
    assert _root_entries(image) == [(".", ROOTINO), ("..", ROOTINO)]


def test_files_round_trip():
    files = {"hello": b"hello world\n", "empty": b""}
    image = make_image(files)
    entries = dict(_root_entries(image))
    for name, content in files.items():
        inode = _inode(image, entries[name])
        assert inode.type == T_FILE
        assert inode.nlink == 1
        assert _read_file(image, entries[name]) == content


def test_large_file_uses_indirect_block():
    content = bytes(range(256)) * ((NDIRECT + 3) * BSIZE // 256) + b"tail"
    image = make_image([("big", content)])
    inum = dict(_root_entries(image))["big"]
    din = _inode(image, inum)
    assert din.addrs[NDIRECT] != 0
    assert _read_file(image, inum) == content


def test_long_name_is_truncated():
    name = "abcdefghijklmnopqrstuvwxyz"
    image = make_image({name: b"x"})
    names = [n for n, _ in _root_entries(image)]
    assert name[:DIRSIZ] in names


def test_bitmap_marks_exactly_the_used_blocks():
    image = make_image({"data": b"d" * (3 * BSIZE)})
    inum = dict(_root_entries(image))["data"]
    used = max(_file_blocks(image, _inode(image, inum))) + 1
    assert all(_bit(image, b) for b in range(used))
    assert not _bit(image, used)


def test_slash_in_name_rejected():
    with pytest.raises(ValueError):
        make_image({"a/b": b""})


def test_file_too_large_rejected():
    with pytest.raises(ValueError, match="too large"):
        make_image({"huge": bytes(MAXFILE * BSIZE + 1)})


def test_build_image_writes_file(tmp_path):
    target = tmp_path / "fs.img"
    build_image(target, {"note": b"abc"})
    assert target.read_bytes() == make_image({"note": b"abc"})


def test_main_strips_leading_underscore(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_cat").write_bytes(b"meow")
    assert main(["fs.img", "_cat"]) == 0
    image = (tmp_path / "fs.img").read_bytes()
    entries = dict(_root_entries(image))
    assert _read_file(image, entries["cat"]) == b"meow"
    assert capsys.readouterr().out.startswith("nmeta")


def test_main_without_arguments_prints_usage(capsys):
    assert main([]) == 1
    assert "Usage: mkfs fs.img files..." in capsys.readouterr().err


def test_main_reports_missing_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["fs.img", "missing"]) == 1
    assert not (tmp_path / "fs.img").exists()