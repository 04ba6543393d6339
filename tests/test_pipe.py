import threading

import pytest

from xv6sim.pipe import PIPESIZE, Pipe


def test_write_then_read_round_trip():
    p = Pipe()
    assert p.write(b"hello") == 5
    assert p.read(100) == b"hello"


def test_read_returns_at_most_n_bytes():
    p = Pipe()
    p.write(b"abcdef")
    assert p.read(2) == b"ab"
    assert p.read(10) == b"cdef"


def test_empty_write_returns_zero():
    p = Pipe()
    assert p.write(b"") == 0
    assert len(p) == 0


def test_read_after_writer_closed_gives_remaining_then_empty():
    p = Pipe()
    p.write(b"tail")
    p.close(True)
    assert p.read(10) == b"tail"
    assert p.read(10) == b""


def test_full_pipe_with_reader_closed_raises():
    p = Pipe()
    p.close(False)
    with pytest.raises(BrokenPipeError):
        p.write(b"x" * (PIPESIZE + 1))


def test_write_fitting_with_reader_closed_succeeds():
    p = Pipe()
    p.close(False)
    assert p.write(b"x" * PIPESIZE) == PIPESIZE


def test_closed_only_after_both_ends():
    p = Pipe()
    p.close(True)
    assert not p.closed
    p.close(False)
    assert p.closed


def test_large_write_blocks_until_read():
    p = Pipe()
    payload = bytes(range(256)) * 8
    result = {}

    def writer():
        result["n"] = p.write(payload)
        p.close(True)

    t = threading.Thread(target=writer, daemon=True)
    t.start()
    received = bytearray()
    while True:
        chunk = p.read(100)
        if not chunk:
            break
        received += chunk
    t.join(timeout=5)
    assert not t.is_alive()
    assert bytes(received) == payload
    assert result["n"] == len(payload)


def test_reader_waits_for_data():
    p = Pipe()
    result = {}

    def reader():
        result["data"] = p.read(10)

    t = threading.Thread(target=reader, daemon=True)
    t.start()
    assert p.write(b"late") == 4
    t.join(timeout=5)
    assert not t.is_alive()
    assert result["data"] == b"late"
    assert len(p) == 0


def test_capacity_is_pipesize():
    p = Pipe()
    p.close(False)
    assert p.write(b"y" * PIPESIZE) == PIPESIZE
    assert len(p) == PIPESIZE