import io
import threading

import pytest

from xv6sim.console import INPUT_BUF, Console, kprintf
from xv6sim.mkfs import make_image
from xv6sim.sysfile import O_RDWR, boot


@pytest.fixture
def console():
    return Console(io.StringIO())


def test_line_is_echoed_and_readable(console):
    console.interrupt("ab\n")
    assert console.read(10) == b"ab\n"
    assert console.output.getvalue() == "ab\n"


def test_read_stops_after_newline(console):
    console.interrupt("one\ntwo\n")
    assert console.read(100) == b"one\n"
    assert console.read(100) == b"two\n"


def test_backspace_erases(console):
    console.interrupt("ab\x7fc\n")
    assert console.read(10) == b"ac\n"
    assert "\b \b" in console.output.getvalue()


def test_control_h_erases(console):
    console.interrupt("xy\x08\n")
    assert console.read(10) == b"x\n"


def test_kill_line(console):
    console.interrupt("abc\x15d\n")
    assert console.read(10) == b"d\n"
    assert console.output.getvalue().count("\b \b") == 3


def test_backspace_does_not_cross_committed_line(console):
    console.interrupt("a\n\x7f\x7fb\n")
    assert console.read(10) == b"a\n"
    assert console.read(10) == b"b\n"


def test_carriage_return_becomes_newline(console):
    console.interrupt("hi\r")
    assert console.read(10) == b"hi\n"


def test_eof_saved_for_next_read(console):
    console.interrupt("ab\x04")
    assert console.read(10) == b"ab"
    assert console.read(10) == b""


def test_procdump_request(console):
    assert console.interrupt("\x10") is True
    assert console.interrupt("x") is False


def test_full_buffer_becomes_readable(console):
    console.interrupt("x" * (INPUT_BUF + 5))
    assert console.read(INPUT_BUF) == b"x" * INPUT_BUF


def test_read_waits_for_input(console):
    timer = threading.Timer(0.05, console.interrupt, args=("late\n",))
    timer.start()
    try:
        assert console.read(10) == b"late\n"
    finally:
        timer.join()


def test_write_echoes_and_counts(console):
    assert console.write(b"hello") == 5
    assert console.output.getvalue() == "hello"


def test_binary_output():
    out = io.BytesIO()
    Console(out).write(b"ok")
    assert out.getvalue() == b"ok"


def test_console_as_device():
    sys = boot(make_image({}))
    console = Console(io.StringIO())
    sys.fs.devsw[1] = console
    sys.mknod("console", 1, 1)
    fd = sys.open("console", O_RDWR)
    assert sys.write(fd, b"hey\n") == 4
    assert console.output.getvalue() == "hey\n"
    console.interrupt("in\n")
    assert sys.read(fd, 10) == b"in\n"


def test_kprintf_conversions():
    assert kprintf("%d %x %s %%", -5, 255, "hi") == "-5 ff hi %"


def test_kprintf_null_and_unknown():
    assert kprintf("%s", None) == "(null)"
    assert kprintf("%c", 65) == "%c"


def test_kprintf_trailing_percent():
    assert kprintf("abc%") == "abc"


def test_kprintf_missing_argument():
    with pytest.raises(ValueError):
        kprintf("%d")