import io

import pytest

from xv6sim.layout import DIRSIZ, T_DEV, T_DIR, T_FILE
from xv6sim.mkfs import make_image
from xv6sim.sysfile import SyscallError, boot
from xv6sim.utils import cat, echo, fmtname, ln, ls, mkdir, rm


@pytest.fixture
def sys():
    return boot(make_image({"README": b"hello\n", "notes": b"x" * 700}))


def test_fmtname_pads():
    assert fmtname("a/b") == "b" + " " * (DIRSIZ - 1)
    assert len(fmtname("/README")) == DIRSIZ


def test_fmtname_long_name_unchanged():
    assert fmtname("x/abcdefghijklmnop") == "abcdefghijklmnop"


def test_ls_file(sys):
    out = io.StringIO()
    ls(sys, "README", out)
    st = sys.stat("README")
    assert out.getvalue().split() == ["README", str(T_FILE), str(st.ino), str(st.size)]
    assert len(out.getvalue().split("\n")[0]) > DIRSIZ


def test_ls_directory(sys):
    out = io.StringIO()
    ls(sys, "/", out)
    lines = out.getvalue().splitlines()
    names = [line.split()[0] for line in lines]
    assert names == [".", "..", "README", "notes"]
    assert lines[0].split()[1] == str(T_DIR)


def test_ls_device_prints_nothing(sys):
    sys.mknod("dev0", 1, 1)
    out = io.StringIO()
    ls(sys, "dev0", out)
    assert out.getvalue() == ""
    assert sys.stat("dev0").type == T_DEV


def test_ls_missing(sys, capsys):
    ls(sys, "nope", io.StringIO())
    assert capsys.readouterr().err == "ls: cannot open nope\n"


def test_ls_closes_descriptor(sys):
    ls(sys, "/", io.StringIO())
    assert all(f is None for f in sys.ofile)


def test_cat_files(sys):
    out = io.BytesIO()
    cat(sys, ["README", "notes"], out)
    assert out.getvalue() == b"hello\n" + b"x" * 700


def test_cat_text_output(sys):
    out = io.StringIO()
    cat(sys, ["README"], out)
    assert out.getvalue() == "hello\n"


def test_cat_missing_stops(sys):
    out = io.StringIO()
    cat(sys, ["nope", "README"], out)
    assert out.getvalue() == "cat: cannot open nope\n"


def test_cat_without_stdin(sys):
    out = io.StringIO()
    cat(sys, [], out)
    assert out.getvalue() == "cat: read error\n"


def test_echo():
    assert echo(["a", "b"]) == "a b\n"
    assert echo([]) == ""


def test_ln(sys):
    err = io.StringIO()
    assert ln(sys, "README", "again", err) is True
    assert sys.stat("again").ino == sys.stat("README").ino
    assert sys.stat("README").nlink == 2
    assert err.getvalue() == ""


def test_ln_failure(sys):
    err = io.StringIO()
    assert ln(sys, "nope", "x", err) is False
    assert err.getvalue() == "link nope x: failed\n"


def test_mkdir(sys):
    err = io.StringIO()
    mkdir(sys, ["d1", "d1/d2"], err)
    assert sys.stat("d1/d2").type == T_DIR
    assert err.getvalue() == ""


def test_mkdir_stops_at_failure(sys):
    err = io.StringIO()
    mkdir(sys, ["README", "later"], err)
    assert err.getvalue() == "mkdir: README failed to create\n"
    with pytest.raises(SyscallError):
        sys.stat("later")


def test_mkdir_usage(sys):
    err = io.StringIO()
    mkdir(sys, [], err)
    assert err.getvalue() == "Usage: mkdir files...\n"


def test_rm(sys):
    err = io.StringIO()
    rm(sys, ["README"], err)
    with pytest.raises(SyscallError):
        sys.stat("README")
    assert err.getvalue() == ""


def test_rm_stops_at_failure(sys):
    err = io.StringIO()
    rm(sys, ["nope", "README"], err)
    assert err.getvalue() == "rm: nope failed to delete\n"
    assert sys.stat("README").size == 6


def test_rm_usage(sys):
    err = io.StringIO()
    rm(sys, [], err)
    assert err.getvalue() == "Usage: rm files...\n"