import io

import pytest

from xv6sim.grep import grep, main, match


@pytest.mark.parametrize(
    "pattern,text,expected",
    [
        ("^ab", "abc", True),
        ("^ab", "cab", False),
        ("b$", "ab", True),
        ("b$", "ba", False),
        ("a.c", "xabcx", True),
        ("a*b", "b", True),
        ("a*b", "aaab", True),
        (".*z", "abc", False),
        ("", "anything", True),
        ("x*", "", True),
        ("^$", "", True),
        ("^$", "a", False),
    ],
)
def test_match(pattern, text, expected):
    assert match(pattern, text) is expected


def test_grep_bytes():
    out = io.BytesIO()
    grep("an", io.BytesIO(b"apple\nbanana\ncherry\nmango\n"), out)
    assert out.getvalue() == b"banana\nmango\n"


def test_grep_text():
    out = io.StringIO()
    grep("^c", io.StringIO("apple\ncherry\ncoconut\n"), out)
    assert out.getvalue() == "cherry\ncoconut\n"


def test_unterminated_last_line_is_dropped():
    out = io.BytesIO()
    grep("a", io.BytesIO(b"a1\na2"), out)
    assert out.getvalue() == b"a1\n"


def test_lines_across_buffer_boundary():
    lines = [f"line{i:04d}".encode() for i in range(500)]
    data = b"\n".join(lines) + b"\n"
    out = io.BytesIO()
    grep("line", io.BytesIO(data), out)
    assert out.getvalue() == data


def test_main_file(tmp_path, capsys):
    path = tmp_path / "fruit"
    path.write_bytes(b"apple\nbanana\ncherry\n")
    assert main(["an", str(path)]) == 0
    assert capsys.readouterr().out == "banana\n"


def test_main_missing_file(tmp_path, capsys):
    missing = tmp_path / "nope"
    assert main(["x", str(missing)]) == 1
    assert capsys.readouterr().out == f"grep: cannot open {missing}\n"


def test_main_usage(capsys):
    assert main([]) == 1
    assert capsys.readouterr().err == "usage: grep pattern [file ...]\n"