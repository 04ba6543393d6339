"""Parser for shell command lines: commands, redirections, pipes, lists
and background jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple, Union

from .errors import ShellSyntaxError
from .sysfile import O_CREATE, O_RDONLY, O_WRONLY

MAXARGS = 10
WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"


@dataclass
class ExecCmd:
    """Run a program with arguments; an empty argv does nothing."""

    argv: List[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    """Run ``cmd`` with descriptor ``fd`` reopened on ``file`` in ``mode``."""

    cmd: "Cmd"
    file: str
    mode: int
    fd: int


@dataclass
class PipeCmd:
    """Connect the output of ``left`` to the input of ``right``."""

    left: "Cmd"
    right: "Cmd"


@dataclass
class ListCmd:
    """Run ``left``, wait for it, then run ``right``."""

    left: "Cmd"
    right: "Cmd"


@dataclass
class BackCmd:
    """Run ``cmd`` without waiting for it."""

    cmd: "Cmd"


Cmd = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]


class _Parser:
    def __init__(self, line: str) -> None:
        self.s = line
        self.pos = 0
        self.end = len(line)

    def _skip(self) -> None:
        while self.pos < self.end and self.s[self.pos] in WHITESPACE:
            self.pos += 1

    def peek(self, toks: str) -> bool:
        self._skip()
        return self.pos < self.end and self.s[self.pos] in toks

    def gettoken(self) -> Tuple[str, str]:
        self._skip()
        start = self.pos
        if self.pos >= self.end:
            tok = ""
        else:
            c = self.s[self.pos]
            tok = c
            if c in "|();&<":
                self.pos += 1
            elif c == ">":
                self.pos += 1
                if self.pos < self.end and self.s[self.pos] == ">":
                    tok = "+"
                    self.pos += 1
            else:
                tok = "a"
                while (
                    self.pos < self.end
                    and self.s[self.pos] not in WHITESPACE
                    and self.s[self.pos] not in SYMBOLS
                ):
                    self.pos += 1
        word = self.s[start:self.pos]
        self._skip()
        return tok, word

    def parseline(self) -> Cmd:
        cmd = self.parsepipe()
        while self.peek("&"):
            self.gettoken()
            cmd = BackCmd(cmd)
        if self.peek(";"):
            self.gettoken()
            cmd = ListCmd(cmd, self.parseline())
        return cmd

    def parsepipe(self) -> Cmd:
        cmd = self.parseexec()
        if self.peek("|"):
            self.gettoken()
            cmd = PipeCmd(cmd, self.parsepipe())
        return cmd

    def parseredirs(self, cmd: Cmd) -> Cmd:
        while self.peek("<>"):
            tok, _ = self.gettoken()
            kind, word = self.gettoken()
            if kind != "a":
                raise ShellSyntaxError("missing file for redirection")
            if tok == "<":
                cmd = RedirCmd(cmd, word, O_RDONLY, 0)
            else:
                cmd = RedirCmd(cmd, word, O_WRONLY | O_CREATE, 1)
        return cmd

    def parseblock(self) -> Cmd:
        if not self.peek("("):
            raise ShellSyntaxError("parseblock")
        self.gettoken()
        cmd = self.parseline()
        if not self.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.gettoken()
        return self.parseredirs(cmd)

    def parseexec(self) -> Cmd:
        if self.peek("("):
            return self.parseblock()
        cmd = ExecCmd()
        ret = self.parseredirs(cmd)
        while not self.peek("|)&;"):
            tok, word = self.gettoken()
            if tok == "":
                break
            if tok != "a":
                raise ShellSyntaxError("syntax")
            cmd.argv.append(word)
            if len(cmd.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            ret = self.parseredirs(ret)
        return ret


def parsecmd(line: str) -> Cmd:
    """Parse one command line into a command tree.

    Raises ShellSyntaxError for malformed input.
    """
    parser = _Parser(line)
    cmd = parser.parseline()
    parser.peek("")
    if parser.pos != parser.end:
        raise ShellSyntaxError(f"syntax - leftovers: {line[parser.pos:]}")
    return cmd