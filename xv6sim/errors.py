"""Exceptions raised where the kernel or the shell would halt."""

from __future__ import annotations

from typing import NoReturn


class KernelPanic(RuntimeError):
    """An unrecoverable kernel invariant was broken."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ShellSyntaxError(ValueError):
    """A shell command line could not be parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def panic(message: str) -> NoReturn:
    """Stop with a kernel panic carrying ``message``."""
    raise KernelPanic(message)