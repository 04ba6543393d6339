"""Simulated storage and I/O layers of a small teaching Unix kernel: disk
layout, image builder, buffer cache, log, file system, files, pipes, file
system calls, page allocator, console, keyboard, shell parser and utilities."""

__version__ = "0.1.0"