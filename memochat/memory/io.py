"""Memory file I/O helpers with atomic semantics."""

from __future__ import annotations

from pathlib import Path

from memochat.utils.helpers import atomic_write_text, read_text


def normalize_newlines(text: str) -> str:
    """Fold CRLF and bare CR line endings into LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_lines(text: str) -> list[str]:
    """Split *text* on line boundaries, discarding the empty tail of a final terminator.

    >>> split_lines("a\\nb\\n")
    ['a', 'b']
    >>> split_lines("")
    []
    """
    lines = normalize_newlines(text).split("\n")
    if lines and lines[-1] == "":
        lines = lines[:-1]
    return lines


def join_lines(lines: list[str]) -> str:
    """Render lines as newline-terminated text, or ``""`` for no lines."""
    return "\n".join(lines) + "\n" if lines else ""


class MemoryIO:
    """Thin I/O adapter so the memory store can be tested independently."""

    @staticmethod
    def read_text(path: Path, *, encoding: str = "utf-8") -> str:
        return read_text(path, encoding=encoding)

    @staticmethod
    def write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
        atomic_write_text(path, content, encoding=encoding)
