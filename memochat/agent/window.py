"""Split a transcript into the verbatim recent window and the window to summarize."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ContextWindow(Generic[T]):
    recent: list[T]
    summary_window: list[T]


def partition_window(messages: Sequence[T], recent_n: int, summary_n: int) -> ContextWindow[T]:
    """Return the last ``recent_n`` messages and the ``summary_n`` just before them.

    ``recent_n`` is clamped to at least 1 and ``summary_n`` to at least 0.
    The two windows never overlap; a transcript no longer than the recent
    window has an empty summary window.

    >>> w = partition_window(list(range(1, 11)), 4, 3)
    >>> w.recent, w.summary_window
    ([7, 8, 9, 10], [4, 5, 6])
    """
    recent_n = max(1, recent_n)
    summary_n = max(0, summary_n)
    total = len(messages)

    recent_start = max(0, total - recent_n)
    summary_start = max(0, recent_start - summary_n)
    return ContextWindow(
        recent=list(messages[recent_start:]),
        summary_window=list(messages[summary_start:recent_start]),
    )
