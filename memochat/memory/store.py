"""Persistent line-oriented long-term memory (one fact per line)."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

from memochat.logging import get_logger
from memochat.memory.io import MemoryIO, join_lines, split_lines
from memochat.memory.patch import MemoryPatchResult, apply_memory_edits
from memochat.utils.helpers import ensure_dir

logger = get_logger(__name__)


class MemoryStore:
    """Process-wide memory file shared by every session.

    The file is plain text, one memory per line, no header. Writes replace
    the whole file atomically and keep only the first ``max_lines`` lines.
    """

    FILENAME = "total_memory.txt"

    def __init__(self, data_dir: Path, *, max_lines: int = 2000, io: MemoryIO | None = None):
        self.data_dir = ensure_dir(data_dir)
        self.path = self.data_dir / self.FILENAME
        self.max_lines = max(0, max_lines)
        self.io = io or MemoryIO()

    def read_lines(self) -> list[str]:
        return split_lines(self.io.read_text(self.path))

    def write_lines(self, lines: list[str]) -> list[str]:
        """Persist *lines* truncated to the cap and return what was written."""
        kept = list(lines[: self.max_lines])
        if len(kept) < len(lines):
            logger.warning(
                "memory_truncated",
                max_lines=self.max_lines,
                dropped=len(lines) - len(kept),
            )
        self.io.write_text(self.path, join_lines(kept))
        return kept

    def apply(self, actions: Any, *, base_lines: list[str] | None = None) -> MemoryPatchResult:
        """Patch the stored lines (or *base_lines*, when given) and persist the result."""
        started = time.perf_counter()
        before = self.read_lines() if base_lines is None else base_lines
        result = apply_memory_edits(before, actions)
        result.lines = self.write_lines(result.lines)
        logger.info(
            "memory_edits_applied",
            **result.applied,
            line_count=len(result.lines),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 3),
        )
        return result

    @staticmethod
    def render_numbered(lines: list[str]) -> str:
        """Render lines as ``N. text`` for prompts, or ``(empty)``."""
        if not lines:
            return "(empty)"
        return "\n".join(f"{idx}. {line}" for idx, line in enumerate(lines, start=1))
