"""Deterministic memory edits: verified positional removals, deduplicated additions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from memochat.memory.io import split_lines


@dataclass(frozen=True)
class RemoveOp:
    line_start: int  # 1-based
    exact_lines: tuple[str, ...]


@dataclass
class MemoryPatchResult:
    lines: list[str]
    removed: int = 0
    added: int = 0
    deduped: int = 0

    @property
    def applied(self) -> dict[str, int]:
        return {"removed": self.removed, "added": self.added, "deduped": self.deduped}


def _as_line_number(value: Any) -> int | None:
    """Whole numbers only; JSON `2.0` counts, `2.5` and booleans do not."""
    # bool is an int subclass; true/false are not line numbers
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _coerce_remove_ops(raw: Any) -> list[RemoveOp]:
    """Keep only well-typed removal entries; everything else is dropped silently."""
    if not isinstance(raw, list):
        return []
    ops: list[RemoveOp] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        line_start = _as_line_number(item.get("lineStart"))
        exact_text = item.get("exactText")
        if line_start is None:
            continue
        if not isinstance(exact_text, str):
            continue
        ops.append(RemoveOp(line_start=line_start, exact_lines=tuple(split_lines(exact_text))))
    return ops


def _apply_removals(lines: list[str], ops: list[RemoveOp]) -> int:
    removed = 0
    # Highest positions first so earlier splices never shift later targets.
    for op in sorted(ops, key=lambda o: o.line_start, reverse=True):
        start = op.line_start - 1
        if start < 0 or start >= len(lines) or not op.exact_lines:
            continue
        end = start + len(op.exact_lines)
        if tuple(lines[start:end]) != op.exact_lines:
            continue
        del lines[start:end]
        removed += len(op.exact_lines)
    return removed


def _apply_additions(lines: list[str], raw: Any) -> int:
    if not isinstance(raw, list):
        return 0
    added = 0
    for memory in raw:
        if not isinstance(memory, str):
            continue
        line = memory.strip()
        if not line or line in lines:
            continue
        lines.append(line)
        added += 1
    return added


def _dedupe(lines: list[str]) -> tuple[list[str], int]:
    seen: set[str] = set()
    out: list[str] = []
    dropped = 0
    for line in lines:
        if line in seen:
            dropped += 1
            continue
        seen.add(line)
        out.append(line)
    return out, dropped


def apply_memory_edits(lines: list[str], actions: Any) -> MemoryPatchResult:
    """Apply one ``{"remove": [...], "add": [...]}`` request to *lines*.

    The input list is never mutated. Removals only fire when the lines at
    ``lineStart`` match ``exactText`` exactly; anything malformed, out of
    range or stale is skipped rather than rejected. Additions are trimmed,
    blank and already-present lines are skipped, and a final pass drops any
    remaining exact duplicates keeping the first occurrence.
    """
    if not isinstance(actions, dict):
        return MemoryPatchResult(lines=list(lines))

    working = list(lines)
    removed = _apply_removals(working, _coerce_remove_ops(actions.get("remove")))
    added = _apply_additions(working, actions.get("add"))
    deduped_lines, dropped = _dedupe(working)
    return MemoryPatchResult(lines=deduped_lines, removed=removed, added=added, deduped=dropped)
