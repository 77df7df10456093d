"""Incremental splitter separating the visible reply from a trailing metadata block."""

from __future__ import annotations

from typing import Callable

DEFAULT_MARKER = "<<<MEMORY_JSON>>>"

TextCallback = Callable[[str], None]


class MarkerStreamSplitter:
    """
    Emit the text before the first ``marker`` as fragments arrive.

    Until the marker is seen, the last ``len(marker) - 1`` characters are
    held back because they may be the start of a marker that completes in
    the next fragment. Once the marker is found nothing else is emitted.

    Args:
        marker: Non-empty separator literal.
        on_text: Called with each confirmed-visible chunk.
    """

    def __init__(self, marker: str = DEFAULT_MARKER, on_text: TextCallback | None = None) -> None:
        if not marker:
            raise ValueError("marker must be a non-empty string")
        self.marker = marker
        self._on_text = on_text
        self._holdback = len(marker) - 1
        self._pending = ""
        self._marker_found = False
        self._emitted: list[str] = []

    @property
    def marker_found(self) -> bool:
        return self._marker_found

    @property
    def visible_text(self) -> str:
        """All text emitted so far."""
        return "".join(self._emitted)

    def _emit(self, text: str) -> None:
        if not text:
            return
        self._emitted.append(text)
        if self._on_text is not None:
            self._on_text(text)

    def push(self, fragment: str) -> str:
        """Feed one fragment; return the text it released (possibly empty)."""
        if not fragment or self._marker_found:
            return ""

        combined = self._pending + fragment
        idx = combined.find(self.marker)
        if idx != -1:
            self._marker_found = True
            self._pending = ""
            released = combined[:idx]
            self._emit(released)
            return released

        if len(combined) > self._holdback:
            cut = len(combined) - self._holdback
            released, self._pending = combined[:cut], combined[cut:]
        else:
            released, self._pending = "", combined
        self._emit(released)
        return released

    def flush(self) -> str:
        """End of stream: release held-back text if the marker never appeared."""
        released = "" if self._marker_found else self._pending
        self._pending = ""
        self._emit(released)
        return released
