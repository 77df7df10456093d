"""Filesystem helpers shared by the stores."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def ensure_dir(path: Path) -> Path:
    """Create *path* (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(name: str | None, default: str = "default") -> str:
    """Collapse *name* to ``[A-Za-z0-9_-]`` so it can be used as a path segment."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", str(name if name is not None else default))
    return cleaned or default


def read_text(path: Path, *, encoding: str = "utf-8") -> str:
    """Read *path*, treating a missing file as empty."""
    try:
        return path.read_text(encoding=encoding)
    except FileNotFoundError:
        return ""


def read_bytes(path: Path) -> bytes:
    """Read *path* as raw bytes, treating a missing file as empty."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return b""


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Replace *path* with *content* via a temp file in the same directory."""
    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.tmp-", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def atomic_append_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Append *content* to *path* in a single write call."""
    ensure_dir(path.parent)
    with open(path, "a", encoding=encoding, newline="") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())
