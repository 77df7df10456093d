"""Session storage: append-only JSONL transcripts and rolling summaries."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from memochat.logging import get_logger
from memochat.utils.helpers import atomic_append_text, atomic_write_text, ensure_dir, read_bytes, read_text, safe_filename

logger = get_logger(__name__)

Role = Literal["system", "user", "assistant"]
_ROLES = frozenset({"system", "user", "assistant"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_size(value: Any) -> int:
    """Byte size from an untrusted entry; anything non-numeric counts as 0."""
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


@dataclass(frozen=True)
class ImageRef:
    """An uploaded image attached to a user message."""

    name: str
    mime_type: str
    size_bytes: int
    storage_path: str
    public_url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "mime": self.mime_type,
            "size": self.size_bytes,
            "filePath": self.storage_path,
            "url": self.public_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageRef":
        return cls(
            name=str(data.get("name") or ""),
            mime_type=str(data.get("mime") or "application/octet-stream"),
            size_bytes=_as_size(data.get("size")),
            storage_path=str(data.get("filePath") or ""),
            public_url=str(data.get("url") or ""),
        )


@dataclass(frozen=True)
class Message:
    """
    One transcript entry.

    Messages are immutable once appended; the transcript only ever grows.
    """

    role: Role
    content: str
    timestamp: str = field(default_factory=_now_iso)
    images: tuple[ImageRef, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"ts": self.timestamp, "role": self.role, "content": self.content}
        if self.images:
            data["images"] = [img.to_dict() for img in self.images]
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Message | None":
        """Build a message from a decoded JSONL entry, or None when it is unusable."""
        if not isinstance(data, dict):
            return None
        role = data.get("role")
        content = data.get("content")
        if role not in _ROLES or not isinstance(content, str):
            return None
        raw_images = data.get("images")
        images = tuple(
            ImageRef.from_dict(img) for img in raw_images if isinstance(img, dict)
        ) if isinstance(raw_images, list) else ()
        return cls(role=role, content=content, timestamp=str(data.get("ts") or ""), images=images)

    def to_llm(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class SessionPaths:
    dir: Path
    chat_log: Path
    summary: Path


class SessionStore:
    """
    File-backed session storage.

    Each session lives in ``<data_dir>/sessions/<id>/`` with ``chat.jsonl``
    (one JSON message per line, append-only) and ``summary.txt``.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.sessions_dir = ensure_dir(self.data_dir / "sessions")

    def paths(self, session_id: str | None) -> SessionPaths:
        directory = self.sessions_dir / safe_filename(session_id)
        return SessionPaths(
            dir=directory,
            chat_log=directory / "chat.jsonl",
            summary=directory / "summary.txt",
        )

    def append_message(self, session_id: str, message: Message) -> None:
        """Append one message as a single JSONL line."""
        paths = self.paths(session_id)
        line = json.dumps(message.to_dict(), ensure_ascii=False)
        atomic_append_text(paths.chat_log, line + "\n")
        logger.debug("session_message_appended", session_id=session_id, role=message.role, chars=len(message.content))

    def _raw_lines(self, session_id: str) -> list[bytes]:
        # Split before decoding so one line with bad bytes only costs that line.
        return read_bytes(self.paths(session_id).chat_log).split(b"\n")

    def read_messages(self, session_id: str) -> list[Message]:
        """
        Read the whole transcript.

        Reading is best-effort: blank, undecodable or schema-invalid lines
        are skipped individually so one bad line never loses the rest.
        """
        messages: list[Message] = []
        skipped = 0
        for line_no, raw_line in enumerate(self._raw_lines(session_id), start=1):
            if not raw_line.strip():
                continue
            try:
                data = json.loads(raw_line.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                skipped += 1
                logger.warning("session_line_corrupt", session_id=session_id, line_no=line_no)
                continue
            try:
                message = Message.from_dict(data)
            except (TypeError, ValueError) as e:
                logger.debug("session_line_rejected", session_id=session_id, line_no=line_no, error=str(e))
                message = None
            if message is None:
                skipped += 1
                logger.warning("session_line_invalid", session_id=session_id, line_no=line_no)
                continue
            messages.append(message)
        if skipped:
            logger.info("session_read_with_skips", session_id=session_id, kept=len(messages), skipped=skipped)
        return messages

    def message_count(self, session_id: str) -> int:
        return sum(1 for line in self._raw_lines(session_id) if line.strip())

    def read_summary(self, session_id: str) -> str:
        return read_text(self.paths(session_id).summary)

    def write_summary(self, session_id: str, text: str) -> None:
        """Overwrite the session summary wholesale."""
        cleaned = (text or "").strip()
        atomic_write_text(self.paths(session_id).summary, f"{cleaned}\n" if cleaned else "")
        logger.info("session_summary_written", session_id=session_id, chars=len(cleaned))
