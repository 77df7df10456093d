"""Context builder for assembling generation prompts."""

import base64
import mimetypes
from pathlib import Path
from typing import Any, Sequence

from memochat.logging import get_logger
from memochat.memory.store import MemoryStore
from memochat.session.manager import ImageRef, Message
from memochat.stream.splitter import DEFAULT_MARKER

logger = get_logger(__name__)

_INSTRUCTION_SCHEMA = """{
  "memory": {
    "remove": [{"lineStart": number, "exactText": string}],
    "add": [string]
  },
  "summary": {
    "update": boolean,
    "text": string
  }
}"""


class ContextBuilder:
    """
    Builds the message list sent to the generator.

    Layout: the system prompt (instructions + numbered memory), then the
    session summary if any, then the older messages to digest if any, then
    the recent messages verbatim. Image attachments on recent user
    messages are inlined as base64 data URLs.
    """

    def __init__(self, marker: str = DEFAULT_MARKER):
        self.marker = marker

    def build_system_prompt(self, memory_lines: Sequence[str]) -> str:
        """
        Build the system prompt for the current memory state.

        Args:
            memory_lines: Current memory, numbered 1-based in the prompt so
                removals can reference ``lineStart``.

        Returns:
            Complete system prompt string.
        """
        return "\n".join([
            "You are a helpful assistant.",
            "You have access to a persistent memory file called TOTAL_MEMORY.",
            "These memories are meant to be remembered forever unless they become irrelevant.",
            "Avoid duplicates: if a memory already exists, do not add it again.",
            "If you identify duplicate or irrelevant memories, request removals.",
            "Answer the user normally first. Then, on a new line, output exactly this marker:",
            self.marker,
            "followed by a single JSON object (no code fences) with this exact schema:",
            _INSTRUCTION_SCHEMA,
            "Rules for memory removals:",
            "- lineStart is 1-based (first line is 1)",
            "- exactText must match the memory line(s) exactly as written in TOTAL_MEMORY (no renaming)",
            "- You may remove multiple memories in one response",
            "Rules for memory additions:",
            "- Each entry should be a single line memory",
            "- Do not add duplicates",
            "If you do not want to change memory, use empty arrays.",
            "Set summary.update to true only when asked to summarize older messages.",
            "\nCURRENT TOTAL_MEMORY (with line numbers):\n" + MemoryStore.render_numbered(list(memory_lines)),
        ])

    def build_messages(
        self,
        *,
        system_prompt: str,
        session_summary: str = "",
        recent: Sequence[Message] = (),
        summary_window: Sequence[Message] = (),
    ) -> list[dict[str, Any]]:
        """Assemble the full message list for one generation request."""
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]

        if session_summary.strip():
            messages.append({
                "role": "system",
                "content": "SESSION SUMMARY (older context, may be imperfect):\n" + session_summary.strip(),
            })

        if summary_window:
            window_text = "\n".join(f"{m.role.upper()}: {m.content}" for m in summary_window)
            messages.append({
                "role": "system",
                "content": "OLDER MESSAGES TO SUMMARIZE (write summary.text if summary.update=true):\n" + window_text,
            })

        for msg in recent:
            messages.append(self._message_for_llm(msg))
        return messages

    def _message_for_llm(self, msg: Message) -> dict[str, Any]:
        if msg.role != "user" or not msg.images:
            return msg.to_llm()

        parts: list[dict[str, Any]] = []
        if msg.content.strip():
            parts.append({"type": "text", "text": msg.content})
        for image in msg.images:
            data_url = self._image_data_url(image)
            if data_url:
                parts.append({"type": "image_url", "image_url": {"url": data_url}})
        if not parts:
            return msg.to_llm()
        return {"role": "user", "content": parts}

    @staticmethod
    def _image_data_url(image: ImageRef) -> str | None:
        """Read an attachment from disk as a ``data:`` URL; missing files are skipped."""
        if not image.storage_path:
            return None
        path = Path(image.storage_path)
        try:
            raw = path.read_bytes()
        except OSError as e:
            logger.warning("image_unreadable", path=str(path), error=str(e))
            return None
        mime = image.mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"
