"""Recover the instruction object a generation appends after its visible reply."""

from __future__ import annotations

import json
from typing import Any, NamedTuple

import json_repair

from memochat.logging import get_logger
from memochat.stream.splitter import DEFAULT_MARKER

logger = get_logger(__name__)

_FENCE = "```"


class ExtractedReply(NamedTuple):
    reply: str
    meta: dict[str, Any] | None
    error: str | None


def strip_code_fences(text: str) -> str:
    """Remove one wrapping ```` ``` ```` fence pair (with optional language tag)."""
    raw = (text or "").strip()
    if not raw.startswith(_FENCE):
        return raw
    lines = raw.split("\n")
    if len(lines) < 2:
        return raw
    if not lines[0].strip().startswith(_FENCE) or lines[-1].strip() != _FENCE:
        return raw
    return "\n".join(lines[1:-1]).strip()


def _parse_object(text: str) -> tuple[dict[str, Any] | None, str | None]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        strict_error = str(e)
    else:
        if isinstance(parsed, dict):
            return parsed, None
        return None, f"metadata is a JSON {type(parsed).__name__}, not an object"

    # Generators often emit near-JSON (trailing commas, single quotes, cut-off
    # tails); only objects are worth repairing.
    if "{" not in text:
        return None, strict_error
    try:
        repaired = json_repair.loads(text)
    except Exception:
        return None, strict_error
    if not isinstance(repaired, dict):
        return None, strict_error
    logger.info("metadata_repaired", error=strict_error)
    return repaired, None


def extract_reply_and_metadata(full_text: str | None, marker: str = DEFAULT_MARKER) -> ExtractedReply:
    """
    Split a full generation into ``(reply, meta, error)``.

    Uses the *last* marker occurrence so a marker quoted inside the reply
    does not cut it short. Never raises: without a marker the whole text is
    the reply; with an unparseable tail the reply is returned together with
    the parse error, falling back to the whole text if the reply is empty.
    """
    text = full_text or ""
    idx = text.rfind(marker)
    if idx == -1:
        return ExtractedReply(text.strip(), None, None)

    reply = text[:idx].strip()
    meta_text = strip_code_fences(text[idx + len(marker):])
    meta, error = _parse_object(meta_text)
    if error is not None:
        logger.warning("metadata_parse_failed", error=error, tail_chars=len(meta_text))
        return ExtractedReply(reply or text.strip(), None, error)
    return ExtractedReply(reply, meta, None)
