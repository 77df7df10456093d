"""Typed client-facing stream events emitted while a chat turn runs."""

from __future__ import annotations

from typing import Final, Literal, TypeAlias, TypedDict

EVENT_DELTA: Final = "delta"
EVENT_HTML: Final = "html"
EVENT_MODEL: Final = "model"
EVENT_ERROR: Final = "error"
EVENT_DONE: Final = "done"
EVENT_HEARTBEAT: Final = "heartbeat"


class DeltaEvent(TypedDict):
    type: Literal["delta"]
    delta: str


class HtmlEvent(TypedDict):
    type: Literal["html"]
    html: str


class ModelEvent(TypedDict):
    type: Literal["model"]
    model: str


class ErrorEvent(TypedDict):
    type: Literal["error"]
    error: str


class DoneEvent(TypedDict):
    type: Literal["done"]


class HeartbeatEvent(TypedDict):
    """Keep-alive with no semantic payload; consumers must ignore it."""

    type: Literal["heartbeat"]
    timestamp_ms: int


StreamEvent: TypeAlias = DeltaEvent | HtmlEvent | ModelEvent | ErrorEvent | DoneEvent | HeartbeatEvent


def delta_event(text: str) -> DeltaEvent:
    return {"type": EVENT_DELTA, "delta": text}


def html_event(html: str) -> HtmlEvent:
    return {"type": EVENT_HTML, "html": html}


def model_event(model: str) -> ModelEvent:
    return {"type": EVENT_MODEL, "model": model}


def error_event(message: str) -> ErrorEvent:
    return {"type": EVENT_ERROR, "error": message}


def done_event() -> DoneEvent:
    return {"type": EVENT_DONE}


def heartbeat_event(timestamp_ms: int) -> HeartbeatEvent:
    return {"type": EVENT_HEARTBEAT, "timestamp_ms": timestamp_ms}
