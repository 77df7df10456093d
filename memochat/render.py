"""Markdown to sanitized HTML for assistant replies."""

from __future__ import annotations

import markdown
import nh3

_EXTENSIONS = ["fenced_code", "tables", "nl2br", "sane_lists"]

_ALLOWED_TAGS = set(nh3.ALLOWED_TAGS) | {"img", "h1", "h2", "h3", "h4", "h5", "h6", "pre", "code", "table", "thead", "tbody", "tr", "th", "td"}
_ALLOWED_ATTRIBUTES = {
    "a": {"href", "name", "title"},
    "img": {"src", "alt", "title"},
    "*": {"class"},
}
_URL_SCHEMES = {"http", "https", "data"}


def render_markdown_safe(text: str | None) -> str:
    """Render *text* as markdown and strip anything not on the allow-list.

    Links get ``rel="noopener noreferrer"``.
    """
    raw = text if isinstance(text, str) else ""
    html = markdown.markdown(raw, extensions=_EXTENSIONS)
    return nh3.clean(
        html,
        tags=_ALLOWED_TAGS,
        attributes=_ALLOWED_ATTRIBUTES,
        url_schemes=_URL_SCHEMES,
        link_rel="noopener noreferrer",
    )
