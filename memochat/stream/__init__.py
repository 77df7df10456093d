"""Reply/metadata stream handling."""

from memochat.stream.metadata import ExtractedReply, extract_reply_and_metadata, strip_code_fences
from memochat.stream.splitter import DEFAULT_MARKER, MarkerStreamSplitter

__all__ = [
    "DEFAULT_MARKER",
    "ExtractedReply",
    "MarkerStreamSplitter",
    "extract_reply_and_metadata",
    "strip_code_fences",
]
