"""Session management module."""

from memochat.session.manager import ImageRef, Message, SessionStore

__all__ = ["ImageRef", "Message", "SessionStore"]
