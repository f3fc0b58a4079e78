"""Session persistence: records, focus pointers and Codex thread ids."""

from vibecord.session.store import SessionStore
from vibecord.session.types import SessionRecord, SessionState

__all__ = ["SessionRecord", "SessionState", "SessionStore"]
