"""Session records persisted by the session store."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SessionRecord:
    """A chat session bound to a project directory and, once known, a Codex thread."""

    id: str
    project_path: str
    title: str
    created_by_user_id: str
    created_at: str
    channel_id: Optional[str] = None
    codex_thread_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the on-disk camelCase keys."""
        data: Dict[str, Any] = {
            "id": self.id,
            "projectPath": self.project_path,
            "title": self.title,
            "createdByUserId": self.created_by_user_id,
            "createdAt": self.created_at,
        }
        if self.channel_id:
            data["channelId"] = self.channel_id
        if self.codex_thread_id:
            data["codexThreadId"] = self.codex_thread_id
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SessionRecord"]:
        """Build a record from stored JSON, or None if it is malformed."""
        if not isinstance(data, dict):
            return None

        required = ("id", "projectPath", "title", "createdByUserId", "createdAt")
        if not all(isinstance(data.get(key), str) for key in required):
            return None

        channel_id = data.get("channelId")
        thread_id = data.get("codexThreadId")
        if channel_id is not None and not isinstance(channel_id, str):
            return None
        if thread_id is not None and not isinstance(thread_id, str):
            thread_id = None

        return cls(
            id=data["id"],
            project_path=data["projectPath"],
            title=data["title"],
            created_by_user_id=data["createdByUserId"],
            created_at=data["createdAt"],
            channel_id=channel_id or None,
            codex_thread_id=thread_id or None,
        )


@dataclass
class SessionState:
    """Everything the store persists."""

    sessions: List[SessionRecord] = field(default_factory=list)
    focused_session_by_user_id: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessions": [session.to_dict() for session in self.sessions],
            "focusedSessionByUserId": dict(self.focused_session_by_user_id),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SessionState":
        """Normalize stored JSON, dropping anything malformed."""
        if not isinstance(data, dict):
            return cls()

        raw_sessions = data.get("sessions")
        sessions = []
        if isinstance(raw_sessions, list):
            for raw in raw_sessions:
                record = SessionRecord.from_dict(raw)
                if record is not None:
                    sessions.append(record)

        focused: Dict[str, str] = {}
        raw_focused = data.get("focusedSessionByUserId")
        if isinstance(raw_focused, dict):
            for user_id, session_id in raw_focused.items():
                if isinstance(user_id, str) and isinstance(session_id, str):
                    focused[user_id] = session_id

        return cls(sessions=sessions, focused_session_by_user_id=focused)
