"""
SessionStore: JSON-file persistence for sessions and per-user focus.

All mutations are serialized through one asyncio.Lock and written atomically
(temp file + rename), so concurrent commands never interleave partial writes.
"""

import asyncio
import json
import logging
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, TypeVar, Union

from vibecord.errors import (
    ConfigError,
    InvalidSessionInputError,
    SessionNotFoundError,
)
from vibecord.session.types import SessionRecord, SessionState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionStore:
    """Sessions and focus pointers stored in a single JSON file."""

    def __init__(self, state_file: Union[str, Path]):
        self.state_file = Path(state_file)
        self._lock = asyncio.Lock()

    async def list_sessions(self) -> List[SessionRecord]:
        """All sessions, ordered by project path then creation time."""
        async with self._lock:
            state = await self._read_state()
        return sorted(state.sessions, key=lambda s: (s.project_path, s.created_at))

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        async with self._lock:
            state = await self._read_state()
        return _find(state, session_id)

    async def get_session_by_channel_id(
        self, channel_id: str
    ) -> Optional[SessionRecord]:
        async with self._lock:
            state = await self._read_state()
        for session in state.sessions:
            if session.channel_id == channel_id:
                return session
        return None

    async def create_session(
        self,
        project_path: str,
        created_by_user_id: str,
        title: Optional[str] = None,
    ) -> SessionRecord:
        """
        Create a session for a project.

        Raises:
            InvalidSessionInputError: If project_path is blank
        """
        project_path = project_path.strip()
        if not project_path:
            raise InvalidSessionInputError("Project path cannot be empty.")

        def mutate(state: SessionState) -> SessionRecord:
            default_title = f"{Path(project_path).name or 'session'} session"
            record = SessionRecord(
                id=uuid.uuid4().hex[:8],
                project_path=project_path,
                title=(title or "").strip() or default_title,
                created_by_user_id=created_by_user_id,
                created_at=_now_iso(),
            )
            state.sessions.append(record)
            return record

        record = await self._mutate(mutate)
        logger.info(f"Created session {record.id} for {project_path}")
        return record

    async def delete_session(self, session_id: str) -> Optional[SessionRecord]:
        """Delete a session and any focus pointers to it; None if unknown."""

        def mutate(state: SessionState) -> Optional[SessionRecord]:
            record = _find(state, session_id)
            if record is None:
                return None
            state.sessions.remove(record)
            state.focused_session_by_user_id = {
                user_id: focused
                for user_id, focused in state.focused_session_by_user_id.items()
                if focused != session_id
            }
            return record

        return await self._mutate(mutate)

    async def get_focused_session_id(self, user_id: str) -> Optional[str]:
        async with self._lock:
            state = await self._read_state()
        return state.focused_session_by_user_id.get(user_id)

    async def set_focused_session_id(self, user_id: str, session_id: str) -> None:
        def mutate(state: SessionState) -> None:
            if _find(state, session_id) is None:
                raise SessionNotFoundError(session_id)
            state.focused_session_by_user_id[user_id] = session_id

        await self._mutate(mutate)

    async def set_channel_id(
        self, session_id: str, channel_id: Optional[str]
    ) -> SessionRecord:
        def mutate(state: SessionState) -> SessionRecord:
            record = _require(state, session_id)
            record.channel_id = channel_id or None
            return record

        return await self._mutate(mutate)

    async def set_thread_id(self, session_id: str, thread_id: str) -> SessionRecord:
        """Record the Codex thread a session resumes from now on."""

        def mutate(state: SessionState) -> SessionRecord:
            record = _require(state, session_id)
            record.codex_thread_id = thread_id
            return record

        record = await self._mutate(mutate)
        logger.debug(f"Session {session_id} now resumes thread {thread_id}")
        return record

    async def _mutate(self, mutate: Callable[[SessionState], T]) -> T:
        async with self._lock:
            state = await self._read_state()
            result = mutate(state)
            await self._write_state(state)
            return result

    async def _read_state(self) -> SessionState:
        return await asyncio.to_thread(self._read_state_sync)

    async def _write_state(self, state: SessionState) -> None:
        await asyncio.to_thread(self._write_state_sync, state)

    def _read_state_sync(self) -> SessionState:
        try:
            raw = self.state_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return SessionState()

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ConfigError(
                f"Session state file {self.state_file} is not valid JSON: {e}"
            ) from e

        return SessionState.from_dict(data)

    def _write_state_sync(self, state: SessionState) -> None:
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state.to_dict(), indent=2) + "\n"

        fd, tmp_path = tempfile.mkstemp(
            dir=self.state_file.parent, prefix=f".{self.state_file.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.state_file)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise


def _find(state: SessionState, session_id: str) -> Optional[SessionRecord]:
    for session in state.sessions:
        if session.id == session_id:
            return session
    return None


def _require(state: SessionState, session_id: str) -> SessionRecord:
    record = _find(state, session_id)
    if record is None:
        raise SessionNotFoundError(session_id)
    return record


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
