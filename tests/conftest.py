"""
Shared test fixtures and configuration for vibecord tests.
"""

# Note: the user's config.yaml is skipped automatically under pytest unless
# VIBECORD_CONFIG_FILE is set, see Settings._yaml_config_source
import logging
import os
from dataclasses import replace
from typing import Dict, List, Optional

import pytest

from vibecord.codex.executor import ProcessResult
from vibecord.codex.transcript_tailer import LogSnapshot
from vibecord.session.types import SessionRecord


@pytest.fixture(autouse=True)
def isolate_environment(tmp_path, monkeypatch):
    """Point every test at throwaway state and a fresh settings cache."""
    from vibecord.config import get_settings

    for key in list(os.environ):
        if key.startswith("VIBECORD_"):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setenv(
        "VIBECORD_SESSION__STATE_FILE", str(tmp_path / "state" / "sessions.json")
    )
    monkeypatch.setenv("VIBECORD_CODEX__SESSIONS_DIR", str(tmp_path / "codex-sessions"))

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

    # setup_logging() detaches the app logger from root; undo for caplog
    app_logger = logging.getLogger("vibecord")
    app_logger.handlers.clear()
    app_logger.propagate = True
    app_logger.setLevel(logging.NOTSET)


class FakeSessionStore:
    """In-memory stand-in for SessionStore's bridge-facing methods."""

    def __init__(self, sessions: Optional[List[SessionRecord]] = None):
        self.sessions: Dict[str, SessionRecord] = {s.id: s for s in sessions or []}
        self.thread_id_writes: List[tuple] = []

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return self.sessions.get(session_id)

    async def set_thread_id(self, session_id: str, thread_id: str) -> SessionRecord:
        self.thread_id_writes.append((session_id, thread_id))
        record = replace(self.sessions[session_id], codex_thread_id=thread_id)
        self.sessions[session_id] = record
        return record


class FakeLogSource:
    """LogDeltaSource returning a canned delta."""

    def __init__(self, delta: str = ""):
        self.delta_text = delta
        self.snapshots = 0
        self.deltas: List[LogSnapshot] = []

    async def snapshot(self) -> LogSnapshot:
        self.snapshots += 1
        return LogSnapshot()

    async def delta(self, snapshot: LogSnapshot) -> str:
        self.deltas.append(snapshot)
        return self.delta_text


def make_session(
    session_id: str = "abc12345",
    project_path: str = "/nonexistent/project",
    codex_thread_id: Optional[str] = None,
) -> SessionRecord:
    return SessionRecord(
        id=session_id,
        project_path=project_path,
        title="project session",
        created_by_user_id="user-1",
        created_at="2025-01-01T00:00:00Z",
        codex_thread_id=codex_thread_id,
    )


def make_result(
    exit_code: int = 0, stdout: str = "", stderr: str = "", timed_out: bool = False
) -> ProcessResult:
    return ProcessResult(
        exit_code=exit_code, stdout=stdout, stderr=stderr, timed_out=timed_out
    )


@pytest.fixture
def session():
    return make_session()


@pytest.fixture
def fake_store(session):
    return FakeSessionStore([session])


@pytest.fixture
def fake_log_source():
    return FakeLogSource()


@pytest.fixture
def make_session_record():
    return make_session


@pytest.fixture
def make_process_result():
    return make_result


@pytest.fixture
def store_factory():
    return FakeSessionStore


@pytest.fixture
def log_source_factory():
    return FakeLogSource
