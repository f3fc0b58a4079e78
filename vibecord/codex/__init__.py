"""Codex CLI integration: process execution, output parsing and the session bridge."""

from vibecord.codex.bridge import CodexBridge
from vibecord.codex.executor import ProcessResult, ProcessRunner
from vibecord.codex.session_lock import SessionLockManager
from vibecord.codex.transcript_tailer import LogDeltaSource, LogSnapshot, SessionLogTailer

__all__ = [
    "CodexBridge",
    "LogDeltaSource",
    "LogSnapshot",
    "ProcessResult",
    "ProcessRunner",
    "SessionLockManager",
    "SessionLogTailer",
]
