"""
CodexBridge: relay one prompt of a session to the Codex CLI.

Owns the mapping from a vibecord session to its Codex thread:
- Serializes invocations per session (SessionLockManager)
- Runs Codex in batch mode (codex exec) or interactive mode (codex under script(1))
- Parses thread id, reply, rate limits and context window from the output
- Persists a newly observed thread id through the session store
"""

import asyncio
import contextlib
import logging
import os
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Protocol

from vibecord.codex.availability import not_found_message
from vibecord.codex.executor import ProcessResult, ProcessRunner
from vibecord.codex.parsers import (
    TurnResult,
    build_failure_message,
    failure_detail,
    parse_context_window,
    parse_rate_limits,
    parse_reply,
    parse_reply_from_events,
    parse_thread_id,
    read_reply,
)
from vibecord.codex.plugin import CodexPlugin
from vibecord.codex.session_lock import SessionLockManager
from vibecord.codex.transcript_tailer import LogDeltaSource, SessionLogTailer
from vibecord.config import Settings, get_settings
from vibecord.errors import (
    EmptyPromptError,
    ExternalCommandFailed,
    InteractiveTimeout,
    MissingReply,
    MissingThreadId,
)
from vibecord.session.types import SessionRecord

logger = logging.getLogger(__name__)


class ThreadIdStore(Protocol):
    """The part of the session store the bridge depends on."""

    async def get_session(self, session_id: str) -> Optional[SessionRecord]: ...

    async def set_thread_id(self, session_id: str, thread_id: str) -> object: ...


class CodexBridge:
    """
    Facade between chat sessions and the Codex CLI.

    Two prompts for the same session never run concurrently; prompts for
    different sessions run as independent subprocesses.
    """

    def __init__(
        self,
        store: ThreadIdStore,
        runner: Optional[ProcessRunner] = None,
        log_source: Optional[LogDeltaSource] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._store = store
        self._plugin = CodexPlugin(settings.codex)
        self._runner = runner or ProcessRunner(
            kill_grace=settings.codex.kill_grace_seconds
        )
        self._log_source = log_source or SessionLogTailer(
            settings.codex.sessions_dir, settings.codex.log_extension
        )
        self._reply_file_prefix = settings.codex.reply_file_prefix
        self._locks = SessionLockManager()

    @property
    def locks(self) -> SessionLockManager:
        return self._locks

    async def send_message(
        self,
        session: SessionRecord,
        prompt: str,
        include_rate_limits: bool = False,
        interactive_session: bool = False,
    ) -> TurnResult:
        """
        Send a prompt to the session's Codex thread.

        Args:
            session: The session to relay for
            prompt: User prompt or interactive slash command (/status, /compact, /init)
            include_rate_limits: Request JSON events so usage limits can be parsed
            interactive_session: Run through Codex's interactive mode

        Returns:
            TurnResult with thread id, reply and optional usage metadata

        Raises:
            EmptyPromptError: Prompt is blank (raised before queueing)
            CommandNotFoundError: codex or script is not on PATH
            ProcessSpawnError: The OS refused to start the process
            ExternalCommandFailed: Codex exited non-zero
            MissingThreadId: No thread id in output or session
            MissingReply: No assistant reply in output
            InteractiveTimeout: Interactive command produced no reply in time
        """
        trimmed_prompt = prompt.strip()
        if not trimmed_prompt:
            raise EmptyPromptError()

        async def run() -> TurnResult:
            # Re-read so a queued prompt sees the thread id its predecessor stored
            current = await self._store.get_session(session.id) or session
            cwd = await asyncio.to_thread(
                resolve_working_directory, current.project_path
            )

            if interactive_session:
                return await self._send_interactive(current, trimmed_prompt, cwd)
            return await self._send_exec(
                current, trimmed_prompt, cwd, include_rate_limits
            )

        return await self._locks.with_lock(session.id, run)

    async def _send_exec(
        self,
        session: SessionRecord,
        prompt: str,
        cwd: str,
        include_rate_limits: bool,
    ) -> TurnResult:
        output_file = (
            Path(tempfile.gettempdir()) / f"{self._reply_file_prefix}{uuid.uuid4()}.txt"
        )
        args = self._plugin.build_exec_args(
            session.codex_thread_id, prompt, str(output_file), include_rate_limits
        )

        logger.info(
            f"[CODEX] Session {session.id}: exec "
            f"({'resume ' + session.codex_thread_id if session.codex_thread_id else 'new thread'})"
        )

        try:
            result = await self._runner.run(
                self._plugin.executable,
                args,
                cwd,
                not_found_message=not_found_message(self._plugin.executable, "codex"),
            )

            if result.exit_code != 0:
                raise _command_failed(result)

            combined = result.combined_output
            thread_id = parse_thread_id(combined) or session.codex_thread_id
            if not thread_id:
                raise MissingThreadId()

            reply = await asyncio.to_thread(read_reply, output_file, combined)
            if not reply:
                raise MissingReply()

            turn = TurnResult(
                thread_id=thread_id,
                reply=reply,
                rate_limits=parse_rate_limits(combined),
                context_window=parse_context_window(combined),
            )
            await self._persist_thread_id(session, thread_id)
            return turn
        finally:
            _cleanup_file(output_file)

    async def _send_interactive(
        self, session: SessionRecord, prompt: str, cwd: str
    ) -> TurnResult:
        snapshot = await self._log_source.snapshot()
        codex_args = self._plugin.build_interactive_args(
            session.codex_thread_id, prompt
        )
        timeout = self._plugin.interactive_timeout(prompt)

        logger.info(
            f"[CODEX] Session {session.id}: interactive {prompt!r} (timeout {timeout}s)"
        )

        result = await self._runner.run(
            self._plugin.pty_helper,
            self._plugin.wrap_in_pty(codex_args),
            cwd,
            not_found_message=not_found_message(self._plugin.pty_helper, "script"),
            timeout=timeout,
        )

        combined = result.combined_output
        log_delta = await self._log_source.delta(snapshot)

        thread_id = (
            parse_thread_id(log_delta)
            or parse_thread_id(combined)
            or session.codex_thread_id
        )
        reply = parse_reply_from_events(log_delta) or parse_reply(combined)
        rate_limits = parse_rate_limits(log_delta) or parse_rate_limits(combined)
        context_window = parse_context_window(log_delta) or parse_context_window(
            combined
        )

        if not reply:
            if result.timed_out:
                raise InteractiveTimeout(round(timeout))
            if result.exit_code != 0:
                raise _command_failed(result)

        if not thread_id:
            raise MissingThreadId()

        if not reply:
            raise MissingReply(interactive=True)

        # A reply does not mask a hard failure
        if result.exit_code != 0 and not result.timed_out:
            raise _command_failed(result)

        await self._persist_thread_id(session, thread_id)
        return TurnResult(
            thread_id=thread_id,
            reply=reply,
            rate_limits=rate_limits,
            context_window=context_window,
        )

    async def _persist_thread_id(self, session: SessionRecord, thread_id: str) -> None:
        if thread_id == session.codex_thread_id:
            return
        logger.info(f"[CODEX] Session {session.id} -> thread {thread_id}")
        await self._store.set_thread_id(session.id, thread_id)


def resolve_working_directory(project_path: str) -> str:
    """
    Directory Codex runs in for a project path.

    The path itself if it is a directory, its parent if it is a file, and the
    current directory if it does not exist (yet).
    """
    try:
        resolved = Path(project_path).expanduser().resolve()
        if resolved.is_dir():
            return str(resolved)
        if resolved.is_file():
            return str(resolved.parent)
    except (OSError, RuntimeError):
        # Symlink loops, unresolvable home directory
        pass
    return os.getcwd()


def _command_failed(result: ProcessResult) -> ExternalCommandFailed:
    logger.warning(f"[CODEX] {build_failure_message(result)}")
    return ExternalCommandFailed(result.exit_code, failure_detail(result))


def _cleanup_file(path: Path) -> None:
    with contextlib.suppress(OSError):
        path.unlink()
        logger.debug(f"Removed reply file {path}")
