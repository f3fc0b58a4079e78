"""
vibecord command line.

Session management plus the Codex bridge operations a chat user would run:
    vibecord sessions create ~/src/app --title "App work"
    vibecord send "explain the build script"
    vibecord status
"""

import asyncio
import os
from typing import Any, Awaitable, List, Optional, Tuple, TypeVar

import typer

from vibecord.cli import config_cli
from vibecord.codex.availability import AvailabilityChecker, not_found_message
from vibecord.codex.bridge import CodexBridge
from vibecord.codex.parsers import TurnResult
from vibecord.config import get_settings
from vibecord.errors import VibecordError
from vibecord.formatting import (
    format_context_window_footer,
    format_rate_limit_summary,
    format_session_list,
    format_status_message,
)
from vibecord.logging import setup_logging
from vibecord.session.store import SessionStore
from vibecord.session.types import SessionRecord

T = TypeVar("T")

app = typer.Typer(help="Relay prompts from chat sessions to the Codex CLI")
sessions_app = typer.Typer(help="Create, list, focus and delete sessions")
app.add_typer(sessions_app, name="sessions")
app.add_typer(config_cli.app, name="config")

USER_OPTION = typer.Option(
    os.getenv("USER") or "local",
    "--user",
    "-u",
    envvar="VIBECORD_USER_ID",
    help="User id that owns focus pointers",
)
SESSION_OPTION = typer.Option(
    None, "--session", "-s", help="Session id (defaults to the focused session)"
)


class SessionSelectionError(VibecordError):
    """No usable session for a command."""


@app.callback()
def main(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file path"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    if config_file:
        os.environ["VIBECORD_CONFIG_FILE"] = config_file
        get_settings.cache_clear()
    if verbose:
        os.environ["VIBECORD_LOGGING__LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    try:
        setup_logging(get_settings())
    except VibecordError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _run(awaitable: Awaitable[T]) -> T:
    """Drive a coroutine to completion, turning domain errors into exit code 1."""
    try:
        return asyncio.run(awaitable)  # type: ignore[arg-type]
    except VibecordError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _store() -> SessionStore:
    return SessionStore(get_settings().session.state_file)


async def _resolve_session(
    store: SessionStore, session_id: Optional[str], user_id: str, command: str
) -> SessionRecord:
    requested = (session_id or "").strip()
    if requested:
        session = await store.get_session(requested)
        if session is None:
            raise SessionSelectionError(f"Session `{requested}` was not found.")
        return session

    focused_id = await store.get_focused_session_id(user_id)
    if not focused_id:
        raise SessionSelectionError(
            f"No session selected. Use `vibecord {command} --session <id>`"
            " or set one with `vibecord sessions focus <id>`."
        )

    session = await store.get_session(focused_id)
    if session is None:
        raise SessionSelectionError(
            "Your focused session no longer exists. Run `vibecord sessions list`,"
            " then focus another session."
        )
    return session


@sessions_app.command("list")
def list_sessions(
    project: Optional[str] = typer.Option(
        None, "--project", "-p", help="Only sessions for this project path"
    ),
    user: str = USER_OPTION,
):
    """List sessions grouped by project."""

    async def run() -> str:
        store = _store()
        sessions = await store.list_sessions()
        project_filter = (project or "").strip() or None
        if project_filter:
            sessions = [s for s in sessions if s.project_path == project_filter]
        focused = await store.get_focused_session_id(user)
        return format_session_list(sessions, focused, project_filter)

    typer.echo(_run(run()))


@sessions_app.command("create")
def create_session(
    project: str = typer.Argument(..., help="Project directory Codex works in"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Session title"),
    user: str = USER_OPTION,
):
    """Create a session and focus it."""

    async def run() -> SessionRecord:
        store = _store()
        session = await store.create_session(project, user, title)
        await store.set_focused_session_id(user, session.id)
        return session

    session = _run(run())
    typer.echo(f"Created session `{session.id}`")
    typer.echo(f"Project: `{session.project_path}`")
    typer.echo(f"Title: {session.title}")
    typer.echo(f"Focused session: `{session.id}`")


@sessions_app.command("delete")
def delete_session(session_id: str = typer.Argument(..., help="Session id")):
    """Delete a session."""
    session_id = session_id.strip()
    deleted = _run(_store().delete_session(session_id))
    if deleted is None:
        typer.echo(f"Error: Session `{session_id}` was not found.", err=True)
        raise typer.Exit(1)
    typer.echo(f"Deleted session `{deleted.id}` ({deleted.project_path}).")


@sessions_app.command("focus")
def focus_session(
    session_id: str = typer.Argument(..., help="Session id"),
    user: str = USER_OPTION,
):
    """Make a session the default target for send/status/compact/init."""

    async def run() -> SessionRecord:
        store = _store()
        session = await _resolve_session(store, session_id, user, "sessions focus")
        await store.set_focused_session_id(user, session.id)
        return session

    session = _run(run())
    typer.echo(f"Focused session set to `{session.id}` ({session.project_path}).")


@app.command()
def send(
    prompt: List[str] = typer.Argument(..., help="Prompt text"),
    session_id: Optional[str] = SESSION_OPTION,
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Run through Codex's interactive mode"
    ),
    rate_limits: bool = typer.Option(
        False, "--rate-limits", help="Show usage limits reported by Codex"
    ),
    user: str = USER_OPTION,
):
    """Send a prompt to a session's Codex thread."""
    text = " ".join(prompt)

    async def run() -> TurnResult:
        store = _store()
        session = await _resolve_session(store, session_id, user, "send")
        return await CodexBridge(store).send_message(
            session,
            text,
            include_rate_limits=rate_limits,
            interactive_session=interactive,
        )

    result = _run(run())
    typer.echo(result.reply)

    extras: List[Any] = []
    if rate_limits:
        extras.append(format_rate_limit_summary(result.rate_limits))
    extras.append(format_context_window_footer(result.context_window))
    for extra in extras:
        if extra:
            typer.echo("")
            typer.echo(extra)


def _slash_command(
    command: str, session_id: Optional[str], user: str, require_thread: bool
) -> Tuple[SessionRecord, TurnResult]:
    async def run() -> Tuple[SessionRecord, TurnResult]:
        store = _store()
        session = await _resolve_session(store, session_id, user, command)
        if require_thread and not session.codex_thread_id:
            raise SessionSelectionError(
                f"Session `{session.id}` has no Codex thread yet. Send a normal"
                f" message to this session first, then run `{command}` again."
            )
        result = await CodexBridge(store).send_message(
            session,
            f"/{command}",
            interactive_session=True,
        )
        return session, result

    return _run(run())


@app.command()
def status(
    session_id: Optional[str] = SESSION_OPTION,
    user: str = USER_OPTION,
):
    """Show Codex status, usage limits and context left for a session."""
    session, result = _slash_command("status", session_id, user, require_thread=True)
    typer.echo(
        format_status_message(
            session.id, result.reply, result.rate_limits, result.context_window
        )
    )


@app.command()
def compact(
    session_id: Optional[str] = SESSION_OPTION,
    user: str = USER_OPTION,
):
    """Ask Codex to compact the session's conversation."""
    session, result = _slash_command("compact", session_id, user, require_thread=True)
    typer.echo(f"Session `{session.id}` compact:\n{result.reply}")


@app.command("init")
def init_project(
    session_id: Optional[str] = SESSION_OPTION,
    user: str = USER_OPTION,
):
    """Run Codex's /init in the session's project."""
    session, result = _slash_command("init", session_id, user, require_thread=False)
    typer.echo(f"Session `{session.id}` init:\n{result.reply}")


@app.command()
def check():
    """Verify that the Codex CLI and the pseudo-terminal helper are on PATH."""
    codex = get_settings().codex
    checker = AvailabilityChecker()
    checker.log_startup_status(codex.binary, codex.pty_helper)

    missing = False
    for executable, tool in ((codex.binary, "codex"), (codex.pty_helper, "script")):
        if checker.is_available(executable):
            typer.echo(f"[OK] {executable}")
        else:
            missing = True
            typer.echo(f"[MISSING] {not_found_message(executable, tool)}")

    if missing:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
