"""Common errors for vibecord.

Every error carries a message that is safe to show to the end user verbatim.
"""

from typing import Optional


class VibecordError(Exception):
    """Base class for all user-facing vibecord errors."""


class ConfigError(VibecordError):
    """Raised when the configuration file is missing or invalid."""


class EmptyPromptError(VibecordError):
    """Raised when a prompt is empty or whitespace only."""

    def __init__(self, message: str = "Prompt cannot be empty."):
        super().__init__(message)


class CommandNotFoundError(VibecordError):
    """Raised when an external executable cannot be located on PATH."""

    def __init__(self, command: str, message: Optional[str] = None):
        if message is None:
            message = (
                f'Unable to find "{command}" in PATH. '
                "Install required dependencies and retry."
            )
        super().__init__(message)
        self.command = command


class ProcessSpawnError(VibecordError):
    """Raised when the OS refuses to start a process for any other reason."""

    def __init__(self, command: str, message: str):
        super().__init__(f'Failed to start "{command}": {message}')
        self.command = command


class ExternalCommandFailed(VibecordError):
    """Raised when the Codex CLI exits with a non-zero code."""

    def __init__(self, exit_code: int, detail: str):
        super().__init__(f"Codex command failed (exit {exit_code}): {detail}")
        self.exit_code = exit_code
        self.detail = detail


class MissingThreadId(VibecordError):
    """Raised when no thread id could be determined for a turn."""

    def __init__(self) -> None:
        super().__init__(
            "Codex did not expose a session id. "
            "Check Codex CLI configuration and try again."
        )


class MissingReply(VibecordError):
    """Raised when the Codex output contains no assistant reply."""

    def __init__(self, interactive: bool = False):
        if interactive:
            message = (
                "Codex did not return an assistant reply in interactive mode. "
                "Try sending the command again."
            )
        else:
            message = (
                "Codex did not return an assistant reply. "
                "Try sending the message again."
            )
        super().__init__(message)
        self.interactive = interactive


class InteractiveTimeout(VibecordError):
    """Raised when an interactive command produced no reply before its deadline."""

    def __init__(self, timeout_seconds: int):
        super().__init__(
            f"Codex interactive command timed out after {timeout_seconds}s "
            "without an assistant reply."
        )
        self.timeout_seconds = timeout_seconds


class SessionNotFoundError(VibecordError):
    """Raised when a session id does not exist in the store."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} does not exist.")
        self.session_id = session_id


class InvalidSessionInputError(VibecordError, ValueError):
    """Raised when session creation input is invalid."""
