"""
Codex CLI command building.

Command formats:
- Batch, new thread:    codex exec --color never --skip-git-repo-check
                        --output-last-message <file> [--json] "<prompt>"
- Batch, resume:        codex exec ... resume <thread_id> "<prompt>"
- Interactive, new:     codex --no-alt-screen "<prompt>"
- Interactive, resume:  codex --no-alt-screen resume <thread_id> "<prompt>"

Interactive runs are wrapped in script(1) so Codex sees a real terminal:
    script -q -e -c '<quoted codex command>' /dev/null
"""

from typing import List, Optional, Sequence

from vibecord.config import CodexConfig


class CodexPlugin:
    """Builds Codex invocations and picks interactive timeouts."""

    def __init__(self, config: Optional[CodexConfig] = None):
        self._config = config or CodexConfig()

    @property
    def executable(self) -> str:
        return self._config.binary

    @property
    def pty_helper(self) -> str:
        return self._config.pty_helper

    def build_exec_args(
        self,
        thread_id: Optional[str],
        prompt: str,
        output_file: str,
        include_json: bool = False,
    ) -> List[str]:
        """Build args for a one-shot batch run (new thread or resume)."""
        args = [
            "exec",
            "--color",
            "never",
            "--skip-git-repo-check",
            "--output-last-message",
            output_file,
        ]

        if include_json:
            args.append("--json")

        if thread_id:
            args.extend(["resume", thread_id])

        # Prompt goes last
        args.append(prompt)
        return args

    def build_interactive_args(self, thread_id: Optional[str], prompt: str) -> List[str]:
        """Build args for an interactive-mode run (new thread or resume)."""
        args = ["--no-alt-screen"]
        if thread_id:
            args.extend(["resume", thread_id])
        args.append(prompt)
        return args

    def wrap_in_pty(self, args: Sequence[str]) -> List[str]:
        """Args for the pseudo-terminal helper running ``codex <args>``."""
        return ["-q", "-e", "-c", build_shell_command(self.executable, args), "/dev/null"]

    def interactive_timeout(self, prompt: str) -> int:
        """Seconds allowed for an interactive prompt, by exact command match."""
        normalized = prompt.strip().lower()

        if normalized == "/status":
            return self._config.status_timeout_seconds
        if normalized in ("/compact", "/init"):
            return self._config.compact_timeout_seconds
        return self._config.default_interactive_timeout_seconds


def build_shell_command(command: str, args: Sequence[str]) -> str:
    return " ".join(quote_shell_arg(part) for part in [command, *args])


def quote_shell_arg(value: str) -> str:
    """Single-quote a value for POSIX sh, always quoting."""
    if not value:
        return "''"
    return "'" + value.replace("'", "'\"'\"'") + "'"
