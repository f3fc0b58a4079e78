"""
Executable availability: verify the external tools vibecord drives.

Provides the install hints shown when a tool is missing.
"""

import logging
import shutil
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class ToolInfo:
    """Information about an external executable."""

    name: str
    executable: str
    install_hint: str


# Known tools and their installation info
TOOL_REGISTRY: Dict[str, ToolInfo] = {
    "codex": ToolInfo(
        name="Codex CLI",
        executable="codex",
        install_hint="Install Codex CLI and retry.",
    ),
    "script": ToolInfo(
        name="script(1)",
        executable="script",
        install_hint="Install util-linux script(1) and retry.",
    ),
}


def not_found_message(executable: str, tool: Optional[str] = None) -> str:
    """
    Build the user-facing message for a missing executable.

    Args:
        executable: The executable that could not be found (may be a custom path)
        tool: Registry key describing it; defaults to ``executable``
    """
    info = TOOL_REGISTRY.get(tool or executable)
    hint = info.install_hint if info else "Install required dependencies and retry."
    return f'Unable to find "{executable}" in PATH. {hint}'


class AvailabilityChecker:
    """Checks whether external tools are on PATH."""

    def __init__(self) -> None:
        self._cache: Dict[str, bool] = {}

    def is_available(self, executable: str) -> bool:
        if executable in self._cache:
            return self._cache[executable]

        available = shutil.which(executable) is not None
        self._cache[executable] = available

        if not available:
            logger.warning(f"Executable not available: {executable}")

        return available

    def log_startup_status(self, codex_binary: str, pty_helper: str) -> None:
        """Log which tools are usable at startup."""
        for executable, tool in ((codex_binary, "codex"), (pty_helper, "script")):
            if self.is_available(executable):
                logger.info(f"Found {executable} on PATH")
            else:
                logger.warning(not_found_message(executable, tool))
