"""
SessionLogTailer: read what Codex appended to its session log during a run.

Interactive runs go through a pseudo-terminal wrapper, so their structured
events cannot be captured from the process streams. Codex also writes every
event to ~/.codex/sessions/YYYY/MM/DD/rollout-*.jsonl; a snapshot of the
newest log before the run and a delta after it recovers those events.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogSnapshot:
    """Position marker into the newest session log at invocation start."""

    latest_file_path: Optional[Path] = None
    line_count: int = 0


class LogDeltaSource(Protocol):
    """Capability: read log content appended since a marker."""

    async def snapshot(self) -> LogSnapshot:
        """Record the current end position of the newest log."""
        ...

    async def delta(self, snapshot: LogSnapshot) -> str:
        """Return content appended since ``snapshot`` (empty if none)."""
        ...


class SessionLogTailer:
    """
    LogDeltaSource over a directory tree of JSONL session logs.

    The newest file is the one with the greatest mtime across a full
    recursive scan; on ties the last file found wins.
    """

    def __init__(self, root: Union[str, Path], extension: str = ".jsonl"):
        self.root = Path(root)
        self.extension = extension

    async def snapshot(self) -> LogSnapshot:
        return await asyncio.to_thread(self._snapshot_sync)

    async def delta(self, snapshot: LogSnapshot) -> str:
        return await asyncio.to_thread(self._delta_sync, snapshot)

    def find_latest_file(self) -> Optional[Path]:
        """Return the most recently modified log file, if any."""
        latest_path = None
        latest_mtime = -1.0

        for path in self._collect_files(self.root):
            try:
                mtime = path.stat().st_mtime
            except OSError:
                # Deleted or inaccessible between listing and stat
                continue
            if mtime >= latest_mtime:
                latest_mtime = mtime
                latest_path = path

        return latest_path

    def _snapshot_sync(self) -> LogSnapshot:
        latest = self.find_latest_file()
        if latest is None:
            return LogSnapshot()

        content = _read_text(latest)
        line_count = len(content.split("\n")) if content is not None else 0
        logger.debug(f"Session log snapshot: {latest} at line {line_count}")
        return LogSnapshot(latest_file_path=latest, line_count=line_count)

    def _delta_sync(self, snapshot: LogSnapshot) -> str:
        latest = self.find_latest_file()
        if latest is None:
            return ""

        content = _read_text(latest)
        if content is None:
            return ""

        lines = content.split("\n")
        if snapshot.latest_file_path == latest:
            return "\n".join(lines[snapshot.line_count :])

        logger.debug(f"Session log changed to {latest}, using whole file as delta")
        return content

    def _collect_files(self, directory: Path) -> List[Path]:
        files: List[Path] = []
        try:
            entries = list(os.scandir(directory))
        except OSError:
            return files

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    files.extend(self._collect_files(Path(entry.path)))
                elif entry.is_file() and entry.name.endswith(self.extension):
                    files.append(Path(entry.path))
            except OSError:
                continue

        return files


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
