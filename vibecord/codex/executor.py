"""
ProcessRunner: Subprocess management for Codex CLI execution.

Handles spawning, output capture, and timeout with escalating termination
(SIGTERM, then SIGKILL after a grace period).
"""

import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from vibecord.errors import CommandNotFoundError, ProcessSpawnError

logger = logging.getLogger(__name__)

# Maximum output capture size per stream (10MB)
MAX_OUTPUT_SIZE = 10 * 1024 * 1024

# Seconds between SIGTERM and SIGKILL on timeout
DEFAULT_KILL_GRACE = 2.0

# Exit code reported when a timed-out process left no real exit status
TIMEOUT_EXIT_CODE = 124


@dataclass
class ProcessResult:
    """Result from a process execution."""

    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def combined_output(self) -> str:
        return f"{self.stdout}\n{self.stderr}"


class ProcessRunner:
    """
    Runs external commands as subprocesses.

    Provides:
    - Inherited environment, stdin closed
    - stdout/stderr capture (capped at MAX_OUTPUT_SIZE each)
    - Optional timeout with SIGTERM then SIGKILL
    - Non-zero exits reported in the result, never raised
    """

    def __init__(self, kill_grace: float = DEFAULT_KILL_GRACE):
        """
        Initialize runner.

        Args:
            kill_grace: Seconds to wait after SIGTERM before sending SIGKILL.
        """
        self._kill_grace = kill_grace

    async def run(
        self,
        command: str,
        args: Sequence[str],
        cwd: str,
        not_found_message: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """
        Execute a command and wait for it to finish.

        Args:
            command: Executable name or path
            args: Arguments passed to the executable
            cwd: Working directory for the process
            not_found_message: Hint shown when the executable is missing
            timeout: Seconds before the process is terminated (None = no limit)

        Returns:
            ProcessResult with captured output, exit code and timeout flag

        Raises:
            CommandNotFoundError: If the executable cannot be located
            ProcessSpawnError: For any other OS-level spawn failure
        """
        logger.debug(f"Executing: {command} {' '.join(args)}")
        logger.debug(f"CWD: {cwd}, timeout: {timeout}s")

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=cwd,
                env=os.environ.copy(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # Own process group so a timeout also reaches grandchildren
                start_new_session=True,
            )
        except FileNotFoundError as e:
            # Could be command not found OR cwd not found
            if cwd and not Path(cwd).exists():
                logger.error(f"Working directory not found: {cwd}")
                raise ProcessSpawnError(
                    command, f"Working directory not found: {cwd}"
                ) from e
            logger.error(f"Command not found: {command}")
            raise CommandNotFoundError(command, not_found_message) from e
        except OSError as e:
            logger.error(f"Execution error: {e}")
            raise ProcessSpawnError(command, str(e)) from e

        stdout_task = asyncio.create_task(_read_capped(process.stdout))
        stderr_task = asyncio.create_task(_read_capped(process.stderr))

        timed_out = False
        try:
            if timeout is not None and timeout > 0:
                try:
                    await asyncio.wait_for(process.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    timed_out = True
                    logger.warning(
                        f"Timeout ({timeout}s) exceeded, terminating {command}"
                    )
                    await self._terminate(process)
            else:
                await process.wait()
        except asyncio.CancelledError:
            logger.warning(f"Execution cancelled, killing {command}")
            _signal_group(process, signal.SIGKILL)
            stdout_task.cancel()
            stderr_task.cancel()
            raise

        stdout, stderr = await self._collect(stdout_task, stderr_task)

        return ProcessResult(
            exit_code=_exit_code(process.returncode, timed_out),
            stdout=stdout,
            stderr=stderr,
            timed_out=timed_out,
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, wait the grace period, then SIGKILL."""
        _signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self._kill_grace)
            return
        except asyncio.TimeoutError:
            logger.warning(
                f"Process {process.pid} ignored SIGTERM for {self._kill_grace}s, killing"
            )

        _signal_group(process, signal.SIGKILL)
        await process.wait()

    async def _collect(
        self, stdout_task: "asyncio.Task[str]", stderr_task: "asyncio.Task[str]"
    ) -> tuple[str, str]:
        """Wait for the stream readers, abandoning them if pipes stay open."""
        done, pending = await asyncio.wait(
            {stdout_task, stderr_task}, timeout=max(self._kill_grace, 1.0)
        )
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Output pipes still open after exit; output may be partial")

        stdout = stdout_task.result() if stdout_task in done else ""
        stderr = stderr_task.result() if stderr_task in done else ""
        return stdout, stderr


async def _read_capped(stream: Optional[asyncio.StreamReader]) -> str:
    """Drain a stream to EOF, keeping at most MAX_OUTPUT_SIZE bytes."""
    if stream is None:
        return ""

    chunks: List[bytes] = []
    size = 0
    while True:
        data = await stream.read(8192)
        if not data:
            break
        if size < MAX_OUTPUT_SIZE:
            chunks.append(data)
            size += len(data)

    return b"".join(chunks)[:MAX_OUTPUT_SIZE].decode("utf-8", errors="replace")


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    if process.returncode is not None:
        return
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        process.send_signal(sig)


def _exit_code(returncode: Optional[int], timed_out: bool) -> int:
    # Negative return codes mean the process died from a signal
    if returncode is None or returncode < 0:
        return TIMEOUT_EXIT_CODE if timed_out else 1
    return returncode
