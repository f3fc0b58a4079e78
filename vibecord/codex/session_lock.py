"""
SessionLockManager: per-session FIFO serialization of Codex invocations.

Each session id maps to the tail of a chain of futures. A caller waits on the
tail it found, installs its own future as the new tail, and resolves it once
its operation settles. Different session ids never wait on each other.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionLockManager:
    """
    Guarantees at most one in-flight operation per session id.

    - Operations for the same id run strictly in arrival order
    - A failing operation does not block the ones queued behind it
    - Entries are dropped as soon as a chain drains
    """

    def __init__(self) -> None:
        self._tails: Dict[str, "asyncio.Future[None]"] = {}

    async def with_lock(
        self, session_id: str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """
        Run ``operation`` once every earlier operation for ``session_id`` settled.

        Args:
            session_id: Key to serialize on
            operation: Zero-argument coroutine function

        Returns:
            Whatever ``operation`` returns; its exceptions propagate unchanged.
        """
        loop = asyncio.get_running_loop()
        previous = self._tails.get(session_id)
        settled: "asyncio.Future[None]" = loop.create_future()
        settled.add_done_callback(lambda fut: self._release(session_id, fut))
        self._tails[session_id] = settled

        try:
            if previous is not None and not previous.done():
                logger.debug(f"Session {session_id} busy, queueing operation")
                # Shield so a cancelled waiter does not cancel the shared tail
                await asyncio.shield(previous)
            return await operation()
        finally:
            if previous is not None and not previous.done():
                # Cancelled while waiting: hand over only when the predecessor settles
                previous.add_done_callback(lambda _: _resolve(settled))
            else:
                _resolve(settled)
                self._release(session_id, settled)

    def is_locked(self, session_id: str) -> bool:
        """True while an operation for ``session_id`` is running or queued."""
        return session_id in self._tails

    def pending_keys(self) -> List[str]:
        """Session ids that currently have running or queued operations."""
        return list(self._tails)

    def _release(self, session_id: str, fut: "asyncio.Future[None]") -> None:
        if self._tails.get(session_id) is fut:
            del self._tails[session_id]


def _resolve(fut: "asyncio.Future[None]") -> None:
    if not fut.done():
        fut.set_result(None)
