"""Per-session async locking.

Every room-affecting operation (join, leave, send, typing, shutdown) runs
under the lock of its session, which gives each session a single logical
sequence of state changes and broadcasts.
"""

from __future__ import annotations

import asyncio
import contextvars
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

# Sessions whose lock the current execution context already holds.
# asyncio.gather() copies the parent context to child tasks, so children
# see the parent's held set and can re-enter without deadlocking.
_held_sessions: contextvars.ContextVar[frozenset[str]] = contextvars.ContextVar(
    "_session_locks_held", default=frozenset()
)


class SessionLockManager(ABC):
    """Abstract base for per-session locking.

    Implementations must be reentrant within one execution context:
    ``unregister`` leaves every room while a caller may already hold one of
    those session locks.
    """

    @abstractmethod
    @asynccontextmanager
    async def locked(self, session_id: str) -> AsyncIterator[None]:
        """Acquire an exclusive lock for *session_id*."""
        yield  # pragma: no cover


class InMemorySessionLocks(SessionLockManager):
    """In-process per-session asyncio locks.

    A lock lives only while some task holds or waits for it, mirroring the
    lifetime of the in-memory room it protects.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def _acquire_ref(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        return lock

    def _release_ref(self, session_id: str) -> None:
        remaining = self._waiters.get(session_id, 0) - 1
        if remaining > 0:
            self._waiters[session_id] = remaining
            return
        self._waiters.pop(session_id, None)
        self._locks.pop(session_id, None)

    @asynccontextmanager
    async def locked(self, session_id: str) -> AsyncIterator[None]:
        held = _held_sessions.get()
        if session_id in held:
            yield
            return

        lock = self._acquire_ref(session_id)
        try:
            async with lock:
                token = _held_sessions.set(held | frozenset({session_id}))
                try:
                    yield
                finally:
                    _held_sessions.reset(token)
        finally:
            self._release_ref(session_id)

    @property
    def size(self) -> int:
        """Number of sessions with a live lock."""
        return len(self._locks)
