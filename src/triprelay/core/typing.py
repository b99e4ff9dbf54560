"""Per-session typing indicators with server-side expiry."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from triprelay.core.locks import SessionLockManager
from triprelay.core.registry import ConnectionRegistry
from triprelay.core.rooms import SessionRoomManager
from triprelay.models.identity import UserIdentity
from triprelay.models.protocol import UserTyping

logger = logging.getLogger("triprelay.core.typing")

Clock = Callable[[], float]


@dataclass
class TypingState:
    session_id: str
    user_id: str
    display_name: str
    expires_at: float


class TypingTracker:
    """Tracks who is typing in each session, keyed by (session, user).

    A state expires ``idle_window`` seconds after its last refresh whether
    or not the client ever sends ``typing_stop``. Expired states are
    hidden from :meth:`typing_users_in` immediately and reported as
    stopped by :meth:`sweep`, which a background task runs every
    ``sweep_interval`` seconds once :meth:`start` is called.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        rooms: SessionRoomManager,
        locks: SessionLockManager,
        *,
        idle_window: float = 2.0,
        sweep_interval: float = 0.5,
        clock: Clock = time.monotonic,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._locks = locks
        self._idle_window = idle_window
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._states: dict[tuple[str, str], TypingState] = {}
        self._sweeper: asyncio.Task[None] | None = None
        rooms.on_user_left(self._on_user_left)

    @property
    def idle_window(self) -> float:
        return self._idle_window

    async def start_typing(self, session_id: str, connection_id: str) -> bool:
        """Create or refresh the typing state of the connection's user.

        Only a new state is broadcast; refreshes extend the expiry silently.

        Returns:
            True if a ``user_typing`` start event was broadcast.
        """
        identity = self._registry.lookup(connection_id)
        async with self._locks.locked(session_id):
            if not self._rooms.is_member(session_id, connection_id):
                logger.debug(
                    "Ignoring typing_start from %s outside session %s", connection_id, session_id
                )
                return False
            key = (session_id, identity.user_id)
            is_new = key not in self._states
            self._states[key] = TypingState(
                session_id=session_id,
                user_id=identity.user_id,
                display_name=identity.display_name,
                expires_at=self._clock() + self._idle_window,
            )
            if is_new:
                await self._announce(session_id, identity, is_typing=True)
            return is_new

    async def stop_typing(self, session_id: str, connection_id: str) -> bool:
        """Clear the typing state of the connection's user, if any.

        Returns:
            True if a state existed and a stop event was broadcast.
        """
        identity = self._registry.lookup(connection_id)
        async with self._locks.locked(session_id):
            state = self._states.pop((session_id, identity.user_id), None)
            if state is None:
                return False
            await self._announce(session_id, identity, is_typing=False)
            return True

    def typing_users_in(self, session_id: str) -> set[str]:
        """Display names of users currently typing, excluding expired states."""
        now = self._clock()
        return {
            state.display_name
            for (sid, _), state in self._states.items()
            if sid == session_id and state.expires_at > now
        }

    async def sweep(self) -> int:
        """Expire lapsed states and broadcast a stop event for each.

        Returns:
            Number of states expired.
        """
        now = self._clock()
        lapsed = [key for key, state in self._states.items() if state.expires_at <= now]
        expired = 0
        for session_id, user_id in lapsed:
            async with self._locks.locked(session_id):
                state = self._states.get((session_id, user_id))
                # Refreshed while we waited for the lock.
                if state is None or state.expires_at > self._clock():
                    continue
                del self._states[(session_id, user_id)]
                await self._rooms.broadcast(
                    session_id,
                    UserTyping(
                        session_id=session_id,
                        user_id=user_id,
                        display_name=state.display_name,
                        is_typing=False,
                    ),
                    exclude=self._registry.connections_of(user_id),
                )
                expired += 1
        if expired:
            logger.debug("Expired %d typing state(s)", expired)
        return expired

    def start(self) -> None:
        """Start the background expiry sweep."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="typing_sweep")

    async def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        self._states.clear()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Typing sweep failed")

    async def _on_user_left(self, session_id: str, identity: UserIdentity) -> None:
        if self._states.pop((session_id, identity.user_id), None) is not None:
            await self._announce(session_id, identity, is_typing=False)

    async def _announce(self, session_id: str, identity: UserIdentity, *, is_typing: bool) -> None:
        await self._rooms.broadcast(
            session_id,
            UserTyping(
                session_id=session_id,
                user_id=identity.user_id,
                display_name=identity.display_name,
                is_typing=is_typing,
            ),
            exclude=self._registry.connections_of(identity.user_id),
        )
