"""Session room membership with full-snapshot broadcasts."""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Callable, Coroutine, Iterable
from typing import Any

from triprelay.core.locks import SessionLockManager
from triprelay.core.registry import Connection, ConnectionRegistry
from triprelay.models.identity import UserIdentity, sorted_members
from triprelay.models.message import Message
from triprelay.models.protocol import JoinedSession, MembersChanged, ServerEvent

logger = logging.getLogger("triprelay.core.rooms")

UserLeftCallback = Callable[[str, UserIdentity], Coroutine[Any, Any, None]]


class SessionRoomManager:
    """Tracks which connections are in each session room.

    A room exists only while it has members; it is created by the first
    join and dropped when the last member leaves. Every membership change
    broadcasts the complete member list, never a diff.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        locks: SessionLockManager,
        *,
        max_tracked_sessions: int = 10_000,
    ) -> None:
        self._registry = registry
        self._locks = locks
        self._max_tracked_sessions = max_tracked_sessions
        self._rooms: dict[str, set[str]] = {}
        self._memberships: dict[str, set[str]] = {}  # connection -> session ids
        # session -> user ids ever present, least recently touched first
        self._participants: OrderedDict[str, set[str]] = OrderedDict()
        self._user_left_callbacks: list[UserLeftCallback] = []
        registry.on_unregister(self._on_unregister)

    def on_user_left(self, callback: UserLeftCallback) -> None:
        """Run *callback* when a user's last connection leaves a room."""
        self._user_left_callbacks.append(callback)

    # -- Membership -----------------------------------------------------------

    async def join(
        self,
        session_id: str,
        connection_id: str,
        *,
        history: list[Message] | None = None,
    ) -> list[UserIdentity]:
        """Add a connection to a session room.

        The joiner receives ``joined_session`` and every other member
        receives ``members_changed``, both carrying the full snapshot.

        Raises:
            NotFoundError: If the connection is not registered.
        """
        async with self._locks.locked(session_id):
            identity = self._registry.lookup(connection_id)
            members = self._rooms.get(session_id)
            if members is None:
                members = self._rooms[session_id] = set()
                logger.debug("Session room %s created", session_id)
            members.add(connection_id)
            self._memberships.setdefault(connection_id, set()).add(session_id)
            self.record_participant(session_id, identity.user_id)

            snapshot = sorted_members(self.members_of(session_id))
            await self._registry.send(
                connection_id,
                JoinedSession(session_id=session_id, members=snapshot, history=history or []),
            )
            await self.broadcast(
                session_id,
                MembersChanged(session_id=session_id, members=snapshot),
                exclude={connection_id},
            )
        logger.info(
            "User %s joined session %s via %s", identity.user_id, session_id, connection_id
        )
        return snapshot

    async def leave(self, session_id: str, connection_id: str) -> bool:
        """Remove a connection from a session room.

        Returns:
            True if the connection was a member.

        Raises:
            NotFoundError: If the connection is not registered.
        """
        identity = self._registry.lookup(connection_id)
        async with self._locks.locked(session_id):
            return await self._remove(session_id, connection_id, identity)

    async def leave_all(self, connection_id: str, identity: UserIdentity) -> list[str]:
        """Remove a connection from every room it is in."""
        left: list[str] = []
        for session_id in sorted(self._memberships.get(connection_id, ())):
            async with self._locks.locked(session_id):
                if await self._remove(session_id, connection_id, identity):
                    left.append(session_id)
        return left

    async def _remove(self, session_id: str, connection_id: str, identity: UserIdentity) -> bool:
        members = self._rooms.get(session_id)
        if not members or connection_id not in members:
            return False

        members.discard(connection_id)
        sessions = self._memberships.get(connection_id)
        if sessions is not None:
            sessions.discard(session_id)
            if not sessions:
                del self._memberships[connection_id]
        if not members:
            del self._rooms[session_id]
            logger.debug("Session room %s emptied", session_id)

        if not self.user_in_room(session_id, identity.user_id):
            for callback in self._user_left_callbacks:
                await callback(session_id, identity)

        if members:
            await self.broadcast(
                session_id,
                MembersChanged(
                    session_id=session_id, members=sorted_members(self.members_of(session_id))
                ),
            )
        logger.info(
            "User %s left session %s via %s", identity.user_id, session_id, connection_id
        )
        return True

    async def _on_unregister(self, conn: Connection) -> None:
        await self.leave_all(conn.connection_id, conn.identity)

    # -- Queries --------------------------------------------------------------

    def members_of(self, session_id: str) -> set[UserIdentity]:
        """Identities present in a room, one entry per user."""
        members: dict[str, UserIdentity] = {}
        for connection_id in sorted(self._rooms.get(session_id, ())):
            if self._registry.is_registered(connection_id):
                identity = self._registry.lookup(connection_id)
                members.setdefault(identity.user_id, identity)
        return set(members.values())

    def connections_in(self, session_id: str) -> set[str]:
        return set(self._rooms.get(session_id, ()))

    def rooms_of(self, connection_id: str) -> set[str]:
        return set(self._memberships.get(connection_id, ()))

    def is_member(self, session_id: str, connection_id: str) -> bool:
        return connection_id in self._rooms.get(session_id, ())

    def user_in_room(self, session_id: str, user_id: str) -> bool:
        return any(
            conn_id in self._rooms.get(session_id, ())
            for conn_id in self._registry.connections_of(user_id)
        )

    def has_participated(self, session_id: str, user_id: str) -> bool:
        """Whether *user_id* has ever been present in or posted to the session."""
        return user_id in self._participants.get(session_id, ())

    def record_participant(self, session_id: str, user_id: str) -> None:
        self._participants.setdefault(session_id, set()).add(user_id)
        self._participants.move_to_end(session_id)
        self._evict_participants(keep=session_id)

    def _evict_participants(self, keep: str) -> None:
        """Forget the least recently touched sessions that have no open room."""
        excess = len(self._participants) - self._max_tracked_sessions
        if excess <= 0:
            return
        stale = [
            session_id
            for session_id in self._participants
            if session_id != keep and session_id not in self._rooms
        ][:excess]
        for session_id in stale:
            del self._participants[session_id]
        if stale:
            logger.debug("Forgot participants of %d ended sessions", len(stale))

    def active_sessions(self) -> list[str]:
        return list(self._rooms)

    # -- Fan-out --------------------------------------------------------------

    async def broadcast(
        self,
        session_id: str,
        event: ServerEvent,
        *,
        exclude: Iterable[str] = (),
    ) -> int:
        """Queue *event* for every connection in the room.

        Returns:
            Number of connections the event was queued for.
        """
        skip = set(exclude)
        targets = sorted(self._rooms.get(session_id, set()) - skip)
        for connection_id in targets:
            await self._registry.send(connection_id, event)
        return len(targets)

    async def shutdown(self) -> None:
        """Tell every member its room is closing, then forget all rooms."""
        for session_id in list(self._rooms):
            async with self._locks.locked(session_id):
                await self.broadcast(session_id, MembersChanged(session_id=session_id, members=[]))
                for connection_id in self._rooms.pop(session_id, set()):
                    sessions = self._memberships.get(connection_id)
                    if sessions is not None:
                        sessions.discard(session_id)
                        if not sessions:
                            del self._memberships[connection_id]
        logger.info("Session rooms shut down")
