"""Connection registry: live connections and global user presence."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from triprelay.errors import AuthenticationError, NotFoundError, ValidationError
from triprelay.models.identity import UserIdentity
from triprelay.models.protocol import ServerEvent
from triprelay.realtime.base import EventBus, EventCallback

logger = logging.getLogger("triprelay.core.registry")

UnregisterCallback = Callable[["Connection"], Coroutine[Any, Any, None]]


@dataclass
class Connection:
    """One live transport-level link from an authenticated client."""

    connection_id: str
    identity: UserIdentity
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    subscription_id: str | None = None

    @property
    def user_id(self) -> str:
        return self.identity.user_id


class ConnectionRegistry:
    """Maps connection ids to identities and tracks who is online.

    A user is online while at least one of their connections is registered.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._connections: dict[str, Connection] = {}
        self._by_user: dict[str, set[str]] = {}
        self._unregister_callbacks: list[UnregisterCallback] = []

    def on_unregister(self, callback: UnregisterCallback) -> None:
        """Run *callback* for each removed connection.

        The connection is already gone from lookups when callbacks run, so
        a concurrent join can no longer resolve it.
        """
        self._unregister_callbacks.append(callback)

    async def register(
        self,
        connection_id: str,
        identity: UserIdentity | None,
        send: EventCallback | None = None,
    ) -> Connection:
        """Record a new live connection.

        Args:
            connection_id: Unique connection identifier.
            identity: Identity resolved by the authentication collaborator.
            send: Callback receiving every server event addressed to this
                connection, in order.

        Raises:
            AuthenticationError: If no identity was presented.
            ValidationError: If the connection id is already registered.
        """
        if identity is None:
            raise AuthenticationError("Connection presented no identity")
        if connection_id in self._connections:
            raise ValidationError(f"Connection {connection_id} is already registered")

        conn = Connection(connection_id=connection_id, identity=identity)
        if send is not None:
            conn.subscription_id = await self._bus.subscribe_connection(connection_id, send)
        self._connections[connection_id] = conn
        self._by_user.setdefault(identity.user_id, set()).add(connection_id)
        logger.info(
            "Connection %s registered for user %s (%s)",
            connection_id,
            identity.user_id,
            identity.role,
        )
        return conn

    async def unregister(self, connection_id: str) -> bool:
        """Remove a connection and clean up everything it held.

        Idempotent: unknown connections are ignored.

        Returns:
            True if the connection was registered.
        """
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return False

        user_conns = self._by_user.get(conn.user_id)
        if user_conns is not None:
            user_conns.discard(connection_id)
            if not user_conns:
                del self._by_user[conn.user_id]

        for callback in self._unregister_callbacks:
            try:
                await callback(conn)
            except Exception:
                logger.exception("Unregister cleanup failed for connection %s", connection_id)

        if conn.subscription_id is not None:
            await self._bus.unsubscribe(conn.subscription_id)
        logger.info("Connection %s unregistered (user %s)", connection_id, conn.user_id)
        return True

    def get(self, connection_id: str) -> Connection:
        conn = self._connections.get(connection_id)
        if conn is None:
            raise NotFoundError(f"Connection {connection_id} is not registered")
        return conn

    def lookup(self, connection_id: str) -> UserIdentity:
        """Resolve the identity behind a connection.

        Raises:
            NotFoundError: If the connection is not currently registered.
        """
        return self.get(connection_id).identity

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def is_online(self, user_id: str) -> bool:
        return bool(self._by_user.get(user_id))

    def connections_of(self, user_id: str) -> set[str]:
        return set(self._by_user.get(user_id, ()))

    def online_users(self) -> set[UserIdentity]:
        """One identity per online user."""
        users: dict[str, UserIdentity] = {}
        for connection_id in sorted(self._connections):
            identity = self._connections[connection_id].identity
            users.setdefault(identity.user_id, identity)
        return set(users.values())

    def connection_ids(self) -> list[str]:
        return list(self._connections)

    async def send(self, connection_id: str, event: ServerEvent) -> None:
        """Queue an event for one connection."""
        await self._bus.publish_to_connection(connection_id, event)

    def __len__(self) -> int:
        return len(self._connections)
