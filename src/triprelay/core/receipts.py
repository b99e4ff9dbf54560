"""Read receipts and unread counts."""

from __future__ import annotations

import logging

from triprelay.core._helpers import bounded_store_call
from triprelay.core.locks import SessionLockManager
from triprelay.core.registry import ConnectionRegistry
from triprelay.core.rooms import SessionRoomManager
from triprelay.models.protocol import MessageRead
from triprelay.store.base import MessageStore

logger = logging.getLogger("triprelay.core.receipts")


class ReadReceiptTracker:
    """Records who has read which message and tells the room.

    Receipts are incremental ``message_read`` events: the read-set only
    grows, so clients can merge them blindly.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        rooms: SessionRoomManager,
        store: MessageStore,
        locks: SessionLockManager,
        *,
        timeout: float | None = 10.0,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._store = store
        self._locks = locks
        self._timeout = timeout

    async def mark_read(self, message_id: int, connection_id: str) -> bool:
        """Mark a message read by the connection's user.

        Unknown messages and users who never took part in the message's
        session are logged and ignored. Repeated calls are no-ops.

        Returns:
            True if the user was newly added and the room was told.

        Raises:
            NotFoundError: If the connection is not registered.
            PersistenceError: If the store fails or times out.
        """
        reader = self._registry.lookup(connection_id)
        message = await bounded_store_call(
            self._store.get_message(message_id), self._timeout, "load message"
        )
        if message is None:
            logger.warning(
                "Ignoring read receipt from %s for unknown message %s", reader.user_id, message_id
            )
            return False
        session_id = message.session_id
        if message.sender_id != reader.user_id and not self._rooms.has_participated(
            session_id, reader.user_id
        ):
            logger.warning(
                "Ignoring read receipt from %s for message %s: not a participant of session %s",
                reader.user_id,
                message_id,
                session_id,
            )
            return False

        async with self._locks.locked(session_id):
            added = await bounded_store_call(
                self._store.add_reader(message_id, reader.user_id), self._timeout, "add reader"
            )
            if added:
                await self._rooms.broadcast(
                    session_id,
                    MessageRead(
                        session_id=session_id, message_id=message_id, user_id=reader.user_id
                    ),
                )
        return added

    async def unread_count(self, session_id: str, connection_id: str) -> int:
        """Messages in *session_id* the connection's user neither sent nor read."""
        reader = self._registry.lookup(connection_id)
        return await bounded_store_call(
            self._store.unread_count(session_id, reader.user_id), self._timeout, "unread count"
        )
