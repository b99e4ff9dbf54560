"""Message relay: persist first, then fan out to the session room."""

from __future__ import annotations

import logging
from typing import Any

from triprelay.core._helpers import bounded_store_call
from triprelay.core.locks import SessionLockManager
from triprelay.core.registry import ConnectionRegistry
from triprelay.core.rooms import SessionRoomManager
from triprelay.errors import ValidationError
from triprelay.models.enums import MessageType
from triprelay.models.message import Message
from triprelay.models.protocol import NewMessage
from triprelay.store.base import MessageStore

logger = logging.getLogger("triprelay.core.relay")


class MessageRelay:
    """Accepts chat messages and delivers them to every room member.

    A message is broadcast only after the store has accepted it, and the
    persist-then-broadcast step runs under the session lock, so every
    connection observes a session's messages in persistence order. Sends
    are never retried here: an ambiguous store failure could otherwise
    duplicate the message.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        rooms: SessionRoomManager,
        store: MessageStore,
        locks: SessionLockManager,
        *,
        timeout: float | None = 10.0,
        max_body_length: int = 4000,
        max_history_limit: int = 200,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._store = store
        self._locks = locks
        self._timeout = timeout
        self._max_body_length = max_body_length
        self._max_history_limit = max_history_limit

    async def send(
        self,
        session_id: str,
        connection_id: str,
        body: str,
        message_type: MessageType = MessageType.TEXT,
        metadata: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Message:
        """Persist a message and broadcast it to the session room.

        The broadcast includes the sender's own connections.

        Raises:
            NotFoundError: If the connection is not registered.
            ValidationError: If a text message has an empty body or the body
                is too long.
            PersistenceError: If the store fails or times out; nothing is
                broadcast in that case.
        """
        sender = self._registry.lookup(connection_id)
        if message_type == MessageType.TEXT and not body.strip():
            raise ValidationError("Text messages must have a non-empty body")
        if len(body) > self._max_body_length:
            raise ValidationError(
                f"Message body exceeds {self._max_body_length} characters"
            )

        async with self._locks.locked(session_id):
            message = await bounded_store_call(
                self._store.persist(session_id, sender, body, message_type, metadata),
                self._timeout if timeout is None else timeout,
                "persist message",
            )
            self._rooms.record_participant(session_id, sender.user_id)
            delivered = await self._rooms.broadcast(session_id, NewMessage(message=message))
        logger.debug(
            "Message %d in session %s from %s fanned out to %d connection(s)",
            message.id,
            session_id,
            sender.user_id,
            delivered,
        )
        return message

    async def history(
        self,
        session_id: str,
        limit: int = 50,
        before_id: int | None = None,
        *,
        timeout: float | None = None,
    ) -> list[Message]:
        """Read a page of history, oldest first.

        *limit* is capped at the configured maximum. Each call re-reads the
        store.
        """
        limit = max(0, min(limit, self._max_history_limit))
        if limit == 0:
            return []
        return await bounded_store_call(
            self._store.read_history(session_id, limit=limit, before_id=before_id),
            self._timeout if timeout is None else timeout,
            "read history",
        )
