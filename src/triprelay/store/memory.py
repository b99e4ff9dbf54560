"""In-memory implementation of MessageStore."""

from __future__ import annotations

import itertools
from typing import Any

from triprelay.models.enums import MessageType
from triprelay.models.identity import UserIdentity
from triprelay.models.message import Message
from triprelay.store.base import MessageStore


class InMemoryMessageStore(MessageStore):
    """Dict-based in-memory store for development and testing."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._messages: dict[int, Message] = {}
        self._session_messages: dict[str, list[int]] = {}

    async def persist(
        self,
        session_id: str,
        sender: UserIdentity,
        body: str,
        message_type: MessageType,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        message = Message(
            id=next(self._ids),
            session_id=session_id,
            sender_id=sender.user_id,
            sender_name=sender.display_name,
            sender_role=sender.role,
            body=body,
            message_type=message_type,
            metadata=metadata,
        )
        self._messages[message.id] = message
        self._session_messages.setdefault(session_id, []).append(message.id)
        return message.model_copy(deep=True)

    async def read_history(
        self, session_id: str, limit: int = 50, before_id: int | None = None
    ) -> list[Message]:
        ids = self._session_messages.get(session_id, [])
        if before_id is not None:
            ids = [mid for mid in ids if mid < before_id]
        page = ids[-limit:] if limit > 0 else []
        return [self._messages[mid].model_copy(deep=True) for mid in page]

    async def get_message(self, message_id: int) -> Message | None:
        message = self._messages.get(message_id)
        return message.model_copy(deep=True) if message is not None else None

    async def add_reader(self, message_id: int, user_id: str) -> bool:
        message = self._messages.get(message_id)
        if message is None or message.is_read_by(user_id):
            return False
        self._messages[message_id] = message.with_reader(user_id)
        return True

    async def unread_count(self, session_id: str, user_id: str) -> int:
        count = 0
        for mid in self._session_messages.get(session_id, []):
            message = self._messages[mid]
            if message.sender_id != user_id and not message.is_read_by(user_id):
                count += 1
        return count
