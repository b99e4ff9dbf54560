"""Abstract base class for durable message storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from triprelay.models.enums import MessageType
from triprelay.models.identity import UserIdentity
from triprelay.models.message import Message


class MessageStore(ABC):
    """Durable storage for session chat messages and their read-sets.

    This is the only durability point of the relay. Implement this ABC to
    plug in any backend; the library ships with ``InMemoryMessageStore``
    for development and testing and ``PostgresMessageStore`` for production.

    Implementations must assign message ids that increase monotonically in
    persistence order.
    """

    @abstractmethod
    async def persist(
        self,
        session_id: str,
        sender: UserIdentity,
        body: str,
        message_type: MessageType,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """Store a new message and return it with its id and timestamp."""
        ...

    @abstractmethod
    async def read_history(
        self, session_id: str, limit: int = 50, before_id: int | None = None
    ) -> list[Message]:
        """Return up to *limit* messages older than *before_id*, oldest first.

        Without *before_id* the most recent page is returned.
        """
        ...

    @abstractmethod
    async def get_message(self, message_id: int) -> Message | None:
        """Get a message by id, or ``None`` if it doesn't exist."""
        ...

    @abstractmethod
    async def add_reader(self, message_id: int, user_id: str) -> bool:
        """Add *user_id* to the message's read-set.

        Returns ``True`` if the user was newly added, ``False`` if already
        present or the message doesn't exist.
        """
        ...

    @abstractmethod
    async def unread_count(self, session_id: str, user_id: str) -> int:
        """Count messages in a session not sent by and not read by *user_id*."""
        ...

    async def close(self) -> None:
        """Release resources. The default implementation does nothing."""
        return None
