"""Abstract base class for the outbound event bus."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any

from triprelay.models.protocol import ServerEvent

EventCallback = Callable[[ServerEvent], Coroutine[Any, Any, None]]


def connection_channel(connection_id: str) -> str:
    return f"connection:{connection_id}"


class EventBus(ABC):
    """Pub/sub fan-out of server events.

    Every live connection subscribes to its own channel; room broadcasts
    are published once per member connection. Events published to one
    channel must reach its subscriber in publish order.

    The library ships with ``InMemoryEventBus`` for single-process
    deployments. Multi-process fan-out needs an implementation backed by
    a shared broker (Redis pub/sub, NATS, or similar).
    """

    @abstractmethod
    async def publish(self, channel: str, event: ServerEvent) -> None:
        """Publish an event to a channel."""
        ...

    @abstractmethod
    async def subscribe(self, channel: str, callback: EventCallback) -> str:
        """Subscribe to a channel.

        Returns:
            A subscription ID that can be used to unsubscribe.
        """
        ...

    @abstractmethod
    async def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe from a channel.

        Returns:
            True if the subscription existed and was removed.
        """
        ...

    async def publish_to_connection(self, connection_id: str, event: ServerEvent) -> None:
        await self.publish(connection_channel(connection_id), event)

    async def subscribe_connection(self, connection_id: str, callback: EventCallback) -> str:
        return await self.subscribe(connection_channel(connection_id), callback)

    async def flush(self) -> None:
        """Wait until queued events have been handed to their callbacks.

        The default implementation returns immediately.
        """
        return None

    async def close(self) -> None:
        """Clean up resources.

        Override this method in subclasses that need cleanup.
        The default implementation does nothing.
        """
        return None
