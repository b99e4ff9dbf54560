"""Outbound event bus delivering server events to connections."""

from triprelay.realtime.base import EventBus, EventCallback, connection_channel
from triprelay.realtime.memory import InMemoryEventBus

__all__ = [
    "EventBus",
    "EventCallback",
    "InMemoryEventBus",
    "connection_channel",
]
