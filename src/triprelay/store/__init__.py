"""Message storage backends."""

from triprelay.store.base import MessageStore
from triprelay.store.memory import InMemoryMessageStore

__all__ = ["InMemoryMessageStore", "MessageStore"]
