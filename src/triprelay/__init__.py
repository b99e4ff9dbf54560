"""triprelay - realtime chat, presence and read receipts for trip sessions."""

from triprelay._version import __version__
from triprelay.auth.base import Authenticator
from triprelay.auth.jwt_token import JWTAuthenticator, identity_from_claims
from triprelay.auth.mock import MockAuthenticator
from triprelay.config import RelaySettings
from triprelay.core.hub import SessionHub, parse_client_event
from triprelay.core.locks import InMemorySessionLocks, SessionLockManager
from triprelay.core.receipts import ReadReceiptTracker
from triprelay.core.registry import Connection, ConnectionRegistry
from triprelay.core.relay import MessageRelay
from triprelay.core.rooms import SessionRoomManager
from triprelay.core.typing import TypingState, TypingTracker
from triprelay.errors import (
    AuthenticationError,
    NotFoundError,
    OperationTimeoutError,
    PersistenceError,
    RelayError,
    ValidationError,
)
from triprelay.models.enums import MessageType, UserRole
from triprelay.models.identity import UserIdentity
from triprelay.models.message import Message
from triprelay.models.protocol import (
    ClientEvent,
    ErrorEvent,
    History,
    JoinedSession,
    MembersChanged,
    MessageRead,
    NewMessage,
    Notification,
    OnlineUsers,
    ServerEvent,
    UnreadCount,
    UserTyping,
    encode,
)
from triprelay.realtime.base import EventBus, EventCallback
from triprelay.realtime.memory import InMemoryEventBus
from triprelay.store.base import MessageStore
from triprelay.store.memory import InMemoryMessageStore

__all__ = [
    "AuthenticationError",
    "Authenticator",
    "ClientEvent",
    "Connection",
    "ConnectionRegistry",
    "ErrorEvent",
    "EventBus",
    "EventCallback",
    "History",
    "InMemoryEventBus",
    "InMemoryMessageStore",
    "InMemorySessionLocks",
    "JWTAuthenticator",
    "JoinedSession",
    "MembersChanged",
    "Message",
    "MessageRead",
    "MessageRelay",
    "MessageStore",
    "MessageType",
    "MockAuthenticator",
    "NewMessage",
    "NotFoundError",
    "Notification",
    "OnlineUsers",
    "OperationTimeoutError",
    "PersistenceError",
    "ReadReceiptTracker",
    "RelayError",
    "RelaySettings",
    "ServerEvent",
    "SessionHub",
    "SessionLockManager",
    "SessionRoomManager",
    "TypingState",
    "TypingTracker",
    "UnreadCount",
    "UserIdentity",
    "UserRole",
    "UserTyping",
    "ValidationError",
    "__version__",
    "encode",
    "identity_from_claims",
    "parse_client_event",
]
