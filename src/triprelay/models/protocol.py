"""Wire protocol: client and server events exchanged over one connection.

Every event is a JSON object with a ``type`` discriminator. Client events
are parsed through :data:`client_event_adapter`; server events are built as
models and serialized with :func:`encode`.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from triprelay.models.enums import MessageType
from triprelay.models.identity import UserIdentity
from triprelay.models.message import Message

# -- Client -> server ---------------------------------------------------------


class JoinSession(BaseModel):
    type: Literal["join_session"] = "join_session"
    session_id: str = Field(min_length=1)


class LeaveSession(BaseModel):
    type: Literal["leave_session"] = "leave_session"
    session_id: str = Field(min_length=1)


class SendMessage(BaseModel):
    type: Literal["send_message"] = "send_message"
    session_id: str = Field(min_length=1)
    body: str = ""
    message_type: MessageType = MessageType.TEXT
    metadata: dict[str, Any] | None = None


class TypingStart(BaseModel):
    type: Literal["typing_start"] = "typing_start"
    session_id: str = Field(min_length=1)


class TypingStop(BaseModel):
    type: Literal["typing_stop"] = "typing_stop"
    session_id: str = Field(min_length=1)


class MarkRead(BaseModel):
    type: Literal["mark_read"] = "mark_read"
    message_id: int = Field(ge=1)


class GetOnlineUsers(BaseModel):
    type: Literal["get_online_users"] = "get_online_users"
    session_id: str = Field(min_length=1)


class GetHistory(BaseModel):
    type: Literal["get_history"] = "get_history"
    session_id: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1)
    before_id: int | None = Field(default=None, ge=1)


class GetUnreadCount(BaseModel):
    type: Literal["get_unread_count"] = "get_unread_count"
    session_id: str = Field(min_length=1)


ClientEvent = Annotated[
    JoinSession
    | LeaveSession
    | SendMessage
    | TypingStart
    | TypingStop
    | MarkRead
    | GetOnlineUsers
    | GetHistory
    | GetUnreadCount,
    Field(discriminator="type"),
]

client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)


# -- Server -> client ---------------------------------------------------------


class JoinedSession(BaseModel):
    """Sent to the joining connection with the full member snapshot."""

    type: Literal["joined_session"] = "joined_session"
    session_id: str
    members: list[UserIdentity]
    history: list[Message] = Field(default_factory=list)


class MembersChanged(BaseModel):
    """Full member snapshot sent to every other connection in the room."""

    type: Literal["members_changed"] = "members_changed"
    session_id: str
    members: list[UserIdentity]


class NewMessage(BaseModel):
    type: Literal["new_message"] = "new_message"
    message: Message


class UserTyping(BaseModel):
    type: Literal["user_typing"] = "user_typing"
    session_id: str
    user_id: str
    display_name: str
    is_typing: bool


class MessageRead(BaseModel):
    type: Literal["message_read"] = "message_read"
    session_id: str
    message_id: int
    user_id: str


class OnlineUsers(BaseModel):
    type: Literal["online_users"] = "online_users"
    session_id: str
    members: list[UserIdentity]


class History(BaseModel):
    type: Literal["history"] = "history"
    session_id: str
    messages: list[Message]


class UnreadCount(BaseModel):
    type: Literal["unread_count"] = "unread_count"
    session_id: str
    count: int


class Notification(BaseModel):
    type: Literal["notification"] = "notification"
    payload: dict[str, Any]


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    kind: str
    detail: str


ServerEvent = (
    JoinedSession
    | MembersChanged
    | NewMessage
    | UserTyping
    | MessageRead
    | OnlineUsers
    | History
    | UnreadCount
    | Notification
    | ErrorEvent
)


def encode(event: ServerEvent) -> str:
    """Serialize a server event to JSON text."""
    return str(event.model_dump_json())
