"""SessionHub - central orchestrator for session chat and presence."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from triprelay.auth.base import Authenticator
from triprelay.config import RelaySettings
from triprelay.core.locks import InMemorySessionLocks, SessionLockManager
from triprelay.core.receipts import ReadReceiptTracker
from triprelay.core.registry import Connection, ConnectionRegistry
from triprelay.core.relay import MessageRelay
from triprelay.core.rooms import SessionRoomManager
from triprelay.core.typing import Clock, TypingTracker
from triprelay.errors import AuthenticationError, RelayError, ValidationError
from triprelay.models.identity import UserIdentity, sorted_members
from triprelay.models.message import Message
from triprelay.models.protocol import (
    ClientEvent,
    ErrorEvent,
    GetHistory,
    GetOnlineUsers,
    GetUnreadCount,
    History,
    JoinSession,
    LeaveSession,
    MarkRead,
    Notification,
    OnlineUsers,
    SendMessage,
    TypingStart,
    TypingStop,
    UnreadCount,
    client_event_adapter,
)
from triprelay.realtime.base import EventBus, EventCallback
from triprelay.realtime.memory import InMemoryEventBus
from triprelay.store.base import MessageStore
from triprelay.store.memory import InMemoryMessageStore

logger = logging.getLogger("triprelay.core.hub")


class SessionHub:
    """Ties connections, session rooms, typing, messages and receipts together.

    One hub serves every connection of a process. Transports call
    :meth:`connect` on handshake, :meth:`dispatch` for each inbound event
    and :meth:`disconnect` when the link drops.
    """

    def __init__(
        self,
        store: MessageStore | None = None,
        authenticator: Authenticator | None = None,
        *,
        settings: RelaySettings | None = None,
        bus: EventBus | None = None,
        lock_manager: SessionLockManager | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialise the hub.

        Args:
            store: Durable message store. Defaults to ``InMemoryMessageStore``.
            authenticator: Resolves connection credentials. Required by
                :meth:`connect`; callers that register identities directly
                through :attr:`registry` can omit it.
            settings: Tunables. Defaults to ``RelaySettings()``.
            bus: Outbound event bus. Defaults to ``InMemoryEventBus``.
            lock_manager: Per-session locking backend. Defaults to
                ``InMemorySessionLocks``.
            clock: Monotonic clock for typing expiry, overridable in tests.
        """
        self._settings = settings or RelaySettings()
        self._store = store or InMemoryMessageStore()
        self._authenticator = authenticator
        self._bus = bus or InMemoryEventBus(max_queue_size=self._settings.outbox_size)
        self._locks = lock_manager or InMemorySessionLocks()
        self._registry = ConnectionRegistry(self._bus)
        self._rooms = SessionRoomManager(
            self._registry,
            self._locks,
            max_tracked_sessions=self._settings.participant_cache_size,
        )
        typing_kwargs: dict[str, Any] = {
            "idle_window": self._settings.typing_idle_window,
            "sweep_interval": self._settings.typing_sweep_interval,
        }
        if clock is not None:
            typing_kwargs["clock"] = clock
        self._typing = TypingTracker(self._registry, self._rooms, self._locks, **typing_kwargs)
        self._relay = MessageRelay(
            self._registry,
            self._rooms,
            self._store,
            self._locks,
            timeout=self._settings.operation_timeout,
            max_body_length=self._settings.max_body_length,
            max_history_limit=self._settings.max_history_limit,
        )
        self._receipts = ReadReceiptTracker(
            self._registry,
            self._rooms,
            self._store,
            self._locks,
            timeout=self._settings.operation_timeout,
        )
        self._closed = False

    # -- Components -----------------------------------------------------------

    @property
    def settings(self) -> RelaySettings:
        return self._settings

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def rooms(self) -> SessionRoomManager:
        return self._rooms

    @property
    def typing(self) -> TypingTracker:
        return self._typing

    @property
    def relay(self) -> MessageRelay:
        return self._relay

    @property
    def receipts(self) -> ReadReceiptTracker:
        return self._receipts

    # -- Lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        """Start background work (the typing expiry sweep)."""
        self._typing.start()

    async def close(self) -> None:
        """Shut down: tell every room it is closing, then drop all connections.

        The store is owned by the caller and is left open.
        """
        if self._closed:
            return
        self._closed = True
        await self._typing.close()
        await self._rooms.shutdown()
        await self._bus.flush()
        for connection_id in self._registry.connection_ids():
            await self._registry.unregister(connection_id)
        await self._bus.close()
        logger.info("Session hub closed")

    async def __aenter__(self) -> SessionHub:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Connections ----------------------------------------------------------

    async def connect(
        self, connection_id: str, credential: str | None, send: EventCallback
    ) -> Connection:
        """Authenticate a credential and register the connection.

        Raises:
            AuthenticationError: If no authenticator is configured or the
                credential is rejected.
        """
        if self._authenticator is None:
            raise AuthenticationError("No authenticator configured")
        identity = await self._authenticator.authenticate(credential)
        return await self._registry.register(connection_id, identity, send)

    async def disconnect(self, connection_id: str) -> None:
        """Handle a transport drop or logout. Idempotent."""
        await self._registry.unregister(connection_id)

    async def notify_user(self, user_id: str, payload: dict[str, Any]) -> int:
        """Send a ``notification`` to every live connection of a user.

        Returns:
            Number of connections reached.
        """
        connections = sorted(self._registry.connections_of(user_id))
        for connection_id in connections:
            await self._registry.send(connection_id, Notification(payload=payload))
        return len(connections)

    # -- Session operations ---------------------------------------------------

    async def join_session(
        self, session_id: str, connection_id: str, *, timeout: float | None = None
    ) -> list[UserIdentity]:
        """Join a room, bundling recent history into ``joined_session``.

        History is loaded before membership changes, so a failed or timed
        out load leaves the room untouched.
        """
        self._registry.lookup(connection_id)
        async with self._locks.locked(session_id):
            history: list[Message] = []
            if self._settings.history_limit:
                history = await self._relay.history(
                    session_id, limit=self._settings.history_limit, timeout=timeout
                )
            return await self._rooms.join(session_id, connection_id, history=history)

    def online_users(self, session_id: str) -> list[UserIdentity]:
        return sorted_members(self._rooms.members_of(session_id))

    # -- Client event dispatch ------------------------------------------------

    async def dispatch(self, connection_id: str, raw: str | bytes | dict[str, Any]) -> None:
        """Parse and handle one client event.

        Failures are reported to the originating connection only, as an
        ``error`` event. Typing events never produce errors.
        """
        event: ClientEvent | None = None
        try:
            event = parse_client_event(raw)
            await self._handle(connection_id, event)
        except RelayError as exc:
            if isinstance(event, (TypingStart, TypingStop)):
                logger.debug("Dropped %s from %s: %s", event.type, connection_id, exc)
                return
            logger.info("Client event from %s failed: %s %s", connection_id, exc.kind, exc.detail)
            await self._report(connection_id, exc.kind, exc.detail)
        except Exception:
            logger.exception("Unexpected error handling event from %s", connection_id)
            await self._report(connection_id, "InternalError", "Internal server error")

    async def _handle(self, connection_id: str, event: ClientEvent) -> None:
        if isinstance(event, JoinSession):
            await self.join_session(event.session_id, connection_id)
        elif isinstance(event, LeaveSession):
            await self._rooms.leave(event.session_id, connection_id)
        elif isinstance(event, SendMessage):
            await self._relay.send(
                event.session_id,
                connection_id,
                event.body,
                event.message_type,
                event.metadata,
            )
        elif isinstance(event, TypingStart):
            await self._typing.start_typing(event.session_id, connection_id)
        elif isinstance(event, TypingStop):
            await self._typing.stop_typing(event.session_id, connection_id)
        elif isinstance(event, MarkRead):
            await self._receipts.mark_read(event.message_id, connection_id)
        elif isinstance(event, GetOnlineUsers):
            self._registry.lookup(connection_id)
            await self._registry.send(
                connection_id,
                OnlineUsers(
                    session_id=event.session_id, members=self.online_users(event.session_id)
                ),
            )
        elif isinstance(event, GetHistory):
            self._registry.lookup(connection_id)
            messages = await self._relay.history(
                event.session_id,
                limit=event.limit or self._settings.history_page_size,
                before_id=event.before_id,
            )
            await self._registry.send(
                connection_id, History(session_id=event.session_id, messages=messages)
            )
        elif isinstance(event, GetUnreadCount):
            count = await self._receipts.unread_count(event.session_id, connection_id)
            await self._registry.send(
                connection_id, UnreadCount(session_id=event.session_id, count=count)
            )

    async def _report(self, connection_id: str, kind: str, detail: str) -> None:
        if self._registry.is_registered(connection_id):
            await self._registry.send(connection_id, ErrorEvent(kind=kind, detail=detail))


def parse_client_event(raw: str | bytes | dict[str, Any]) -> ClientEvent:
    """Decode one client event.

    Raises:
        ValidationError: If the payload is not JSON, has an unknown ``type``
            or fails field validation.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValidationError(f"Malformed JSON: {exc}") from exc
    try:
        return client_event_adapter.validate_python(raw)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "event"
        raise ValidationError(f"{location}: {first['msg']}") from exc
