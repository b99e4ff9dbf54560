"""WebSocket gateway exposing a SessionHub over the ``websockets`` server."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import parse_qs, urlsplit
from uuid import uuid4

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from triprelay.core.hub import SessionHub
from triprelay.errors import AuthenticationError
from triprelay.models.protocol import ServerEvent, encode

logger = logging.getLogger("triprelay.server.websocket")

# Application close code for a rejected handshake credential.
CLOSE_UNAUTHORIZED = 4401


def extract_token(headers: Any, path: str) -> str | None:
    """Pull the bearer credential from the handshake.

    The ``Authorization: Bearer <token>`` header wins over a ``token``
    query parameter.
    """
    authorization = headers.get("Authorization") if headers is not None else None
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    query = parse_qs(urlsplit(path).query)
    tokens = query.get("token")
    return tokens[0] if tokens else None


class WebSocketGateway:
    """Accepts WebSocket clients and relays their JSON events to a hub.

    Protocol:
    - Client connects with ``Authorization: Bearer <jwt>`` or ``?token=<jwt>``.
    - Client sends: one JSON client event per text frame
      (``{"type": "join_session", "session_id": "S1"}``).
    - Server sends: one JSON server event per text frame, in order.

    A rejected credential closes the socket with code 4401.
    """

    def __init__(self, hub: SessionHub, *, host: str = "0.0.0.0", port: int = 8765) -> None:
        self._hub = hub
        self._host = host
        self._port = port

    @property
    def hub(self) -> SessionHub:
        return self._hub

    async def handler(self, connection: ServerConnection) -> None:
        """Serve one client connection until it closes."""
        connection_id = uuid4().hex
        request = connection.request
        credential = extract_token(
            request.headers if request is not None else None,
            request.path if request is not None else "/",
        )

        async def send(event: ServerEvent) -> None:
            try:
                await connection.send(encode(event))
            except ConnectionClosed:
                logger.debug("Dropped %s for closed connection %s", event.type, connection_id)

        try:
            await self._hub.connect(connection_id, credential, send)
        except AuthenticationError as exc:
            logger.info("Rejected connection %s: %s", connection_id, exc.detail)
            await connection.close(code=CLOSE_UNAUTHORIZED, reason=exc.detail)
            return

        try:
            async for raw in connection:
                await self._hub.dispatch(connection_id, raw)
        except ConnectionClosed as exc:
            logger.info("Connection %s dropped: %s", connection_id, exc)
        finally:
            await self._hub.disconnect(connection_id)

    async def serve(self) -> None:
        """Run the gateway until cancelled.

        The hub shuts down before the server so members still receive the
        closing ``members_changed`` events.
        """
        async with serve(self.handler, self._host, self._port), self._hub:
            logger.info("Listening on ws://%s:%d", self._host, self._port)
            await asyncio.Future()
