"""Tests for the WebSocket gateway."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from websockets.datastructures import Headers
from websockets.exceptions import ConnectionClosedError

from tests.conftest import connect, join
from triprelay.core.hub import SessionHub
from triprelay.server.websocket import CLOSE_UNAUTHORIZED, WebSocketGateway, extract_token


class FakeRequest:
    def __init__(self, path: str, headers: dict[str, str]) -> None:
        self.path = path
        self.headers = Headers(headers)


class FakeConnection:
    """Minimal stand-in for ``websockets`` ServerConnection."""

    def __init__(
        self,
        incoming: list[str],
        *,
        path: str = "/",
        headers: dict[str, str] | None = None,
        drop: bool = False,
    ) -> None:
        self.request = FakeRequest(path, headers or {})
        self.sent: list[dict[str, Any]] = []
        self.closed_with: tuple[int, str] | None = None
        self._incoming = incoming
        self._drop = drop

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._frames()

    async def _frames(self) -> AsyncIterator[str]:
        for frame in self._incoming:
            yield frame
            await asyncio.sleep(0)
        if self._drop:
            raise ConnectionClosedError(None, None)

    def types(self) -> list[str]:
        return [event["type"] for event in self.sent]


def frame(**event: Any) -> str:
    return json.dumps(event)


class TestExtractToken:
    def test_bearer_header(self) -> None:
        headers = Headers({"Authorization": "Bearer abc.def"})
        assert extract_token(headers, "/?token=other") == "abc.def"

    def test_query_parameter(self) -> None:
        assert extract_token(Headers(), "/ws?token=xyz") == "xyz"

    def test_non_bearer_scheme_ignored(self) -> None:
        headers = Headers({"Authorization": "Basic dXNlcjpwdw=="})
        assert extract_token(headers, "/") is None

    def test_missing(self) -> None:
        assert extract_token(None, "/") is None


class TestWebSocketGateway:
    async def test_session_over_socket(self, hub: SessionHub) -> None:
        gateway = WebSocketGateway(hub)
        conn = FakeConnection(
            [
                frame(type="join_session", session_id="S1"),
                frame(type="send_message", session_id="S1", body="on our way"),
            ],
            headers={"Authorization": "Bearer token-bob"},
        )

        await gateway.handler(conn)  # type: ignore[arg-type]

        assert conn.types() == ["joined_session", "new_message"]
        assert conn.sent[0]["members"][0]["user_id"] == "u-bob"
        assert conn.sent[1]["message"]["body"] == "on our way"
        assert conn.closed_with is None
        assert len(hub.registry) == 0
        assert hub.rooms.active_sessions() == []

    async def test_token_in_query(self, hub: SessionHub) -> None:
        gateway = WebSocketGateway(hub)
        conn = FakeConnection(
            [frame(type="get_online_users", session_id="S1")], path="/?token=token-alice"
        )
        await gateway.handler(conn)  # type: ignore[arg-type]
        assert conn.types() == ["online_users"]

    async def test_bad_token_closes_with_4401(self, hub: SessionHub) -> None:
        gateway = WebSocketGateway(hub)
        conn = FakeConnection(
            [frame(type="join_session", session_id="S1")],
            headers={"Authorization": "Bearer forged"},
        )
        await gateway.handler(conn)  # type: ignore[arg-type]

        assert conn.closed_with == (CLOSE_UNAUTHORIZED, "Invalid token")
        assert conn.sent == []
        assert len(hub.registry) == 0

    async def test_invalid_frame_reports_error(self, hub: SessionHub) -> None:
        gateway = WebSocketGateway(hub)
        conn = FakeConnection(["{oops"], headers={"Authorization": "Bearer token-alice"})
        await gateway.handler(conn)  # type: ignore[arg-type]

        assert conn.types() == ["error"]
        assert conn.sent[0]["kind"] == "ValidationError"

    async def test_abrupt_drop_cleans_up(self, hub: SessionHub) -> None:
        watcher = await connect(hub, "alice")
        await join(hub, "S1", watcher)

        gateway = WebSocketGateway(hub)
        conn = FakeConnection(
            [frame(type="join_session", session_id="S1")],
            headers={"Authorization": "Bearer token-bob"},
            drop=True,
        )
        await gateway.handler(conn)  # type: ignore[arg-type]
        await hub.bus.flush()

        snapshots = watcher.of_type("members_changed")
        assert [m.user_id for m in snapshots[-1].members] == ["u-alice"]
        assert not hub.registry.is_online("u-bob")

    async def test_hub_property(self, hub: SessionHub) -> None:
        assert WebSocketGateway(hub, port=0).hub is hub
