"""Tests for ConnectionRegistry."""

from __future__ import annotations

import pytest

from tests.conftest import ALICE, BOB, RecordingClient
from triprelay.core.registry import Connection, ConnectionRegistry
from triprelay.errors import AuthenticationError, NotFoundError, ValidationError
from triprelay.models.protocol import Notification
from triprelay.realtime.memory import InMemoryEventBus


@pytest.fixture
async def registry():
    bus = InMemoryEventBus()
    yield ConnectionRegistry(bus)
    await bus.close()


class TestConnectionRegistry:
    async def test_register_and_lookup(self, registry: ConnectionRegistry) -> None:
        conn = await registry.register("c1", ALICE)
        assert conn.user_id == "u-alice"
        assert registry.lookup("c1") == ALICE
        assert registry.is_registered("c1")
        assert len(registry) == 1

    async def test_missing_identity(self, registry: ConnectionRegistry) -> None:
        with pytest.raises(AuthenticationError):
            await registry.register("c1", None)
        assert len(registry) == 0

    async def test_duplicate_connection_id(self, registry: ConnectionRegistry) -> None:
        await registry.register("c1", ALICE)
        with pytest.raises(ValidationError):
            await registry.register("c1", BOB)
        assert registry.lookup("c1") == ALICE

    async def test_lookup_unknown(self, registry: ConnectionRegistry) -> None:
        with pytest.raises(NotFoundError):
            registry.lookup("nope")

    async def test_presence_spans_connections(self, registry: ConnectionRegistry) -> None:
        await registry.register("phone", ALICE)
        await registry.register("laptop", ALICE)
        assert registry.connections_of("u-alice") == {"phone", "laptop"}
        assert registry.online_users() == {ALICE}

        await registry.unregister("phone")
        assert registry.is_online("u-alice")
        await registry.unregister("laptop")
        assert not registry.is_online("u-alice")
        assert registry.connections_of("u-alice") == set()

    async def test_unregister_unknown(self, registry: ConnectionRegistry) -> None:
        assert await registry.unregister("nope") is False

    async def test_unregister_removes_before_callbacks(
        self, registry: ConnectionRegistry
    ) -> None:
        seen: list[tuple[str, bool]] = []

        async def on_unregister(conn: Connection) -> None:
            seen.append((conn.connection_id, registry.is_registered(conn.connection_id)))

        registry.on_unregister(on_unregister)
        await registry.register("c1", ALICE)
        assert await registry.unregister("c1") is True
        assert seen == [("c1", False)]

    async def test_failing_callback_does_not_block_cleanup(
        self, registry: ConnectionRegistry
    ) -> None:
        async def broken(conn: Connection) -> None:
            raise RuntimeError("cleanup failed")

        registry.on_unregister(broken)
        await registry.register("c1", ALICE)
        assert await registry.unregister("c1") is True
        assert not registry.is_registered("c1")

    async def test_send_delivers_in_order(self) -> None:
        bus = InMemoryEventBus()
        registry = ConnectionRegistry(bus)
        client = RecordingClient("c1")
        await registry.register("c1", ALICE, client.send)

        for n in range(5):
            await registry.send("c1", Notification(payload={"n": n}))
        await bus.flush()

        assert [e.payload["n"] for e in client.events] == [0, 1, 2, 3, 4]
        await registry.unregister("c1")
        assert bus.subscription_count == 0
        await bus.close()
