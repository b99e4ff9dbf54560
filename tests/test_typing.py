"""Tests for typing indicators and their expiry."""

from __future__ import annotations

import asyncio

from tests.conftest import ManualClock, RecordingClient, connect, join
from triprelay.config import RelaySettings
from triprelay.core.hub import SessionHub


def typing_events(client: RecordingClient) -> list[tuple[str, bool]]:
    return [(e.user_id, e.is_typing) for e in client.of_type("user_typing")]


class TestTypingTracker:
    async def test_start_reaches_others_not_typist(self, hub: SessionHub) -> None:
        a = await connect(hub, "alice")
        b = await connect(hub, "bob")
        await join(hub, "S1", a, b)

        assert await hub.typing.start_typing("S1", a.connection_id) is True
        await hub.bus.flush()

        assert typing_events(b) == [("u-alice", True)]
        assert b.of_type("user_typing")[0].display_name == "Alice Moreau"
        assert typing_events(a) == []

    async def test_refresh_is_not_rebroadcast(self, hub: SessionHub, clock: ManualClock) -> None:
        a = await connect(hub, "alice")
        b = await connect(hub, "bob")
        await join(hub, "S1", a, b)

        await hub.typing.start_typing("S1", a.connection_id)
        clock.advance(1.5)
        assert await hub.typing.start_typing("S1", a.connection_id) is False
        clock.advance(1.5)
        # Refreshed 1.5s ago, still inside the idle window
        assert await hub.typing.sweep() == 0
        await hub.bus.flush()

        assert typing_events(b) == [("u-alice", True)]
        assert hub.typing.typing_users_in("S1") == {"Alice Moreau"}

    async def test_expires_without_stop(self, hub: SessionHub, clock: ManualClock) -> None:
        a = await connect(hub, "alice")
        b = await connect(hub, "bob")
        await join(hub, "S1", a, b)

        await hub.typing.start_typing("S1", a.connection_id)
        clock.advance(2.1)

        # Hidden immediately, even before the sweep reports it
        assert hub.typing.typing_users_in("S1") == set()
        assert await hub.typing.sweep() == 1
        await hub.bus.flush()

        assert typing_events(b) == [("u-alice", True), ("u-alice", False)]
        assert typing_events(a) == []
        assert await hub.typing.sweep() == 0

    async def test_explicit_stop(self, hub: SessionHub) -> None:
        a = await connect(hub, "alice")
        b = await connect(hub, "bob")
        await join(hub, "S1", a, b)

        await hub.typing.start_typing("S1", a.connection_id)
        assert await hub.typing.stop_typing("S1", a.connection_id) is True
        assert await hub.typing.stop_typing("S1", a.connection_id) is False
        await hub.bus.flush()

        assert typing_events(b) == [("u-alice", True), ("u-alice", False)]
        assert hub.typing.typing_users_in("S1") == set()

    async def test_state_is_per_user_not_per_connection(self, hub: SessionHub) -> None:
        phone = await connect(hub, "alice", "alice-phone")
        laptop = await connect(hub, "alice", "alice-laptop")
        b = await connect(hub, "bob")
        await join(hub, "S1", phone, laptop, b)

        await hub.typing.start_typing("S1", "alice-phone")
        await hub.typing.start_typing("S1", "alice-laptop")
        await hub.typing.stop_typing("S1", "alice-laptop")
        await hub.bus.flush()

        assert typing_events(b) == [("u-alice", True), ("u-alice", False)]
        assert phone.of_type("user_typing") == []
        assert laptop.of_type("user_typing") == []

    async def test_ignored_outside_session(self, hub: SessionHub) -> None:
        a = await connect(hub, "alice")
        b = await connect(hub, "bob")
        await join(hub, "S1", b)

        assert await hub.typing.start_typing("S1", a.connection_id) is False
        await hub.bus.flush()
        assert b.of_type("user_typing") == []
        assert hub.typing.typing_users_in("S1") == set()

    async def test_leaving_clears_typing(self, hub: SessionHub) -> None:
        a = await connect(hub, "alice")
        b = await connect(hub, "bob")
        await join(hub, "S1", a, b)

        await hub.typing.start_typing("S1", a.connection_id)
        await hub.disconnect(a.connection_id)
        await hub.bus.flush()

        assert typing_events(b) == [("u-alice", True), ("u-alice", False)]
        assert hub.typing.typing_users_in("S1") == set()

    async def test_sessions_are_independent(self, hub: SessionHub) -> None:
        a = await connect(hub, "alice")
        await join(hub, "S1", a)
        await join(hub, "S2", a)

        await hub.typing.start_typing("S1", a.connection_id)
        assert hub.typing.typing_users_in("S1") == {"Alice Moreau"}
        assert hub.typing.typing_users_in("S2") == set()


class TestBackgroundSweep:
    async def test_sweep_task_expires_states(self, store, authenticator) -> None:
        settings = RelaySettings(typing_idle_window=0.05, typing_sweep_interval=0.01)
        async with SessionHub(store, authenticator, settings=settings) as hub:
            a = await connect(hub, "alice")
            b = await connect(hub, "bob")
            await join(hub, "S1", a, b)

            await hub.typing.start_typing("S1", a.connection_id)
            await asyncio.sleep(0.2)
            await hub.bus.flush()

            assert typing_events(b) == [("u-alice", True), ("u-alice", False)]

    async def test_close_stops_sweep(self, store, authenticator) -> None:
        hub = SessionHub(store, authenticator)
        await hub.start()
        assert hub.typing._sweeper is not None
        await hub.close()
        assert hub.typing._sweeper is None
