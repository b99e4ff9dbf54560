"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Coroutine
from typing import Any

import pytest

from triprelay.auth.mock import MockAuthenticator
from triprelay.config import RelaySettings
from triprelay.core.hub import SessionHub
from triprelay.models.enums import UserRole
from triprelay.models.identity import UserIdentity
from triprelay.models.protocol import ServerEvent
from triprelay.store.memory import InMemoryMessageStore

ALICE = UserIdentity(
    user_id="u-alice",
    display_name="Alice Moreau",
    role=UserRole.HOSPITAL_DOCTOR,
    organization_id="org-1",
)
BOB = UserIdentity(
    user_id="u-bob",
    display_name="Bob Okafor",
    role=UserRole.FLEET_PARAMEDIC,
    organization_id="org-2",
)
CAROL = UserIdentity(
    user_id="u-carol",
    display_name="Carol Singh",
    role=UserRole.HOSPITAL_STAFF,
    organization_id="org-1",
)

IDENTITIES = {"alice": ALICE, "bob": BOB, "carol": CAROL}


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingClient:
    """Stands in for a transport: records every server event it is sent."""

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        self.events: list[ServerEvent] = []

    async def send(self, event: ServerEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[Any]:
        return [e for e in self.events if e.type == event_type]

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay."""

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def authenticator() -> MockAuthenticator:
    return MockAuthenticator({f"token-{name}": ident for name, ident in IDENTITIES.items()})


@pytest.fixture
async def hub(
    store: InMemoryMessageStore, authenticator: MockAuthenticator, clock: ManualClock
) -> AsyncIterator[SessionHub]:
    h = SessionHub(store, authenticator, settings=RelaySettings(), clock=clock)
    yield h
    await h.close()


async def connect(hub: SessionHub, name: str, connection_id: str | None = None) -> RecordingClient:
    client = RecordingClient(connection_id or f"{name}-1")
    await hub.connect(client.connection_id, f"token-{name}", client.send)
    return client


async def join(hub: SessionHub, session_id: str, *clients: RecordingClient) -> None:
    for client in clients:
        await hub.join_session(session_id, client.connection_id)
    await hub.bus.flush()


def user_ids(members: list[UserIdentity]) -> set[str]:
    return {m.user_id for m in members}
