"""In-process trip chat between a hospital doctor and a paramedic crew.

Demonstrates the session hub without a network transport. Shows:
- MockAuthenticator for connection credentials
- join_session with full member snapshots (joined_session / members_changed)
- send_message fan-out after persistence
- typing indicators that expire on their own
- incremental read receipts and unread counts
- disconnect cleanup

Run with:
    uv run python examples/trip_chat.py
"""

from __future__ import annotations

import asyncio

from triprelay import (
    EventCallback,
    MockAuthenticator,
    RelaySettings,
    ServerEvent,
    SessionHub,
    UserIdentity,
    UserRole,
)

DOCTOR = UserIdentity(
    user_id="31", display_name="Dr. Amara Diallo", role=UserRole.HOSPITAL_DOCTOR
)
MEDIC = UserIdentity(
    user_id="77", display_name="Sam Okafor", role=UserRole.FLEET_PARAMEDIC
)


def printer(name: str) -> EventCallback:
    async def send(event: ServerEvent) -> None:
        print(f"  [{name}] {event.model_dump_json(exclude_none=True)[:110]}")

    return send


async def main() -> None:
    auth = MockAuthenticator({"doctor-token": DOCTOR, "medic-token": MEDIC})
    settings = RelaySettings(typing_idle_window=0.2, typing_sweep_interval=0.05)

    async with SessionHub(authenticator=auth, settings=settings) as hub:
        await hub.connect("doctor-ws", "doctor-token", printer("doctor"))
        await hub.connect("medic-ws", "medic-token", printer("medic"))

        print("Both join trip-1042:")
        await hub.dispatch("doctor-ws", {"type": "join_session", "session_id": "trip-1042"})
        await hub.dispatch("medic-ws", {"type": "join_session", "session_id": "trip-1042"})
        await hub.bus.flush()

        print("\nMedic types, goes quiet, the indicator expires:")
        await hub.dispatch("medic-ws", {"type": "typing_start", "session_id": "trip-1042"})
        await asyncio.sleep(0.4)

        print("\nMedic sends an update:")
        await hub.dispatch(
            "medic-ws",
            {
                "type": "send_message",
                "session_id": "trip-1042",
                "body": "Patient stable, ETA 8 minutes",
            },
        )
        await hub.bus.flush()

        count = await hub.receipts.unread_count("trip-1042", "doctor-ws")
        print(f"\nDoctor unread before reading: {count}")
        history = await hub.relay.history("trip-1042")
        await hub.dispatch("doctor-ws", {"type": "mark_read", "message_id": history[-1].id})
        await hub.bus.flush()

        print("\nMedic drops off:")
        await hub.disconnect("medic-ws")
        await hub.bus.flush()

        print("\nHub shutting down:")


if __name__ == "__main__":
    asyncio.run(main())
