"""Tests for identity and message models."""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from tests.conftest import ALICE, BOB
from triprelay.models.enums import MessageType, UserRole
from triprelay.models.identity import UserIdentity, sorted_members
from triprelay.models.message import Message
from triprelay.models.protocol import JoinedSession, NewMessage, encode


def make_message(**overrides: object) -> Message:
    data: dict[str, object] = {
        "id": 1,
        "session_id": "S1",
        "sender_id": "u-alice",
        "sender_name": "Alice Moreau",
        "sender_role": "hospital_doctor",
        "body": "hello",
    }
    data.update(overrides)
    return Message.model_validate(data)


class TestUserIdentity:
    def test_frozen_and_hashable(self) -> None:
        twin = UserIdentity(
            user_id="u-alice",
            display_name="Alice Moreau",
            role="hospital_doctor",
            organization_id="org-1",
        )
        assert twin == ALICE
        assert {ALICE, twin} == {ALICE}
        with pytest.raises(ValidationError):
            ALICE.display_name = "Someone Else"  # type: ignore[misc]

    def test_sorted_members(self) -> None:
        assert sorted_members({BOB, ALICE}) == [ALICE, BOB]


class TestMessage:
    def test_defaults(self) -> None:
        message = make_message()
        assert message.message_type == MessageType.TEXT
        assert message.read_by == []
        assert message.metadata is None
        assert isinstance(message.created_at, datetime)
        assert message.created_at.tzinfo is not None

    def test_id_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            make_message(id=0)

    def test_legacy_row_normalized(self) -> None:
        message = Message.model_validate(
            {
                "id": 12,
                "sessionId": "S1",
                "senderId": 7,
                "senderRole": "fleet_paramedic",
                "sender_first_name": "Sam",
                "sender_last_name": "Okafor",
                "messageType": "alert",
                "message": "ETA 5 minutes",
                "createdAt": "2024-03-01T10:00:00Z",
                "readBy": [3, "4"],
            }
        )
        assert message.session_id == "S1"
        assert message.sender_id == "7"
        assert message.sender_name == "Sam Okafor"
        assert message.sender_role == "fleet_paramedic"
        assert message.message_type == MessageType.ALERT
        assert message.body == "ETA 5 minutes"
        assert message.read_by == ["3", "4"]

    def test_null_read_by(self) -> None:
        assert make_message(read_by=None).read_by == []

    def test_with_reader(self) -> None:
        message = make_message()
        read = message.with_reader("u-bob")
        assert read.read_by == ["u-bob"]
        assert message.read_by == []
        assert read.with_reader("u-bob") is read
        assert read.is_read_by("u-bob")


class TestEnums:
    def test_roles(self) -> None:
        assert UserRole("fleet_paramedic") is UserRole.FLEET_PARAMEDIC
        assert len(UserRole) == 9

    def test_identity_role_parses_known_roles(self) -> None:
        identity = UserIdentity(user_id="u-1", display_name="Pat", role="fleet_paramedic")
        assert identity.role is UserRole.FLEET_PARAMEDIC

    def test_identity_keeps_unknown_role(self) -> None:
        identity = UserIdentity(user_id="u-1", display_name="Pat", role="dispatcher")
        assert not isinstance(identity.role, UserRole)
        assert identity.role == "dispatcher"

    def test_role_serializes_as_string(self) -> None:
        identity = UserIdentity(user_id="u-1", display_name="Pat", role=UserRole.FLEET_ADMIN)
        assert identity.model_dump(mode="json")["role"] == "fleet_admin"


class TestEncode:
    def test_encode_joined_session(self) -> None:
        event = JoinedSession(session_id="S1", members=[ALICE])
        text = encode(event)
        assert '"type":"joined_session"' in text
        assert '"user_id":"u-alice"' in text

    def test_encode_new_message(self) -> None:
        text = encode(NewMessage(message=make_message()))
        restored = NewMessage.model_validate_json(text)
        assert restored.message.body == "hello"
