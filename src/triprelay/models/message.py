"""Chat message model."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from triprelay.models.enums import MessageType

# Legacy row keys seen in stored rows and client payloads, mapped to the
# canonical field names.
_LEGACY_KEYS: dict[str, str] = {
    "sessionId": "session_id",
    "senderId": "sender_id",
    "senderRole": "sender_role",
    "messageType": "message_type",
    "message": "body",
    "createdAt": "created_at",
    "readBy": "read_by",
}


class Message(BaseModel):
    """A chat message scoped to exactly one session."""

    id: int = Field(ge=1)
    session_id: str
    sender_id: str
    sender_name: str
    sender_role: str
    body: str = ""
    message_type: MessageType = MessageType.TEXT
    metadata: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    read_by: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out = dict(data)
        for legacy, canonical in _LEGACY_KEYS.items():
            if legacy in out and canonical not in out:
                out[canonical] = out.pop(legacy)
        if "sender_name" not in out:
            first = out.pop("sender_first_name", None) or out.pop("senderFirstName", None)
            last = out.pop("sender_last_name", None) or out.pop("senderLastName", None)
            name = " ".join(part for part in (first, last) if part)
            if name:
                out["sender_name"] = name
        if out.get("sender_id") is not None:
            out["sender_id"] = str(out["sender_id"])
        if out.get("read_by") is None:
            out["read_by"] = []
        else:
            out["read_by"] = [str(u) for u in out["read_by"]]
        return out

    def is_read_by(self, user_id: str) -> bool:
        return user_id in self.read_by

    def with_reader(self, user_id: str) -> Message:
        """Return a copy with *user_id* added to the read-set (idempotent)."""
        if user_id in self.read_by:
            return self
        return self.model_copy(update={"read_by": [*self.read_by, user_id]})
