"""Identity of an authenticated user behind a connection."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from triprelay.models.enums import UserRole


class UserIdentity(BaseModel):
    """A resolved user identity.

    Frozen so identities can be collected into sets; two connections of the
    same user compare equal and collapse to one room member.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: str
    # Known roles parse to UserRole; roles issued by other services are kept verbatim.
    role: UserRole | str = Field(union_mode="left_to_right")
    organization_id: str | None = None


def sorted_members(members: set[UserIdentity] | frozenset[UserIdentity]) -> list[UserIdentity]:
    """Stable list form of a member set for serialization."""
    return sorted(members, key=lambda m: m.user_id)
