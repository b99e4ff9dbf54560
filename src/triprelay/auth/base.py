"""Abstract base class for credential authentication."""

from __future__ import annotations

from abc import ABC, abstractmethod

from triprelay.models.identity import UserIdentity


class Authenticator(ABC):
    """Resolves a bearer credential presented at connection time."""

    @abstractmethod
    async def authenticate(self, credential: str | None) -> UserIdentity:
        """Return the identity behind *credential*.

        The result is trusted for the lifetime of the connection.

        Raises:
            AuthenticationError: If the credential is missing or invalid.
        """
        ...
