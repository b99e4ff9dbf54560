"""Mock authenticator for testing."""

from __future__ import annotations

from triprelay.auth.base import Authenticator
from triprelay.errors import AuthenticationError
from triprelay.models.identity import UserIdentity


class MockAuthenticator(Authenticator):
    """Resolves credentials from a pre-configured token mapping."""

    def __init__(self, tokens: dict[str, UserIdentity] | None = None) -> None:
        self._tokens = dict(tokens or {})

    def add(self, token: str, identity: UserIdentity) -> None:
        self._tokens[token] = identity

    async def authenticate(self, credential: str | None) -> UserIdentity:
        if not credential:
            raise AuthenticationError("No token provided")
        identity = self._tokens.get(credential)
        if identity is None:
            raise AuthenticationError("Invalid token")
        return identity
