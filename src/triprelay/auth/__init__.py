"""Authentication of connection credentials."""

from triprelay.auth.base import Authenticator
from triprelay.auth.jwt_token import JWTAuthenticator, identity_from_claims
from triprelay.auth.mock import MockAuthenticator

__all__ = [
    "Authenticator",
    "JWTAuthenticator",
    "MockAuthenticator",
    "identity_from_claims",
]
