"""JWT bearer-token authenticator backed by PyJWT."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from triprelay.auth.base import Authenticator
from triprelay.errors import AuthenticationError
from triprelay.models.identity import UserIdentity

logger = logging.getLogger("triprelay.auth.jwt")


def identity_from_claims(claims: Mapping[str, Any]) -> UserIdentity:
    """Map decoded token claims to a :class:`UserIdentity`.

    Accepts ``id`` or ``sub`` for the user, ``organizationId`` or
    ``organization_id`` for the tenant, and ``name`` or
    ``firstName``/``lastName`` for the display name.
    """
    user_id = claims.get("id", claims.get("sub"))
    if user_id is None or user_id == "":
        raise AuthenticationError("Token has no subject")
    role = claims.get("role")
    if not role:
        raise AuthenticationError("Token has no role")

    name = claims.get("name")
    if not name:
        parts = [claims.get("firstName"), claims.get("lastName")]
        name = " ".join(str(p) for p in parts if p)
    org = claims.get("organizationId", claims.get("organization_id"))
    return UserIdentity(
        user_id=str(user_id),
        display_name=name or str(user_id),
        role=str(role),
        organization_id=str(org) if org is not None else None,
    )


class JWTAuthenticator(Authenticator):
    """Verifies HMAC/RSA signed JWTs with PyJWT."""

    def __init__(
        self,
        secret: str,
        *,
        algorithms: list[str] | None = None,
        audience: str | None = None,
        leeway: float = 0.0,
    ) -> None:
        try:
            import jwt as _jwt
        except ImportError as exc:
            raise ImportError(
                "PyJWT is required for JWTAuthenticator. "
                "Install it with: pip install triprelay[jwt]"
            ) from exc
        self._jwt = _jwt
        self._secret = secret
        self._algorithms = algorithms or ["HS256"]
        self._audience = audience
        self._leeway = leeway

    async def authenticate(self, credential: str | None) -> UserIdentity:
        if not credential:
            raise AuthenticationError("No token provided")
        try:
            claims = self._jwt.decode(
                credential,
                self._secret,
                algorithms=self._algorithms,
                audience=self._audience,
                leeway=self._leeway,
            )
        except self._jwt.PyJWTError as exc:
            logger.debug("Rejected token: %s", exc)
            raise AuthenticationError("Invalid token") from exc
        return identity_from_claims(claims)
