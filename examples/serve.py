"""Run the WebSocket relay with JWT authentication.

Reads settings from TRIPRELAY_* environment variables (JWT_SECRET is
honoured too) and serves until interrupted. Connect with a signed token:

    websocat "ws://localhost:8765/?token=$TOKEN"

Run with:
    JWT_SECRET=change-me uv run python examples/serve.py
"""

from __future__ import annotations

import asyncio
import logging

from triprelay import JWTAuthenticator, RelaySettings, SessionHub
from triprelay.server import WebSocketGateway

logger = logging.getLogger("triprelay.examples.serve")


async def main() -> None:
    settings = RelaySettings()
    if settings.jwt_secret is None:
        raise SystemExit("Set JWT_SECRET or TRIPRELAY_JWT_SECRET")

    auth = JWTAuthenticator(
        settings.jwt_secret.get_secret_value(), algorithms=settings.jwt_algorithms
    )
    hub = SessionHub(authenticator=auth, settings=settings)
    gateway = WebSocketGateway(hub, host=settings.host, port=settings.port)
    await gateway.serve()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped")
