"""Network transports for the session hub."""

from triprelay.server.websocket import WebSocketGateway, extract_token

__all__ = ["WebSocketGateway", "extract_token"]
