"""Runtime configuration for the relay."""

from __future__ import annotations

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Tunables for the session hub and its WebSocket gateway.

    Every field can be set from a ``TRIPRELAY_<FIELD>`` environment variable.
    The JWT secret also honours a plain ``JWT_SECRET``. List fields take JSON
    (``TRIPRELAY_JWT_ALGORITHMS='["HS256", "RS256"]'``).
    """

    model_config = SettingsConfigDict(
        env_prefix="TRIPRELAY_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    typing_idle_window: float = Field(default=2.0, gt=0)
    typing_sweep_interval: float = Field(default=0.5, gt=0)
    operation_timeout: float = Field(default=10.0, gt=0)
    # Messages bundled into joined_session; 0 skips the load on join.
    history_limit: int = Field(default=50, ge=0)
    # Page size for get_history requests that carry no limit.
    history_page_size: int = Field(default=50, ge=1)
    max_history_limit: int = Field(default=200, ge=1)
    max_body_length: int = Field(default=4000, ge=1)
    outbox_size: int = Field(default=256, ge=1)
    # Ended sessions whose participants are remembered for read receipts.
    participant_cache_size: int = Field(default=10_000, ge=1)
    jwt_secret: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("TRIPRELAY_JWT_SECRET", "JWT_SECRET", "jwt_secret"),
    )
    jwt_algorithms: list[str] = Field(default_factory=lambda: ["HS256"])
    host: str = "0.0.0.0"
    port: int = Field(default=8765, ge=0, le=65535)
