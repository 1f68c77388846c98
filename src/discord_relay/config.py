"""Relay configuration, read from RELAY_* environment variables.

Learn: pydantic-settings builds one Settings object at import time.
Everything is an env var; there is no config file. Validation runs
once here, so a bad value fails the process before Discord login.
"""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """Every knob the relay reads. Set via RELAY_<FIELD> env vars."""

    model_config = SettingsConfigDict(env_prefix="RELAY_")

    # ── Discord ─────────────────────────────────────────────
    discord_bot_token: str = ""

    # ── Relay transport ─────────────────────────────────────
    namespace: str = Field("discord", pattern=r"^[a-z0-9_-]+$")
    outbox_size: int = Field(256, gt=0)  # frames buffered per connection
    dispatch_queue_size: int = Field(1000, gt=0)
    ws_ping_interval: float = 25.0  # handed to uvicorn
    ws_ping_timeout: float = 20.0

    # ── Session tokens ──────────────────────────────────────
    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # ── HTTP server ─────────────────────────────────────────
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Empty disables Redis; the rate limiter then lets everything through
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_rpm: int = 100

    # ── Logging ─────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @model_validator(mode="after")
    def refuse_dev_secret_outside_development(self):
        if self.environment != "development" and self.jwt_secret == DEV_JWT_SECRET:
            raise ValueError(
                f"RELAY_JWT_SECRET still has the development default in "
                f"environment={self.environment!r}; set a real secret"
            )
        return self


settings = Settings()
