"""
hrms_api.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secret, bootstrap password).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Single settings object injected across layers.
    Defaults are safe for local dev; prod must override secrets via HRMS_* env vars.
    """

    model_config = SettingsConfigDict(env_prefix="HRMS_", case_sensitive=False)

    # Environment controls auto-init of DB tables and error detail exposure.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "hrms-api"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 9000

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "hrms-api"
    jwt_audience: str = "hrms-console"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)
    session_ttl_hours: int = Field(default=8, ge=1, le=24 * 7)
    bcrypt_rounds: int = Field(default=12, ge=4, le=16)

    # Session store
    redis_url: str = "redis://localhost:6379/0"

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./hrms.db"

    # Optional platform operator created at startup when both are set.
    super_admin_email: str | None = None
    super_admin_password: str | None = Field(default=None, repr=False)
    super_admin_name: str = "Super Admin"

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.session_ttl_hours)

    @property
    def expose_error_details(self) -> bool:
        return self.env != "prod"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Session records in Redis use `session_ttl` as their TTL so that store expiry and
# token expiry stay aligned.
