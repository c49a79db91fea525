"""Application configuration using Pydantic Settings"""

import os
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Marker to detect if JWT_SECRET was auto-generated vs explicitly set
_JWT_SECRET_AUTO_GENERATED = secrets.token_urlsafe(32)


class ProtocolParams(BaseModel):
    """
    Deployment-time protocol constants.

    Read once when the lifecycle controller is constructed and never
    re-read afterwards, so changing the environment of a running process
    has no effect on agents already being served.
    """

    model_config = ConfigDict(frozen=True)

    registration_fee: int = Field(default=5_000_000, ge=0)
    performance_fee_bps: int = Field(default=200, ge=0, le=10_000)
    cooldown_blocks: int = Field(default=6, ge=0)
    max_agents_per_user: int = Field(default=10, ge=1)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "AGENT-VAULT"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"

    @property
    def is_debug(self) -> bool:
        """Debug mode is derived from environment (non-production = debug)."""
        return self.environment != "production"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    # Any async SQLAlchemy URL works; production deployments point this at
    # postgresql+asyncpg.
    database_url: str = Field(default="sqlite+aiosqlite:///./agent_vault.db")
    db_echo: bool = False
    db_pool_size: int = 5
    db_pool_max_overflow: int = 10

    # Security - JWT
    # Random secret generated at startup if not provided (recommended for dev only)
    jwt_secret: str = Field(default=_JWT_SECRET_AUTO_GENERATED)
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    # CORS (stored as string, parsed to list)
    cors_origins: str = Field(default="http://localhost:3000")

    # Block clock used by the HTTP surface
    genesis_timestamp: int = 1_700_000_000
    block_time_seconds: int = Field(default=600, ge=1)

    # Dev-only funding endpoint for the built-in ledger
    faucet_enabled: bool = True

    # Protocol constants
    registration_fee: int = Field(default=5_000_000, ge=0)
    performance_fee_bps: int = Field(default=200, ge=0, le=10_000)
    cooldown_blocks: int = Field(default=6, ge=0)
    max_agents_per_user: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """
        Validate critical security settings in production environment.

        Ensures JWT_SECRET is explicitly configured and the faucet is off.
        """
        if self.environment == "production":
            jwt_secret_from_env = os.environ.get("JWT_SECRET")

            if not jwt_secret_from_env:
                raise ValueError(
                    "JWT_SECRET must be explicitly set in production environment. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
                )

            if len(jwt_secret_from_env) < 32:
                raise ValueError(
                    "JWT_SECRET must be at least 32 characters long for security."
                )

            self.faucet_enabled = False

        return self

    def get_cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def protocol_params(self) -> ProtocolParams:
        """Snapshot the protocol constants"""
        return ProtocolParams(
            registration_fee=self.registration_fee,
            performance_fee_bps=self.performance_fee_bps,
            cooldown_blocks=self.cooldown_blocks,
            max_agents_per_user=self.max_agents_per_user,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
