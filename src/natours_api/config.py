"""Application settings loaded from the environment and an optional .env file."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
DEFAULT_JWT_SECRET = "change-me-in-production-this-is-32-bytes-long"


class Settings(BaseSettings):
    """Deployment configuration.

    Built once at startup and handed to ``create_app``; nothing in the
    request pipeline reads the environment directly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production"] = "development"

    database_url: str = "sqlite+aiosqlite:///./natours.db"

    jwt_secret: str = Field(
        default=DEFAULT_JWT_SECRET,
        min_length=32,
    )
    jwt_expires_in: timedelta = timedelta(days=90)
    jwt_cookie_expires_in: int = Field(default=90, ge=1, description="days")
    jwt_cookie_name: str = "jwt"

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    password_reset_expires: timedelta = timedelta(minutes=10)

    rate_limit_max: int = Field(default=100, ge=1)
    rate_limit_window: int = Field(default=3600, ge=1, description="seconds")

    body_limit: int = Field(default=10 * 1024, ge=1, description="bytes")
    cors_origins: str = "*"

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return upper

    @model_validator(mode="after")
    def require_real_secret_in_production(self) -> Settings:
        if self.is_production and self.jwt_secret == DEFAULT_JWT_SECRET:
            raise ValueError("jwt_secret must be set explicitly in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
