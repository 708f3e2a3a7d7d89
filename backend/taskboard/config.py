"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Taskboard"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 4000

    # API
    api_prefix: str = "/api/v1"
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # JWT Settings
    jwt_access_secret: SecretStr = SecretStr("dev-secret")
    jwt_refresh_secret: SecretStr = SecretStr("dev-refresh-secret")
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 15
    jwt_refresh_token_expire_days: int = 7

    # Refresh token cookie
    refresh_cookie_name: str = "refresh_token"
    cookie_secure: bool | None = None  # None: secure everywhere except development

    # Password hashing (bcrypt cost factor)
    password_hash_rounds: int = Field(default=12, ge=4, le=31)

    @property
    def refresh_cookie_secure(self) -> bool:
        """Whether the refresh cookie carries the Secure flag."""
        if self.cookie_secure is not None:
            return self.cookie_secure
        return self.environment != "development"

    @property
    def refresh_token_max_age(self) -> int:
        """Refresh token lifetime in seconds."""
        return self.jwt_refresh_token_expire_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
