"""Application configuration using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-me"


class AppSettings(BaseSettings):
    """Service configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ESH_",
        extra="ignore",
    )

    environment: Literal["local", "test", "staging", "production"] = Field(default="local")
    service_name: str = Field(default="estateshare")
    database_url: str = Field(default="sqlite:///./data/estateshare.db")
    sql_echo: bool = Field(default=False)
    auto_create_schema: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)
    cors_origins: List[str] | str = Field(default_factory=list)

    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_minutes: int = Field(default=7 * 24 * 60)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    admin_email: str | None = Field(default=None)
    admin_password: str | None = Field(default=None)
    admin_name: str = Field(default="Admin")

    stripe_secret_key: str | None = Field(default=None)
    stripe_webhook_secret: str | None = Field(default=None)
    payment_currency: str = Field(default="usd")

    upload_dir: str = Field(default="./uploads")
    max_images_per_request: int = Field(default=5)
    frontend_url: str = Field(default="http://localhost:3000")
    reset_token_ttl_minutes: int = Field(default=60)
    dob_reset_token_ttl_minutes: int = Field(default=10)
    refund_window_days: int = Field(default=7)

    notification_topic_arn: str | None = Field(default=None)
    aws_region: str = Field(default="us-east-1")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("admin_email")
    @classmethod
    def normalize_admin_email(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else value

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, value: str | List[str] | None) -> List[str]:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator(
        "admin_email",
        "admin_password",
        "stripe_secret_key",
        "stripe_webhook_secret",
        "notification_topic_arn",
        mode="before",
    )
    @classmethod
    def empty_string_to_none(cls, value: str | None) -> str | None:
        if value == "":
            return None
        return value

    @model_validator(mode="after")
    def require_real_secret_in_production(self) -> "AppSettings":
        if self.environment == "production" and self.jwt_secret == DEFAULT_JWT_SECRET:
            raise ValueError("ESH_JWT_SECRET must be set in production")
        return self


@lru_cache
def get_settings() -> AppSettings:
    """Return cached application settings instance."""

    return AppSettings()
