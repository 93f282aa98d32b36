"""Configuration management for CommentDesk."""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_file: str = Field(default="commentdesk.db")
    database_url: Optional[str] = Field(default=None)  # Postgres for production

    # Draft generation (Anthropic Messages API)
    claude_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CLAUDE_API_KEY", "ANTHROPIC_API_KEY"),
    )
    claude_model: str = Field(default="claude-sonnet-4-20250514")
    claude_base_url: str = Field(default="https://api.anthropic.com/v1/messages")
    claude_max_tokens: int = Field(default=1500)
    claude_timeout_seconds: float = Field(default=30.0)

    # Bot verification (reCAPTCHA)
    recaptcha_secret_key: Optional[str] = Field(default=None)
    recaptcha_verify_url: str = Field(
        default="https://www.google.com/recaptcha/api/siteverify"
    )
    recaptcha_timeout_seconds: float = Field(default=10.0)

    # Admin tokens
    jwt_secret: Optional[str] = Field(default=None)
    jwt_issuer: str = Field(default="commentdesk")
    jwt_expire_minutes: int = Field(default=480)

    # HTTP surface
    client_url: str = Field(default="http://localhost:3000")
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3001, validation_alias=AliasChoices("PORT", "API_PORT"))

    # Request limiting (per client address)
    rate_limit_window_ms: int = Field(default=15 * 60 * 1000)
    rate_limit_max_requests: int = Field(default=100)

    # Background analytics
    analytics_workers: int = Field(default=2)

    # Production Settings
    environment: str = Field(default="development")  # development, staging, production

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Emit logs as JSON lines")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() == "production"

    def skip_bot_verification(self) -> bool:
        """Bot verification is only optional outside production."""
        if self.is_production():
            return False
        return self.environment.lower() == "development" or not self.recaptcha_secret_key

    def rate_limit_enabled(self) -> bool:
        """Limiting is off in development or when the maximum is not positive."""
        return self.environment.lower() != "development" and self.rate_limit_max_requests > 0

    def missing_production_settings(self) -> List[str]:
        """Return environment variable names required in production but unset."""
        required = {
            "CLAUDE_API_KEY": self.claude_api_key,
            "RECAPTCHA_SECRET_KEY": self.recaptcha_secret_key,
            "JWT_SECRET": self.jwt_secret,
        }
        return [key for key, value in required.items() if not value]

    def validate_runtime_config(self) -> None:
        """Fail fast when production is missing required secrets."""
        if not self.is_production():
            return

        missing = self.missing_production_settings()
        if missing:
            raise ValueError(
                "Production configuration incomplete; missing: " + ", ".join(missing)
            )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
