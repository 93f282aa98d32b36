"""Tests for configuration management."""

import os
from unittest.mock import patch

import pytest

from commentdesk.config import Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_settings_defaults() -> None:
    """Test default settings values."""
    with patch.dict(os.environ, {}, clear=True):
        settings = _settings()

        assert settings.database_file == "commentdesk.db"
        assert settings.database_url is None
        assert settings.claude_api_key is None
        assert settings.claude_model == "claude-sonnet-4-20250514"
        assert settings.claude_max_tokens == 1500
        assert settings.claude_timeout_seconds == 30.0
        assert settings.recaptcha_secret_key is None
        assert settings.jwt_secret is None
        assert settings.jwt_expire_minutes == 480
        assert settings.client_url == "http://localhost:3000"
        assert settings.api_port == 3001
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.log_json is False


def test_settings_from_env() -> None:
    """Test settings loaded from environment variables."""
    env_vars = {
        "DATABASE_URL": "postgresql://db/commentdesk",
        "CLAUDE_API_KEY": "test_claude_key",
        "RECAPTCHA_SECRET_KEY": "test_recaptcha",
        "JWT_SECRET": "test_jwt",
        "CLIENT_URL": "https://comments.example.org",
        "PORT": "8080",
        "LOG_LEVEL": "DEBUG",
        "LOG_JSON": "true",
    }

    with patch.dict(os.environ, env_vars, clear=True):
        settings = _settings()

        assert settings.database_url == "postgresql://db/commentdesk"
        assert settings.claude_api_key == "test_claude_key"
        assert settings.recaptcha_secret_key == "test_recaptcha"
        assert settings.jwt_secret == "test_jwt"
        assert settings.client_url == "https://comments.example.org"
        assert settings.api_port == 8080
        assert settings.log_level == "DEBUG"
        assert settings.log_json is True


def test_anthropic_key_alias() -> None:
    with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "alias_key"}, clear=True):
        assert _settings().claude_api_key == "alias_key"


def test_skip_bot_verification() -> None:
    """Verification is optional outside production only."""
    with patch.dict(os.environ, {}, clear=True):
        assert _settings(environment="development", recaptcha_secret_key="k").skip_bot_verification()
        assert _settings(environment="staging").skip_bot_verification()
        assert not _settings(
            environment="staging", recaptcha_secret_key="k"
        ).skip_bot_verification()
        assert not _settings(environment="production").skip_bot_verification()


def test_validate_runtime_config_production() -> None:
    with patch.dict(os.environ, {}, clear=True):
        settings = _settings(environment="production", claude_api_key="k")
        assert settings.is_production()
        assert settings.missing_production_settings() == ["RECAPTCHA_SECRET_KEY", "JWT_SECRET"]

        with pytest.raises(ValueError, match="RECAPTCHA_SECRET_KEY, JWT_SECRET"):
            settings.validate_runtime_config()


def test_validate_runtime_config_complete() -> None:
    with patch.dict(os.environ, {}, clear=True):
        settings = _settings(
            environment="Production",
            claude_api_key="k",
            recaptcha_secret_key="r",
            jwt_secret="j",
        )
        settings.validate_runtime_config()


def test_validate_runtime_config_development() -> None:
    with patch.dict(os.environ, {}, clear=True):
        _settings().validate_runtime_config()


def test_rate_limit_settings() -> None:
    env_vars = {"RATE_LIMIT_WINDOW_MS": "60000", "RATE_LIMIT_MAX_REQUESTS": "5"}
    with patch.dict(os.environ, env_vars, clear=True):
        settings = _settings(environment="production")
        assert settings.rate_limit_window_ms == 60000
        assert settings.rate_limit_max_requests == 5
        assert settings.rate_limit_enabled()

    with patch.dict(os.environ, {}, clear=True):
        assert _settings().rate_limit_window_ms == 15 * 60 * 1000
        assert not _settings(environment="development").rate_limit_enabled()
        assert not _settings(environment="staging", rate_limit_max_requests=0).rate_limit_enabled()
