"""
Centralized configuration management using Pydantic Settings.

This module provides type-safe configuration management with validation,
loading settings from environment variables and .env files.
"""

from datetime import timedelta
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cryout.core.exceptions import ConfigurationError
from cryout.prompts.moderation import RULES_MESSAGE


class Settings(BaseSettings):
    """
    Bot settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Secrets should never be committed to code - use .env file (gitignored).
    """

    # Telegram Configuration
    telegram_bot_token: str = Field(
        ...,
        description="Telegram bot token issued by @BotFather"
    )
    telegram_bot_channel_name: str = Field(
        ...,
        description="Public channel approved messages are published to (e.g. @cryout)"
    )
    telegram_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Connect/read/write timeout for Telegram Bot API requests"
    )

    # Webhook Configuration (push mode)
    webhook_url: Optional[str] = Field(
        default=None,
        description="Public HTTPS URL for Telegram updates; when set, push mode replaces polling"
    )
    webhook_host: str = Field(
        default="0.0.0.0",
        description="Interface the webhook listener binds to"
    )
    webhook_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the webhook listener binds to"
    )
    webhook_secret_token: Optional[str] = Field(
        default=None,
        description="Secret Telegram echoes in X-Telegram-Bot-Api-Secret-Token"
    )

    # OpenAI Classifier Configuration
    openai_api_key: str = Field(
        ...,
        description="API key for the moderation classifier"
    )
    openai_base_url: Optional[str] = Field(
        default=None,
        description="OpenAI-compatible API base URL (default: api.openai.com)"
    )
    openai_model: str = Field(
        default="gpt-3.5-turbo",
        description="Chat model used to classify submissions"
    )
    openai_prompt: Optional[str] = Field(
        default=None,
        description="Moderation instruction prepended to every submission"
    )
    openai_max_tokens: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Completion token cap; only a one-word verdict is expected"
    )
    openai_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Classifier request timeout in seconds"
    )

    # Submission Policy
    rate_limit_minutes: float = Field(
        default=20,
        gt=0,
        description="Minimum minutes between two published submissions from one user"
    )
    start_command: str = Field(
        default="/start",
        description="Command answered with the rules text"
    )
    rules_text: str = Field(
        default=RULES_MESSAGE,
        description="Rules shown on the start command and on policy rejections"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root logging level"
    )
    log_json: bool = Field(
        default=True,
        description="Emit single-line JSON logs (False: plain text)"
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    @field_validator("telegram_bot_token", "openai_api_key", "telegram_bot_channel_name")
    @classmethod
    def validate_required(cls, v: str, info) -> str:
        """
        Reject blank credentials and channel name.

        An exported-but-empty variable must fail the same way as a missing one.
        """
        if not v or v.strip() == "":
            raise ValueError(f"{info.field_name.upper()} is required and cannot be empty")
        return v.strip()

    @field_validator("webhook_url", "webhook_secret_token", "openai_prompt", "openai_base_url")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty optional variables as unset."""
        if v is None or v.strip() == "":
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got: {v}")
        return level

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(minutes=self.rate_limit_minutes)

    @property
    def push_mode(self) -> bool:
        """True when updates arrive through the webhook instead of polling."""
        return self.webhook_url is not None


def load_settings(env_file: Optional[str] = ".env") -> Settings:
    """
    Load settings from the environment and an optional .env file.

    Args:
        env_file: Path of the dotenv file to read (None: environment only)

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If a required setting is missing or a value is invalid
    """
    try:
        return Settings(_env_file=env_file)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']).upper() or 'SETTINGS'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e
