"""
Centralized configuration management for the API Key Service.

This module provides a unified configuration system with support for:
- Environment variables
- Credential material settings (hash cost, key sizes, prefixes)
- Usage recording limits
- Validation using Pydantic
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constants import (
    API_KEY_PREFIX,
    API_SECRET_PREFIX,
    SUPER_ADMIN_PERMISSION,
    EnvironmentVariable,
    HeaderName,
    Limits,
    LogLevel,
)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class SecurityConfig(BaseModel):
    """Credential material settings."""

    bcrypt_rounds: int = Field(
        default_factory=lambda: int(
            os.getenv(EnvironmentVariable.BCRYPT_ROUNDS.value, str(Limits.DEFAULT_BCRYPT_ROUNDS))
        ),
        ge=Limits.MIN_BCRYPT_ROUNDS,
        le=Limits.MAX_BCRYPT_ROUNDS,
        description="bcrypt cost factor used when hashing secrets",
    )
    api_key_bytes: int = Field(
        default=Limits.API_KEY_BYTES, gt=0, description="Random bytes in the public key"
    )
    api_secret_bytes: int = Field(
        default=Limits.API_SECRET_BYTES, gt=0, description="Random bytes in the secret"
    )
    api_key_prefix: str = Field(default=API_KEY_PREFIX, description="Prefix of public keys")
    api_secret_prefix: str = Field(
        default=API_SECRET_PREFIX, description="Prefix of secrets on the wire"
    )
    wildcard_permission: str = Field(
        default=SUPER_ADMIN_PERMISSION, description="Permission that satisfies any check"
    )


class HeaderConfig(BaseModel):
    """Names of the headers the authorization pipeline reads."""

    api_key: str = Field(default=HeaderName.API_KEY.value)
    api_secret: str = Field(default=HeaderName.API_SECRET.value)
    tenant_override: str = Field(default=HeaderName.CLIENT_SUBDOMAIN.value)


class UsageConfig(BaseModel):
    """Settings for the detached usage recorder."""

    queue_size: int = Field(
        default_factory=lambda: int(
            os.getenv(
                EnvironmentVariable.USAGE_QUEUE_SIZE.value, str(Limits.DEFAULT_USAGE_QUEUE_SIZE)
            )
        ),
        gt=0,
        description="Maximum number of pending usage updates",
    )
    workers: int = Field(
        default_factory=lambda: int(
            os.getenv(EnvironmentVariable.USAGE_WORKERS.value, str(Limits.DEFAULT_USAGE_WORKERS))
        ),
        gt=0,
        description="Number of worker threads applying usage updates",
    )


class RateLimitDefaults(BaseModel):
    """Rate limits stamped on newly issued keys. Stored, never enforced."""

    requests_per_minute: int = Field(default=Limits.DEFAULT_REQUESTS_PER_MINUTE, ge=0)
    requests_per_hour: int = Field(default=Limits.DEFAULT_REQUESTS_PER_HOUR, ge=0)


class AppConfig(BaseModel):
    """Main application configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    headers: HeaderConfig = Field(default_factory=HeaderConfig)
    usage: UsageConfig = Field(default_factory=UsageConfig)
    rate_limits: RateLimitDefaults = Field(default_factory=RateLimitDefaults)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
