#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the caching and rate-limiting
layer. Every component reads its knobs from here so that the whole service is
configured from one place.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Absent KV credentials are a supported state, not a startup error
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Remote key-value store connection.

    STAGE-0.1: KV store configuration

    The store counts as "configured" only when both the endpoint URL and the
    access token are present. Without them every cache and quota operation
    degrades to its fallback.
    """

    REDIS_URL: str | None = Field(default=None, description="redis:// or rediss:// endpoint")
    REDIS_TOKEN: str | None = Field(default=None, description="Access token (sent as password)")

    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=5.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=5.0, description="Connect timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)

    @property
    def is_configured(self) -> bool:
        return bool(self.REDIS_URL and self.REDIS_TOKEN)


class CacheSettings(BaseSettings):
    """
    Cache-aside configuration.

    STAGE-2: Cache configuration
    """

    CACHE_ENABLED: bool = Field(default=True, description="Master switch for caching")
    CACHE_DEFAULT_TTL: int = Field(default=3600, description="Default entry TTL (1 hour)")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Rate limiting configuration.

    STAGE-3: Rate limiting thresholds
    """

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enforce request quotas")
    RATE_LIMIT_DEFAULT_LIMIT: int = Field(default=100, description="Default requests per window")
    RATE_LIMIT_DEFAULT_WINDOW: int = Field(default=60, description="Default window in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class BackendSettings(BaseSettings):
    """
    Relational backing store (PostgREST-compatible REST API).

    STAGE-4: Backing store configuration
    """

    SUPABASE_URL: str | None = Field(default=None, description="Backing store base URL")
    SUPABASE_KEY: str | None = Field(default=None, description="Backing store service key")
    BACKEND_TIMEOUT: float = Field(default=10.0, description="Request timeout in seconds")
    BACKEND_RETRIES: int = Field(default=2, description="Retries on transient errors")
    BACKEND_RETRY_DELAY: float = Field(default=1.0, description="First retry delay in seconds")
    BACKEND_RETRY_BACKOFF: float = Field(default=2.0, description="Delay multiplier per retry")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)

    @property
    def is_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Telehealth Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for versioned routes")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        settings = get_settings()
        if settings.redis.is_configured:
            ...
        ttl = settings.cache.CACHE_DEFAULT_TTL
    """

    # KV store
    REDIS_URL: str | None = Field(default=None, description="redis:// or rediss:// endpoint")
    REDIS_TOKEN: str | None = Field(default=None, description="Access token (sent as password)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=5.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=5.0, description="Connect timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # Cache
    CACHE_ENABLED: bool = Field(default=True, description="Master switch for caching")
    CACHE_DEFAULT_TTL: int = Field(default=3600, description="Default entry TTL (1 hour)")

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enforce request quotas")
    RATE_LIMIT_DEFAULT_LIMIT: int = Field(default=100, description="Default requests per window")
    RATE_LIMIT_DEFAULT_WINDOW: int = Field(default=60, description="Default window in seconds")

    # Backing store
    SUPABASE_URL: str | None = Field(default=None, description="Backing store base URL")
    SUPABASE_KEY: str | None = Field(default=None, description="Backing store service key")
    BACKEND_TIMEOUT: float = Field(default=10.0, description="Request timeout in seconds")
    BACKEND_RETRIES: int = Field(default=2, description="Retries on transient errors")
    BACKEND_RETRY_DELAY: float = Field(default=1.0, description="First retry delay in seconds")
    BACKEND_RETRY_BACKOFF: float = Field(default=2.0, description="Delay multiplier per retry")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Telehealth Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for versioned routes")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @property
    def redis(self) -> RedisSettings:
        """Get KV store settings."""
        return RedisSettings(
            REDIS_URL=self.REDIS_URL,
            REDIS_TOKEN=self.REDIS_TOKEN,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_ENABLED=self.CACHE_ENABLED,
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_ENABLED=self.RATE_LIMIT_ENABLED,
            RATE_LIMIT_DEFAULT_LIMIT=self.RATE_LIMIT_DEFAULT_LIMIT,
            RATE_LIMIT_DEFAULT_WINDOW=self.RATE_LIMIT_DEFAULT_WINDOW,
        )

    @property
    def backend(self) -> BackendSettings:
        """Get backing store settings."""
        return BackendSettings(
            SUPABASE_URL=self.SUPABASE_URL,
            SUPABASE_KEY=self.SUPABASE_KEY,
            BACKEND_TIMEOUT=self.BACKEND_TIMEOUT,
            BACKEND_RETRIES=self.BACKEND_RETRIES,
            BACKEND_RETRY_DELAY=self.BACKEND_RETRY_DELAY,
            BACKEND_RETRY_BACKOFF=self.BACKEND_RETRY_BACKOFF,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            API_BASE_PATH=self.API_BASE_PATH,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """Reload settings (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
