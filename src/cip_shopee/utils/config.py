"""Configuration management using Pydantic."""

from __future__ import annotations

import warnings

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cip_shopee.utils.constants import (
    DEFAULT_DEDUP_TTL_SECONDS,
    DEFAULT_MAX_QUEUE_DEPTH,
    DEFAULT_TIMESTAMP_TOLERANCE_SECONDS,
    WEBHOOK_PATH,
)


class WebhookSettings(BaseSettings):
    """Shopee push (webhook) ingestion configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        env_file=".env",
        extra="ignore",
    )

    partner_key: str = Field(
        default="",
        description="Shopee push partner key used as the HMAC secret",
    )
    path: str = Field(default=WEBHOOK_PATH, description="Webhook route path")
    timestamp_tolerance_seconds: int = Field(
        default=DEFAULT_TIMESTAMP_TOLERANCE_SECONDS,
        ge=0,
        description="Max allowed skew between payload timestamp and server time",
    )
    max_queue_depth_per_shop: int = Field(
        default=DEFAULT_MAX_QUEUE_DEPTH,
        ge=1,
        description="Max pending events per shop before rejecting with 503",
    )
    ack_on_failure: bool = Field(
        default=True,
        description="Acknowledge with 200 even when async processing fails",
    )
    dedup_enabled: bool = Field(
        default=True,
        description="Acknowledge duplicate deliveries without reprocessing",
    )
    dedup_ttl_seconds: int = Field(
        default=DEFAULT_DEDUP_TTL_SECONDS,
        ge=1,
        description="How long a delivery id is remembered",
    )

    @property
    def is_configured(self) -> bool:
        """Check if a partner key is present."""
        return bool(self.partner_key)


class RateLimitSettings(BaseSettings):
    """Fixed-window rate limit configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Enable/disable rate limiting")
    webhook_window_ms: int = Field(
        default=1000, description="Webhook window duration in milliseconds"
    )
    webhook_max: int = Field(
        default=10, ge=1, description="Max webhook requests per window"
    )
    api_window_ms: int = Field(
        default=60000, description="General API window duration in milliseconds"
    )
    api_max: int = Field(default=100, ge=1, description="Max API requests per window")
    storage: str = Field(
        default="memory",
        description="Storage backend: memory or redis",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis URL if using redis storage",
    )
    trust_proxy_headers: bool = Field(
        default=False,
        description="Key clients by X-Forwarded-For / X-Real-IP instead of the socket peer",
    )
    trusted_proxies: str = Field(
        default="",
        description="Comma-separated proxy IPs or CIDRs allowed to set forwarding headers "
        "(empty: any peer, when trust_proxy_headers is on)",
    )

    @field_validator("webhook_window_ms", "api_window_ms")
    @classmethod
    def validate_window(cls, value: int) -> int:
        """Windows are counted in whole seconds by the limiter backend."""
        if value < 1000 or value % 1000:
            raise ValueError("window must be a positive multiple of 1000 ms")
        return value

    def webhook_limit(self) -> str:
        """Limit string for the webhook route (e.g. '10 per 1 second')."""
        return f"{self.webhook_max} per {self.webhook_window_ms // 1000} second"

    def api_limit(self) -> str:
        """Limit string for general API routes."""
        return f"{self.api_max} per {self.api_window_ms // 1000} second"

    def get_trusted_proxies_list(self) -> list[str]:
        """Convert comma-separated trusted proxies to list."""
        if not self.trusted_proxies:
            return []
        return [p.strip() for p in self.trusted_proxies.split(",") if p.strip()]


class CORSSettings(BaseSettings):
    """CORS configuration for API."""

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Enable/disable CORS")
    allow_origins: str = Field(
        default="*",
        description="Comma-separated allowed origins (use * for all)",
    )
    allow_methods: str = Field(
        default="GET,POST,OPTIONS",
        description="Comma-separated allowed HTTP methods",
    )
    allow_headers: str = Field(
        default="*",
        description="Comma-separated allowed headers (use * for all)",
    )
    max_age: int = Field(
        default=600,
        description="Max age for preflight cache (seconds)",
    )

    @staticmethod
    def _split(value: str) -> list[str]:
        if value == "*":
            return ["*"]
        return [v.strip() for v in value.split(",") if v.strip()]

    def get_origins_list(self) -> list[str]:
        """Convert comma-separated origins to list."""
        return self._split(self.allow_origins)

    def get_methods_list(self) -> list[str]:
        """Convert comma-separated methods to list."""
        return self._split(self.allow_methods)

    def get_headers_list(self) -> list[str]:
        """Convert comma-separated headers to list."""
        return self._split(self.allow_headers)

    def is_permissive(self) -> bool:
        """Check if CORS is overly permissive (allows all origins)."""
        return self.allow_origins == "*"


class AuthSettings(BaseSettings):
    """API key authentication for the operational endpoints."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        extra="ignore",
    )

    auth_enabled: bool = Field(
        default=False,
        description="Enable/disable API key authentication",
    )
    keys: str = Field(
        default="",
        description="Comma-separated list of valid API keys",
    )
    key_header_name: str = Field(
        default="X-API-Key",
        description="Header name for API key",
    )

    def get_keys_list(self) -> list[str]:
        """Convert comma-separated keys to list."""
        if not self.keys:
            return []
        return [k.strip() for k in self.keys.split(",") if k.strip()]


class RedisSettings(BaseSettings):
    """Redis connection used by the shop/order stores and the replay guard."""

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        extra="ignore",
    )

    url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    pool_size: int = Field(default=10, description="Maximum connections in pool")
    pool_timeout: int = Field(
        default=20, description="Socket timeout for pooled connections (seconds)"
    )


class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration for the webhook event audit log."""

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(default=False, description="Enable event audit logging")
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    user: str = Field(default="cip", description="Database user")
    password: str = Field(default="cip_secret", description="Database password")
    name: str = Field(default="cip-shopee-development", description="Database name")

    @property
    def url(self) -> str:
        """Build async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CIP_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    env: str = "development"
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = "INFO"
    log_json: bool = Field(default=False, description="Render logs as JSON")
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @model_validator(mode="after")
    def validate_production_security(self) -> Settings:
        """Warn about insecure settings in the production environment."""
        if self.env == "production":
            for warning_msg in self.get_security_warnings():
                warnings.warn(warning_msg, UserWarning, stacklevel=2)
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"

    def get_security_warnings(self) -> list[str]:
        """Get list of security warnings for current configuration."""
        warnings_list: list[str] = []

        if self.is_production:
            if not self.webhook.is_configured:
                warnings_list.append(
                    "WEBHOOK_PARTNER_KEY is empty: every webhook will be rejected"
                )
            if not self.auth.auth_enabled:
                warnings_list.append("Authentication disabled in production")
            if not self.rate_limit.enabled:
                warnings_list.append("Rate limiting disabled in production")
            if self.cors.is_permissive():
                warnings_list.append("CORS allows all origins in production")
            if self.debug:
                warnings_list.append("Debug mode enabled in production")

        return warnings_list


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton)."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()
    return _settings
