"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Signing secrets are split per token kind: JWT_ACCESS_SECRET signs access
tokens and JWT_REFRESH_SECRET signs refresh tokens. The two must differ so
that a leak of one cannot be used to forge the other.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional — without it the user directory cannot resolve principals and
    # OTP requests for unknown identifiers are silently dropped
    mongodb_uri: Optional[str] = None
    db_name: str = "ecommerce"
    users_collection: str = "users"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    redis_uri: Optional[str] = None
    # "memory" is for local development and tests only
    session_store: Literal["redis", "memory"] = "redis"
    store_timeout_seconds: float = 2.0


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "ecommerce-api"
    jwt_audience: str = "ecommerce-app-users"
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 900
    refresh_token_ttl_seconds: int = 604800

    jwt_access_secret: str = ""
    jwt_refresh_secret: str = ""

    @model_validator(mode="after")
    def _secrets_must_differ(self) -> "JWTSettings":
        if self.jwt_access_secret and self.jwt_access_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        return self


class SessionSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    device_id_salt: str = ""
    revoke_retry_attempts: int = 3
    revoke_retry_backoff_seconds: float = 0.05


class InternalApiSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Shared secret the user service sends in X-Internal-Token. Empty keeps
    # the /internal routes closed.
    internal_api_token: str = ""


class OtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_length: int = 6
    otp_ttl_minutes: int = 10
    otp_max_attempts: int = 5
    otp_cooldown_minutes: int = 2
    confirmation_ttl_minutes: int = 5
    confirmation_max_attempts: int = 1


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # "log" only writes the notification to the log stream (development)
    notifier: Literal["zeptomail", "log"] = "log"
    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@example.com"
    zepto_from_name: str = "Shop"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "ecommerce-auth"
    app_url: str = "https://example.com"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    session: Optional[SessionSettings] = None
    internal: Optional[InternalApiSettings] = None
    otp: Optional[OtpSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.session is None:
            self.session = SessionSettings()
        if self.internal is None:
            self.internal = InternalApiSettings()
        if self.otp is None:
            self.otp = OtpSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
