# /botengine/config/settings.py

import sys
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    mongo_atlas_uri: str = "mongodb://localhost:27017/bot_engine"
    max_pool_size: int = 10
    min_pool_size: int = 1
    mongo_ssl: bool = False

    # Redis
    redis_url: str = "redis://localhost:6379"

    # Bot engine behaviour
    bot_lock_timeout_seconds: int = 30
    bot_config_cache_ttl_seconds: int = 60
    bot_menu_cache_ttl_seconds: int = 60
    bot_log_page_size: int = 50

    # Security
    intercept_api_key: str | None = None
    api_key: str | None = None
    jwt_secret_key: str = Field(default="change-me-in-production-please-32-chars!")
    jwt_algorithm: str = "HS256"

    # Deployment
    workers: int = 4
    environment: str = Field(default="production")

    cors_allowed_origins: str = Field(default="")
    allowed_hosts: str = Field(default="*")

    # App Metadata & Limits
    api_version: str = "v1"
    rate_limit_per_minute: int = 600

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ---------------- Validators ---------------- #

    @field_validator("jwt_secret_key")
    @classmethod
    def key_length_must_be_sufficient(cls, v):
        if len(v) < 32:
            raise ValueError("JWT secret key must be at least 32 characters long")
        return v

    @field_validator("bot_lock_timeout_seconds")
    @classmethod
    def lock_timeout_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("BOT_LOCK_TIMEOUT_SECONDS must be positive")
        return v


def validate_environment(settings_obj: Settings):
    try:
        if settings_obj.environment == "production":
            if not settings_obj.intercept_api_key:
                raise ValueError("INTERCEPT_API_KEY is required in production")
            if settings_obj.jwt_secret_key.startswith("change-me"):
                raise ValueError("JWT_SECRET_KEY must be set in production")

        return settings_obj

    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
