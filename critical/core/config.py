"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CRITICAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = "Critical CSS Service"
    environment: str = "development"
    debug: bool = True
    log_level: Optional[str] = None
    log_json: bool = True

    api_v1_prefix: str = "/v1"
    cors_allowed_origins: List[str] = ["*"]

    redis_url: str = "redis://localhost:6379/0"

    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    default_width: int = 1300
    default_height: int = 900
    max_image_file_size: int = 10240

    fetch_timeout_seconds: float = 30.0
    navigation_timeout_seconds: float = 30.0
    extraction_timeout_seconds: float = 60.0
    max_concurrency: int = 8

    user_agent: Optional[str] = None
    local_server_host: str = "127.0.0.1"

    auth_api_token: Optional[str] = None
    auth_token_header: str = "Authorization"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
