"""
Configuration and settings for the marketplace service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared import constants


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service and worker."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRIPMARKET_",
        extra="ignore",
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # SQL database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Supabase (REST/RPC, auth, storage)
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    supabase_service_key: Optional[str] = Field(default=None)
    request_timeout_seconds: float = Field(default=30.0)

    # Object storage
    storage_backend: Literal["memory", "cos", "supabase"] = Field(default="memory")
    storage_public_base_url: str = Field(default="https://example.test/storage")
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Queue (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="tripmarket:plans")

    # Plan generation
    plan_provider: Literal["coze", "gemini", "offline"] = Field(default="offline")
    coze_api_key: Optional[str] = Field(default=None)
    coze_workflow_id: str = Field(default="7491659032533729292")
    coze_base_url: str = Field(default="https://api.coze.cn")
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-3-flash-preview")
    plan_generation_cost: int = Field(default=constants.PLAN_GENERATION_COST)
    plan_max_retries: int = Field(default=3)
    plan_retry_delay_seconds: float = Field(default=2.0)
    plan_generation_timeout_seconds: float = Field(default=120.0)
    plan_lock_timeout_seconds: float = Field(default=900.0)
    circuit_breaker_threshold: int = Field(default=3)
    circuit_breaker_timeout_seconds: float = Field(default=60.0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)
    # Run plan jobs as background tasks in the API process instead of a worker.
    inline_plan_generation: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
