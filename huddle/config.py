from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # Persistent Store
    # ==========================================================================
    store_backend: Literal["json", "mongo"] = "json"
    data_file: str = "data/db.json"

    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "huddle"
    # Multi-document transactions need a replica set
    mongodb_use_transactions: bool = True

    # ==========================================================================
    # Redis Configuration (optional session tracking)
    # ==========================================================================
    redis_url: Optional[str] = None
    session_ttl_seconds: int = 24 * 60 * 60

    # ==========================================================================
    # Uploads
    # ==========================================================================
    upload_dir: str = "uploads"
    avatar_max_bytes: int = 1024 * 1024
    chat_file_max_bytes: int = 10 * 1024 * 1024

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================
    rate_limit_per_minute: int = 120

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: str = "*"

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into list."""
        if self.cors_origins == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def upload_path(self) -> Path:
        return Path(self.upload_dir).resolve()

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading env vars on every request.
    """
    return Settings()


settings = get_settings()
