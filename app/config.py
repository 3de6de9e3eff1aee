"""
Application configuration using pydantic-settings.
All settings are loaded from environment variables.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the directory containing this file (app/)
APP_DIR = Path(__file__).resolve().parent
# Project root is one level up
PROJECT_ROOT = APP_DIR.parent
# .env file path
ENV_FILE = PROJECT_ROOT / ".env"

# Load .env file into environment variables BEFORE pydantic-settings reads them
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # App
    app_name: str = "Sourcing Client Portal API"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:3001"]

    # Database
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 5

    # Supabase auth (operator dashboard sessions)
    supabase_jwt_secret: str = ""

    # JWT Auth (internal tokens)
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Client portal magic links
    public_portal_url: str = "http://localhost:3000"
    magic_link_default_days: int = 30
    quotation_link_default_days: int = 14
    magic_link_max_days: int = 365
    issuance_max_attempts: int = 3

    # Store retries (transient database failures)
    store_retry_attempts: int = 3
    store_retry_backoff_seconds: float = 0.2

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("public_portal_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
