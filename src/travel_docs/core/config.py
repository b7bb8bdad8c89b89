from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"

    database_url: str = "sqlite:///./travel_docs.db"
    redis_url: str = "redis://localhost:6379/0"

    local_storage_path: Path = Path(".local_storage")

    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    extraction_timeout_seconds: float = 60.0

    # Off by default: uploads are stored as plain records until the user opts in.
    auto_parse_enabled: bool = False


settings = Settings()
