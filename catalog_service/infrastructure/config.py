"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./catalog.db"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Catalog
    category_cache_ttl_seconds: float = 60.0
    bulk_chunk_size: int = 100
    preview_row_limit: int = 15
    default_page_size: int = 10
    max_page_size: int = 100


settings = Settings()
