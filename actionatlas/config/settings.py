"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Paths
    data_dir: Path = Path("data")
    db_path: Path = Path("data/actionatlas.db")
    faiss_index_path: Path = Path("data/indices/faiss")

    # OpenAI embeddings
    openai_api_key: str = ""
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    embedding_cache_ttl_seconds: int = 30 * 24 * 60 * 60

    # Google Maps geocoding (auto location detection is disabled without a key)
    google_maps_api_key: str = ""
    geocoding_base_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    geocoding_timeout_seconds: float = 10.0

    # Gemini location analysis (empty key -> Application Default Credentials)
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_rate_limit_rpm: int = 60

    # Search
    search_default_limit: int = 20
    search_default_num_candidates: int = 100
    search_nearby_pool_size: int = 500
    search_default_max_distance_meters: float = 50_000.0
    search_relevance_weight: float = 0.7
    search_proximity_weight: float = 0.3
    search_auto_detect_location: bool = True

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
