"""
Centralized settings management using pydantic-settings.

Values come from ``CRAFTREC_``-prefixed environment variables or a ``.env``
file. Use get_settings() to access the cached settings instance.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Optional environment variables:
        - CRAFTREC_LOG_LEVEL: Logging level (default: INFO)
        - CRAFTREC_CATALOG_BACKEND: "memory" or "supabase" (default: memory)
        - CRAFTREC_CATALOG_CSV: CSV file loaded by the memory backend
        - CRAFTREC_SUPABASE_URL / CRAFTREC_SUPABASE_KEY: Supabase credentials
        - CRAFTREC_PREFERENCES_DIR: Directory for persisted visitor profiles
        - CRAFTREC_VISITOR_CACHE_SIZE: Visitor profiles cached in memory
    """

    model_config = SettingsConfigDict(
        env_prefix="CRAFTREC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Root logging level")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return v

    # ==========================================================================
    # Recommendation Limits
    # ==========================================================================
    default_limit: int = Field(default=6, ge=1, description="General result limit")
    product_page_limit: int = Field(
        default=8, ge=1, description="Result limit on the product page"
    )
    max_limit: int = Field(default=50, ge=1, description="Largest limit a caller may ask for")

    # ==========================================================================
    # Catalog Configuration
    # ==========================================================================
    catalog_backend: Literal["memory", "supabase"] = Field(
        default="memory", description="Catalog data source"
    )
    catalog_csv: Optional[Path] = Field(
        default=None, description="CSV catalog for the memory backend"
    )
    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_key: Optional[str] = Field(default=None, description="Supabase API key")
    products_table: str = Field(default="products", description="Products table name")

    # ==========================================================================
    # Preference Storage
    # ==========================================================================
    preferences_dir: Optional[Path] = Field(
        default=None,
        description="Directory for visitor profiles; in-memory when unset",
    )
    visitor_cache_size: int = Field(
        default=1024,
        ge=1,
        description="Visitor preference stores kept in memory before the least recent is dropped",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The application settings instance
    """
    return Settings()
