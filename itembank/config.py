"""Configuration and settings for itembank.

Loads settings from environment variables (prefix ``ITEMBANK_``) and an
optional ``.env`` file.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API settings
    api_title: str = "Item Bank Converter API"
    api_version: str = "0.1.0"
    debug: bool = False

    # CORS settings (for frontend dev server)
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Upload guard for the HTTP surface
    max_upload_bytes: int = 10 * 1024 * 1024

    # Export defaults
    default_quiz_title: str = "Quiz"
    points_possible: int = 1
    max_score: int = 100

    # Print layout defaults
    default_paper_size: str = "a4"
    margin_mm: float = 20.0
    essay_line_count: int = 10
    institution_name: str = ""

    class Config:
        """Pydantic settings configuration."""

        env_prefix = "ITEMBANK_"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
