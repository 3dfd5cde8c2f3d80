"""
Configuration management for the newsroom pipeline service.
All settings come from environment variables (or a local .env file).
"""

import importlib
from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # "development" exposes error detail in 500 responses; anything else hides it.
    environment: str = Field(default="production", alias="ENVIRONMENT")

    # Shared secret for scheduler-triggered endpoints (Authorization: Bearer <secret>).
    # Empty = every trigger call is rejected.
    cron_secret: str = Field(default="", alias="CRON_SECRET")

    # Database
    database_url: str = Field(default="sqlite:///./newsroom.db", alias="DATABASE_URL")

    # ── Pipeline lock ──
    lock_name: str = Field(default="cron_pipeline", alias="LOCK_NAME")
    lock_ttl_minutes: int = Field(default=10, alias="LOCK_TTL_MINUTES")
    # Early exit: skip a run when the last successful one finished less than
    # this many minutes ago (bypassed by force=1).
    min_run_interval_minutes: int = Field(default=10, alias="MIN_RUN_INTERVAL_MINUTES")

    # ── Retention ──
    retention_days: int = Field(default=30, alias="RETENTION_DAYS")
    cleanup_sample_size: int = Field(default=10, alias="CLEANUP_SAMPLE_SIZE")

    # ── Response cache ──
    # Feed/list queries
    cache_ttl_seconds: int = Field(default=300, alias="CACHE_TTL_SECONDS")
    # Facet/filter metadata changes rarely
    cache_filters_ttl_seconds: int = Field(default=3600, alias="CACHE_FILTERS_TTL_SECONDS")
    cache_max_entries: int = Field(default=1000, alias="CACHE_MAX_ENTRIES")

    # ── Fact verification ──
    fact_check_min_confidence: float = Field(default=0.8, alias="FACT_CHECK_MIN_CONFIDENCE")
    # False = advisory (flag for review, still publish). True = flagged clusters stay draft.
    fact_check_blocks_publication: bool = Field(default=False, alias="FACT_CHECK_BLOCKS_PUBLICATION")

    # ── Read API ──
    supported_languages: str = Field(default="en,si,ta", alias="SUPPORTED_LANGUAGES")
    default_language: str = Field(default="en", alias="DEFAULT_LANGUAGE")
    feed_limit_default: int = Field(default=20, alias="FEED_LIMIT_DEFAULT")
    feed_limit_max: int = Field(default=50, alias="FEED_LIMIT_MAX")
    home_window_hours: int = Field(default=24, alias="HOME_WINDOW_HOURS")

    # ── Pipeline collaborators ──
    # "package.module:attribute" import paths. A class is instantiated
    # without arguments, anything else is used as is.
    mock_mode: bool = Field(default=False, alias="MOCK_MODE")
    ingestor: str = Field(default="", alias="INGESTOR")
    clusterer: str = Field(default="", alias="CLUSTERER")
    summarizer: str = Field(default="", alias="SUMMARIZER")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    def get_languages(self) -> List[str]:
        """Supported summary languages, default language first."""
        langs = [l.strip() for l in self.supported_languages.split(",") if l.strip()]
        if self.default_language in langs:
            langs.remove(self.default_language)
        return [self.default_language] + langs


def load_object(path: str) -> Any:
    """Resolve a "module:attribute" import path."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Expected 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
