"""Configuration for the adaptive dialog engine."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="ADAPTIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service settings
    service_name: str = "adaptive-core"
    log_level: str = "info"
    log_format: str = "pretty"

    # Dialog defaults
    auto_end_dialog: bool = True
    default_result_property: str = "dialog.result"

    # Re-entrant dispatch guard
    max_event_depth: int = 100

    # Fallback operation when neither the ask nor the schema table has one
    default_operation: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
