"""
Settings and environment management module for the scorecard engine.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for development
- Singleton pattern via @lru_cache for efficient access
- Logging setup shared by every entry point that embeds the engine

Environment Variables:
- REQUIRE_NOTE_FOR_RED_KPI: Reject Red values submitted without a note (default: false)
- DEFAULT_DECIMAL_PRECISION: Precision used when a KPI does not declare one (default: 0)
- LOG_LEVEL: Root log level applied by configure_logging (default: INFO)

Usage:
    from scorecard_engine.core.config import get_settings

    settings = get_settings()
    if settings.require_note_for_red_kpi:
        ...
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    The engine never reads these during scoring. Callers use them to build
    the explicit policy objects passed into the ingestion functions, and
    configuration validation reads the default precision.

    Attributes:
        require_note_for_red_kpi: Global "note required on Red" policy default.
        default_decimal_precision: Fallback precision for KPIs created without one.
        log_level: Log level name applied by configure_logging().
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',  # Ignore extra environment variables not defined in this class
        case_sensitive=False,
    )

    # =========================================================================
    # Ingestion Policy
    # =========================================================================

    # When enabled, a value scored Red must carry a non-empty note
    require_note_for_red_kpi: bool = False

    # =========================================================================
    # Value Formatting
    # =========================================================================

    # Precision given to KPIs created without one
    default_decimal_precision: int = Field(default=0, ge=0, le=20)

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: str = 'INFO'


@lru_cache()
def get_settings() -> Settings:
    """
    Get the settings singleton.

    Returns:
        Settings: The settings instance with all configuration values.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for processes embedding the engine.

    Args:
        level: Log level name; defaults to Settings.log_level
    """
    if level is None:
        level = get_settings().log_level

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
