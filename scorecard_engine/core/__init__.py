"""
Core infrastructure package for the scorecard engine.

Provides configuration management via pydantic-settings and the shared
logging setup. Re-exports the key components so callers can write:

    from scorecard_engine.core import get_settings, configure_logging

Components Re-exported:
    Settings: Pydantic settings class with all configuration parameters
    get_settings: Function returning the cached Settings singleton
    configure_logging: Applies the engine's logging format and level
    LOG_FORMAT: Format string used for log records
"""

from scorecard_engine.core.config import (
    LOG_FORMAT,
    Settings,
    configure_logging,
    get_settings,
)

__all__ = [
    'Settings',
    'get_settings',
    'configure_logging',
    'LOG_FORMAT',
]
