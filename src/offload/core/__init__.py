"""Core infrastructure: configuration loading and logging setup."""

from offload.core.config import LoggingSettings, OffloadSettings, load_settings
from offload.core.logging import configure_logging, get_logger

__all__ = [
    "LoggingSettings",
    "OffloadSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
