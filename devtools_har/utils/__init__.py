"""Configuration and logging utilities."""

from devtools_har.utils.config import Settings, get_settings
from devtools_har.utils.logging import LogContext, configure_logging, get_logger

__all__ = [
    "LogContext",
    "Settings",
    "configure_logging",
    "get_logger",
    "get_settings",
]
