"""Convenience exports for common utility helpers."""
from __future__ import annotations

from .config import Settings, find_config_in_parents, load_settings
from .logger import configure_logging, get_logger
from .retry_handler import RetryConfig, RetryHandler

__all__ = [
    "Settings",
    "find_config_in_parents",
    "load_settings",
    "configure_logging",
    "get_logger",
    "RetryConfig",
    "RetryHandler",
]
