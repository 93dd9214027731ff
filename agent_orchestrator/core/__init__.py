"""Core utilities shared by the orchestrator components."""
from __future__ import annotations

from .utils import (
    RetryConfig,
    RetryHandler,
    Settings,
    configure_logging,
    get_logger,
    load_settings,
)

__all__ = [
    "RetryConfig",
    "RetryHandler",
    "Settings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
