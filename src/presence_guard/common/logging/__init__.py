"""Logging helpers."""

from presence_guard.common.logging.logger import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
