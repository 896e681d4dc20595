"""Centralized logging configuration.

Modules log through ``logging.getLogger(__name__)`` and pass claim context
in ``extra``. Entry points call ``configure_logging`` once at startup.
"""

import logging
from typing import Union

from presence_guard.common.config.settings import LogLevel

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# AWS SDK chatter that buries claim decisions at DEBUG
NOISY_LOGGERS = ("boto3", "botocore", "urllib3")


def _resolve_level(level: Union[str, LogLevel]) -> int:
    name = level.value if isinstance(level, LogLevel) else str(level).upper()
    return getattr(logging, LogLevel(name).value)


def configure_logging(level: Union[str, LogLevel] = LogLevel.INFO) -> None:
    """Configure the root logger for a service process."""
    resolved = _resolve_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))


def get_logger(name: str, level: Union[str, LogLevel] = LogLevel.INFO) -> logging.Logger:
    """Get a configured logger instance with its own stream handler."""
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
