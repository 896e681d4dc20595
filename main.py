#!/usr/bin/env python3
"""Main entry point for PresenceGuard."""

import uvicorn

from presence_guard.common.config import get_config
from presence_guard.common.logging import get_logger

logger = get_logger(__name__)


def main():
    """Run the API gateway."""
    config = get_config()
    logger.info(f"PresenceGuard starting in {config.environment.value} mode")
    logger.info(f"Storage backend: {config.storage_backend.value}")
    uvicorn.run(
        "presence_guard.api.gateway:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.is_development and config.debug,
        log_level=config.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
