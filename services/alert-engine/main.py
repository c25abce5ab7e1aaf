"""
Alert Engine Service entry point.

Subscribes to sensor readings on Redis, raises water-quality alerts and
delivers them through the push relay with local fallback.

Usage:
    python services/alert-engine/main.py

Environment Variables:
    REDIS_URL: Redis connection URL (default: redis://localhost:6379)
    LOG_LEVEL: Logging level (default: INFO)
    CONFIG_PATH: Path to config directory (default: config)
    FISHPOND_TYPE: freshwater or saltwater (optional)
    PUSH_SERVER_URL: Push relay base URL (optional)
    PUSH_API_KEY: Push relay API key (optional)
"""

import asyncio
import os
import sys

import structlog

from pureflow import __version__
from pureflow.services import setup_logging
from pureflow.services.alert_engine import AlertEngineService

logger = structlog.get_logger(__name__)


async def main() -> None:
    """Main entry point."""
    # Set up initial logging
    setup_logging()

    config_path = os.getenv("CONFIG_PATH", "config")

    logger.info(
        "alert_engine_service_starting",
        version=__version__,
        config_path=config_path,
    )

    service = AlertEngineService(config_path=config_path)

    try:
        await service.run()
    except Exception as e:
        logger.error("service_failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
