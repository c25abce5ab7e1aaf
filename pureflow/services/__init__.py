"""
Service runtime shared by the long-running PureFlow services.

This module provides logging setup and the ServiceRunner base class which
handles configuration loading, the Redis connection, signal-driven shutdown
and the initialize/run/cleanup lifecycle.

Example:
    >>> class MyService(ServiceRunner):
    ...     @property
    ...     def service_name(self) -> str:
    ...         return "my-service"
    ...
    ...     async def _run(self) -> None:
    ...         await self.shutdown_event.wait()
    >>>
    >>> setup_logging()
    >>> await MyService(config_path="config").run()
"""

import asyncio
import logging
import os
import signal
from abc import ABC, abstractmethod
from typing import Optional, Union

import structlog

from pureflow.config.loader import load_config
from pureflow.config.models import AppConfig, LogFormat, LogLevel
from pureflow.storage.redis_client import RedisClient


def setup_logging(
    level: Union[LogLevel, str, None] = None,
    log_format: Union[LogFormat, str] = LogFormat.JSON,
) -> None:
    """
    Configure structlog on top of the standard logging module.

    Args:
        level: Log level. Defaults to the LOG_LEVEL environment variable,
            then INFO.
        log_format: ``json`` for machine-readable output or ``text`` for
            human-readable output.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level_name = (level.value if isinstance(level, LogLevel) else str(level)).upper()
    fmt = log_format.value if isinstance(log_format, LogFormat) else str(log_format)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if fmt == LogFormat.TEXT.value
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level_name, logging.INFO),
        force=True,
    )

    # Reduce noise from client libraries
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class ServiceRunner(ABC):
    """
    Base class for long-running services.

    Subclasses implement ``service_name`` and ``_run``, and optionally
    ``_initialize`` and ``_cleanup``.

    Attributes:
        config_path: Directory holding the YAML configuration.
        config: Loaded application configuration.
        redis_client: Connected Redis client.
        shutdown_event: Set on SIGINT/SIGTERM or by ``request_shutdown``.
        logger: Logger bound to the service name.
    """

    def __init__(self, config_path: str = "config") -> None:
        self.config_path = config_path
        self.config: Optional[AppConfig] = None
        self.redis_client: Optional[RedisClient] = None
        self.shutdown_event = asyncio.Event()
        self.logger = structlog.get_logger(__name__).bind(service=self.service_name)

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Return service name."""

    async def _initialize(self) -> None:
        """Service-specific initialization."""

    @abstractmethod
    async def _run(self) -> None:
        """Main service loop."""

    async def _cleanup(self) -> None:
        """Service-specific cleanup."""

    def request_shutdown(self) -> None:
        """Ask the service to stop."""
        if not self.shutdown_event.is_set():
            self.logger.info("shutdown_requested")
            self.shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                self.logger.debug("signal_handler_unavailable", signal=sig.name)

    async def _setup(self) -> None:
        self.config = load_config(self.config_path)
        setup_logging(self.config.log_level, self.config.features.logging.format)

        self.redis_client = RedisClient(
            self.config.redis,
            key_prefix=self.config.features.storage.key_prefix,
        )
        await self.redis_client.connect()

    async def _teardown(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.disconnect()

    async def run(self) -> None:
        """
        Run the service until shutdown is requested or ``_run`` returns.

        Raises:
            Exception: Whatever ``_initialize`` or ``_run`` raised.
        """
        self._install_signal_handlers()
        await self._setup()
        self.logger.info("service_starting", config_path=self.config_path)

        try:
            await self._initialize()

            run_task = asyncio.create_task(self._run())
            shutdown_task = asyncio.create_task(self.shutdown_event.wait())
            done, pending = await asyncio.wait(
                {run_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED,
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            if run_task in done:
                run_task.result()

        finally:
            try:
                await self._cleanup()
            finally:
                await self._teardown()
                self.logger.info("service_stopped")


__all__ = [
    "ServiceRunner",
    "setup_logging",
]
