#!/usr/bin/env python3
"""
Runtime Metrics - Agent

The agent samples runtime statistics into a local metric store and pushes
them to the metrics server:
- Runtime sampling at the poll interval
- Metric reporting at the report interval

Usage:
    metrics-agent [-a ADDRESS] [-p POLL_INTERVAL] [-r REPORT_INTERVAL]
"""

import asyncio
import logging
import signal
import sys
from typing import List, Optional

import structlog
from pydantic import ValidationError

from metrics_store import MemStorage, Storage
from .config import AgentSettings, parse_args
from .telemetry import RuntimeSampler
from .transport import MetricsReporter

logger = structlog.get_logger(__name__)


def configure_logging(level: str) -> None:
    """Configure structured logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())
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
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class MetricsAgent:
    """Main agent application."""

    def __init__(self, settings: AgentSettings, storage: Optional[Storage] = None):
        self.settings = settings
        self.storage = storage if storage is not None else MemStorage()
        self._shutdown_event = asyncio.Event()
        self._stop_task: Optional[asyncio.Task] = None

        self.sampler = RuntimeSampler(self.storage, interval=settings.poll_interval)
        self.reporter = MetricsReporter(
            self.storage,
            server_url=settings.server_url,
            interval=settings.report_interval,
        )

    async def start(self) -> None:
        """Start the agent and block until stopped."""
        logger.info(
            "Starting metrics agent",
            server=self.settings.server_url,
            poll_interval=self.settings.poll_interval,
            report_interval=self.settings.report_interval,
        )

        await self.sampler.start()
        await self.reporter.start()

        logger.info("Metrics agent started")
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the agent."""
        logger.info("Stopping metrics agent")

        await self.reporter.stop()
        await self.sampler.stop()

        self._shutdown_event.set()
        logger.info("Metrics agent stopped")

    def handle_signal(self, signum: int) -> None:
        """Handle shutdown signals."""
        logger.info("Received signal", signal=signum)
        self._stop_task = asyncio.create_task(self.stop())


async def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    try:
        settings = parse_args(argv)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    configure_logging(settings.log_level)
    agent = MetricsAgent(settings)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, agent.handle_signal, signum)

    try:
        await agent.start()
    except Exception as e:
        logger.exception("Agent failed", error=str(e))
        sys.exit(1)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
