"""
Runtime Metrics - Server

FastAPI application that receives metrics from agents, keeps them in memory
and persists them to disk.

Usage:
    metrics-server [-a ADDRESS] [-i STORE_INTERVAL] [-f FILE_STORAGE_PATH] [-r RESTORE]
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import List, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from metrics_store import MemStorage, Storage
from .config import Settings, parse_args
from .routers import listing, update, value
from .services import PersistenceManager

logger = structlog.get_logger(__name__)


def configure_logging(level: str) -> None:
    """Configure structured logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_app(settings: Settings, storage: Optional[Storage] = None) -> FastAPI:
    """Build the server application around one metric store."""
    storage = storage if storage is not None else MemStorage()
    persistence = PersistenceManager(
        storage,
        file_path=settings.file_storage_path,
        interval=settings.store_interval,
        restore=settings.restore,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        logger.info("Starting metrics server", address=settings.address)
        await persistence.start()

        yield

        # Shutdown
        logger.info("Shutting down metrics server")
        await persistence.stop()

    app = FastAPI(
        title="Runtime Metrics Server",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = storage
    app.state.persistence = persistence

    app.add_middleware(GZipMiddleware, minimum_size=500)

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests."""
        start_time = time.monotonic()

        response = await call_next(request)

        duration_ms = (time.monotonic() - start_time) * 1000

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            size=response.headers.get("content-length"),
            duration_ms=round(duration_ms, 2),
            client=request.client.host if request.client else "unknown",
        )

        return response

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.exception("Unhandled exception", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    app.include_router(update.router, tags=["Update"])
    app.include_router(value.router, tags=["Value"])
    app.include_router(listing.router, tags=["Listing"])

    return app


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    try:
        settings = parse_args(argv)
        host, port = settings.host_port
    except (ValidationError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    configure_logging(settings.log_level)
    app = create_app(settings)

    # Exits non-zero if the listen socket cannot be bound.
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
