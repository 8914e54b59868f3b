"""
Entry point for the document preview worker.

This module loads configuration, configures logging, wires the pipeline
components together, serves the health endpoints and runs the worker pool
until a termination signal arrives.
"""

import signal
import sys
import threading
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from loguru import logger

from preview_worker.api.health import HealthContext, create_health_app
from preview_worker.config import Settings, get_settings
from preview_worker.exceptions import ConfigurationError
from preview_worker.services.legacy import LegacyConverter
from preview_worker.services.pipeline import PreviewPipeline
from preview_worker.services.queue import RedisJobQueue
from preview_worker.services.renderer import CarboneRenderer
from preview_worker.services.status import StatusReporter
from preview_worker.services.storage import StorageGateway
from preview_worker.services.worker import WorkerPool
from preview_worker.utils.fs import WorkspaceManager


def setup_logging(settings: Settings) -> None:
    """
    Configure logging with loguru.
    """
    logger.remove()  # Remove default handler

    # Add console handler
    logger.add(
        sink=sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <magenta>{thread.name}</magenta> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL,
        colorize=True
    )

    # Add file handler for production
    if settings.ENVIRONMENT == "production":
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)

        logger.add(
            "logs/worker.log",
            rotation="1 day",
            retention="30 days",
            level=settings.LOG_LEVEL,
            enqueue=True,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {thread.name} | {name}:{function}:{line} - {message}"
        )


def validate_tool_paths(settings: Settings, converter: LegacyConverter) -> None:
    """Validate that the office-suite binary is available."""
    if converter.is_available():
        logger.info(f"Tool validated: soffice at {converter.executable}")
        return

    if settings.ENVIRONMENT == "production":
        raise ConfigurationError(
            f"LibreOffice not found (SOFFICE_PATH={settings.SOFFICE_PATH}). "
            "Legacy .doc documents cannot be converted.",
            missing=["SOFFICE_PATH"],
        )
    logger.warning(
        f"LibreOffice not found at {settings.SOFFICE_PATH} "
        f"(non-fatal in {settings.ENVIRONMENT}); legacy documents will fail"
    )


def build_pipeline(settings: Settings) -> PreviewPipeline:
    """
    Create the preview pipeline from settings.

    Returns:
        PreviewPipeline: Pipeline shared by all worker threads
    """
    return PreviewPipeline(
        storage=StorageGateway.from_settings(settings),
        legacy_converter=LegacyConverter(
            soffice_path=settings.SOFFICE_PATH,
            timeout=settings.LEGACY_CONVERSION_TIMEOUT,
        ),
        renderer=CarboneRenderer(settings.CARBONE_URL, timeout=settings.RENDER_TIMEOUT),
        reporter=StatusReporter.from_settings(settings),
        workspaces=WorkspaceManager(settings.TEMP_BASE_DIR),
    )


class HealthServer:
    """Serves the health application from a background thread."""

    def __init__(self, app: FastAPI, host: str, port: int, log_level: str = "warning"):
        self._server = uvicorn.Server(
            uvicorn.Config(app, host=host, port=port, log_level=log_level, lifespan="off")
        )
        self._thread = threading.Thread(target=self._server.run, name="health-server", daemon=True)
        self.port = port

    def start(self) -> None:
        self._thread.start()
        logger.info(f"Health check listening on port {self.port}")

    def stop(self, timeout: float = 5.0) -> None:
        self._server.should_exit = True
        self._thread.join(timeout)


def install_signal_handlers(pool: WorkerPool) -> None:
    """Stop taking jobs on SIGTERM/SIGINT; running jobs finish first."""

    def _handle(signum, _frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
        pool.stop()

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


def main() -> int:
    """
    Run the worker until it is told to stop.

    Returns:
        int: Process exit code
    """
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        logger.error(str(exc))
        return 1

    setup_logging(settings)
    logger.info(f"Starting {settings.APP_NAME} {settings.VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    pipeline = build_pipeline(settings)
    try:
        validate_tool_paths(settings, pipeline.legacy_converter)
    except ConfigurationError as exc:
        logger.error(f"Tool validation failed: {exc}")
        return 1

    queue = RedisJobQueue.from_url(
        settings.REDIS_URL,
        name=settings.QUEUE_NAME,
        prefix=settings.QUEUE_PREFIX,
        default_attempts=settings.JOB_ATTEMPTS,
        default_backoff=settings.JOB_BACKOFF_SECONDS,
    )
    queue.recover_stalled()

    pool = WorkerPool(queue, pipeline, concurrency=settings.WORKER_CONCURRENCY)
    health = HealthServer(
        create_health_app(
            HealthContext(
                worker=settings.QUEUE_NAME,
                job_stats=pool.stats,
                checks={
                    "redis": queue.ping,
                    "database": pipeline.reporter.ping,
                    "soffice": pipeline.legacy_converter.is_available,
                },
            )
        ),
        host=settings.HEALTH_HOST,
        port=settings.HEALTH_PORT,
    )

    install_signal_handlers(pool)
    health.start()
    try:
        pool.run()
    finally:
        health.stop()
        queue.close()
        logger.info("Worker shut down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
