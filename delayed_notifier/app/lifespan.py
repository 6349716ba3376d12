"""Application lifespan management.

Startup order:
1. Core (logging, application info metric)
2. Notification runtime: Redis, then (unless ``APP_RUN_PIPELINE=false``)
   RabbitMQ, the due poller and the consumer pool

Shutdown runs in reverse: the pipeline drains in-flight sends before the
connections are closed, and logging is flushed last.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from delayed_notifier.core.settings import get_app_settings, get_logging_settings
from delayed_notifier.features.notifications.runtime import NotificationRuntime
from delayed_notifier.infra.logging.config import setup_logging
from delayed_notifier.infra.logging.config import shutdown as shutdown_logging
from delayed_notifier.infra.metrics.prometheus import application_info

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def _startup_core() -> None:
    """Configure logging and publish the application info metric."""
    app = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": app.service_name, "environment": app.environment},
    )
    application_info.labels(
        version=app.version,
        service=app.service_name,
        environment=app.environment,
    ).set(1)


async def _startup_runtime(app: FastAPI) -> NotificationRuntime:
    """Start the notification runtime and expose it on ``app.state``."""
    app_settings = get_app_settings()
    runtime = getattr(app.state, "runtime", None) or NotificationRuntime()
    try:
        await runtime.start(pipeline=app_settings.run_pipeline)
    except Exception:
        logger.exception("Notification runtime failed to start")
        await runtime.stop()
        raise

    app.state.runtime = runtime
    return runtime


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    await _startup_core()
    runtime = await _startup_runtime(app)

    app_settings = get_app_settings()
    logger.info(
        "Application startup complete - listening on %s:%s",
        app_settings.host,
        app_settings.port,
        extra={
            "service": app_settings.service_name,
            "pipeline": app_settings.run_pipeline,
            "channels": sorted(runtime.transports),
        },
    )

    try:
        yield
    finally:
        logger.info("Application shutting down")
        await runtime.stop()
        app.state.runtime = None
        logger.info("Application shutdown complete")
        shutdown_logging()
