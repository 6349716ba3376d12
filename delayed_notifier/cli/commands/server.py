"""Server management commands."""

import asyncio
import contextlib
import signal
import sys

import click
import uvicorn

from delayed_notifier.cli.utils import coro, error, info, success
from delayed_notifier.core.exceptions import QueueConnectionError, StoreError
from delayed_notifier.core.settings import get_app_settings
from delayed_notifier.features.notifications.runtime import NotificationRuntime


@click.group(name="server")
def server() -> None:
    """Server management commands."""


@server.command()
@click.option(
    "--host",
    default=None,
    help="Host to bind (default: from settings)",
)
@click.option(
    "--port",
    default=None,
    type=int,
    help="Port to bind (default: from settings)",
)
@click.option(
    "--reload/--no-reload",
    default=False,
    help="Enable auto-reload on code changes",
)
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["critical", "error", "warning", "info", "debug", "trace"]),
    help="Uvicorn log level",
)
def run(host: str | None, port: int | None, reload: bool, log_level: str) -> None:
    """Run the HTTP API (and, unless APP_RUN_PIPELINE=false, the pipeline)."""
    settings = get_app_settings()
    host = host or settings.host
    port = port or settings.port

    info(f"Server will run at: http://{host}:{port}")
    info(f"Environment: {settings.environment}")
    info(f"Pipeline: {'enabled' if settings.run_pipeline else 'disabled'}")

    uvicorn.run(
        "delayed_notifier.app.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


@server.command()
@coro
async def worker() -> None:
    """Run the poller and consumer pool without the HTTP API."""
    runtime = NotificationRuntime()
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await runtime.start(pipeline=True)
    except (StoreError, QueueConnectionError) as e:
        error(f"Failed to start pipeline: {e}")
        await runtime.stop()
        sys.exit(1)

    success("Pipeline running, press Ctrl+C to stop")
    try:
        await stop.wait()
    finally:
        info("Draining in-flight notifications...")
        await runtime.stop()
        success("Pipeline stopped")
