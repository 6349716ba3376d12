"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from delayed_notifier.app.exception_handlers import configure_exception_handlers
from delayed_notifier.app.lifespan import lifespan
from delayed_notifier.app.router import setup_routers
from delayed_notifier.core.settings import get_app_settings


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Settings are loaded once and cached via LRU cache.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = get_app_settings()

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        docs_url=app_settings.docs_url,
        redoc_url=None,
        openapi_url=app_settings.openapi_url,
        debug=app_settings.debug,
        lifespan=lifespan,
    )
    app.state.runtime = None

    # Configure exception handlers
    configure_exception_handlers(app)

    setup_routers(app, app_settings)

    return app


# Application instance for uvicorn
app = create_app()
