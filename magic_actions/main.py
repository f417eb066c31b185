"""Magic Actions - FastAPI Application."""

import structlog
from fastapi import FastAPI

from magic_actions import __version__
from magic_actions.config import get_settings
from magic_actions.core.errors import install_error_handlers
from magic_actions.core.lifespan import lifespan
from magic_actions.core.middleware import setup_middleware
from magic_actions.core.sentry import init_sentry
from magic_actions.routers import actions, health, jobs, metrics

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

settings = get_settings()
init_sentry(settings)


def create_app() -> FastAPI:
    """Create the FastAPI application with middleware and routers."""
    app = FastAPI(
        title="Magic Actions",
        description="Asynchronous AI actions for CMS entries and assets",
        version=__version__,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    install_error_handlers(app)

    app.include_router(health.router)
    app.include_router(actions.router)
    app.include_router(jobs.router)
    app.include_router(metrics.router)  # Metrics endpoint (excluded from OpenAPI)

    @app.get("/")
    async def root():
        """Root endpoint with service info."""
        return {
            "service": "Magic Actions",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import logging

    import uvicorn

    logging.basicConfig(level=settings.log_level.upper(), format="%(message)s")
    uvicorn.run(
        "magic_actions.main:app",
        host=settings.service_host,
        port=settings.service_port,
        log_level=settings.log_level.lower(),
    )
