"""Application lifespan management - startup and shutdown logic."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI

from magic_actions import __version__
from magic_actions.config import get_settings
from magic_actions.core.engine import build_engine, get_engine, set_engine

logger = structlog.get_logger(__name__)


def _init_backend_subsystem() -> None:
    """Resolve the generation backend and log configuration."""
    from magic_actions.services.llm_factory import BackendStartupError, get_backend_status

    try:
        backend_status = get_backend_status()
    except BackendStartupError as e:
        logger.error("generation_backend_startup_failed", error=str(e))
        raise

    logger.info(
        "generation_backend_configuration",
        provider_config=backend_status.provider_config,
        provider_resolved=backend_status.provider_resolved,
        text_model=backend_status.text_model,
        vision_model=backend_status.vision_model,
        audio_model=backend_status.audio_model,
        enabled=backend_status.enabled,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "service_starting",
        version=__version__,
        host=settings.service_host,
        port=settings.service_port,
        job_store=settings.job_store_backend,
        worker_concurrency=settings.worker_concurrency,
    )

    _init_backend_subsystem()

    # An engine set beforehand (tests, embedding apps) is reused
    engine = get_engine()
    owned = engine is None
    if engine is None:
        engine = build_engine(settings)
        set_engine(engine)

    await engine.start()

    yield

    logger.info("service_stopping")
    await engine.stop()
    if owned:
        set_engine(None)
    logger.info("service_stopped")
