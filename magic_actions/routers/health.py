"""Health check endpoint."""

import time

import structlog
from fastapi import APIRouter, Depends

from magic_actions import __version__
from magic_actions.core.engine import Engine, require_engine
from magic_actions.jobs.store import JobStore
from magic_actions.routers.metrics import set_service_health
from magic_actions.schemas import DependencyHealth, HealthResponse
from magic_actions.services.llm_factory import get_backend_status

router = APIRouter()
logger = structlog.get_logger(__name__)

_PROBE_KEY = "health:probe"


async def check_store_health(store: JobStore) -> DependencyHealth:
    """Check job store round trip."""
    start = time.perf_counter()
    try:
        await store.exists(_PROBE_KEY)
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(status="ok", latency_ms=latency)
    except Exception as e:
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(status="error", latency_ms=latency, error=str(e))


def check_backend_status() -> DependencyHealth:
    """Report whether a generation backend is configured (no network call)."""
    try:
        backend_status = get_backend_status()
    except Exception as e:
        return DependencyHealth(status="error", error=str(e))
    if not backend_status.enabled:
        return DependencyHealth(status="disabled", error="No generation backend configured")
    return DependencyHealth(status="ok")


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(engine: Engine = Depends(require_engine)) -> HealthResponse:
    """
    Check health of the service and its dependencies.

    Reports job store reachability, generation backend configuration and
    worker pool state.
    """
    store_health = await check_store_health(engine.store)
    backend_health = check_backend_status()
    workers_running = engine.pool.running

    set_service_health("job_store", store_health.status == "ok")
    set_service_health("backend", backend_health.status == "ok")

    healthy = store_health.status == "ok" and backend_health.status == "ok" and workers_running
    overall_status = "ok" if healthy else "degraded"

    logger.info(
        "health_check_completed",
        status=overall_status,
        job_store=store_health.status,
        backend=backend_health.status,
        workers_running=workers_running,
    )

    return HealthResponse(
        status=overall_status,
        job_store=store_health,
        backend=backend_health,
        workers_running=workers_running,
        actions=len(engine.catalog.handles()),
        version=__version__,
    )
