"""Engine wiring: builds the catalog, store, worker pool and dispatcher together."""

from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import HTTPException, status

from magic_actions.actions.catalog import ActionCatalog
from magic_actions.actions.context import ContextResolver
from magic_actions.actions.definitions import build_default_catalog
from magic_actions.actions.dispatcher import ActionDispatcher
from magic_actions.actions.eligibility import EligibilityChecker
from magic_actions.actions.targets import ContentRepository, InMemoryContentRepository
from magic_actions.config import Settings, get_settings
from magic_actions.jobs.channels import InlineChannel, QueueChannel
from magic_actions.jobs.store import JobStore, get_job_store
from magic_actions.jobs.tracker import JobTracker
from magic_actions.jobs.worker import ActionWorker, WorkerPool
from magic_actions.services.llm_base import GenerationBackend
from magic_actions.services.llm_factory import get_backend
from magic_actions.services.prompts import PromptRenderer

logger = structlog.get_logger(__name__)


@dataclass
class Engine:
    """Everything a request handler needs, built once per process."""

    settings: Settings
    catalog: ActionCatalog
    repository: ContentRepository
    store: JobStore
    tracker: JobTracker
    eligibility: EligibilityChecker
    worker: ActionWorker
    queue: QueueChannel
    pool: WorkerPool
    dispatcher: ActionDispatcher

    async def start(self) -> None:
        self.pool.start()

    async def stop(self) -> None:
        await self.pool.stop()
        await self.store.close()


def build_engine(
    settings: Optional[Settings] = None,
    repository: Optional[ContentRepository] = None,
    store: Optional[JobStore] = None,
    backend: Optional[GenerationBackend] = None,
    catalog: Optional[ActionCatalog] = None,
) -> Engine:
    """
    Build an engine from settings.

    Args:
        settings: Defaults to ``get_settings()``
        repository: Content adapter; defaults to an empty in-memory repository
        store: Job store; defaults to the configured backend
        backend: Generation backend; defaults to the provider factory
        catalog: Action catalog; defaults to the built-in actions
    """
    settings = settings or get_settings()
    repository = repository or InMemoryContentRepository()
    store = store or get_job_store()
    catalog = catalog or build_default_catalog(settings)

    tracker = JobTracker(store, ttl_seconds=settings.job_ttl_seconds)
    eligibility = EligibilityChecker(catalog)
    worker = ActionWorker(
        tracker,
        catalog,
        PromptRenderer(settings.global_system_prompt),
        backend=(lambda: backend) if backend is not None else get_backend,
        settings=settings,
    )
    queue = QueueChannel(max_size=settings.queue_max_size)
    pool = WorkerPool(worker, queue, concurrency=settings.worker_concurrency)
    dispatcher = ActionDispatcher(
        catalog=catalog,
        eligibility=eligibility,
        context_resolver=ContextResolver(repository),
        repository=repository,
        tracker=tracker,
        async_channel=queue,
        sync_channel=InlineChannel(worker),
    )

    logger.info(
        "engine_built",
        actions=len(catalog.handles()),
        store=store.__class__.__name__,
        concurrency=settings.worker_concurrency,
    )
    return Engine(
        settings=settings,
        catalog=catalog,
        repository=repository,
        store=store,
        tracker=tracker,
        eligibility=eligibility,
        worker=worker,
        queue=queue,
        pool=pool,
        dispatcher=dispatcher,
    )


# Module-level singleton, set by the lifespan
_engine: Optional[Engine] = None


def get_engine() -> Optional[Engine]:
    """Get the running engine."""
    return _engine


def set_engine(engine: Optional[Engine]) -> None:
    """Set the engine (lifespan and tests)."""
    global _engine
    _engine = engine


def require_engine() -> Engine:
    """FastAPI dependency: the running engine, or 503 before startup."""
    if _engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Action engine not initialized",
        )
    return _engine
