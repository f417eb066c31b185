"""Action worker - executes queued jobs and records their outcome."""

import asyncio
import os
import socket
import time
import traceback
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog

from magic_actions.actions.catalog import ActionCatalog, ActionDescriptor
from magic_actions.actions.errors import ExecutionFailedError, InvalidTransitionError
from magic_actions.config import Settings, get_settings
from magic_actions.jobs.models import WorkRequest
from magic_actions.jobs.tracker import JobTracker
from magic_actions.jobs.types import CapabilityType
from magic_actions.routers.metrics import record_job_outcome, set_queue_depth
from magic_actions.services.llm_base import (
    BackendNotConfiguredError,
    GenerationBackend,
    GenerationInput,
    parse_model_key,
)
from magic_actions.services.prompts import PromptRenderer

if TYPE_CHECKING:
    from magic_actions.jobs.channels import QueueChannel

logger = structlog.get_logger(__name__)

BackendSource = Callable[[], Optional[GenerationBackend]]


def generate_worker_id() -> str:
    """Generate a unique worker ID: hostname:pid."""
    return f"{socket.gethostname()}:{os.getpid()}"


class ActionWorker:
    """
    Runs one job: queued -> processing -> completed | failed.

    Every failure after pickup is captured into the job record; nothing
    is retried.
    """

    def __init__(
        self,
        tracker: JobTracker,
        catalog: ActionCatalog,
        renderer: PromptRenderer,
        backend: BackendSource,
        settings: Optional[Settings] = None,
    ):
        self._tracker = tracker
        self._catalog = catalog
        self._renderer = renderer
        self._backend = backend
        self._settings = settings or get_settings()

    async def execute(self, request: WorkRequest) -> None:
        """Execute a single job."""
        log = logger.bind(job_id=request.job_id, action=request.action)

        try:
            job = await self._tracker.mark_processing(request.job_id)
        except InvalidTransitionError as e:
            log.warning("job_pickup_skipped", error=str(e))
            return
        if job is None:
            # Record expired before pickup
            return

        log.info("job_executing")
        start = time.perf_counter()
        try:
            descriptor = self._catalog.lookup(request.action)
            result = await self._run(descriptor, request)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            log.error(
                "job_failed",
                error=error,
                error_class=e.__class__.__name__,
                traceback=traceback.format_exc(),
            )
            await self._tracker.fail(request.job_id, error)
            record_job_outcome(request.action, "failed", time.perf_counter() - start)
            return

        await self._tracker.complete(request.job_id, result)
        duration = time.perf_counter() - start
        record_job_outcome(request.action, "completed", duration)
        log.info("job_succeeded", duration_ms=round(duration * 1000, 2))

    async def _run(self, descriptor: ActionDescriptor, request: WorkRequest) -> Any:
        """Render prompts, call the backend, unwrap the response."""
        backend = self._backend()
        if backend is None:
            raise BackendNotConfiguredError()

        capability = descriptor.capability_type
        provider, model = parse_model_key(self._settings.model_for(capability.value))
        if provider != backend.provider:
            raise BackendNotConfiguredError(
                f"No backend for provider '{provider}'", provider=provider
            )

        if capability is not CapabilityType.TEXT and request.asset is None:
            raise ExecutionFailedError(
                f"Action '{descriptor.handle}' needs an input asset",
                job_id=request.job_id,
            )

        rendered = self._renderer.render(descriptor, request.variables)
        response = await backend.generate(
            capability,
            model,
            GenerationInput(
                system=rendered.system,
                prompt=rendered.user,
                schema_name=rendered.schema_name,
                json_schema=rendered.json_schema,
                parameters=dict(descriptor.parameter_defaults),
                asset=request.asset,
            ),
        )

        if response.structured is not None:
            return descriptor.unwrap(response.structured)
        return response.text


class WorkerPool:
    """N asyncio tasks consuming a queue channel, one job at a time each."""

    def __init__(
        self,
        worker: ActionWorker,
        channel: "QueueChannel",
        concurrency: int = 4,
        worker_id: Optional[str] = None,
    ):
        self._worker = worker
        self._channel = channel
        self._concurrency = concurrency
        self._worker_id = worker_id or generate_worker_id()
        self._tasks: list[asyncio.Task] = []

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        """Start the worker tasks."""
        if self._tasks:
            return
        for i in range(self._concurrency):
            self._tasks.append(
                asyncio.create_task(self._loop(i), name=f"magic-actions-worker-{i}")
            )
        logger.info(
            "worker_pool_started",
            worker_id=self._worker_id,
            concurrency=self._concurrency,
        )

    async def stop(self) -> None:
        """Cancel the worker tasks. Queued work is dropped."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("worker_pool_stopped", worker_id=self._worker_id)

    async def drain(self) -> None:
        """Wait until every queued unit of work has been processed."""
        await self._channel.queue.join()

    async def _loop(self, index: int) -> None:
        queue = self._channel.queue
        while True:
            request = await queue.get()
            set_queue_depth(queue.qsize())
            try:
                await self._worker.execute(request)
            except Exception as e:
                logger.error(
                    "worker_loop_error",
                    worker=index,
                    job_id=request.job_id,
                    error=str(e),
                    traceback=traceback.format_exc(),
                )
            finally:
                queue.task_done()
