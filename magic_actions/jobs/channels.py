"""Execution channels: how a dispatched unit of work reaches a worker.

The dispatcher validates and records a job once, then hands it to a
channel. ``QueueChannel`` enqueues it for the worker pool (async mode);
``InlineChannel`` runs it in the caller's task (sync mode).
"""

import asyncio
from abc import ABC, abstractmethod

import structlog

from magic_actions.jobs.models import WorkRequest
from magic_actions.jobs.worker import ActionWorker
from magic_actions.routers.metrics import set_queue_depth

logger = structlog.get_logger(__name__)


class ExecutionChannel(ABC):
    """Hand-off point between dispatcher and worker."""

    name: str = "base"

    @abstractmethod
    async def submit(self, request: WorkRequest) -> None:
        ...


class QueueChannel(ExecutionChannel):
    """Queue consumed by a ``WorkerPool``; ``submit`` waits when the queue is full."""

    name = "async"

    def __init__(self, max_size: int = 0):
        self.queue: asyncio.Queue[WorkRequest] = asyncio.Queue(maxsize=max_size)

    async def submit(self, request: WorkRequest) -> None:
        await self.queue.put(request)
        set_queue_depth(self.queue.qsize())
        logger.debug("work_enqueued", job_id=request.job_id, depth=self.queue.qsize())


class InlineChannel(ExecutionChannel):
    """Runs the job to a terminal state before returning."""

    name = "sync"

    def __init__(self, worker: ActionWorker):
        self._worker = worker

    async def submit(self, request: WorkRequest) -> None:
        await self._worker.execute(request)
