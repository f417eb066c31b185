"""Job and batch tracking on top of the TTL store.

Jobs are stored with their context (target type/id, field, action) so a
client can recover them after navigating away. Batches group job ids and
have no status of their own: it is derived from the member jobs on every
read.
"""

from typing import Any, Iterable, Optional
from uuid import uuid4

import structlog

from magic_actions.actions.errors import (
    BatchNotFoundError,
    InvalidTransitionError,
    JobNotFoundError,
)
from magic_actions.jobs.models import Batch, BatchView, Job, JobContext, utcnow
from magic_actions.jobs.store import JobStore
from magic_actions.jobs.types import BatchStatus, JobStatus

logger = structlog.get_logger(__name__)

DEFAULT_JOB_TTL = 3600  # 1 hour

RECOVERABLE_STATUSES = (JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.COMPLETED)


def _job_key(job_id: str) -> str:
    return f"job:{job_id}"


def _batch_key(batch_id: str) -> str:
    return f"batch:{batch_id}"


def _members_key(batch_id: str) -> str:
    return f"batch:{batch_id}:members"


def _context_key(context_type: str, context_id: str) -> str:
    safe_id = context_id.replace("/", "_").replace("::", "_")
    return f"context:{context_type}:{safe_id}"


def derive_batch_status(
    expected_total: int,
    statuses: Iterable[Optional[JobStatus]],
) -> tuple[BatchStatus, dict[str, int]]:
    """
    Derive aggregate batch status from member job statuses.

    ``None`` entries are members whose records have expired; they count
    neither as completed nor failed and so stay inside ``pending``.

    Returns:
        (status, counts) where counts has completed/failed/processing/pending/missing.
    """
    completed = failed = processing = missing = 0
    for status in statuses:
        if status is None:
            missing += 1
        elif status is JobStatus.COMPLETED:
            completed += 1
        elif status is JobStatus.FAILED:
            failed += 1
        elif status is JobStatus.PROCESSING:
            processing += 1

    pending = max(expected_total - completed - failed, 0)
    counts = {
        "completed": completed,
        "failed": failed,
        "processing": processing,
        "pending": pending,
        "missing": missing,
    }

    if expected_total == 0:
        return BatchStatus.PENDING, counts
    if pending == 0:
        if failed == 0:
            return BatchStatus.COMPLETED, counts
        if completed == 0:
            return BatchStatus.FAILED, counts
        return BatchStatus.PARTIAL_FAILURE, counts
    if completed > 0 or failed > 0 or processing > 0:
        return BatchStatus.PROCESSING, counts
    return BatchStatus.PENDING, counts


class JobTracker:
    """Reads and writes job/batch records by id through a ``JobStore``."""

    def __init__(self, store: JobStore, ttl_seconds: int = DEFAULT_JOB_TTL):
        self._store = store
        self._ttl = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def create_job(self, job_id: str, context: JobContext) -> Job:
        """Create a job in the queued state and index it by context."""
        job = Job(
            id=job_id,
            status=JobStatus.QUEUED,
            context=context,
            message="Job has been queued",
        )
        await self._store.put(_job_key(job_id), job.to_dict(), self._ttl)
        await self._store.append_unique(
            _context_key(context.type, context.id), job_id, self._ttl
        )
        logger.info(
            "job_created",
            job_id=job_id,
            action=context.action,
            target_type=context.type,
            target_id=context.id,
            field=context.field,
        )
        return job

    async def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by id, or None if unknown or expired."""
        data = await self._store.get(_job_key(job_id))
        return Job.from_dict(data) if data else None

    async def require_job(self, job_id: str) -> Job:
        """Get a job by id or raise ``JobNotFoundError``."""
        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def mark_processing(
        self, job_id: str, message: str = "Processing request..."
    ) -> Optional[Job]:
        return await self._transition(job_id, JobStatus.PROCESSING, message=message)

    async def complete(
        self, job_id: str, result: Any, message: Optional[str] = None
    ) -> Optional[Job]:
        return await self._transition(
            job_id, JobStatus.COMPLETED, message=message, result=result
        )

    async def fail(self, job_id: str, error: str) -> Optional[Job]:
        return await self._transition(job_id, JobStatus.FAILED, message=error, error=error)

    async def _transition(
        self,
        job_id: str,
        status: JobStatus,
        message: Optional[str] = None,
        result: Any = None,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """
        Move a job to ``status``.

        Returns the updated job, or None if the record has expired.

        Raises:
            InvalidTransitionError: If the move would leave a terminal state
                or go backwards.
        """
        job = await self.get_job(job_id)
        if job is None:
            logger.warning("job_record_missing", job_id=job_id, status=status.value)
            return None

        if not job.status.can_transition_to(status):
            raise InvalidTransitionError(
                f"Job {job_id} cannot move from {job.status.value} to {status.value}"
            )

        job.status = status
        if message is not None:
            job.message = message
        if status is JobStatus.COMPLETED:
            job.result = result
            job.error = None
        elif status is JobStatus.FAILED:
            job.error = error or "Action execution failed."
            job.result = None
        job.updated_at = utcnow()

        await self._store.put(_job_key(job_id), job.to_dict(), self._ttl)
        return job

    async def jobs_for_context(self, context_type: str, context_id: str) -> list[Job]:
        """Get all live jobs recorded for an entry or asset."""
        job_ids = await self._store.members(_context_key(context_type, context_id))
        jobs = []
        for job_id in job_ids:
            job = await self.get_job(job_id)
            if job is not None:
                jobs.append(job)
        return jobs

    async def recoverable_jobs(self, context_type: str, context_id: str) -> list[Job]:
        """Get pending or completed jobs for a context that haven't been acknowledged."""
        return [
            job
            for job in await self.jobs_for_context(context_type, context_id)
            if job.status in RECOVERABLE_STATUSES and not job.acknowledged
        ]

    async def acknowledge(self, job_id: str) -> Job:
        """Mark a job as seen/applied and drop it from its context index."""
        job = await self.require_job(job_id)
        job.acknowledged = True
        job.acknowledged_at = utcnow()
        await self._store.put(_job_key(job_id), job.to_dict(), self._ttl)
        await self._store.remove_member(
            _context_key(job.context.type, job.context.id), job_id
        )
        return job

    async def remove_job(self, job_id: str) -> None:
        """Remove a job entirely."""
        job = await self.get_job(job_id)
        if job is not None:
            await self._store.remove_member(
                _context_key(job.context.type, job.context.id), job_id
            )
        await self._store.delete(_job_key(job_id))

    async def cleanup_context(self, context_type: str, context_id: str) -> int:
        """Drop expired job ids from a context index. Returns how many were removed."""
        key = _context_key(context_type, context_id)
        removed = 0
        for job_id in await self._store.members(key):
            if not await self._store.exists(_job_key(job_id)):
                await self._store.remove_member(key, job_id)
                removed += 1
        return removed

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def create_batch(
        self,
        action: str,
        expected_total: int,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        """Create a batch record and return its id."""
        if expected_total < 0:
            raise ValueError("expected_total must be >= 0")

        batch = Batch(
            id=str(uuid4()),
            action=action,
            expected_total=expected_total,
            metadata=dict(metadata or {}),
        )
        await self._store.put(_batch_key(batch.id), batch.to_dict(), self._ttl)
        logger.info(
            "batch_created",
            batch_id=batch.id,
            action=action,
            expected_total=expected_total,
        )
        return batch.id

    async def add_member(self, batch_id: str, job_id: str) -> bool:
        """
        Add a job to a batch (append-if-absent).

        Returns True if the job was newly added.

        Raises:
            BatchNotFoundError: If the batch is unknown or expired.
        """
        if not await self._store.exists(_batch_key(batch_id)):
            raise BatchNotFoundError(batch_id)
        return await self._store.append_unique(_members_key(batch_id), job_id, self._ttl)

    async def get_batch(self, batch_id: str) -> BatchView:
        """
        Read a batch and derive its status from the current member jobs.

        Raises:
            BatchNotFoundError: If the batch is unknown or expired.
        """
        data = await self._store.get(_batch_key(batch_id))
        if data is None:
            raise BatchNotFoundError(batch_id)
        batch = Batch.from_dict(data)

        job_ids = await self._store.members(_members_key(batch_id))
        statuses: list[Optional[JobStatus]] = []
        for job_id in job_ids:
            job = await self.get_job(job_id)
            statuses.append(job.status if job else None)

        status, counts = derive_batch_status(batch.expected_total, statuses)
        return BatchView(
            batch_id=batch.id,
            action=batch.action,
            status=status,
            total=batch.expected_total,
            job_ids=tuple(job_ids),
            metadata=batch.metadata,
            created_at=batch.created_at,
            **counts,
        )
