"""Job and batch status endpoints."""

import structlog
from fastapi import APIRouter, Depends, Query, Response, status

from magic_actions.core.engine import Engine, require_engine
from magic_actions.jobs.types import TargetType
from magic_actions.schemas import BatchResponse, ErrorResponse, JobListResponse, JobResponse

router = APIRouter(tags=["Jobs"])
logger = structlog.get_logger(__name__)


@router.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    responses={
        200: {"description": "Job status retrieved"},
        404: {"model": ErrorResponse, "description": "Job not found or expired"},
    },
)
async def get_job_status(job_id: str, engine: Engine = Depends(require_engine)) -> JobResponse:
    """
    Get the status of a job.

    Job statuses:
    - queued: Job has been created and is waiting for a worker
    - processing: A worker is running the action
    - completed: Finished; ``result`` holds the output
    - failed: Finished; ``error`` holds the reason
    """
    job = await engine.tracker.require_job(job_id)
    return JobResponse.from_job(job)


@router.get("/jobs", response_model=JobListResponse)
async def list_context_jobs(
    type: TargetType = Query(..., description="Target kind"),
    id: str = Query(..., min_length=1, description="Target id"),
    engine: Engine = Depends(require_engine),
) -> JobListResponse:
    """Unacknowledged queued, processing or completed jobs for an entry or asset."""
    jobs = await engine.tracker.recoverable_jobs(type.value, id)
    return JobListResponse(jobs=[JobResponse.from_job(j) for j in jobs], count=len(jobs))


@router.post(
    "/jobs/{job_id}/acknowledge",
    response_model=JobResponse,
    responses={404: {"model": ErrorResponse, "description": "Job not found or expired"}},
)
async def acknowledge_job(job_id: str, engine: Engine = Depends(require_engine)) -> JobResponse:
    """Mark a job's result as applied or dismissed; it stops being recoverable."""
    job = await engine.tracker.acknowledge(job_id)
    logger.info("job_acknowledged", job_id=job_id)
    return JobResponse.from_job(job)


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(job_id: str, engine: Engine = Depends(require_engine)) -> Response:
    """Remove a job record. Unknown ids are ignored."""
    await engine.tracker.remove_job(job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/batches/{batch_id}",
    response_model=BatchResponse,
    responses={404: {"model": ErrorResponse, "description": "Batch not found or expired"}},
)
async def get_batch_status(
    batch_id: str, engine: Engine = Depends(require_engine)
) -> BatchResponse:
    """Batch progress derived from its member jobs."""
    view = await engine.tracker.get_batch(batch_id)
    return BatchResponse.from_view(view)
