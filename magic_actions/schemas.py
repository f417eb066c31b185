"""Pydantic models for request/response validation."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from magic_actions.jobs.models import BatchView, Job
from magic_actions.jobs.types import BatchStatus, JobStatus, TargetType


# Request Models
class TargetRef(BaseModel):
    """Reference to an entry or asset."""

    type: TargetType = Field(..., description="Target kind: entry or asset")
    id: str = Field(..., min_length=1, description="Target id")


class ActionRequest(BaseModel):
    """Request to run one action against one target field."""

    target: TargetRef = Field(..., description="Entry or asset the action applies to")
    field: str = Field(..., min_length=1, description="Field handle on the target's blueprint")
    variables: dict[str, Any] = Field(
        default_factory=dict,
        description="Prompt variables supplied by the caller; override resolved context",
    )
    asset_path: Optional[str] = Field(
        None, description="Explicit input asset reference for vision/audio actions"
    )


class BulkActionRequest(BaseModel):
    """Request to run one action over many targets as a batch."""

    targets: list[TargetRef] = Field(..., min_length=1, description="Targets to process")
    field: str = Field(..., min_length=1, description="Field handle written by the action")
    variables: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Stored on the batch record"
    )


# Response Models
class JobContextResponse(BaseModel):
    """Where a job applies."""

    type: str
    id: str
    field: str
    action: str


class ActionAcceptedResponse(BaseModel):
    """Response for an accepted asynchronous dispatch."""

    job_id: str = Field(..., description="Id to poll at /jobs/{job_id}")
    status: JobStatus = Field(..., description="Initial job status")


class JobResponse(BaseModel):
    """Job status and outcome."""

    job_id: str
    status: JobStatus
    message: Optional[str] = None
    context: JobContextResponse
    result: Any = None
    error: Optional[str] = None
    acknowledged: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(
            job_id=job.id,
            status=job.status,
            message=job.message,
            context=JobContextResponse(**job.context.to_dict()),
            result=job.result,
            error=job.error,
            acknowledged=job.acknowledged,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class JobListResponse(BaseModel):
    """Recoverable jobs for an entry or asset."""

    jobs: list[JobResponse]
    count: int


class BatchResponse(BaseModel):
    """Batch status derived from member jobs at read time."""

    batch_id: str
    action: str
    status: BatchStatus
    total: int
    completed: int
    failed: int
    processing: int
    pending: int
    missing: int = Field(0, description="Members whose job records have expired")
    job_ids: list[str]
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_view(cls, view: BatchView) -> "BatchResponse":
        return cls(
            batch_id=view.batch_id,
            action=view.action,
            status=view.status,
            total=view.total,
            completed=view.completed,
            failed=view.failed,
            processing=view.processing,
            pending=view.pending,
            missing=view.missing,
            job_ids=list(view.job_ids),
            metadata=dict(view.metadata),
            created_at=view.created_at,
        )


class BulkItemResponse(BaseModel):
    """Outcome for one target of a bulk dispatch."""

    target_id: str
    status: str = Field(..., description="queued, skipped or failed")
    job_id: Optional[str] = None
    error: Optional[str] = None


class BulkActionResponse(BaseModel):
    """Summary of a bulk dispatch."""

    batch_id: Optional[str] = Field(None, description="None when nothing was dispatched")
    action: str
    queued: int
    skipped: int
    failed: int
    items: list[BulkItemResponse]


class ActionSummary(BaseModel):
    """Catalog entry."""

    handle: str
    title: str
    type: str
    accepted_formats: list[str]
    supports_bulk: bool
    bulk_target_type: str


class ActionListResponse(BaseModel):
    """Registered actions."""

    actions: list[ActionSummary]


class AvailableActionsResponse(BaseModel):
    """Actions that may run on a target's field."""

    target: TargetRef
    field: str
    actions: list[str]


class ErrorResponse(BaseModel):
    """Domain error body."""

    detail: str
    error_type: str


class DependencyHealth(BaseModel):
    """Health status for a dependency."""

    status: str = Field(..., description="Dependency status (ok/error/disabled)")
    latency_ms: Optional[float] = Field(None, description="Response latency in ms")
    error: Optional[str] = Field(None, description="Error message if unhealthy")


class HealthResponse(BaseModel):
    """Response for health endpoint."""

    status: str = Field(..., description="Overall service status")
    job_store: DependencyHealth = Field(..., description="Job store health")
    backend: DependencyHealth = Field(..., description="Generation backend status")
    workers_running: bool = Field(..., description="Background worker pool state")
    actions: int = Field(..., description="Registered action count")
    version: str = Field(..., description="Service version")
