"""Job system package."""

from magic_actions.jobs.types import BatchStatus, CapabilityType, JobStatus, TargetType
from magic_actions.jobs.models import Batch, BatchView, Job, JobContext, WorkRequest
from magic_actions.jobs.store import InMemoryJobStore, JobStore, get_job_store

__all__ = [
    "BatchStatus",
    "CapabilityType",
    "JobStatus",
    "TargetType",
    "Batch",
    "BatchView",
    "Job",
    "JobContext",
    "WorkRequest",
    "InMemoryJobStore",
    "JobStore",
    "get_job_store",
]
