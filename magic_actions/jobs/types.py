"""Job system type definitions."""

from enum import Enum


class JobStatus(str, Enum):
    """Job lifecycle statuses."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (job won't change)."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, target: "JobStatus") -> bool:
        """Check whether moving to ``target`` keeps the lifecycle monotonic."""
        if self.is_terminal:
            return False
        if self is JobStatus.PROCESSING:
            return target.is_terminal
        # QUEUED may be picked up or fail before pickup
        return target is not JobStatus.QUEUED


class BatchStatus(str, Enum):
    """Aggregate status derived from a batch's member jobs."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL_FAILURE = "partial_failure"


class CapabilityType(str, Enum):
    """Backend operation category an action requires."""

    TEXT = "text"
    VISION = "vision"
    AUDIO = "audio"


class TargetType(str, Enum):
    """Kind of content entity an action operates on."""

    ENTRY = "entry"
    ASSET = "asset"
