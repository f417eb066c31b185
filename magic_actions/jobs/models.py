"""Job system data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from magic_actions.jobs.types import BatchStatus, JobStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class JobContext:
    """Where a job applies: target kind/id, field and action. Set once."""

    type: str
    id: str
    field: str
    action: str

    def to_dict(self) -> dict[str, str]:
        return {
            "type": self.type,
            "id": self.id,
            "field": self.field,
            "action": self.action,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobContext":
        return cls(
            type=str(data["type"]),
            id=str(data["id"]),
            field=str(data["field"]),
            action=str(data["action"]),
        )


@dataclass
class Job:
    """A tracked unit of asynchronous work."""

    id: str
    status: JobStatus
    context: JobContext
    message: Optional[str] = None

    # Terminal payloads; at most one is set
    result: Any = None
    error: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    # Set when the editor has applied or dismissed the result
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the store (JSON-safe)."""
        return {
            "id": self.id,
            "status": self.status.value,
            "context": self.context.to_dict(),
            "message": self.message,
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "acknowledged": self.acknowledged,
            "acknowledged_at": (
                self.acknowledged_at.isoformat() if self.acknowledged_at else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            status=JobStatus(data["status"]),
            context=JobContext.from_dict(data["context"]),
            message=data.get("message"),
            result=data.get("result"),
            error=data.get("error"),
            created_at=_parse_ts(data.get("created_at")) or utcnow(),
            updated_at=_parse_ts(data.get("updated_at")),
            acknowledged=bool(data.get("acknowledged", False)),
            acknowledged_at=_parse_ts(data.get("acknowledged_at")),
        )


@dataclass
class Batch:
    """A group of jobs dispatched together. Members are stored separately."""

    id: str
    action: str
    expected_total: int
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "expected_total": self.expected_total,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Batch":
        return cls(
            id=data["id"],
            action=data["action"],
            expected_total=int(data["expected_total"]),
            metadata=dict(data.get("metadata") or {}),
            created_at=_parse_ts(data.get("created_at")) or utcnow(),
        )


@dataclass(frozen=True)
class BatchView:
    """Batch read model with status derived from member jobs at read time."""

    batch_id: str
    action: str
    status: BatchStatus
    total: int
    completed: int
    failed: int
    processing: int
    pending: int
    missing: int
    job_ids: tuple[str, ...]
    metadata: dict[str, Any]
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "action": self.action,
            "status": self.status.value,
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "processing": self.processing,
            "pending": self.pending,
            "missing": self.missing,
            "job_ids": list(self.job_ids),
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class WorkRequest:
    """One unit of work handed from the dispatcher to a worker."""

    job_id: str
    action: str
    context: JobContext
    variables: dict[str, Any] = field(default_factory=dict)
    # Resolved input asset for vision/audio actions
    asset: Any = None
