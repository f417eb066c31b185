"""Error hierarchy for action dispatch and job tracking.

Validation errors (Ineligible, UnsupportedFormat, InvalidContext) are raised
before any job record is written. Execution errors are captured into the
job record by the worker and only surface as ``ExecutionFailedError`` on
the synchronous dispatch path.
"""

from typing import Sequence


class MagicActionError(Exception):
    """Base error for the action engine."""

    error_type = "magic_action_error"


class IneligibleError(MagicActionError):
    """Action is not configured for the field, or the handle is unknown."""

    error_type = "ineligible"


class UnsupportedFormatError(IneligibleError):
    """Resolved asset's MIME type matches none of the accepted patterns."""

    error_type = "unsupported_format"

    def __init__(self, action: str, mime_type: str, accepted: Sequence[str]):
        self.action = action
        self.mime_type = mime_type
        self.accepted = list(accepted)
        super().__init__(
            f"Action '{action}' does not support '{mime_type}'. "
            f"Accepted formats: {', '.join(self.accepted)}"
        )


class InvalidContextError(MagicActionError):
    """A declared context variable could not be resolved from the target."""

    error_type = "invalid_context"

    def __init__(self, message: str, variable: str | None = None):
        self.variable = variable
        super().__init__(message)


class ExecutionFailedError(MagicActionError):
    """A synchronously dispatched job ended in the failed state."""

    error_type = "execution_failed"

    def __init__(self, message: str, job_id: str | None = None):
        self.job_id = job_id
        super().__init__(message)


class InvalidTransitionError(MagicActionError):
    """Attempted to move a job out of a terminal state or backwards."""

    error_type = "invalid_transition"


class NotFoundError(MagicActionError):
    """Requested record is unknown or has expired."""

    error_type = "not_found"


class JobNotFoundError(NotFoundError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class BatchNotFoundError(NotFoundError):
    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} not found")


class ActionNotFoundError(NotFoundError):
    def __init__(self, handle: str):
        self.handle = handle
        super().__init__(f"Action '{handle}' not found")


class TargetNotFoundError(NotFoundError):
    def __init__(self, target_type: str, target_id: str):
        self.target_type = target_type
        self.target_id = target_id
        super().__init__(f"{target_type.capitalize()} '{target_id}' not found")
