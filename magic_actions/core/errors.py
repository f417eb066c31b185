"""HTTP mapping for domain errors."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from magic_actions.actions.errors import (
    ExecutionFailedError,
    IneligibleError,
    InvalidContextError,
    InvalidTransitionError,
    MagicActionError,
    NotFoundError,
)

logger = structlog.get_logger(__name__)

# First match wins; subclasses before their bases
_STATUS_BY_ERROR: list[tuple[type[MagicActionError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (IneligibleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidContextError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ExecutionFailedError, status.HTTP_502_BAD_GATEWAY),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
]


def status_for(exc: MagicActionError) -> int:
    """HTTP status code for a domain error."""
    for error_class, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc: MagicActionError) -> dict:
    body = {"detail": str(exc), "error_type": exc.error_type}
    if isinstance(exc, ExecutionFailedError) and exc.job_id:
        body["job_id"] = exc.job_id
    return body


async def magic_action_error_handler(request: Request, exc: MagicActionError) -> JSONResponse:
    """Render a domain error as ``{detail, error_type}``."""
    code = status_for(exc)
    if code >= 500:
        logger.error("request_domain_error", error=str(exc), error_type=exc.error_type)
    else:
        logger.info("request_rejected", error=str(exc), error_type=exc.error_type)
    return JSONResponse(status_code=code, content=error_body(exc))


def install_error_handlers(app: FastAPI) -> None:
    """Register domain error handlers on an app."""
    app.add_exception_handler(MagicActionError, magic_action_error_handler)  # type: ignore[arg-type]
