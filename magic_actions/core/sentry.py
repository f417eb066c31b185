"""Sentry initialization and configuration."""

import os
from typing import Optional

import sentry_sdk
import structlog
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from magic_actions import __version__
from magic_actions.actions.errors import MagicActionError
from magic_actions.config import Settings
from magic_actions.core.errors import status_for

logger = structlog.get_logger(__name__)


def _before_send(event: dict, hint: dict) -> Optional[dict]:
    """
    Filter out client errors from Sentry events.

    Rejected dispatches and unknown ids (401, 403, 404, 422, 429) are not
    tracked; only server errors are.
    """
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        if isinstance(exc_value, MagicActionError):
            if status_for(exc_value) < 500:
                return None
        status_code = getattr(exc_value, "status_code", None)
        if isinstance(status_code, int) and 400 <= status_code < 500:
            return None

    response = event.get("contexts", {}).get("response", {})
    status_code = response.get("status_code", 0)
    if 400 <= status_code < 500:
        return None

    return event


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry if DSN is configured.

    Returns True if Sentry was initialized, False otherwise.
    """
    if not settings.sentry_dsn:
        return False

    # Only ERROR-level logs become Sentry events
    sentry_logging = LoggingIntegration(level=None, event_level="ERROR")

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=os.environ.get("GIT_SHA", f"magic-actions@{__version__}"),
        integrations=[
            sentry_logging,
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=_before_send,
    )

    sentry_sdk.set_tag("service", "magic-actions")
    sentry_sdk.set_tag("job_store", settings.job_store_backend)
    sentry_sdk.set_tag("text_model", settings.text_model)

    logger.info(
        "sentry_initialized",
        environment=settings.sentry_environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )

    return True
