"""Prometheus metrics endpoint for the Magic Actions service."""

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

router = APIRouter()

# Request metrics
REQUEST_COUNT = Counter(
    "magic_actions_requests_total",
    "Total number of requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "magic_actions_request_latency_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Dispatch metrics
JOBS_DISPATCHED = Counter(
    "magic_actions_jobs_dispatched_total",
    "Total number of jobs dispatched",
    ["action", "mode"],
)

DISPATCH_REJECTED = Counter(
    "magic_actions_dispatch_rejected_total",
    "Dispatch requests rejected before a job was created",
    ["action", "error_type"],
)

# Job outcome metrics
JOB_OUTCOMES = Counter(
    "magic_actions_job_outcomes_total",
    "Jobs reaching a terminal status",
    ["action", "status"],
)

JOB_DURATION = Histogram(
    "magic_actions_job_duration_seconds",
    "Job execution time from pickup to terminal status",
    ["action"],
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0],
)

# Queue metrics
QUEUE_DEPTH = Gauge(
    "magic_actions_queue_depth",
    "Units of work waiting for a worker",
)

# Service health metrics
SERVICE_UP = Gauge(
    "magic_actions_service_up",
    "Service availability (1=up, 0=down)",
    ["component"],
)


def record_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record request metrics."""
    REQUEST_COUNT.labels(
        method=method, endpoint=endpoint, status_code=status_code
    ).inc()
    REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)


def record_dispatch(action: str, mode: str):
    """Record a job handed to an execution channel."""
    JOBS_DISPATCHED.labels(action=action, mode=mode).inc()


def record_dispatch_rejected(action: str, error_type: str):
    """Record a dispatch rejected by validation."""
    DISPATCH_REJECTED.labels(action=action, error_type=error_type).inc()


def record_job_outcome(action: str, status: str, duration: float):
    """Record a job reaching completed/failed."""
    JOB_OUTCOMES.labels(action=action, status=status).inc()
    JOB_DURATION.labels(action=action).observe(duration)


def set_queue_depth(depth: int):
    """Set current queue depth."""
    QUEUE_DEPTH.set(depth)


def set_service_health(component: str, is_up: bool):
    """Set service component health status."""
    SERVICE_UP.labels(component=component).set(1 if is_up else 0)


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    This endpoint is excluded from OpenAPI docs.
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
