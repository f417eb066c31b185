"""Request middleware: request ids, API key, body size, rate limits, CORS."""

import secrets
import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from magic_actions import __version__
from magic_actions.config import Settings
from magic_actions.routers import metrics

logger = structlog.get_logger(__name__)

# No API key needed for probes, scraping and docs
PUBLIC_PATHS = {"/health", "/metrics", "/docs", "/openapi.json", "/redoc", "/"}


def _error(status_code: int, detail: str, error_type: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "error_type": error_type},
        headers={"X-Request-ID": request_id, "X-API-Version": __version__},
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render a slowapi rejection in the service's error shape."""
    logger.warning("rate_limited", limit=str(exc.detail))
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}", "error_type": "rate_limited"},
    )


def setup_rate_limiter(app: FastAPI, settings: Settings) -> Limiter:
    """Apply a per-client default limit to every route."""
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.rate_limit_requests_per_minute}/minute"],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    # slowapi calls this handler synchronously from its middleware
    app.add_exception_handler(
        RateLimitExceeded, rate_limit_exceeded_handler  # type: ignore[arg-type]
    )
    app.add_middleware(SlowAPIMiddleware)
    return limiter


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the CMS control panel to call the API from the browser."""
    if settings.cors_origins.strip() == "*":
        origins = ["*"]
        logger.warning("cors_allow_all", reason="CORS_ORIGINS not set")
    else:
        origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
        logger.info("cors_configured", origins=origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    if request.headers.get("X-Forwarded-Proto") == "https":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


def create_request_middleware(settings: Settings):
    """Create request middleware with settings closure."""

    async def request_middleware(request: Request, call_next):
        """Bind a request id, enforce API key and body size, record timing."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        if settings.api_key and request.url.path not in PUBLIC_PATHS:
            provided_key = request.headers.get(settings.api_key_header_name)
            if not provided_key:
                logger.warning("api_key_missing")
                return _error(
                    401,
                    f"API key required. Provide key in {settings.api_key_header_name} header",
                    "unauthorized",
                    request_id,
                )
            if not secrets.compare_digest(provided_key, settings.api_key):
                logger.warning("api_key_invalid")
                return _error(403, "Invalid API key", "forbidden", request_id)

        content_length = request.headers.get("content-length")
        if (
            content_length
            and content_length.isdigit()
            and int(content_length) > settings.max_request_body_size
        ):
            logger.warning(
                "request_body_too_large",
                content_length=int(content_length),
                max_size=settings.max_request_body_size,
            )
            return _error(
                413,
                f"Request body too large. Maximum size is {settings.max_request_body_size} bytes",
                "payload_too_large",
                request_id,
            )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("request_failed", error=str(e))
            return _error(500, "Internal server error", "internal_error", request_id)

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"
        response.headers["X-API-Version"] = __version__

        if request.url.path != "/metrics":
            route = request.scope.get("route")
            metrics.record_request(
                method=request.method,
                endpoint=getattr(route, "path", request.url.path),
                status_code=response.status_code,
                duration=duration_ms / 1000,
            )

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response

    return request_middleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Set up all middleware for the application."""
    setup_rate_limiter(app, settings)
    setup_cors(app, settings)

    # Starlette runs the last added middleware first
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(create_request_middleware(settings))
