"""Generation backend factory and status management."""

from dataclasses import dataclass
from typing import Literal

import structlog

from magic_actions.config import Settings, get_settings
from magic_actions.services.llm_base import GenerationBackend

logger = structlog.get_logger(__name__)

# Type aliases
ProviderConfig = Literal["auto", "openai"]
ProviderResolved = Literal["openai"]


@dataclass
class BackendStatus:
    """Generation backend configuration status."""

    enabled: bool
    provider_config: ProviderConfig
    provider_resolved: ProviderResolved | None
    text_model: str | None
    vision_model: str | None
    audio_model: str | None


# Module-level singletons
_backend: GenerationBackend | None = None
_status: BackendStatus | None = None
_initialized: bool = False


class BackendStartupError(Exception):
    """Raised when generation is required but no provider key is configured."""

    pass


def _resolve_provider(settings: Settings) -> tuple[ProviderResolved | None, str | None]:
    """
    Resolve which provider to use based on settings.

    Returns:
        (provider_resolved, api_key) tuple, or (None, None) if disabled
    """
    # Kill switch
    if not settings.llm_enabled:
        return None, None

    key = (settings.openai_api_key or "").strip() or None

    if settings.llm_provider == "openai" and not key:
        raise BackendStartupError("LLM_PROVIDER=openai but OPENAI_API_KEY not set")

    if key:
        return "openai", key

    if settings.llm_required:
        raise BackendStartupError(
            "LLM_REQUIRED=true but no API key configured. Set OPENAI_API_KEY"
        )

    return None, None


def _create_backend(
    provider: ProviderResolved, api_key: str, settings: Settings
) -> GenerationBackend:
    """Create the backend for a resolved provider."""
    from magic_actions.services.llm_openai import OpenAIBackend

    return OpenAIBackend(
        api_key=api_key,
        base_url=settings.openai_base_url,
        timeout=settings.llm_timeout,
    )


def _initialize() -> None:
    """Initialize the backend subsystem (idempotent)."""
    global _backend, _status, _initialized

    if _initialized:
        return

    settings = get_settings()
    provider_config = settings.llm_provider
    provider_resolved, api_key = _resolve_provider(settings)

    if provider_resolved and api_key:
        _backend = _create_backend(provider_resolved, api_key, settings)
        logger.info(
            "generation_backend_initialized",
            provider_config=provider_config,
            provider_resolved=provider_resolved,
            text_model=settings.text_model,
            vision_model=settings.vision_model,
            audio_model=settings.audio_model,
        )
    else:
        _backend = None
        logger.info(
            "generation_backend_disabled",
            provider_config=provider_config,
            reason="no API key configured" if settings.llm_enabled else "kill switch",
        )

    _status = BackendStatus(
        enabled=_backend is not None,
        provider_config=provider_config,
        provider_resolved=provider_resolved if _backend is not None else None,
        text_model=settings.text_model,
        vision_model=settings.vision_model,
        audio_model=settings.audio_model,
    )
    _initialized = True


def get_backend_status() -> BackendStatus:
    """
    Get backend configuration status.

    Parses config and resolves the provider; useful for health checks.
    """
    _initialize()
    assert _status is not None
    return _status


def get_backend() -> GenerationBackend | None:
    """
    Get the cached generation backend.

    Returns:
        GenerationBackend if enabled and configured, None otherwise

    Raises:
        BackendStartupError: If LLM_REQUIRED=true and no key configured
    """
    _initialize()
    return _backend


def set_backend(backend: GenerationBackend | None) -> None:
    """Install a backend explicitly (tests, custom providers)."""
    global _backend, _status, _initialized
    settings = get_settings()
    _backend = backend
    _status = BackendStatus(
        enabled=backend is not None,
        provider_config=settings.llm_provider,
        provider_resolved=getattr(backend, "provider", None) if backend else None,
        text_model=settings.text_model,
        vision_model=settings.vision_model,
        audio_model=settings.audio_model,
    )
    _initialized = True


def reset_backend() -> None:
    """
    Reset the backend singleton (for testing).

    This allows re-initialization with different settings.
    """
    global _backend, _status, _initialized
    _backend = None
    _status = None
    _initialized = False
