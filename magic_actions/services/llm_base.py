"""Generation backend interface and shared types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, TypedDict

import structlog

from magic_actions.actions.targets import Asset
from magic_actions.jobs.types import CapabilityType

logger = structlog.get_logger(__name__)

# Message types
Role = Literal["system", "user", "assistant"]


class Message(TypedDict):
    """Chat message structure."""

    role: Role
    content: Any


@dataclass
class GenerationInput:
    """Everything a backend needs for one call."""

    system: str = ""
    prompt: str = ""
    schema_name: Optional[str] = None
    json_schema: Optional[dict[str, Any]] = None
    parameters: dict[str, Any] = field(default_factory=dict)
    asset: Optional[Asset] = None

    @property
    def structured(self) -> bool:
        return self.json_schema is not None


@dataclass
class GenerationResult:
    """Response from a generation call."""

    text: str
    model: str
    provider: str
    structured: Optional[dict[str, Any]] = None
    usage: dict | None = None  # {input_tokens, output_tokens}
    latency_ms: float | None = None


def parse_model_key(key: str, default_provider: str = "openai") -> tuple[str, str]:
    """Split a ``provider/model`` key; bare model names use ``default_provider``."""
    key = key.strip()
    if "/" in key:
        provider, model = key.split("/", 1)
        return provider.strip().lower(), model.strip()
    return default_provider, key


# ===========================================
# Errors - Provider-agnostic exception hierarchy
# Providers map their errors to these in their adapters
# ===========================================


class BackendError(Exception):
    """Base error from a generation provider."""

    def __init__(self, message: str, provider: str, model: str | None = None):
        self.provider = provider
        self.model = model
        super().__init__(message)


class BackendNotConfiguredError(BackendError):
    """Raised when generation is requested but no usable provider is configured."""

    def __init__(self, message: str = "No generation backend configured", provider: str = "none"):
        super().__init__(message, provider)


class BackendTimeoutError(BackendError):
    """Request timed out waiting for the provider."""

    def __init__(
        self,
        message: str = "Generation request timed out",
        provider: str = "unknown",
        model: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        super().__init__(message, provider, model)


class BackendRateLimitError(BackendError):
    """Rate limited by the provider."""

    def __init__(
        self,
        message: str = "Rate limited by generation provider",
        provider: str = "unknown",
        model: str | None = None,
        retry_after_seconds: int | None = None,
    ):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, provider, model)


class BackendAPIError(BackendError):
    """General API error from the provider (non-rate-limit)."""

    def __init__(
        self,
        message: str = "Generation provider API error",
        provider: str = "unknown",
        model: str | None = None,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider, model)


class GenerationBackend(ABC):
    """Abstract base class for generation providers."""

    provider: str = "base"  # Override in subclasses

    @abstractmethod
    async def generate(
        self,
        capability: CapabilityType,
        model: str,
        request: GenerationInput,
    ) -> GenerationResult:
        """
        Run one generation call.

        Args:
            capability: text completion, vision (with ``request.asset``) or
                audio transcription (of ``request.asset``)
            model: Provider model name, without the provider prefix
            request: Rendered prompts, schema, parameters and input asset

        Returns:
            GenerationResult with text and, for structured requests, the parsed object

        Raises:
            BackendError: On provider errors
        """
        ...

    async def close(self) -> None:
        """Release client resources. No-op by default."""
