"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_FIELDTYPE_ACTIONS: dict[str, list[Any]] = {
    "terms": ["extract-tags", "assign-tags-from-taxonomies"],
    "text": ["propose-title", "alt-text", "image-caption"],
    "textarea": ["extract-meta-description", "alt-text", "image-caption"],
    "bard": ["create-teaser", "transcribe-audio"],
    "assets": ["extract-assets-tags"],
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    service_host: str = Field(default="0.0.0.0", description="Service host")
    service_port: int = Field(default=8000, description="Service port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Job Store
    job_store_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Job/batch store: in-process memory or shared Redis",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    job_ttl_seconds: int = Field(
        default=3600,
        gt=0,
        description="Lifetime of job and batch records; evicted after regardless of status",
    )

    # Workers
    worker_concurrency: int = Field(
        default=4, ge=1, description="Number of concurrent background workers"
    )
    queue_max_size: int = Field(
        default=0,
        ge=0,
        description="Maximum queued units of work (0 = unbounded)",
    )

    # LLM Provider Configuration
    llm_provider: Literal["auto", "openai"] = Field(
        default="auto",
        description="Generation backend provider: auto picks the first configured key",
    )
    llm_required: bool = Field(
        default=False,
        description="If true, fail startup when no provider key configured",
    )
    llm_enabled: bool = Field(
        default=True,
        description="Kill switch to disable generation regardless of keys",
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible API base URL",
    )
    llm_timeout: int = Field(default=60, description="LLM request timeout in seconds")

    # Default models per capability type, format "provider/model"
    text_model: str = Field(default="openai/gpt-4.1", description="Model for text actions")
    vision_model: str = Field(default="openai/gpt-4.1", description="Model for vision actions")
    audio_model: str = Field(default="openai/whisper-1", description="Model for audio actions")

    global_system_prompt: str = Field(
        default="", description="Prepended to every action's system prompt"
    )

    # Field configuration: fieldtype -> configured action handles
    fieldtypes: dict[str, list[Any]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_FIELDTYPE_ACTIONS.items()},
        description="Actions enabled per fieldtype (JSON in env)",
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, description="Enable rate limiting")
    rate_limit_requests_per_minute: int = Field(
        default=120, description="Maximum requests per minute per IP"
    )

    cors_origins: str = Field(
        default="*", description="Comma-separated allowed origins, or * for any"
    )

    # Request size limits
    max_request_body_size: int = Field(
        default=1024 * 1024,  # 1 MB
        description="Maximum request body size in bytes",
    )

    # API Key Authentication
    api_key: Optional[str] = Field(
        default=None,
        description="Optional API key. If set, all requests must include the API key header",
    )
    api_key_header_name: str = Field(default="X-API-Key", description="Header name for API key")

    # Sentry Observability
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN")
    sentry_environment: str = Field(default="development", description="Sentry environment tag")
    sentry_traces_sample_rate: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Sentry tracing sample rate"
    )

    def model_for(self, capability: str) -> str:
        """Get the configured "provider/model" key for a capability type."""
        return {
            "text": self.text_model,
            "vision": self.vision_model,
            "audio": self.audio_model,
        }[capability]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
