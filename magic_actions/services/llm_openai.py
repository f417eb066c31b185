"""OpenAI generation backend: chat, vision and Whisper transcription."""

import json
import time
from typing import Any

import httpx
import structlog

from magic_actions.jobs.types import CapabilityType
from magic_actions.services.llm_base import (
    BackendAPIError,
    BackendError,
    BackendRateLimitError,
    BackendTimeoutError,
    GenerationBackend,
    GenerationInput,
    GenerationResult,
    Message,
)

logger = structlog.get_logger(__name__)

# Parameters forwarded to the chat completions endpoint
CHAT_PARAMETERS = ("temperature", "max_tokens", "top_p", "presence_penalty", "frequency_penalty")

# Parameters forwarded to the transcription endpoint
TRANSCRIPTION_PARAMETERS = ("language", "temperature", "prompt")


class OpenAIBackend(GenerationBackend):
    """Generation backend using the OpenAI HTTP API."""

    OPENAI_BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: int = 60,
    ):
        """
        Initialize the OpenAI backend.

        Args:
            api_key: OpenAI API key
            base_url: OpenAI-compatible API base URL
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = (base_url or self.OPENAI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.provider = "openai"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def generate(
        self,
        capability: CapabilityType,
        model: str,
        request: GenerationInput,
    ) -> GenerationResult:
        if capability is CapabilityType.AUDIO:
            return await self._transcribe(model, request)
        return await self._chat(capability, model, request)

    def _messages(self, capability: CapabilityType, request: GenerationInput) -> list[Message]:
        messages: list[Message] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})

        if capability is CapabilityType.VISION:
            if request.asset is None or not request.asset.url:
                raise BackendError(
                    "Vision request needs an asset with a URL", provider=self.provider
                )
            content: Any = [
                {"type": "text", "text": request.prompt},
                {"type": "image_url", "image_url": {"url": request.asset.url}},
            ]
        else:
            content = request.prompt
        messages.append({"role": "user", "content": content})
        return messages

    async def _chat(
        self,
        capability: CapabilityType,
        model: str,
        request: GenerationInput,
    ) -> GenerationResult:
        payload: dict[str, Any] = {
            "model": model,
            "messages": self._messages(capability, request),
        }
        for key in CHAT_PARAMETERS:
            if key in request.parameters:
                payload[key] = request.parameters[key]
        if request.json_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": request.schema_name or "response",
                    "schema": request.json_schema,
                    "strict": True,
                },
            }

        start = time.perf_counter()
        data = await self._post_json(model, "/chat/completions", payload)
        latency_ms = (time.perf_counter() - start) * 1000

        choices = data.get("choices", [])
        if not choices:
            raise BackendAPIError(
                "No response from OpenAI", provider=self.provider, model=model
            )
        text = choices[0].get("message", {}).get("content") or ""

        structured = None
        if request.structured:
            try:
                structured = json.loads(text)
            except ValueError as e:
                raise BackendAPIError(
                    f"OpenAI returned invalid JSON for structured output: {e}",
                    provider=self.provider,
                    model=model,
                )

        usage_data = data.get("usage", {})
        usage = None
        if usage_data:
            usage = {
                "input_tokens": usage_data.get("prompt_tokens", 0),
                "output_tokens": usage_data.get("completion_tokens", 0),
            }

        actual_model = data.get("model", model)
        logger.debug(
            "openai_generation_complete",
            model=actual_model,
            capability=capability.value,
            input_tokens=usage.get("input_tokens") if usage else None,
            output_tokens=usage.get("output_tokens") if usage else None,
            latency_ms=round(latency_ms, 2),
        )

        return GenerationResult(
            text=text,
            structured=structured,
            model=actual_model,
            provider=self.provider,
            usage=usage,
            latency_ms=latency_ms,
        )

    async def _transcribe(self, model: str, request: GenerationInput) -> GenerationResult:
        asset = request.asset
        if asset is None or not asset.url:
            raise BackendError(
                "Transcription needs an asset with a URL", provider=self.provider
            )

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                download = await client.get(asset.url)
                download.raise_for_status()

                data = {"model": model}
                for key in TRANSCRIPTION_PARAMETERS:
                    if key in request.parameters:
                        data[key] = str(request.parameters[key])

                response = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers=self._headers(),
                    data=data,
                    files={
                        "file": (
                            asset.basename or "audio",
                            download.content,
                            asset.mime_type or "application/octet-stream",
                        )
                    },
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise self._map_error(e, model)
        latency_ms = (time.perf_counter() - start) * 1000

        logger.debug(
            "openai_transcription_complete",
            model=model,
            asset=asset.path,
            latency_ms=round(latency_ms, 2),
        )
        return GenerationResult(
            text=body.get("text", ""),
            model=model,
            provider=self.provider,
            latency_ms=latency_ms,
        )

    async def _post_json(self, model: str, path: str, payload: dict[str, Any]) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{path}",
                    headers={**self._headers(), "Content-Type": "application/json"},
                    json=payload,
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise self._map_error(e, model)

    def _map_error(self, e: httpx.HTTPError, model: str) -> BackendError:
        """Map an httpx error to the backend error hierarchy."""
        if isinstance(e, httpx.TimeoutException):
            logger.error("openai_timeout", model=model, error=str(e))
            return BackendTimeoutError(
                provider=self.provider, model=model, timeout_seconds=self.timeout
            )

        if isinstance(e, httpx.HTTPStatusError):
            status_code = e.response.status_code
            error_body = ""
            try:
                error_body = e.response.json().get("error", {}).get("message", "")
            except (ValueError, AttributeError):
                pass
            logger.error(
                "openai_http_error",
                model=model,
                status_code=status_code,
                error=error_body or str(e),
            )
            if status_code == 429:
                retry_after = e.response.headers.get("retry-after")
                return BackendRateLimitError(
                    provider=self.provider,
                    model=model,
                    retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None,
                )
            return BackendAPIError(
                f"OpenAI API error: {status_code} - {error_body or e}",
                provider=self.provider,
                model=model,
                status_code=status_code,
            )

        logger.error("openai_request_error", model=model, error=str(e))
        return BackendError(
            f"OpenAI request failed: {e}", provider=self.provider, model=model
        )
