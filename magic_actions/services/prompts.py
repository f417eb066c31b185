"""Prompt rendering with Jinja2.

Action prompts are Jinja2 templates (``{{ text }}``). Missing variables
render as empty strings; the context resolver has already rejected
requests missing a required variable.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog
from jinja2 import Environment, TemplateError

from magic_actions.actions.catalog import ActionDescriptor

logger = structlog.get_logger(__name__)


class PromptRenderError(Exception):
    """A prompt template could not be rendered."""


@dataclass(frozen=True)
class RenderedPrompt:
    """Prompts ready to send to a backend."""

    system: str
    user: str
    schema_name: Optional[str] = None
    json_schema: Optional[dict[str, Any]] = None


class PromptRenderer:
    """Renders an action's system and user prompts with context variables."""

    def __init__(self, global_system_prompt: str = ""):
        self._global_system_prompt = global_system_prompt.strip()
        self._env = Environment(autoescape=False, keep_trailing_newline=False)

    def _render(self, source: str, variables: Mapping[str, Any], handle: str) -> str:
        if not source:
            return ""
        try:
            return self._env.from_string(source).render(**variables).strip()
        except TemplateError as e:
            logger.error("prompt_render_failed", action=handle, error=str(e))
            raise PromptRenderError(f"Could not render prompt for '{handle}': {e}") from e

    def render(
        self, descriptor: ActionDescriptor, variables: Mapping[str, Any]
    ) -> RenderedPrompt:
        system = self._render(descriptor.system_prompt, variables, descriptor.handle)
        if self._global_system_prompt:
            system = "\n\n".join(p for p in (self._global_system_prompt, system) if p)

        schema = descriptor.schema
        return RenderedPrompt(
            system=system,
            user=self._render(descriptor.user_prompt, variables, descriptor.handle),
            schema_name=schema.name if schema else None,
            json_schema=schema.to_json_schema() if schema else None,
        )
