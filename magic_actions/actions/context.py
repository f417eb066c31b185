"""Context injection: fill prompt variables from the target before dispatch.

An action may declare ``context_requirements``, a mapping of variable
name to resolver. Built-in resolvers:

- ``entry_content``: text of the field's ``magic_actions_source`` field,
  else the entry's ``content``, else all entry data
- ``taxonomy_terms``: comma-joined term titles of the field's taxonomy
- ``asset_metadata``: filename, extension, size and dimensions of an asset
- ``entry_field:<handle>``: raw value of another entry field

A resolver may also be a callable ``(target, field_handle)``, sync or async.
"""

import inspect
from typing import Any, Mapping, Optional

import structlog

from magic_actions.actions.catalog import ActionDescriptor, ResolverRef
from magic_actions.actions.errors import InvalidContextError
from magic_actions.actions.targets import ContentRepository, Target
from magic_actions.jobs.types import TargetType

logger = structlog.get_logger(__name__)

SOURCE_FIELD_KEY = "magic_actions_source"
ENTRY_FIELD_PREFIX = "entry_field:"

# Keys of rich-text nodes that carry structure, not text
_STRUCTURAL_KEYS = ("type", "attrs", "marks")


def extract_text(content: Any) -> str:
    """Flatten strings, lists and rich-text node trees into plain text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, (int, float, bool)):
        return str(content).strip()
    if isinstance(content, Mapping):
        if content.get("type") == "text" and isinstance(content.get("text"), str):
            return content["text"].strip()
        values = [v for k, v in content.items() if k not in _STRUCTURAL_KEYS]
    elif isinstance(content, (list, tuple)):
        values = list(content)
    else:
        return ""

    fragments = [extract_text(v) for v in values]
    return "\n".join(f for f in fragments if f)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return not value
    return False


class ContextResolver:
    """Resolves declared context variables for a target/field."""

    def __init__(self, repository: ContentRepository):
        self._repository = repository

    async def resolve(
        self,
        descriptor: ActionDescriptor,
        target: Target,
        field_handle: str,
        supplied: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Build the variables passed to prompt rendering.

        Caller-supplied variables are kept as-is; only missing ones are
        resolved. Every variable in ``descriptor.required_variables`` must
        end up non-empty.

        Raises:
            InvalidContextError: A resolver failed or is unknown, or a
                required variable is empty.
        """
        variables: dict[str, Any] = dict(supplied or {})

        if descriptor.context_requirements is not None:
            for variable, resolver in descriptor.context_requirements.items():
                if not _is_empty(variables.get(variable)):
                    continue
                variables[variable] = await self._resolve_one(
                    variable, resolver, target, field_handle
                )

        for variable in descriptor.required_variables:
            if _is_empty(variables.get(variable)):
                raise InvalidContextError(
                    f"Action '{descriptor.handle}' requires '{variable}', "
                    f"but it could not be resolved from {target.kind.value} '{target.id}'",
                    variable=variable,
                )

        return variables

    async def _resolve_one(
        self, variable: str, resolver: ResolverRef, target: Target, field_handle: str
    ) -> Any:
        try:
            if isinstance(resolver, str):
                return await self._builtin(resolver, target, field_handle)
            value = resolver(target, field_handle)
            if inspect.isawaitable(value):
                value = await value
            return value
        except InvalidContextError:
            raise
        except Exception as e:
            logger.warning(
                "context_resolver_failed",
                variable=variable,
                target_type=target.kind.value,
                target_id=target.id,
                error=str(e),
            )
            raise InvalidContextError(
                f"Could not resolve context variable '{variable}': {e}",
                variable=variable,
            ) from e

    async def _builtin(self, resolver: str, target: Target, field_handle: str) -> Any:
        if resolver == "entry_content":
            return self._entry_content(target, field_handle)
        if resolver == "taxonomy_terms":
            return await self._taxonomy_terms(target, field_handle)
        if resolver == "asset_metadata":
            return self._asset_metadata(target)
        if resolver.startswith(ENTRY_FIELD_PREFIX):
            handle = resolver[len(ENTRY_FIELD_PREFIX):]
            if target.kind is not TargetType.ENTRY or not handle:
                return ""
            return target.get(handle)
        raise InvalidContextError(f"Unsupported context resolver '{resolver}'")

    @staticmethod
    def _field_config(target: Target, field_handle: str) -> dict[str, Any]:
        field = target.blueprint.field(field_handle) if target.blueprint else None
        return dict(field.config) if field else {}

    def _entry_content(self, target: Target, field_handle: str) -> str:
        if target.kind is not TargetType.ENTRY:
            return ""

        source = self._field_config(target, field_handle).get(SOURCE_FIELD_KEY)
        if isinstance(source, str) and source:
            return extract_text(target.get(source))

        content = target.get("content")
        if content is not None:
            return extract_text(content)
        return extract_text(target.data)

    async def _taxonomy_terms(self, target: Target, field_handle: str) -> str:
        config = self._field_config(target, field_handle)
        taxonomy = config.get("taxonomy")
        if not (isinstance(taxonomy, str) and taxonomy):
            candidates = config.get("taxonomies") or []
            taxonomy = next((t for t in candidates if isinstance(t, str) and t), None)
        if taxonomy is None:
            return ""

        titles: list[str] = []
        for title in await self._repository.taxonomy_terms(taxonomy):
            title = str(title).strip()
            if title and title not in titles:
                titles.append(title)
        return ", ".join(titles)

    @staticmethod
    def _asset_metadata(target: Target) -> str:
        if target.kind is not TargetType.ASSET:
            return ""
        asset = target.asset

        parts = []
        if asset.basename:
            parts.append(f"filename: {asset.basename}")
        if asset.extension:
            parts.append(f"extension: {asset.extension}")
        if asset.size is not None:
            parts.append(f"size: {int(asset.size)} bytes")
        if asset.width is not None and asset.height is not None:
            parts.append(f"dimensions: {int(asset.width)}x{int(asset.height)}")
        return ", ".join(parts)
