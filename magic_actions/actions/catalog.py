"""Action catalog: handle -> ActionDescriptor.

Actions are registered once at start-up from an explicit list of
definition factories. A definition that fails validation is skipped and
logged so the remaining actions stay available.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Literal, Mapping, Optional, Union

import structlog

from magic_actions.actions.errors import ActionNotFoundError
from magic_actions.jobs.types import CapabilityType, TargetType

logger = structlog.get_logger(__name__)

# A context resolver is a built-in name ("entry_content", "taxonomy_terms",
# "asset_metadata", "entry_field:<handle>") or a callable(target, field_handle).
ResolverRef = Union[str, Callable[..., Any]]

SchemaFieldType = Literal["string", "array"]


def kebab_case(name: str) -> str:
    """Derive an action handle from a definition name: ``ProposeTitle`` -> ``propose-title``."""
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", name.strip())
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1-\2", name)
    name = re.sub(r"[\s_]+", "-", name)
    return re.sub(r"-{2,}", "-", name).strip("-").lower()


@dataclass(frozen=True)
class OutputSchema:
    """Shape of a structured response: object with string/array-of-string fields."""

    name: str
    description: str
    fields: Mapping[str, SchemaFieldType]

    def to_json_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for key, kind in self.fields.items():
            if kind == "array":
                properties[key] = {"type": "array", "items": {"type": "string"}}
            else:
                properties[key] = {"type": "string"}
        return {
            "type": "object",
            "description": self.description,
            "properties": properties,
            "required": list(self.fields),
            "additionalProperties": False,
        }


@dataclass
class ActionDefinition:
    """
    Loose, author-facing description of an action.

    Validated into an immutable ``ActionDescriptor`` at registration.
    """

    name: str
    type: str
    title: str = ""
    handle: Optional[str] = None
    system: str = ""
    prompt: str = ""
    schema: Optional[OutputSchema] = None
    parameters: dict[str, Any] = field(default_factory=dict)
    accepted_mime_types: list[str] = field(default_factory=list)
    context_requirements: Optional[dict[str, ResolverRef]] = None
    required_variables: list[str] = field(default_factory=list)
    supports_bulk: bool = False
    bulk_target_type: str = TargetType.ENTRY.value


@dataclass(frozen=True)
class ActionDescriptor:
    """Immutable, registered action."""

    handle: str
    title: str
    capability_type: CapabilityType
    accepted_formats: tuple[str, ...] = ()
    parameter_defaults: Mapping[str, Any] = field(default_factory=dict)
    context_requirements: Optional[Mapping[str, ResolverRef]] = None
    system_prompt: str = ""
    user_prompt: str = ""
    schema: Optional[OutputSchema] = None
    required_variables: tuple[str, ...] = ()
    supports_bulk: bool = False
    bulk_target_type: TargetType = TargetType.ENTRY

    def unwrap(self, structured: Any) -> Any:
        """Collapse a single-field structured response to its value."""
        if isinstance(structured, dict) and len(structured) == 1:
            return next(iter(structured.values()))
        return structured

    def to_summary(self) -> dict[str, Any]:
        return {
            "handle": self.handle,
            "title": self.title,
            "type": self.capability_type.value,
            "accepted_formats": list(self.accepted_formats),
            "supports_bulk": self.supports_bulk,
            "bulk_target_type": self.bulk_target_type.value,
        }


class MalformedActionError(ValueError):
    """An action definition failed validation."""


def build_descriptor(definition: ActionDefinition) -> ActionDescriptor:
    """
    Validate a definition and freeze it into a descriptor.

    Raises:
        MalformedActionError: On any invalid attribute.
    """
    handle = (definition.handle or kebab_case(definition.name or "")).strip()
    if not handle:
        raise MalformedActionError("action has no name or handle")

    try:
        capability = CapabilityType(definition.type)
    except ValueError:
        raise MalformedActionError(f"{handle}: unknown capability type {definition.type!r}")

    formats = []
    for pattern in definition.accepted_mime_types:
        if not isinstance(pattern, str) or "/" not in pattern:
            raise MalformedActionError(f"{handle}: invalid MIME pattern {pattern!r}")
        formats.append(pattern.strip().lower())

    if capability is not CapabilityType.AUDIO and not definition.prompt.strip():
        raise MalformedActionError(f"{handle}: {capability.value} actions need a prompt")

    if not isinstance(definition.parameters, dict):
        raise MalformedActionError(f"{handle}: parameters must be a mapping")

    requirements = definition.context_requirements
    if requirements is not None:
        if not isinstance(requirements, dict):
            raise MalformedActionError(f"{handle}: context requirements must be a mapping")
        for variable, resolver in requirements.items():
            if not isinstance(variable, str) or not variable:
                raise MalformedActionError(f"{handle}: invalid context variable {variable!r}")
            if not (isinstance(resolver, str) or callable(resolver)):
                raise MalformedActionError(f"{handle}: invalid resolver for {variable!r}")
        requirements = MappingProxyType(dict(requirements))

    try:
        bulk_target = TargetType(definition.bulk_target_type)
    except ValueError:
        raise MalformedActionError(
            f"{handle}: unknown bulk target type {definition.bulk_target_type!r}"
        )

    return ActionDescriptor(
        handle=handle,
        title=definition.title or handle.replace("-", " ").title(),
        capability_type=capability,
        accepted_formats=tuple(formats),
        parameter_defaults=MappingProxyType(dict(definition.parameters)),
        context_requirements=requirements,
        system_prompt=definition.system,
        user_prompt=definition.prompt,
        schema=definition.schema,
        required_variables=tuple(definition.required_variables),
        supports_bulk=definition.supports_bulk,
        bulk_target_type=bulk_target,
    )


DefinitionFactory = Callable[[], ActionDefinition]


class ActionCatalog:
    """Registry mapping action handles to descriptors."""

    def __init__(self, fieldtype_actions: Optional[Mapping[str, Iterable[Any]]] = None):
        self._descriptors: dict[str, ActionDescriptor] = {}
        self._fieldtype_actions = {
            key.lower(): list(value) for key, value in (fieldtype_actions or {}).items()
        }

    @classmethod
    def from_definitions(
        cls,
        factories: Iterable[DefinitionFactory],
        fieldtype_actions: Optional[Mapping[str, Iterable[Any]]] = None,
    ) -> "ActionCatalog":
        """Build a catalog by registering each factory's definition."""
        catalog = cls(fieldtype_actions)
        for factory in factories:
            catalog.register(factory)
        logger.info("action_catalog_built", actions=catalog.handles())
        return catalog

    def register(self, factory: Union[DefinitionFactory, ActionDefinition]) -> Optional[str]:
        """
        Register one action definition.

        Returns the handle, or None if the definition was malformed.
        """
        source = getattr(factory, "__name__", repr(factory))
        try:
            definition = factory() if callable(factory) else factory
            descriptor = build_descriptor(definition)
        except Exception as e:
            logger.warning("action_definition_skipped", source=source, error=str(e))
            return None

        if descriptor.handle in self._descriptors:
            logger.warning(
                "action_definition_skipped",
                source=source,
                error=f"duplicate handle {descriptor.handle!r}",
            )
            return None

        self._descriptors[descriptor.handle] = descriptor
        return descriptor.handle

    def action(self, factory: DefinitionFactory) -> DefinitionFactory:
        """Decorator to register a definition factory."""
        self.register(factory)
        return factory

    def lookup(self, handle: str) -> ActionDescriptor:
        """Get a descriptor. Raises ActionNotFoundError if not registered."""
        try:
            return self._descriptors[handle]
        except KeyError:
            raise ActionNotFoundError(handle) from None

    def exists(self, handle: str) -> bool:
        return handle in self._descriptors

    def handles(self) -> list[str]:
        return list(self._descriptors)

    def descriptors(self) -> list[ActionDescriptor]:
        return list(self._descriptors.values())

    def bulk_descriptors(self) -> list[ActionDescriptor]:
        return [d for d in self._descriptors.values() if d.supports_bulk]

    def configured_handles(self, fieldtype: str) -> list[str]:
        """Handles configured for a fieldtype, known to the catalog or not."""
        handles: list[str] = []
        for entry in self._fieldtype_actions.get(fieldtype.lower(), []):
            handle = _configured_handle(entry)
            if handle and handle not in handles:
                handles.append(handle)
        return handles

    def available_handles(self, fieldtype: str) -> list[str]:
        """Configured handles for a fieldtype that are registered, in config order."""
        return [h for h in self.configured_handles(fieldtype) if self.exists(h)]


def _configured_handle(entry: Any) -> Optional[str]:
    if isinstance(entry, str):
        return entry.strip() or None
    if isinstance(entry, Mapping):
        for key in ("action", "handle"):
            value = entry.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None
