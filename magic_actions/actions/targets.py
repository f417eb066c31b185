"""Content targets an action runs against.

A target is one of two variants, ``EntryTarget`` or ``AssetTarget``. Both
expose the same narrow surface (``id``, ``blueprint``, ``get``) and carry a
``kind`` tag that callers branch on instead of checking classes.

The CMS itself is an external collaborator: ``ContentRepository`` is the
seam it plugs into. ``InMemoryContentRepository`` backs tests and
single-process setups.
"""

import mimetypes
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from magic_actions.actions.errors import TargetNotFoundError
from magic_actions.jobs.types import TargetType


@dataclass(frozen=True)
class Field:
    """A blueprint field: handle, fieldtype category and its config."""

    handle: str
    fieldtype: str
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Blueprint:
    """Schema of an entry or asset container."""

    handle: str
    fields: tuple[Field, ...] = ()

    def field(self, handle: str) -> Optional[Field]:
        for candidate in self.fields:
            if candidate.handle == handle:
                return candidate
        return None


@dataclass(frozen=True)
class Asset:
    """Asset file metadata as exposed by asset resolution."""

    id: str
    path: str
    url: str = ""
    mime_type: str = ""
    size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.mime_type:
            guessed, _ = mimetypes.guess_type(self.path)
            object.__setattr__(self, "mime_type", guessed or "")

    @property
    def basename(self) -> str:
        return posixpath.basename(self.path)

    @property
    def extension(self) -> str:
        _, ext = posixpath.splitext(self.path)
        return ext.lstrip(".").lower()

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @property
    def is_audio(self) -> bool:
        return self.mime_type.lower().startswith("audio/")


@dataclass
class EntryTarget:
    """A content entry."""

    kind: ClassVar[TargetType] = TargetType.ENTRY

    id: str
    blueprint: Optional[Blueprint] = None
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, field_handle: str, default: Any = None) -> Any:
        return self.data.get(field_handle, default)


@dataclass
class AssetTarget:
    """An asset; its own file is the action's input."""

    kind: ClassVar[TargetType] = TargetType.ASSET

    asset: Asset
    blueprint: Optional[Blueprint] = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.asset.id

    def get(self, field_handle: str, default: Any = None) -> Any:
        return self.data.get(field_handle, default)


Target = Union[EntryTarget, AssetTarget]


class ContentRepository(ABC):
    """Resolves opaque target ids into targets, assets and taxonomy terms."""

    @abstractmethod
    async def find_entry(self, entry_id: str) -> Optional[EntryTarget]:
        ...

    @abstractmethod
    async def find_asset(self, asset_id: str) -> Optional[AssetTarget]:
        ...

    @abstractmethod
    async def taxonomy_terms(self, taxonomy: str) -> list[str]:
        """Return term titles of a taxonomy (empty if unknown)."""
        ...

    async def resolve(self, target_type: str, target_id: str) -> Target:
        """
        Resolve a target by kind and id.

        Raises:
            TargetNotFoundError: If no such entry/asset exists.
            ValueError: If ``target_type`` is not a known kind.
        """
        kind = TargetType(target_type)
        target: Optional[Target]
        if kind is TargetType.ENTRY:
            target = await self.find_entry(target_id)
        else:
            target = await self.find_asset(target_id)
        if target is None:
            raise TargetNotFoundError(kind.value, target_id)
        return target

    async def find_asset_file(self, reference: str) -> Optional[Asset]:
        """Resolve an asset reference to its file metadata."""
        target = await self.find_asset(reference)
        return target.asset if target else None


class InMemoryContentRepository(ContentRepository):
    """Dict-backed repository for tests and single-process setups."""

    def __init__(self) -> None:
        self._entries: dict[str, EntryTarget] = {}
        self._assets: dict[str, AssetTarget] = {}
        self._terms: dict[str, list[str]] = {}

    def add_entry(self, entry: EntryTarget) -> EntryTarget:
        self._entries[entry.id] = entry
        return entry

    def add_asset(self, asset: AssetTarget) -> AssetTarget:
        self._assets[asset.id] = asset
        return asset

    def set_terms(self, taxonomy: str, titles: list[str]) -> None:
        self._terms[taxonomy] = list(titles)

    async def find_entry(self, entry_id: str) -> Optional[EntryTarget]:
        return self._entries.get(entry_id)

    async def find_asset(self, asset_id: str) -> Optional[AssetTarget]:
        return self._assets.get(asset_id)

    async def taxonomy_terms(self, taxonomy: str) -> list[str]:
        return list(self._terms.get(taxonomy, []))
