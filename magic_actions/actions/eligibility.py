"""Eligibility checks: may this action run on this target/field?

Checks run in order and stop at the first failure:

1. the action is configured for the field (its fieldtype's action list,
   narrowed to the field's own ``magic_actions_action`` selection);
2. the action is registered in the catalog;
3. when the action restricts formats and an input asset is known, the
   asset's MIME type matches one of the accepted patterns.

No side effects; callers resolve any explicit asset reference first.
"""

from typing import Any, Iterable, Optional

from magic_actions.actions.catalog import ActionCatalog
from magic_actions.actions.errors import IneligibleError, UnsupportedFormatError
from magic_actions.actions.targets import Asset, Field, Target
from magic_actions.jobs.types import TargetType

FIELD_SELECTION_KEY = "magic_actions_action"


def _normalize_mime(value: str) -> str:
    return value.split(";", 1)[0].strip().lower()


def mime_matches(mime_type: str, pattern: str) -> bool:
    """
    Match a MIME type against one pattern.

    Patterns are exact types (``image/png``), ``type/*`` wildcards, or
    ``*``/``*/*``. Comparison is case-insensitive and ignores parameters.
    """
    mime = _normalize_mime(mime_type)
    pat = _normalize_mime(pattern)
    if pat in ("*", "*/*"):
        return True
    if pat.endswith("/*"):
        return mime.startswith(pat[:-1])
    return mime == pat


def mime_matches_any(mime_type: str, patterns: Iterable[str]) -> bool:
    return any(mime_matches(mime_type, p) for p in patterns)


def _field_selection(field: Field) -> Optional[list[str]]:
    selected: Any = field.config.get(FIELD_SELECTION_KEY)
    if not selected:
        return None
    if isinstance(selected, str):
        return [selected]
    return [str(s) for s in selected]


class EligibilityChecker:
    """Answers whether an action may run against a target's field."""

    def __init__(self, catalog: ActionCatalog):
        self._catalog = catalog

    def configured_actions(self, target: Target, field_handle: str) -> list[str]:
        """Handles configured for the field, whether registered or not."""
        field = target.blueprint.field(field_handle) if target.blueprint else None
        if field is None:
            return []

        handles = self._catalog.configured_handles(field.fieldtype)
        selection = _field_selection(field)
        if selection is not None:
            handles = [h for h in handles if h in selection]
        return handles

    def available_actions(self, target: Target, field_handle: str) -> list[str]:
        """Registered actions configured for the field, in config order."""
        return [
            h
            for h in self.configured_actions(target, field_handle)
            if self._catalog.exists(h)
        ]

    def input_asset(self, target: Target, asset: Optional[Asset] = None) -> Optional[Asset]:
        """The asset an action would consume: explicit reference, else the target itself."""
        if asset is not None:
            return asset
        if target.kind is TargetType.ASSET:
            return target.asset
        return None

    def assert_executable(
        self,
        action_handle: str,
        target: Target,
        field_handle: str,
        asset: Optional[Asset] = None,
    ) -> None:
        """
        Raise unless ``action_handle`` may run on ``target``/``field_handle``.

        Args:
            action_handle: Action to run
            target: Entry or asset the action applies to
            field_handle: Field on the target's blueprint
            asset: Explicitly referenced input asset, already resolved

        Raises:
            IneligibleError: Not configured for the field, or unknown action.
            UnsupportedFormatError: Input asset MIME type is not accepted.
        """
        if action_handle not in self.configured_actions(target, field_handle):
            raise IneligibleError(
                f"Action '{action_handle}' is not configured for field '{field_handle}'"
            )

        if not self._catalog.exists(action_handle):
            raise IneligibleError(f"Unknown action '{action_handle}'")
        descriptor = self._catalog.lookup(action_handle)

        if not descriptor.accepted_formats:
            return

        input_asset = self.input_asset(target, asset)
        if input_asset is None:
            return

        if not mime_matches_any(input_asset.mime_type, descriptor.accepted_formats):
            raise UnsupportedFormatError(
                action_handle, input_asset.mime_type, descriptor.accepted_formats
            )

    def can_execute(
        self,
        action_handle: str,
        target: Target,
        field_handle: str,
        asset: Optional[Asset] = None,
    ) -> bool:
        try:
            self.assert_executable(action_handle, target, field_handle, asset)
        except IneligibleError:
            return False
        return True
