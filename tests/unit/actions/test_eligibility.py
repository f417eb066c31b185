"""Tests for action eligibility checks."""

import pytest

from magic_actions.actions.catalog import ActionCatalog
from magic_actions.actions.definitions import BUILTIN_ACTIONS
from magic_actions.actions.eligibility import (
    EligibilityChecker,
    mime_matches,
    mime_matches_any,
)
from magic_actions.actions.errors import IneligibleError, UnsupportedFormatError
from magic_actions.actions.targets import Asset, AssetTarget, Blueprint, EntryTarget, Field


@pytest.fixture
def checker(catalog):
    return EligibilityChecker(catalog)


class TestMimeMatching:
    @pytest.mark.parametrize(
        "mime,pattern,expected",
        [
            ("image/png", "image/png", True),
            ("image/png", "image/*", True),
            ("IMAGE/PNG", "image/png", True),
            ("image/png; charset=binary", "image/png", True),
            ("application/pdf", "image/*", False),
            ("application/pdf", "*", True),
            ("application/pdf", "*/*", True),
            ("imagex/png", "image/*", False),
            ("", "image/*", False),
        ],
    )
    def test_mime_matches(self, mime, pattern, expected):
        assert mime_matches(mime, pattern) is expected

    def test_matches_any(self):
        assert mime_matches_any("audio/mpeg", ["image/*", "audio/*"])
        assert not mime_matches_any("audio/mpeg", [])


class TestConfiguredActions:
    def test_fieldtype_actions(self, checker, entry):
        assert checker.configured_actions(entry, "title") == [
            "propose-title",
            "alt-text",
            "image-caption",
        ]

    def test_field_selection_narrows(self, checker, entry):
        assert checker.configured_actions(entry, "summary") == ["propose-title"]

    def test_unknown_field_has_no_actions(self, checker, entry):
        assert checker.configured_actions(entry, "nope") == []

    def test_target_without_blueprint(self, checker):
        assert checker.configured_actions(EntryTarget(id="bare"), "title") == []

    def test_available_filters_unregistered(self, entry):
        catalog = ActionCatalog.from_definitions(
            BUILTIN_ACTIONS, {"text": ["ghost", "propose-title"]}
        )
        checker = EligibilityChecker(catalog)
        assert checker.configured_actions(entry, "title") == ["ghost", "propose-title"]
        assert checker.available_actions(entry, "title") == ["propose-title"]


class TestAssertExecutable:
    def test_configured_text_action(self, checker, entry):
        checker.assert_executable("propose-title", entry, "title")
        assert checker.can_execute("propose-title", entry, "title")

    def test_not_configured_for_field(self, checker, entry):
        with pytest.raises(IneligibleError) as exc:
            checker.assert_executable("propose-title", entry, "meta_description")
        assert str(exc.value) == (
            "Action 'propose-title' is not configured for field 'meta_description'"
        )
        assert not checker.can_execute("propose-title", entry, "meta_description")

    def test_unknown_action(self, entry):
        catalog = ActionCatalog.from_definitions(BUILTIN_ACTIONS, {"text": ["ghost"]})
        with pytest.raises(IneligibleError, match="Unknown action 'ghost'"):
            EligibilityChecker(catalog).assert_executable("ghost", entry, "title")

    def test_accepted_image(self, checker, png_asset):
        checker.assert_executable("alt-text", png_asset, "alt")

    def test_rejected_pdf(self, checker, pdf_asset):
        with pytest.raises(UnsupportedFormatError) as exc:
            checker.assert_executable("alt-text", pdf_asset, "alt")
        assert exc.value.mime_type == "application/pdf"
        assert exc.value.accepted == ["image/*"]
        assert not checker.can_execute("alt-text", pdf_asset, "alt")

    def test_rejection_message_names_type_and_patterns(self, checker):
        text_asset = AssetTarget(
            asset=Asset(id="assets::notes.txt", path="notes.txt"),
            blueprint=Blueprint("files", (Field("alt", "text"),)),
        )
        with pytest.raises(UnsupportedFormatError) as exc:
            checker.assert_executable("alt-text", text_asset, "alt")
        assert "text/plain" in str(exc.value)
        assert "image/*" in str(exc.value)

    def test_explicit_asset_is_checked(self, checker, entry, pdf_asset, png_asset):
        with pytest.raises(UnsupportedFormatError):
            checker.assert_executable("alt-text", entry, "title", asset=pdf_asset.asset)
        checker.assert_executable("alt-text", entry, "title", asset=png_asset.asset)

    def test_no_asset_skips_format_check(self, checker, entry):
        checker.assert_executable("alt-text", entry, "title")

    def test_unsupported_format_is_ineligible(self):
        assert issubclass(UnsupportedFormatError, IneligibleError)


class TestInputAsset:
    def test_explicit_asset_wins(self, checker, png_asset, pdf_asset):
        assert checker.input_asset(png_asset, pdf_asset.asset) is pdf_asset.asset

    def test_asset_target_is_its_own_input(self, checker, png_asset):
        assert checker.input_asset(png_asset) is png_asset.asset

    def test_entry_has_no_input(self, checker, entry):
        assert checker.input_asset(entry) is None
