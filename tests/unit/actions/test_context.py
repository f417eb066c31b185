"""Tests for context variable resolution."""

import pytest

from magic_actions.actions.catalog import ActionDefinition, build_descriptor
from magic_actions.actions.context import ContextResolver, extract_text
from magic_actions.actions.errors import InvalidContextError
from magic_actions.actions.targets import EntryTarget


def _descriptor(requirements, required=()):
    return build_descriptor(
        ActionDefinition(
            name="Probe",
            type="text",
            prompt="{{ text }}",
            context_requirements=requirements,
            required_variables=list(required),
        )
    )


@pytest.fixture
def resolver(repository):
    return ContextResolver(repository)


class TestExtractText:
    def test_plain_values(self):
        assert extract_text("  hello ") == "hello"
        assert extract_text(None) == ""
        assert extract_text(42) == "42"

    def test_lists_join_with_newlines(self):
        assert extract_text(["one", "", "two"]) == "one\ntwo"

    def test_rich_text_nodes(self):
        doc = [
            {
                "type": "heading",
                "attrs": {"level": 2},
                "content": [{"type": "text", "text": "Title", "marks": [{"type": "bold"}]}],
            },
            {"type": "paragraph", "content": [{"type": "text", "text": "Body copy."}]},
        ]
        assert extract_text(doc) == "Title\nBody copy."

    def test_unknown_objects_are_empty(self):
        assert extract_text(object()) == ""


class TestBuiltinResolvers:
    @pytest.mark.asyncio
    async def test_entry_content_reads_content_field(self, resolver, entry):
        variables = await resolver.resolve(_descriptor({"text": "entry_content"}), entry, "title")
        assert variables == {"text": "Growing tomatoes on a balcony."}

    @pytest.mark.asyncio
    async def test_entry_content_prefers_source_field(self, resolver, entry):
        variables = await resolver.resolve(_descriptor({"text": "entry_content"}), entry, "teaser")
        assert variables["text"] == "A short body used for teasers."

    @pytest.mark.asyncio
    async def test_entry_content_falls_back_to_all_data(self, resolver):
        entry = EntryTarget(id="e9", data={"headline": "Hi", "body": "There"})
        variables = await resolver.resolve(_descriptor({"text": "entry_content"}), entry, "title")
        assert variables["text"] == "Hi\nThere"

    @pytest.mark.asyncio
    async def test_entry_content_on_asset_is_empty(self, resolver, png_asset):
        variables = await resolver.resolve(_descriptor({"text": "entry_content"}), png_asset, "alt")
        assert variables["text"] == ""

    @pytest.mark.asyncio
    async def test_taxonomy_terms(self, resolver, entry):
        variables = await resolver.resolve(
            _descriptor({"available_tags": "taxonomy_terms"}), entry, "tags"
        )
        assert variables["available_tags"] == "Gardening, Vegetables, Urban"

    @pytest.mark.asyncio
    async def test_taxonomy_terms_without_taxonomy(self, resolver, entry):
        variables = await resolver.resolve(
            _descriptor({"available_tags": "taxonomy_terms"}), entry, "title"
        )
        assert variables["available_tags"] == ""

    @pytest.mark.asyncio
    async def test_asset_metadata(self, resolver, png_asset):
        variables = await resolver.resolve(_descriptor({"meta": "asset_metadata"}), png_asset, "alt")
        assert variables["meta"] == (
            "filename: tomato.png, extension: png, size: 2048 bytes, dimensions: 800x600"
        )

    @pytest.mark.asyncio
    async def test_entry_field(self, resolver, entry):
        variables = await resolver.resolve(_descriptor({"current": "entry_field:title"}), entry, "title")
        assert variables["current"] == "Draft"

    @pytest.mark.asyncio
    async def test_unknown_resolver(self, resolver, entry):
        with pytest.raises(InvalidContextError, match="Unsupported context resolver 'magic'"):
            await resolver.resolve(_descriptor({"text": "magic"}), entry, "title")


class TestCallableResolvers:
    @pytest.mark.asyncio
    async def test_sync_callable(self, resolver, entry):
        descriptor = _descriptor({"text": lambda target, field: f"{target.id}:{field}"})
        variables = await resolver.resolve(descriptor, entry, "title")
        assert variables["text"] == "e1:title"

    @pytest.mark.asyncio
    async def test_async_callable(self, resolver, entry):
        async def load(target, field):
            return "from async"

        variables = await resolver.resolve(_descriptor({"text": load}), entry, "title")
        assert variables["text"] == "from async"

    @pytest.mark.asyncio
    async def test_failing_callable(self, resolver, entry):
        def broken(target, field):
            raise KeyError("content")

        with pytest.raises(InvalidContextError) as exc:
            await resolver.resolve(_descriptor({"text": broken}), entry, "title")
        assert exc.value.variable == "text"


class TestRequiredVariables:
    @pytest.mark.asyncio
    async def test_empty_required_variable(self, resolver):
        entry = EntryTarget(id="empty", data={"content": []})
        with pytest.raises(InvalidContextError) as exc:
            await resolver.resolve(
                _descriptor({"text": "entry_content"}, required=["text"]), entry, "title"
            )
        assert exc.value.variable == "text"
        assert "requires 'text'" in str(exc.value)

    @pytest.mark.asyncio
    async def test_supplied_variable_wins(self, resolver, entry):
        variables = await resolver.resolve(
            _descriptor({"text": "entry_content"}, required=["text"]),
            entry,
            "title",
            supplied={"text": "Supplied copy", "tone": "playful"},
        )
        assert variables == {"text": "Supplied copy", "tone": "playful"}

    @pytest.mark.asyncio
    async def test_empty_supplied_variable_is_resolved(self, resolver, entry):
        variables = await resolver.resolve(
            _descriptor({"text": "entry_content"}), entry, "title", supplied={"text": " "}
        )
        assert variables["text"] == "Growing tomatoes on a balcony."

    @pytest.mark.asyncio
    async def test_no_requirements(self, resolver, entry):
        assert await resolver.resolve(_descriptor(None), entry, "title") == {}
