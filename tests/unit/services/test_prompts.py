"""Tests for prompt rendering."""

import pytest

from magic_actions.actions.catalog import ActionDefinition, build_descriptor
from magic_actions.services.prompts import PromptRenderer, PromptRenderError


class TestPromptRenderer:
    def test_renders_user_prompt(self, catalog):
        rendered = PromptRenderer().render(
            catalog.lookup("propose-title"), {"text": "Balcony gardening tips"}
        )
        assert rendered.user == "Balcony gardening tips"
        assert rendered.system.startswith("You are a content expert.")
        assert rendered.schema_name == "title_response"
        assert rendered.json_schema["required"] == ["title"]

    def test_global_prompt_is_prepended(self, catalog):
        rendered = PromptRenderer("Write in British English.").render(
            catalog.lookup("propose-title"), {"text": "x"}
        )
        assert rendered.system.startswith("Write in British English.\n\nYou are a content expert.")

    def test_conditional_block(self, catalog):
        renderer = PromptRenderer()
        descriptor = catalog.lookup("alt-text")

        assert renderer.render(descriptor, {}).user == "Analyze the provided image."
        with_context = renderer.render(descriptor, {"text": "Tomato harvest"}).user
        assert with_context.endswith("Context:\nTomato harvest")

    def test_multi_variable_prompt(self, catalog):
        rendered = PromptRenderer().render(
            catalog.lookup("assign-tags-from-taxonomies"),
            {"content": "Tomatoes", "available_tags": "Gardening, Urban"},
        )
        assert rendered.user == "Content:\nTomatoes\n\nAvailable Tags:\nGardening, Urban"

    def test_no_schema(self, catalog):
        rendered = PromptRenderer().render(catalog.lookup("transcribe-audio"), {})
        assert rendered.schema_name is None
        assert rendered.json_schema is None

    def test_missing_variable_renders_empty(self):
        descriptor = build_descriptor(
            ActionDefinition(name="Echo", type="text", prompt="Say: {{ phrase }}")
        )
        assert PromptRenderer().render(descriptor, {}).user == "Say:"

    def test_html_is_not_escaped(self, catalog):
        rendered = PromptRenderer().render(
            catalog.lookup("propose-title"), {"text": "<b>Bold</b> & more"}
        )
        assert rendered.user == "<b>Bold</b> & more"

    def test_broken_template(self):
        descriptor = build_descriptor(
            ActionDefinition(name="Broken", type="text", prompt="{% if %}")
        )
        with pytest.raises(PromptRenderError, match="broken"):
            PromptRenderer().render(descriptor, {})
