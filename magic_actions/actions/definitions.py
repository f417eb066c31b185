"""Built-in action definitions.

Each factory returns an ``ActionDefinition``; the handle is derived from
the definition name (``ProposeTitle`` -> ``propose-title``). Prompts are
Jinja2 templates rendered with the resolved context variables.
"""

from typing import Any, Mapping, Optional

from magic_actions.actions.catalog import (
    ActionCatalog,
    ActionDefinition,
    DefinitionFactory,
    OutputSchema,
)
from magic_actions.config import Settings

IMAGE_FORMATS = ["image/jpeg", "image/png", "image/webp", "image/gif", "image/svg+xml"]

# Most actions work on the entry's text unless told otherwise
TEXT_CONTEXT = {"text": "entry_content"}

BUILTIN_ACTIONS: list[DefinitionFactory] = []


def builtin(factory: DefinitionFactory) -> DefinitionFactory:
    """Add a factory to the built-in list, in declaration order."""
    BUILTIN_ACTIONS.append(factory)
    return factory


@builtin
def alt_text() -> ActionDefinition:
    return ActionDefinition(
        name="AltText",
        title="Alt Text",
        type="vision",
        parameters={"temperature": 0.7, "max_tokens": 1000},
        accepted_mime_types=["image/*"],
        context_requirements=dict(TEXT_CONTEXT),
        schema=OutputSchema(
            name="alt_text_response",
            description="Alt text description for image",
            fields={"alt_text": "string"},
        ),
        system="""\
Generate a high-quality alt text description for the provided image. Alt text \
should be concise, descriptive, and convey the important visual information for \
users who cannot see the image.

# Guidelines

- Keep alt text concise (typically 125 characters or less) but descriptive
- Focus on the most important visual information
- Don't begin with phrases like "Image of" or "Picture of"
- If the image contains text, include that text in the description
""",
        prompt="""\
Analyze the provided image.{% if text %}

Context:
{{ text }}{% endif %}""",
    )


@builtin
def image_caption() -> ActionDefinition:
    return ActionDefinition(
        name="ImageCaption",
        title="Image Caption",
        type="vision",
        parameters={"temperature": 0.7, "max_tokens": 1000},
        accepted_mime_types=list(IMAGE_FORMATS),
        context_requirements=dict(TEXT_CONTEXT),
        schema=OutputSchema(
            name="image_caption_response",
            description="Caption for image",
            fields={"caption": "string"},
        ),
        system="""\
Generate an engaging caption for the provided image. A caption should describe \
the image in a narrative way that adds context, suitable for use alongside the \
image in articles, social media, or galleries.

# Guidelines

- Captions can be longer than alt text (typically 1-2 sentences)
- Include relevant details about subjects, location, or action
- Write in a journalistic or editorial style
""",
        prompt="Generate a caption for the provided image.",
        supports_bulk=True,
        bulk_target_type="asset",
    )


@builtin
def extract_assets_tags() -> ActionDefinition:
    return ActionDefinition(
        name="ExtractAssetsTags",
        title="Extract Tags",
        type="vision",
        parameters={"temperature": 0.5, "max_tokens": 500},
        accepted_mime_types=list(IMAGE_FORMATS),
        context_requirements=dict(TEXT_CONTEXT),
        schema=OutputSchema(
            name="asset_tags_response",
            description="Tags extracted from image asset",
            fields={"tags": "array"},
        ),
        system="""\
Generate highly relevant tags for the uploaded image. The tags should reflect \
the main visual elements, themes and subjects visible in the image.

# Output Format

- Return 5-15 specific, relevant tags as an array
- If the image contains text, include relevant keywords from that text
- Sort tags from most to least relevant
""",
        prompt="Analyze the provided image.",
    )


@builtin
def propose_title() -> ActionDefinition:
    return ActionDefinition(
        name="ProposeTitle",
        title="Propose Title",
        type="text",
        parameters={"temperature": 0.7, "max_tokens": 200},
        context_requirements=dict(TEXT_CONTEXT),
        required_variables=["text"],
        schema=OutputSchema(
            name="title_response",
            description="Proposed title for content",
            fields={"title": "string"},
        ),
        system="""\
You are a content expert. Generate compelling, SEO-friendly titles for web content.

# Requirements

- Titles should be 50-60 characters for optimal display
- Make it descriptive and engaging
- Avoid clickbait
""",
        prompt="{{ text }}",
    )


@builtin
def extract_meta_description() -> ActionDefinition:
    return ActionDefinition(
        name="ExtractMetaDescription",
        title="Extract Meta Description",
        type="text",
        parameters={"temperature": 0.7, "max_tokens": 300},
        context_requirements=dict(TEXT_CONTEXT),
        required_variables=["text"],
        schema=OutputSchema(
            name="meta_description_response",
            description="SEO-optimized meta description for content",
            fields={"description": "string"},
        ),
        system="""\
Create a keyword-optimized meta description from the provided body of text. The \
description must never exceed 160 characters.

# Output Format

- One or two sentences, at most 160 characters
- Include the key phrases that matter for search visibility
- The output language MUST MATCH the input language
""",
        prompt="{{ text }}",
    )


@builtin
def extract_tags() -> ActionDefinition:
    return ActionDefinition(
        name="ExtractTags",
        title="Extract Tags",
        type="text",
        parameters={"temperature": 0.5, "max_tokens": 500},
        context_requirements=dict(TEXT_CONTEXT),
        required_variables=["text"],
        schema=OutputSchema(
            name="tags_response",
            description="Extracted tags from content",
            fields={"tags": "array"},
        ),
        system="""\
You are a content tagging expert. Extract relevant, concise tags from the provided content.

# Requirements

- Tags should be single words or short phrases
- Return 3-7 tags maximum
- Tags should be lowercase
""",
        prompt="{{ text }}",
    )


@builtin
def create_teaser() -> ActionDefinition:
    return ActionDefinition(
        name="CreateTeaser",
        title="Create Teaser",
        type="text",
        parameters={"temperature": 0.8, "max_tokens": 500},
        context_requirements=dict(TEXT_CONTEXT),
        required_variables=["text"],
        schema=OutputSchema(
            name="teaser_response",
            description="Generated teaser text for content preview",
            fields={"teaser": "string"},
        ),
        system="""\
Generate a 300-character teaser for the given body of text, to be used in \
previews and other parts of a website. The output language MUST ALWAYS MATCH \
the input language.

Capture the main points or intrigue of the content without revealing full details.
""",
        prompt="{{ text }}",
        supports_bulk=True,
        bulk_target_type="entry",
    )


@builtin
def assign_tags_from_taxonomies() -> ActionDefinition:
    return ActionDefinition(
        name="AssignTagsFromTaxonomies",
        title="Assign Tags from Taxonomies",
        type="text",
        parameters={"temperature": 0.5, "max_tokens": 500},
        context_requirements={
            "content": "entry_content",
            "available_tags": "taxonomy_terms",
        },
        required_variables=["content", "available_tags"],
        schema=OutputSchema(
            name="assigned_tags_response",
            description="Tags assigned from available taxonomy",
            fields={"tags": "array"},
        ),
        system="""\
You are a content classification expert. Select the most appropriate tags from \
a provided taxonomy list and assign them to the given content.

# Requirements

- Only use tags from the provided taxonomy; do not create new tags
- Choose 3-7 tags that best match the content
- Return tags exactly as they appear in the provided taxonomy list
""",
        prompt="""\
Content:
{{ content }}

Available Tags:
{{ available_tags }}""",
    )


@builtin
def transcribe_audio() -> ActionDefinition:
    return ActionDefinition(
        name="TranscribeAudio",
        title="Transcribe Audio",
        type="audio",
        parameters={"language": "en"},
        accepted_mime_types=["audio/*"],
        system="You are a transcription assistant. Transcribe the provided audio accurately.",
        prompt="Transcribe this audio file.",
    )


def build_default_catalog(
    settings: Optional[Settings] = None,
    fieldtype_actions: Optional[Mapping[str, Any]] = None,
) -> ActionCatalog:
    """Catalog with every built-in action, field config taken from settings."""
    if fieldtype_actions is None and settings is not None:
        fieldtype_actions = settings.fieldtypes
    return ActionCatalog.from_definitions(BUILTIN_ACTIONS, fieldtype_actions)
