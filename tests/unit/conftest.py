"""Shared fixtures for unit tests: in-memory store, content and a fake backend."""

from typing import Any, Optional

import pytest

from magic_actions.actions.definitions import build_default_catalog
from magic_actions.actions.targets import (
    Asset,
    AssetTarget,
    Blueprint,
    EntryTarget,
    Field,
    InMemoryContentRepository,
)
from magic_actions.config import DEFAULT_FIELDTYPE_ACTIONS, Settings
from magic_actions.core.engine import build_engine
from magic_actions.jobs.store import InMemoryJobStore
from magic_actions.jobs.tracker import JobTracker
from magic_actions.jobs.types import CapabilityType
from magic_actions.services.llm_base import (
    GenerationBackend,
    GenerationInput,
    GenerationResult,
)


class FakeBackend(GenerationBackend):
    """Backend returning canned responses and recording every call."""

    provider = "openai"

    def __init__(
        self,
        structured: Optional[dict[str, Any]] = None,
        text: str = "",
        error: Optional[Exception] = None,
    ):
        self.structured = structured
        self.text = text
        self.error = error
        self.calls: list[tuple[CapabilityType, str, GenerationInput]] = []

    async def generate(
        self, capability: CapabilityType, model: str, request: GenerationInput
    ) -> GenerationResult:
        self.calls.append((capability, model, request))
        if self.error is not None:
            raise self.error
        structured = self.structured if request.structured else None
        return GenerationResult(
            text=self.text, structured=structured, model=model, provider=self.provider
        )


ENTRY_BLUEPRINT = Blueprint(
    handle="article",
    fields=(
        Field("title", "text"),
        Field("meta_description", "textarea"),
        Field("teaser", "textarea", {"magic_actions_source": "body"}),
        Field("tags", "terms", {"taxonomy": "tags"}),
        Field("content", "bard"),
        Field("summary", "text", {"magic_actions_action": ["propose-title"]}),
    ),
)

ASSET_BLUEPRINT = Blueprint(
    handle="images",
    fields=(
        Field("alt", "text"),
        Field("caption", "textarea"),
        Field("tags", "assets"),
        Field("transcript", "bard"),
    ),
)


@pytest.fixture
def settings():
    """Settings isolated from the environment's .env file."""
    return Settings(
        _env_file=None,
        openai_api_key=None,
        job_store_backend="memory",
        worker_concurrency=2,
    )


@pytest.fixture
def store():
    return InMemoryJobStore()


@pytest.fixture
def tracker(store):
    return JobTracker(store, ttl_seconds=3600)


@pytest.fixture
def catalog():
    return build_default_catalog(fieldtype_actions=DEFAULT_FIELDTYPE_ACTIONS)


@pytest.fixture
def entry():
    return EntryTarget(
        id="e1",
        blueprint=ENTRY_BLUEPRINT,
        data={
            "title": "Draft",
            "content": [
                {
                    "type": "paragraph",
                    "content": [{"type": "text", "text": "Growing tomatoes on a balcony."}],
                }
            ],
            "body": "A short body used for teasers.",
        },
    )


@pytest.fixture
def png_asset():
    return AssetTarget(
        asset=Asset(
            id="assets::photos/tomato.png",
            path="photos/tomato.png",
            url="https://cdn.example.com/photos/tomato.png",
            mime_type="image/png",
            size=2048,
            width=800,
            height=600,
        ),
        blueprint=ASSET_BLUEPRINT,
    )


@pytest.fixture
def pdf_asset():
    return AssetTarget(
        asset=Asset(
            id="assets::docs/manual.pdf",
            path="docs/manual.pdf",
            url="https://cdn.example.com/docs/manual.pdf",
            mime_type="application/pdf",
        ),
        blueprint=ASSET_BLUEPRINT,
    )


@pytest.fixture
def audio_asset():
    return AssetTarget(
        asset=Asset(
            id="assets::audio/interview.mp3",
            path="audio/interview.mp3",
            url="https://cdn.example.com/audio/interview.mp3",
            mime_type="audio/mpeg",
        ),
        blueprint=ASSET_BLUEPRINT,
    )


@pytest.fixture
def repository(entry, png_asset, pdf_asset, audio_asset):
    repo = InMemoryContentRepository()
    repo.add_entry(entry)
    repo.add_asset(png_asset)
    repo.add_asset(pdf_asset)
    repo.add_asset(audio_asset)
    repo.set_terms("tags", ["Gardening", "Vegetables", "Urban"])
    return repo


@pytest.fixture
def backend():
    return FakeBackend(structured={"title": "Generated Title"}, text="plain text")


@pytest.fixture
def engine(settings, repository, store, backend, catalog):
    """Engine over the in-memory store and repository; the pool is not started."""
    return build_engine(
        settings=settings,
        repository=repository,
        store=store,
        backend=backend,
        catalog=catalog,
    )
