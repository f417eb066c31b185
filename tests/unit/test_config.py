"""Unit tests for magic_actions.config module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError


def test_settings_defaults():
    """Test defaults when no environment is set."""
    from magic_actions.config import Settings

    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)

    assert settings.job_store_backend == "memory"
    assert settings.job_ttl_seconds == 3600
    assert settings.worker_concurrency == 4
    assert settings.llm_provider == "auto"
    assert settings.openai_api_key is None
    assert settings.fieldtypes["terms"] == ["extract-tags", "assign-tags-from-taxonomies"]


def test_model_for_capability():
    """Test capability -> provider/model lookup."""
    from magic_actions.config import Settings

    settings = Settings(_env_file=None, vision_model="openai/gpt-4o-mini")
    assert settings.model_for("text") == "openai/gpt-4.1"
    assert settings.model_for("vision") == "openai/gpt-4o-mini"
    assert settings.model_for("audio") == "openai/whisper-1"


def test_fieldtypes_from_json_env():
    """Test fieldtype action config can be supplied as JSON."""
    from magic_actions.config import get_settings

    with patch.dict(
        os.environ,
        {"FIELDTYPES": '{"text": ["propose-title", {"action": "alt-text"}]}'},
    ):
        get_settings.cache_clear()
        try:
            settings = get_settings()
            assert settings.fieldtypes == {
                "text": ["propose-title", {"action": "alt-text"}]
            }
        finally:
            get_settings.cache_clear()


def test_default_fieldtypes_are_copied():
    """Mutating one instance's config must not leak into the defaults."""
    from magic_actions.config import DEFAULT_FIELDTYPE_ACTIONS, Settings

    settings = Settings(_env_file=None)
    settings.fieldtypes["text"].append("custom")
    assert "custom" not in DEFAULT_FIELDTYPE_ACTIONS["text"]


def test_invalid_values_rejected():
    """Test validation of bounded settings."""
    from magic_actions.config import Settings

    with pytest.raises(ValidationError):
        Settings(_env_file=None, job_ttl_seconds=0)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, worker_concurrency=0)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, job_store_backend="postgres")


def test_get_settings_is_cached():
    """Test settings are built once per process."""
    from magic_actions.config import get_settings

    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
