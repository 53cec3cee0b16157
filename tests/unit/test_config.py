"""Tests for IngestionSettings defaults, derived paths and validation."""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from ragroom.config import IngestionSettings


def test_defaults(monkeypatch):
    for name in list(os.environ):
        if name.startswith("RAGROOM_"):
            monkeypatch.delenv(name)

    settings = IngestionSettings(_env_file=None)

    assert settings.collection_name == "vectors"
    assert settings.embedding_provider == "ollama"
    assert settings.retry_budget == 3
    assert settings.chunk_strategy == "sentence"
    assert settings.top_k == 5
    assert settings.index_path == os.path.join("./data", "store")
    assert settings.cache_path == os.path.join("./data", "cache", "processed.json")


def test_paths_derive_from_data_path():
    settings = IngestionSettings(_env_file=None, data_path="/srv/rag")

    assert settings.index_path == os.path.join("/srv/rag", "store")
    assert settings.cache_path == os.path.join("/srv/rag", "cache", "processed.json")


def test_explicit_paths_are_kept():
    settings = IngestionSettings(_env_file=None, index_path="/idx", cache_path="/c.json")

    assert settings.index_path == "/idx"
    assert settings.cache_path == "/c.json"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("RAGROOM_CHUNK_SIZE", "500")
    monkeypatch.setenv("RAGROOM_VERIFY_CONTENT", "true")
    monkeypatch.setenv("RAGROOM_EMBEDDING_PROVIDER", "fastembed")

    settings = IngestionSettings(_env_file=None)

    assert settings.chunk_size == 500
    assert settings.verify_content is True
    assert settings.embedding_provider == "fastembed"


def test_dotenv_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("RAGROOM_COLLECTION_NAME=handbook\n", encoding="utf-8")

    assert IngestionSettings(_env_file=str(env_file)).collection_name == "handbook"


@pytest.mark.parametrize(
    "overrides",
    [
        {"chunk_strategy": "recursive", "chunk_size": 100, "chunk_overlap": 100},
        {"retry_budget": 0},
        {"chunk_size": 0},
        {"embedding_provider": "openai"},
        {"chunk_strategy": "semantic"},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ValidationError):
        IngestionSettings(_env_file=None, **overrides)


def test_overlap_is_ignored_by_sentence_strategy():
    settings = IngestionSettings(_env_file=None, chunk_size=100, chunk_overlap=200)

    assert settings.chunk_overlap == 200
