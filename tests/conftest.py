"""Shared pytest fixtures."""

from __future__ import annotations

import pytest
from qdrant_client import QdrantClient

from helpers import FakeEmbeddingBackend
from ragroom.config import IngestionSettings
from ragroom.embedding_client import EmbeddingClient
from ragroom.ingestion_manager import IngestionManager
from ragroom.qdrant_manager import QdrantManager


@pytest.fixture
def corpus(tmp_path):
    root = tmp_path / "corpus"
    root.mkdir()
    return root


@pytest.fixture
def settings(tmp_path, corpus):
    return IngestionSettings(
        _env_file=None,
        corpus_root=str(corpus),
        data_path=str(tmp_path / "data"),
        retry_backoff=0.0,
    )


@pytest.fixture
def backend():
    return FakeEmbeddingBackend()


@pytest.fixture
def embedding_client(settings, backend):
    return EmbeddingClient(settings, backend=backend)


@pytest.fixture
def qdrant_manager(settings):
    manager = QdrantManager(settings, client=QdrantClient(location=":memory:"))
    yield manager
    manager.close()


@pytest.fixture
def make_manager(settings, embedding_client, qdrant_manager):
    """Factory for orchestrators sharing one index; each call reloads the cache from disk like a new run."""

    def _make(run_settings: IngestionSettings | None = None) -> IngestionManager:
        return IngestionManager(
            run_settings or settings,
            embedding_client=embedding_client,
            qdrant_manager=qdrant_manager,
        )

    return _make
