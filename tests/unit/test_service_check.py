"""Tests for the embedding service health check."""

from __future__ import annotations

from unittest.mock import patch

import httpx

from ragroom.embedding_client import OllamaEmbeddingBackend
from ragroom.service_check import check_models


def _backend(settings, handler) -> OllamaEmbeddingBackend:
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://ollama.test")
    return OllamaEmbeddingBackend(settings, http_client=client)


def _tags(*names: str):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"models": [{"name": name} for name in names]})
    return handler


def test_both_models_present(settings):
    status = check_models(settings, backend=_backend(settings, _tags("bge-m3:latest", "gemma3:1b")))

    assert status == {"bge-m3:latest": True, "gemma3:1b": True}


def test_missing_chat_model(settings):
    status = check_models(settings, backend=_backend(settings, _tags("bge-m3:latest", "llama3:8b")))

    assert status == {"bge-m3:latest": True, "gemma3:1b": False}


def test_untagged_names_mean_latest(settings):
    untagged = settings.model_copy(update={"embedding_model": "bge-m3"})

    status = check_models(untagged, backend=_backend(untagged, _tags("bge-m3:latest", "gemma3:1b")))

    assert status["bge-m3"] is True


def test_service_error_reports_nothing(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="starting")

    assert check_models(settings, backend=_backend(settings, handler)) == {}


def test_unreachable_service_reports_nothing(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert check_models(settings, backend=_backend(settings, handler)) == {}


def test_owned_backend_is_closed(settings):
    with patch("ragroom.service_check.OllamaEmbeddingBackend") as backend_cls:
        backend_cls.return_value.list_models.return_value = ["bge-m3:latest", "gemma3:1b"]

        assert check_models(settings) == {"bge-m3:latest": True, "gemma3:1b": True}

    backend_cls.return_value.close.assert_called_once()
