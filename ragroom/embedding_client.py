# ragroom/embedding_client.py

import math
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from numbers import Real
from typing import Any, Callable, List, Optional, Sequence

import httpx
from fastembed import TextEmbedding

from ragroom.config import IngestionSettings
from ragroom.errors import EmbeddingServiceError

SAMPLE_TEXT = "sample"

EmbeddingBackend = Callable[[str], Any]


class OllamaEmbeddingBackend:
    """Calls the Ollama embeddings endpoint: {model, prompt} -> {embedding: [float]}."""

    def __init__(self, settings: IngestionSettings, http_client: Optional[httpx.Client] = None):
        self.model = settings.embedding_model
        self._client = http_client or httpx.Client(base_url=settings.service_host, timeout=settings.request_timeout)

    def __call__(self, text: str) -> Any:
        response = self._client.post("/api/embeddings", json={"model": self.model, "prompt": text})
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            return None
        return payload.get("embedding")

    def list_models(self) -> List[str]:
        """Names of the models pulled on the Ollama server."""
        response = self._client.get("/api/tags")
        response.raise_for_status()
        return [model["name"] for model in response.json().get("models", [])]

    def close(self):
        self._client.close()


class FastEmbedBackend:
    """Local ONNX embeddings through fastembed; no service required."""

    def __init__(self, settings: IngestionSettings):
        self.model = settings.fastembed_model
        self._embedding_model = TextEmbedding(model_name=self.model)
        logging.info(f"FastEmbed embedding model '{self.model}' initialized.")

    def __call__(self, text: str) -> Any:
        return next(iter(self._embedding_model.embed([text])))


def make_backend(settings: IngestionSettings) -> EmbeddingBackend:
    if settings.embedding_provider == "fastembed":
        return FastEmbedBackend(settings)
    return OllamaEmbeddingBackend(settings)


def validate_embedding(raw: Any) -> Optional[List[float]]:
    """Returns the vector as a list of floats, or None unless it is a non-empty sequence of finite numbers."""
    if hasattr(raw, "tolist"):
        raw = raw.tolist()
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)) or len(raw) == 0:
        return None
    vector: List[float] = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, Real):
            return None
        value = float(value)
        if not math.isfinite(value):
            return None
        vector.append(value)
    return vector


class EmbeddingClient:
    """
    Wraps an embedding backend with a bounded retry budget and response validation.
    Exhausting the budget returns None so the caller can drop just that chunk.
    """
    def __init__(self, settings: IngestionSettings, backend: Optional[EmbeddingBackend] = None):
        self.retry_budget = settings.retry_budget
        self.retry_backoff = settings.retry_backoff
        self.concurrency = settings.embed_concurrency
        self.backend = backend if backend is not None else make_backend(settings)
        self.provider_name = settings.embedding_provider

    def embed(self, text: str) -> Optional[List[float]]:
        for attempt in range(1, self.retry_budget + 1):
            try:
                vector = validate_embedding(self.backend(text))
                if vector is not None:
                    return vector
                logging.warning(f"Embedding attempt {attempt}/{self.retry_budget} returned an invalid vector.")
            except Exception as e:
                logging.warning(f"Embedding attempt {attempt}/{self.retry_budget} failed: {e}")
            if attempt < self.retry_budget and self.retry_backoff > 0:
                time.sleep(self.retry_backoff * attempt)
        logging.warning(f"Giving up on embedding after {self.retry_budget} attempts (text starts: {text[:50]!r}).")
        return None

    def embed_many(self, texts: List[str]) -> List[Optional[List[float]]]:
        """Embeds texts in order; runs up to `concurrency` requests in flight."""
        if self.concurrency <= 1 or len(texts) <= 1:
            return [self.embed(text) for text in texts]
        with ThreadPoolExecutor(max_workers=min(self.concurrency, len(texts))) as pool:
            return list(pool.map(self.embed, texts))

    def close(self):
        """Releases the backend's connection pool, if it has one."""
        close = getattr(self.backend, "close", None)
        if close is not None:
            close()

    def sample_embedding(self) -> List[float]:
        """Embeds the sentinel text used to fix the index dimensionality. Raises if the service is down."""
        vector = self.embed(SAMPLE_TEXT)
        if vector is None:
            raise EmbeddingServiceError(
                "Could not generate sample embedding. Is the embedding service running?",
                provider_name=self.provider_name,
            )
        return vector
