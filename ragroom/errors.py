# ragroom/errors.py

"""Exceptions that abort an ingestion run.

Per-file and per-chunk failures are logged and recorded in the run report
instead; only setup problems surface as these types:

    RagroomError
    +-- ConfigurationError     (missing corpus root, invalid settings)
    +-- EmbeddingServiceError  (schema sample embedding unobtainable)
    +-- IndexStoreError        (vector index cannot be opened or created)
"""

from typing import Optional


class RagroomError(Exception):
    """Base exception carrying an optional provider name, e.g. ``[ollama] ...``."""

    def __init__(self, message: str = "An unexpected error occurred", provider_name: Optional[str] = None):
        self._message = message
        self._provider_name = provider_name
        super().__init__(message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> Optional[str]:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class ConfigurationError(RagroomError):
    """Raised when the configured corpus or settings cannot be used."""

    def __init__(self, message: str = "Invalid or missing configuration", provider_name: Optional[str] = None):
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingServiceError(RagroomError):
    """Raised when the embedding service cannot produce the schema sample."""

    def __init__(self, message: str = "Embedding service is unavailable", provider_name: Optional[str] = None):
        super().__init__(message=message, provider_name=provider_name)


class IndexStoreError(RagroomError):
    """Raised when the vector index cannot be opened or created."""

    def __init__(self, message: str = "Vector index store is unavailable", provider_name: Optional[str] = None):
        super().__init__(message=message, provider_name=provider_name)
