# ragroom/service_check.py

import logging
from typing import Dict, List, Optional

import httpx

from ragroom.config import IngestionSettings
from ragroom.embedding_client import OllamaEmbeddingBackend


def _normalize(model: str) -> str:
    # An untagged name means the "latest" tag.
    return model if ":" in model else f"{model}:latest"


def _has_model(available: List[str], required: str) -> bool:
    return _normalize(required) in {_normalize(name) for name in available}


def check_models(settings: IngestionSettings, backend: Optional[OllamaEmbeddingBackend] = None) -> Dict[str, bool]:
    """
    Connects to the embedding service and reports which required models are pulled.
    Returns an empty dict if the service cannot be reached.
    """
    owns_backend = backend is None
    backend = backend or OllamaEmbeddingBackend(settings)
    logging.info(f"Connecting to Ollama at {settings.service_host}...")
    try:
        available = backend.list_models()
    except httpx.HTTPError as e:
        logging.error(f"Failed to connect to Ollama: {e}. Please ensure it is running and accessible at {settings.service_host}.")
        return {}
    finally:
        if owns_backend:
            backend.close()
    logging.info(f"Available models: {available}")

    status = {
        settings.embedding_model: _has_model(available, settings.embedding_model),
        settings.chat_model: _has_model(available, settings.chat_model),
    }
    for model, present in status.items():
        if present:
            logging.info(f"Model found: {model}")
        else:
            logging.error(f"Model not found: {model}. Please run 'ollama pull {model}' to download it.")
    return status
