# ragroom/config.py

import os
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class IngestionSettings(BaseSettings):
    """Configuration for ingestion and retrieval, read from RAGROOM_* env vars or .env.

    Built once by the entry scripts and passed to every component.
    """

    model_config = SettingsConfigDict(env_prefix="RAGROOM_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Corpus and on-disk state
    corpus_root: str = "./data/corpus"
    data_path: str = "./data"
    index_path: str = ""  # Defaults to <data_path>/store
    cache_path: str = ""  # Defaults to <data_path>/cache/processed.json
    collection_name: str = "vectors"

    # Embedding service (Ollama) or local fastembed model
    embedding_provider: Literal["ollama", "fastembed"] = "ollama"
    embedding_model: str = "bge-m3:latest"
    fastembed_model: str = "BAAI/bge-small-en-v1.5"
    chat_model: str = "gemma3:1b"
    service_host: str = "http://localhost:11434"
    request_timeout: float = 60.0
    retry_budget: int = Field(default=3, ge=1)
    retry_backoff: float = Field(default=0.5, ge=0.0)  # Seconds, multiplied by the attempt number
    embed_concurrency: int = Field(default=1, ge=1)

    # Chunking
    chunk_strategy: Literal["sentence", "recursive"] = "sentence"
    chunk_size: int = Field(default=1000, ge=1)
    chunk_overlap: int = Field(default=200, ge=0)  # Only used by the recursive strategy

    # Retrieval
    top_k: int = Field(default=5, ge=1)

    # Change detection
    verify_content: bool = False  # Hash every file even when its mtime is unchanged

    # Qdrant server; empty host means the local on-disk index at index_path
    qdrant_host: str = ""
    qdrant_port: int = 6333
    qdrant_grpc_port: int = 6334
    prefer_grpc: bool = True

    reset_index: bool = False
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _fill_derived_paths(self) -> "IngestionSettings":
        if self.chunk_strategy == "recursive" and self.chunk_overlap >= self.chunk_size:
            raise ValueError(f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})")
        if not self.index_path:
            self.index_path = os.path.join(self.data_path, "store")
        if not self.cache_path:
            self.cache_path = os.path.join(self.data_path, "cache", "processed.json")
        return self
