# ragroom/qdrant_manager.py

import os
import logging
import hashlib
from typing import List, Optional

from qdrant_client import QdrantClient, models

from ragroom.config import IngestionSettings
from ragroom.errors import IndexStoreError
from ragroom.models import VectorRecord

SOURCE_KEY = "source"


def point_id(source: str, chunk_index: int) -> int:
    """Deterministic unsigned 64-bit point id for a source's n-th chunk."""
    unique_chunk_identifier = f"{source}\x00{chunk_index}"
    return int(hashlib.sha256(unique_chunk_identifier.encode("utf-8")).hexdigest()[:16], 16)


def source_filter(source: str) -> models.Filter:
    """Payload filter matching every point of one source. The value is passed as data, never as query text."""
    return models.Filter(
        must=[
            models.FieldCondition(
                key=SOURCE_KEY,
                match=models.MatchValue(value=source),
            )
        ]
    )


class QdrantManager:
    """Manages all interactions with the Qdrant collection backing the vector index."""
    def __init__(self, settings: IngestionSettings, client: Optional[QdrantClient] = None):
        self.settings = settings
        self.collection_name = settings.collection_name
        self._client = client

    @property
    def qdrant_client(self) -> QdrantClient:
        if self._client is None:
            self._client = self._initialize_qdrant_client()
        return self._client

    def _initialize_qdrant_client(self) -> QdrantClient:
        """Opens a remote Qdrant when a host is configured, otherwise the local on-disk index."""
        settings = self.settings
        try:
            if not settings.qdrant_host:
                os.makedirs(settings.index_path, exist_ok=True)
                client = QdrantClient(path=settings.index_path)
                logging.info(f"Qdrant client opened local index at {settings.index_path}")
            elif settings.prefer_grpc:
                client = QdrantClient(host=settings.qdrant_host, grpc_port=settings.qdrant_grpc_port, prefer_grpc=True)
                logging.info(f"Qdrant client initialized with gRPC: {settings.qdrant_host}:{settings.qdrant_grpc_port}")
            else:
                client = QdrantClient(host=settings.qdrant_host, port=settings.qdrant_port)
                logging.info(f"Qdrant client initialized with REST: {settings.qdrant_host}:{settings.qdrant_port}")
            # Test connection
            client.get_collections()
            return client
        except Exception as e:
            logging.error(f"Failed to open Qdrant: {e}", exc_info=True)
            location = settings.qdrant_host or settings.index_path
            raise IndexStoreError(f"Could not open the vector index at {location}: {e}", provider_name="qdrant") from e

    @property
    def is_open(self) -> bool:
        return self._client is not None

    @property
    def is_local(self) -> bool:
        return not self.settings.qdrant_host

    def collection_exists(self) -> bool:
        try:
            return self.qdrant_client.collection_exists(self.collection_name)
        except IndexStoreError:
            raise
        except Exception as e:
            raise IndexStoreError(f"Could not list collections: {e}", provider_name="qdrant") from e

    def ensure_collection(self, sample_vector: List[float]) -> bool:
        """
        Creates the collection sized to the sample vector if it does not exist yet.
        An existing collection is used as-is. Returns True if the collection was created.
        """
        if self.collection_exists():
            logging.info(f"Collection '{self.collection_name}' already exists.")
            return False
        try:
            self.qdrant_client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(size=len(sample_vector), distance=models.Distance.COSINE),
            )
            if not self.is_local:
                self.qdrant_client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=SOURCE_KEY,
                    field_schema=models.PayloadSchemaType.KEYWORD,
                )
        except Exception as e:
            logging.error(f"Error creating Qdrant collection '{self.collection_name}': {e}", exc_info=True)
            raise IndexStoreError(f"Could not create collection '{self.collection_name}': {e}", provider_name="qdrant") from e
        logging.info(f"Collection '{self.collection_name}' created with vector size {len(sample_vector)} and cosine distance.")
        return True

    def delete_points_by_source(self, source: str):
        """Deletes every point whose payload source equals the given source key."""
        result = self.qdrant_client.delete(
            collection_name=self.collection_name,
            points_selector=models.FilterSelector(filter=source_filter(source)),
            wait=True,
        )
        logging.debug(f"Deleted points for source '{source}'. Status: {result.status}")

    def upload_records(self, records: List[VectorRecord]) -> int:
        """Writes one file's records in a single upsert. Returns the number of points written."""
        if not records:
            logging.warning("No records provided for upload to Qdrant.")
            return 0
        points = [
            models.PointStruct(
                id=point_id(record.source, i),
                vector=record.vector,
                payload={"text": record.text, SOURCE_KEY: record.source, "chunk_index": i},
            )
            for i, record in enumerate(records)
        ]
        operation_info = self.qdrant_client.upsert(
            collection_name=self.collection_name,
            points=points,
            wait=True,
        )
        logging.debug(f"Upserted {len(points)} points to Qdrant. Status: {operation_info.status}")
        return len(points)

    def search(self, vector: List[float], limit: int = 5) -> List[VectorRecord]:
        """Returns the records most similar to the query vector, best first."""
        response = self.qdrant_client.query_points(
            collection_name=self.collection_name,
            query=vector,
            limit=limit,
            with_payload=True,
            with_vectors=True,
        )
        results: List[VectorRecord] = []
        for hit in response.points:
            payload = hit.payload or {}
            results.append(VectorRecord(
                vector=list(hit.vector) if isinstance(hit.vector, list) else [],
                text=payload.get("text", ""),
                source=payload.get(SOURCE_KEY, ""),
                score=hit.score,
            ))
        return results

    def count_points(self, source: Optional[str] = None) -> int:
        """Counts all points, or only those of one source."""
        result = self.qdrant_client.count(
            collection_name=self.collection_name,
            count_filter=source_filter(source) if source is not None else None,
            exact=True,
        )
        return result.count

    def drop_collection(self):
        """Deletes the collection and all its points."""
        if self.collection_exists():
            self.qdrant_client.delete_collection(collection_name=self.collection_name)
            logging.info(f"Collection '{self.collection_name}' deleted.")

    def get_collection_info(self):
        """Retrieves and logs information about the collection; None if it cannot be read."""
        try:
            collection_info = self.qdrant_client.get_collection(collection_name=self.collection_name)
            logging.info(f"Collection '{self.collection_name}' status: {collection_info.status}, points: {collection_info.points_count}")
            return collection_info
        except Exception as e:
            logging.error(f"Error getting collection info for '{self.collection_name}': {e}")
            return None

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None
