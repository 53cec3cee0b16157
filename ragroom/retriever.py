# ragroom/retriever.py

import os
import logging
from typing import List, Optional

from ragroom.config import IngestionSettings
from ragroom.embedding_client import EmbeddingClient
from ragroom.models import VectorRecord
from ragroom.qdrant_manager import QdrantManager

CHUNK_SEPARATOR = "\n---\n"


def format_context(query: str, records: List[VectorRecord]) -> str:
    """Builds the context block handed to the answering model."""
    context = CHUNK_SEPARATOR.join(record.text for record in records)
    return f"Context:\n{context}\n\nQuestion: {query}"


class Retriever:
    """
    Handles similarity search over the ingested index.
    Embeds user queries and retrieves the top-k most similar chunks.
    """
    def __init__(
        self,
        settings: IngestionSettings,
        embedding_client: Optional[EmbeddingClient] = None,
        qdrant_manager: Optional[QdrantManager] = None,
    ):
        self.settings = settings
        self.embedding_client = embedding_client or EmbeddingClient(settings)
        self.qdrant_manager = qdrant_manager or QdrantManager(settings)

    def _index_available(self) -> bool:
        # Do not create an empty local index just to find out nothing was ingested.
        if self.settings.qdrant_host or self.qdrant_manager.is_open:
            return self.qdrant_manager.collection_exists()
        return os.path.isdir(self.settings.index_path) and self.qdrant_manager.collection_exists()

    def retrieve(self, query: str, top_k: Optional[int] = None) -> List[VectorRecord]:
        """Embeds the query and returns the most similar records, best first."""
        if not query.strip():
            logging.warning("Received empty query. Returning empty results.")
            return []
        if not self._index_available():
            logging.warning(f"Collection '{self.settings.collection_name}' not found. Has anything been ingested?")
            return []

        query_embedding = self.embedding_client.embed(query)
        if query_embedding is None:
            logging.error("Could not embed the query.")
            return []

        results = self.qdrant_manager.search(query_embedding, limit=top_k or self.settings.top_k)
        logging.info(f"Retrieved {len(results)} results for query: '{query[:50]}...'")
        return results

    def build_context(self, query: str) -> Optional[str]:
        """Returns the context block for the query, or None if nothing relevant could be retrieved."""
        try:
            results = self.retrieve(query)
        except Exception as e:
            logging.error(f"Error querying context for '{query}': {e}", exc_info=True)
            return None
        if not results:
            return None
        return format_context(query, results)
