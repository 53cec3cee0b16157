# ragroom/ingestion_manager.py

import os
import stat
import time
import logging
import threading
from typing import Iterator, List, Optional

from ragroom.chunker import Chunker, make_chunker
from ragroom.config import IngestionSettings
from ragroom.document_processors import get_processor
from ragroom.embedding_client import EmbeddingClient
from ragroom.errors import ConfigurationError
from ragroom.file_tracker import FileTracker, fingerprint
from ragroom.models import IngestionReport, RunState, SourceFile, VectorRecord
from ragroom.qdrant_manager import QdrantManager


def _is_within(path: str, directory: str) -> bool:
    try:
        return os.path.commonpath([path, directory]) == directory
    except ValueError:
        return False


def walk_corpus(corpus_root: str, exclude: Optional[List[str]] = None) -> Iterator[SourceFile]:
    """
    Yields every regular file under corpus_root in a stable (sorted) order.
    Paths in `exclude` (directories or single files) that lie inside the corpus are left out.
    """
    root = os.path.realpath(corpus_root)
    excluded = {os.path.realpath(p) for p in (exclude or [])}
    excluded = {p for p in excluded if p != root and _is_within(p, root)}
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if os.path.join(dirpath, d) not in excluded)
        for name in sorted(filenames):
            path = os.path.join(dirpath, name)
            if path in excluded:
                continue
            try:
                stats = os.stat(path)
            except OSError as e:
                logging.warning(f"Cannot stat {path}, skipping: {e}")
                continue
            if not stat.S_ISREG(stats.st_mode):
                continue
            yield SourceFile(
                path=path,
                source=os.path.relpath(path, root).replace(os.sep, "/"),
                mtime=stats.st_mtime_ns // 1_000_000,
                size=stats.st_size,
            )


class IngestionManager:
    """
    Orchestrates a resumable ingestion run.
    Walks the corpus, diffs it against the processed files cache, and for every stale file
    extracts, chunks, embeds and replaces its records in the index before committing it to the cache.
    """
    def __init__(
        self,
        settings: IngestionSettings,
        embedding_client: Optional[EmbeddingClient] = None,
        qdrant_manager: Optional[QdrantManager] = None,
        file_tracker: Optional[FileTracker] = None,
        chunker: Optional[Chunker] = None,
    ):
        self.settings = settings
        self.embedding_client = embedding_client or EmbeddingClient(settings)
        self.qdrant_manager = qdrant_manager or QdrantManager(settings)
        self.file_tracker = file_tracker or FileTracker(settings.cache_path, settings.verify_content)
        self.chunker = chunker or make_chunker(settings)
        self.state = RunState.IDLE
        logging.debug("IngestionManager initialized.")

    def _own_state_paths(self) -> List[str]:
        # The index and the cache are never ingested, even when they live inside the corpus.
        cache_path = self.settings.cache_path
        return [self.settings.index_path, cache_path, cache_path + ".bak", cache_path + ".legacy.bak"]

    def run_ingestion_scan(self, cancel_event: Optional[threading.Event] = None) -> IngestionReport:
        """
        Runs one ingestion pass. Fatal setup failures (corpus missing, embedding service down
        for the schema sample, index unavailable) raise; per-file failures are only reported.
        """
        report = IngestionReport()
        corpus_root = self.settings.corpus_root
        if not os.path.isdir(corpus_root):
            raise ConfigurationError(f"Corpus root '{corpus_root}' does not exist or is not a directory.")

        self.state = report.state = RunState.WALKING
        logging.info(f"Walking corpus at {os.path.abspath(corpus_root)}...")
        files = list(walk_corpus(corpus_root, exclude=self._own_state_paths()))
        report.files_seen = len(files)

        self.state = report.state = RunState.DIFFING
        self.file_tracker.touched = 0
        work_set = [f for f in files if self.file_tracker.is_stale(f)]
        report.files_stale = len(work_set)
        report.touched = self.file_tracker.touched

        if not work_set:
            if self.file_tracker.dirty:
                self.file_tracker.persist()
            self.state = report.state = RunState.UP_TO_DATE
            logging.info(f"All {len(files)} files are up to date.")
            return report

        logging.info(f"Processing {len(work_set)} new/modified files out of {len(files)}...")
        table_existed = self._open_index()

        self.state = report.state = RunState.PROCESSING
        for source_file in work_set:
            if cancel_event is not None and cancel_event.is_set():
                logging.warning("Ingestion cancelled by user.")
                self.state = report.state = RunState.CANCELLED
                break
            self._process_and_ingest_single_document(source_file, table_existed, report)

        cancelled = report.state == RunState.CANCELLED
        self.state = report.state = RunState.FINALIZING
        self.file_tracker.persist()

        self.state = report.state = RunState.CANCELLED if cancelled else RunState.DONE
        self.qdrant_manager.get_collection_info()
        logging.info(
            f"Ingestion {'cancelled' if cancelled else 'complete'}: {report.processed} processed, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed, {report.chunks_indexed} chunks indexed."
        )
        return report

    def _open_index(self) -> bool:
        """Opens the collection, creating it from a sample embedding if needed. Returns True if it already existed."""
        if self.qdrant_manager.collection_exists():
            return True
        logging.info(f"Collection '{self.settings.collection_name}' does not exist. Sampling an embedding to create it.")
        sample = self.embedding_client.sample_embedding()
        self.qdrant_manager.ensure_collection(sample)
        return False

    def _process_and_ingest_single_document(self, source_file: SourceFile, table_existed: bool, report: IngestionReport):
        """
        Processes one file and replaces its records in the index.
        Any exception leaves the file uncommitted so the next run retries it.
        """
        source = source_file.source
        start_time = time.time()
        records_deleted = False
        try:
            processor = get_processor(source_file.path)
            if processor is None or not processor.can_parse(source_file.path):
                logging.warning(f"Skipping unsupported or non-text file: {source}")
                report.skipped.append(source)
                return

            file_id = fingerprint(source_file.path)
            text = processor.parse(source_file.path)
            chunks = self.chunker.chunk_document(source, text) if text.strip() else []
            if not chunks:
                logging.warning(f"No content extracted from '{source}'. Marking as processed.")
                if table_existed:
                    # A previous version may have had chunks; the cache must not vouch for them.
                    self.qdrant_manager.delete_points_by_source(source)
                    records_deleted = True
                self.file_tracker.commit(source_file, file_id)
                report.processed += 1
                return

            vectors = self.embedding_client.embed_many([chunk.text for chunk in chunks])
            records = [
                VectorRecord(vector=vector, text=chunk.text, source=source)
                for chunk, vector in zip(chunks, vectors)
                if vector is not None
            ]
            dropped = len(chunks) - len(records)
            report.chunks_dropped += dropped
            if dropped:
                logging.warning(f"Dropped {dropped} of {len(chunks)} chunks of '{source}' after embedding failures.")
            if not records:
                report.failed[source] = "every chunk failed to embed"
                logging.error(f"No chunk of '{source}' could be embedded. Leaving it for the next run.")
                return

            if table_existed:
                self.qdrant_manager.delete_points_by_source(source)
                records_deleted = True
            report.chunks_indexed += self.qdrant_manager.upload_records(records)

            self.file_tracker.commit(source_file, file_id)
            report.processed += 1
            logging.info(f"Ingested '{source}' ({len(records)} chunks) in {time.time() - start_time:.2f} seconds.")
        except Exception as e:
            logging.error(f"Failed to ingest '{source}': {e}", exc_info=True)
            report.failed[source] = str(e)
            if records_deleted:
                # The old records are gone, so the cache must not vouch for the old content either.
                self.file_tracker.forget(source)

    def clear_all_ingested_data(self):
        """Completely clears the collection and resets the processed files cache."""
        logging.info("--- Starting full data clear operation ---")
        self.qdrant_manager.drop_collection()
        self.file_tracker.reset()
        logging.info("--- Full data clear operation complete ---")
