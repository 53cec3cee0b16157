# ragroom/file_tracker.py

import os
import json
import hashlib
import logging
import tempfile
from typing import Dict

from pydantic import ValidationError

from ragroom.models import CacheEntry, SourceFile

_READ_BLOCK = 1 << 16


def fingerprint(file_path: str) -> str:
    """SHA-256 hex digest of the file content."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for block in iter(lambda: f.read(_READ_BLOCK), b""):
            digest.update(block)
    return digest.hexdigest()


class FileTracker:
    """
    Persistent map from source key to the last successfully processed (mtime, fileId).

    An entry is only committed after the file's vector records have been written,
    so the on-disk cache never claims more than the index holds.
    """
    def __init__(self, cache_path: str, verify_content: bool = False):
        self.cache_path = cache_path
        self.verify_content = verify_content
        self.touched = 0
        self._dirty = False
        self.tracker: Dict[str, CacheEntry] = self.load()

    def load(self) -> Dict[str, CacheEntry]:
        """Loads the cache from disk. Missing or unreadable caches yield an empty map."""
        if not os.path.exists(self.cache_path):
            logging.info(f"Processed files cache not found at {self.cache_path}. Starting with empty cache.")
            return {}
        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logging.error(f"Error decoding processed files cache: {e}. Starting with empty cache.")
            self._backup(".bak")
            return {}
        except OSError as e:
            logging.error(f"Could not read processed files cache: {e}. Starting with empty cache.", exc_info=True)
            return {}

        if isinstance(data, list):
            # Legacy "processed files" log: a plain list of paths with no mtimes.
            logging.warning(f"{self.cache_path} holds a legacy processed-files list, not an mtime cache. Starting with empty cache.")
            self._backup(".legacy.bak")
            return {}
        if not isinstance(data, dict):
            logging.error(f"Unexpected processed files cache contents in {self.cache_path}. Starting with empty cache.")
            self._backup(".bak")
            return {}

        tracker: Dict[str, CacheEntry] = {}
        for source, raw_entry in data.items():
            try:
                tracker[source] = CacheEntry.model_validate(raw_entry)
            except ValidationError:
                logging.warning(f"Dropping malformed cache entry for '{source}'.")
        logging.info(f"Loaded {len(tracker)} cache entries from {self.cache_path}.")
        return tracker

    def _backup(self, suffix: str):
        try:
            os.replace(self.cache_path, self.cache_path + suffix)
        except OSError as e:
            logging.warning(f"Could not back up {self.cache_path}: {e}")

    def persist(self):
        """Writes the cache atomically: temp file in the same directory, then rename over the old one."""
        directory = os.path.dirname(os.path.abspath(self.cache_path))
        os.makedirs(directory, exist_ok=True)
        data = {k: v.model_dump(by_alias=True) for k, v in self.tracker.items()}
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".processed-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.cache_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        self._dirty = False
        logging.debug(f"Processed files cache saved ({len(self.tracker)} entries).")

    @property
    def dirty(self) -> bool:
        return self._dirty

    def is_stale(self, source_file: SourceFile) -> bool:
        """
        True if the file has no entry, or its content differs from the last processed version.

        The stored mtime is the fast path. When it differs, the content hash decides:
        a file touched without a content change only has its mtime refreshed.
        """
        entry = self.tracker.get(source_file.source)
        if entry is None:
            logging.info(f"File '{source_file.source}' is NEW. Will ingest.")
            return True

        if entry.mtime == source_file.mtime and not self.verify_content:
            logging.debug(f"File '{source_file.source}' already ingested and NOT MODIFIED.")
            return False

        try:
            current_id = fingerprint(source_file.path)
        except OSError as e:
            logging.warning(f"Cannot hash '{source_file.source}' ({e}). Queuing it for reprocessing.")
            return True
        if current_id == entry.file_id:
            if entry.mtime != source_file.mtime:
                logging.info(f"File '{source_file.source}' was touched but its content is unchanged. Refreshing mtime.")
                self.tracker[source_file.source] = CacheEntry(mtime=source_file.mtime, file_id=entry.file_id)
                self.touched += 1
                self._dirty = True
            return False

        logging.info(f"File '{source_file.source}' has been MODIFIED (current mtime: {source_file.mtime}, tracked: {entry.mtime}). Will re-ingest.")
        return True

    def commit(self, source_file: SourceFile, file_id: str):
        """Records the file as processed and saves immediately."""
        self.tracker[source_file.source] = CacheEntry(mtime=source_file.mtime, file_id=file_id)
        self._dirty = True
        self.persist()

    def forget(self, source: str):
        """Drops the entry for a source whose records are no longer in the index. Saved with the next persist."""
        if self.tracker.pop(source, None) is not None:
            self._dirty = True

    def reset(self):
        """Forgets every entry and removes the cache file."""
        if os.path.exists(self.cache_path):
            os.remove(self.cache_path)
            logging.info(f"Deleted processed files cache: {self.cache_path}")
        self.tracker = {}
        self.touched = 0
        self._dirty = False
