# ragroom/models.py

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class DocumentChunk(BaseModel):
    """Represents a chunk of text from a document with associated metadata."""
    text: str
    metadata: Dict[str, Union[str, int, float, List[str]]]


class SourceFile(BaseModel):
    """A file discovered under the corpus root during one run."""
    path: str    # Absolute path on disk
    source: str  # POSIX path relative to the corpus root; joins cache entries and vector records
    mtime: int   # Last modification time in milliseconds
    size: int


class CacheEntry(BaseModel):
    """Last successfully processed state of a source file."""
    model_config = ConfigDict(populate_by_name=True)

    mtime: int
    file_id: str = Field(alias="fileId")  # SHA-256 of the file content


class VectorRecord(BaseModel):
    """A row of the vector index: one embedded chunk."""
    vector: List[float]
    text: str
    source: str
    score: Optional[float] = None  # Only set on search results


class RunState(str, Enum):
    IDLE = "idle"
    WALKING = "walking"
    DIFFING = "diffing"
    PROCESSING = "processing"
    FINALIZING = "finalizing"
    DONE = "done"
    UP_TO_DATE = "up_to_date"
    CANCELLED = "cancelled"


class IngestionReport(BaseModel):
    """Summary of a single ingestion run."""
    state: RunState = RunState.IDLE
    files_seen: int = 0
    files_stale: int = 0
    processed: int = 0
    touched: int = 0
    chunks_indexed: int = 0
    chunks_dropped: int = 0
    skipped: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
