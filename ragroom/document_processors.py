# ragroom/document_processors.py

import os
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional

import docx  # python-docx
import fitz  # PyMuPDF


class ExtractorKind(str, Enum):
    """Closed set of extraction variants a file can resolve to."""
    TEXT = "text"
    PDF = "pdf"
    DOCX = "docx"
    UNSUPPORTED = "unsupported"


# Extensions that are never read as text. PDF and DOCX are resolved before this set is consulted.
BINARY_EXTENSIONS = frozenset({
    # Images
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tiff", ".ico", ".webp",
    # Audio/Video
    ".mp3", ".wav", ".ogg", ".mp4", ".avi", ".mov", ".mkv", ".webm",
    # Archives
    ".zip", ".rar", ".7z", ".tar", ".gz",
    # Executables/Binaries
    ".exe", ".dll", ".so", ".app", ".bin",
    # Fonts
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    # Office/container formats without an extractor, databases
    ".doc", ".xls", ".xlsx", ".ppt", ".pptx",
    ".sqlite", ".db",
})

_SPECIALIZED_EXTENSIONS = {
    ".pdf": ExtractorKind.PDF,
    ".docx": ExtractorKind.DOCX,
}

PROBE_BYTES = 512
MAX_REPLACEMENT_RATIO = 0.1


def resolve_kind(file_path: str) -> ExtractorKind:
    """Maps a file path to its extraction variant by (case-insensitive) extension."""
    extension = os.path.splitext(file_path)[1].lower()
    if extension in _SPECIALIZED_EXTENSIONS:
        return _SPECIALIZED_EXTENSIONS[extension]
    if extension in BINARY_EXTENSIONS:
        return ExtractorKind.UNSUPPORTED
    return ExtractorKind.TEXT


class DocumentProcessor(ABC):
    """
    Abstract base class for document processors.
    Subclasses implement extract_text(); callers use parse(), which never raises.
    """
    kind: ExtractorKind

    def can_parse(self, file_path: str) -> bool:
        """Returns False when the file should be skipped without being recorded as processed."""
        return True

    @abstractmethod
    def extract_text(self, file_path: str) -> str:
        """
        Extracts the full text of the file.
        Raises an exception if extraction fails.
        """
        pass

    def parse(self, file_path: str) -> str:
        """Extracts text, converting any extraction failure into an empty string."""
        try:
            return self.extract_text(file_path)
        except Exception as e:
            logging.warning(f"Failed to parse {self.kind.value} file {file_path}: {e}")
            return ""


class PdfProcessor(DocumentProcessor):
    """Processor for PDF documents using PyMuPDF."""
    kind = ExtractorKind.PDF

    def extract_text(self, file_path: str) -> str:
        pages: List[str] = []
        with fitz.open(file_path) as document:
            for page in document:
                pages.append(page.get_text("text"))
        logging.debug(f"Extracted text from {len(pages)} pages of PDF: {file_path}")
        return "\n\n".join(pages)


class DocxProcessor(DocumentProcessor):
    """Processor for Word documents using python-docx (paragraphs, then table cells)."""
    kind = ExtractorKind.DOCX

    def extract_text(self, file_path: str) -> str:
        document = docx.Document(file_path)
        text_parts = [p.text.strip() for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    text_parts.append(" | ".join(cells))
        return "\n".join(text_parts)


class TextProcessor(DocumentProcessor):
    """Processor for any file not known to be binary; guards against binary content with a text extension."""
    kind = ExtractorKind.TEXT

    def can_parse(self, file_path: str) -> bool:
        """
        Rejects files with a NUL byte in the leading window, or whose UTF-8 decode
        is at least 10% replacement characters. Unreadable files are rejected too.
        """
        try:
            with open(file_path, "rb") as f:
                content = f.read()
        except OSError as e:
            logging.warning(f"Cannot read {file_path}: {e}")
            return False
        if b"\x00" in content[:PROBE_BYTES]:
            return False
        decoded = content.decode("utf-8", errors="replace")
        if not decoded:
            return True
        return decoded.count("\ufffd") / len(decoded) < MAX_REPLACEMENT_RATIO

    def extract_text(self, file_path: str) -> str:
        with open(file_path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()


_PROCESSORS: Dict[ExtractorKind, DocumentProcessor] = {
    ExtractorKind.TEXT: TextProcessor(),
    ExtractorKind.PDF: PdfProcessor(),
    ExtractorKind.DOCX: DocxProcessor(),
}


def get_processor(file_path: str) -> Optional[DocumentProcessor]:
    """Returns the processor for the file, or None if its type is binary/unsupported."""
    return _PROCESSORS.get(resolve_kind(file_path))
