# ragroom/chunker.py

import os
import re
import logging
from typing import Iterator, List, Union

from langchain_text_splitters import RecursiveCharacterTextSplitter

from ragroom.config import IngestionSettings
from ragroom.models import DocumentChunk

# Periods after these words do not end a sentence.
_ABBREVIATIONS = frozenset({
    "Dr", "Mr", "Mrs", "Ms", "Prof", "Jr", "Sr", "St", "Mt", "Ave", "Blvd",
    "Vol", "No", "Fig", "vs", "etc", "approx", "dept", "est", "inc", "ltd", "co",
    "e.g", "i.e", "cf", "al",
})
_ABBREVIATION_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(a) for a in sorted(_ABBREVIATIONS, key=len, reverse=True)) + r")\."
)
_SENTENCE_END = re.compile(r"[.!?]+[\"')\]]*(?=\s|$)")
_MASK = "\x00"


def _split_line(line: str) -> List[str]:
    # Mask abbreviation periods with a same-length placeholder so offsets stay aligned.
    masked = _ABBREVIATION_PATTERN.sub(lambda m: m.group(1) + _MASK, line)
    sentences: List[str] = []
    last = 0
    for match in _SENTENCE_END.finditer(masked):
        sentence = line[last:match.end()].strip()
        if sentence:
            sentences.append(sentence)
        last = match.end()
    remainder = line[last:].strip()
    if remainder:
        sentences.append(remainder)
    return sentences


def split_sentences(text: str) -> List[str]:
    """Splits text at sentence boundaries; every newline is a boundary as well."""
    sentences: List[str] = []
    for line in text.splitlines():
        if line.strip():
            sentences.extend(_split_line(line))
    return sentences


class SentenceChunker:
    """
    Greedy sentence packing: sentences are joined with single spaces until adding
    the next one would reach chunk_size characters, then the buffer is flushed.
    """
    def __init__(self, chunk_size: int = 1000):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.chunk_size = chunk_size

    def split(self, text: str) -> Iterator[str]:
        buffer = ""
        for sentence in split_sentences(text):
            if len(buffer) + len(sentence) < self.chunk_size:
                buffer = f"{buffer} {sentence}" if buffer else sentence
            else:
                if buffer:
                    yield buffer.strip()
                buffer = sentence
        if buffer:
            yield buffer.strip()

    def chunk_document(self, source: str, text: str) -> List[DocumentChunk]:
        return _to_chunks(source, self.split(text))


class RecursiveChunker:
    """Fixed-window chunking with overlap, delegating to langchain's recursive character splitter."""
    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        self.text_splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
            separators=["\n\n", "\n", ". ", " ", ""],
        )
        logging.debug(f"Recursive text splitter initialized with chunk_size={chunk_size}, chunk_overlap={chunk_overlap}")

    def split(self, text: str) -> Iterator[str]:
        if not text.strip():
            return iter(())
        return (chunk.strip() for chunk in self.text_splitter.split_text(text) if chunk.strip())

    def chunk_document(self, source: str, text: str) -> List[DocumentChunk]:
        return _to_chunks(source, self.split(text))


Chunker = Union[SentenceChunker, RecursiveChunker]


def _to_chunks(source: str, texts: Iterator[str]) -> List[DocumentChunk]:
    file_type = os.path.splitext(source)[1].lstrip(".").lower()
    return [
        DocumentChunk(
            text=chunk_text,
            metadata={
                "source": source,
                "file_type": file_type,
                "chunk_index": i,
                "text_length": len(chunk_text),
            },
        )
        for i, chunk_text in enumerate(texts)
    ]


def make_chunker(settings: IngestionSettings) -> Chunker:
    if settings.chunk_strategy == "recursive":
        return RecursiveChunker(settings.chunk_size, settings.chunk_overlap)
    return SentenceChunker(settings.chunk_size)
