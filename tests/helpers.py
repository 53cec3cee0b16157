"""Test doubles and file helpers shared across test modules."""

from __future__ import annotations

import hashlib
import os


class FakeEmbeddingBackend:
    """Deterministic vectors derived from the text hash; records every call and fails on demand."""

    def __init__(self, dimension: int = 8, fail_on: set[str] | None = None) -> None:
        self.dimension = dimension
        self.fail_on = set(fail_on or ())
        self.calls: list[str] = []

    def __call__(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise RuntimeError("embedding service error")
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(b + 1) / 256.0 for b in digest[: self.dimension]]


def write_file(path, content: str | bytes, mtime_ms: int | None = None):
    """Write *content* to *path* (creating parents) and optionally pin its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    if mtime_ms is not None:
        ns = mtime_ms * 1_000_000
        os.utime(path, ns=(ns, ns))
    return path


def bump_mtime(path, delta_ms: int = 5_000):
    """Move *path*'s mtime forward so the change is visible at millisecond resolution."""
    stats = os.stat(path)
    ns = stats.st_mtime_ns + delta_ms * 1_000_000
    os.utime(path, ns=(ns, ns))
