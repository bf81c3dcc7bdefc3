"""Deterministic hash-based embedding provider.

Buckets FNV-1a hashes of the input's tokens into a fixed-length vector and
L2-normalizes it. Same text, same bits, on every machine; used offline and
in tests, and as the fallback for an unrecognized provider setting.
"""

from __future__ import annotations

import numpy as np

MOCK_DIMENSION = 384

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619


def fnv1a_32(data: bytes) -> int:
    """32-bit FNV-1a hash."""
    h = FNV_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


def mock_tokens(text: str):
    """Lower-cased runs of alphanumeric characters."""
    cleaned = "".join(
        c if c.isalnum() or c.isspace() else " " for c in text.lower()
    )
    return cleaned.split()


class MockEmbeddingProvider:
    """EmbeddingProvider producing bag-of-hashed-tokens vectors.

    Args:
        dimension: Number of buckets (384 to match the local model).
    """

    def __init__(self, dimension: int = MOCK_DIMENSION) -> None:
        self._dim = dimension

    @property
    def dimension(self) -> int:
        return self._dim

    def load(self) -> None:
        pass

    def unload(self) -> None:
        pass

    @property
    def is_loaded(self) -> bool:
        return True

    def embed(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dim, dtype=np.float64)
        for token in mock_tokens(text):
            vector[fnv1a_32(token.encode("utf-8")) % self._dim] += 1.0

        norm = np.linalg.norm(vector)
        if norm > 0.0:
            vector /= norm
        return vector
