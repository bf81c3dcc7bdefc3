"""Column encoding for the SQL store.

Tags and token counts are stored as JSON text, embeddings as packed
little-endian float64 blobs. Decoding checks the shape of every value
and raises DataShapeError rather than repairing anything.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import numpy as np

from forest_core.exceptions import DataShapeError

EMBEDDING_DTYPE = np.dtype("<f8")


def encode_tags(tags: List[str]) -> str:
    return json.dumps(list(tags))


def decode_tags(raw: Optional[str]) -> List[str]:
    """Decode a JSON array of strings."""
    value = _load_json(raw, "tags")
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise DataShapeError("Stored tags must be a JSON array of strings", field="tags")
    return value


def encode_token_counts(counts: Dict[str, int]) -> str:
    return json.dumps(counts, sort_keys=True)


def decode_token_counts(raw: Optional[str]) -> Dict[str, int]:
    """Decode a JSON object mapping token -> non-negative integer count."""
    value = _load_json(raw, "token_counts")
    if not isinstance(value, dict):
        raise DataShapeError(
            "Stored token counts must be a JSON object", field="token_counts"
        )
    for token, count in value.items():
        # bool is an int subclass; a stored true/false is not a count
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise DataShapeError(
                f"Token count for {token!r} is not a non-negative integer: {count!r}",
                field="token_counts",
            )
    return value


def encode_embedding(embedding: Optional[List[float]]) -> Optional[bytes]:
    if not embedding:
        return None
    return np.asarray(embedding, dtype=EMBEDDING_DTYPE).tobytes()


def decode_embedding(raw: Optional[bytes]) -> Optional[List[float]]:
    """Decode a float64 blob. NULL means the node has no embedding."""
    if raw is None:
        return None
    if len(raw) == 0 or len(raw) % EMBEDDING_DTYPE.itemsize != 0:
        raise DataShapeError(
            f"Embedding blob of {len(raw)} bytes is not a whole number of float64 values",
            field="embedding",
        )
    vector = np.frombuffer(raw, dtype=EMBEDDING_DTYPE)
    if not np.all(np.isfinite(vector)):
        raise DataShapeError("Embedding contains NaN or infinite values", field="embedding")
    return vector.tolist()


def encode_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    if metadata is None:
        return None
    return json.dumps(metadata)


def decode_metadata(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    value = _load_json(raw, "metadata")
    if not isinstance(value, dict):
        raise DataShapeError("Stored edge metadata must be a JSON object", field="metadata")
    return value


def _load_json(raw: Optional[str], field: str) -> Any:
    if raw is None:
        raise DataShapeError(f"Stored {field} is NULL", field=field)
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise DataShapeError(
            f"Stored {field} is not valid JSON", field=field, original_error=e
        ) from e
