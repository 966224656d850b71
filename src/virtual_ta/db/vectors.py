"""Vector helpers: float32 blob serialization and cosine similarity."""

from __future__ import annotations

import math
from collections.abc import Sequence

import sqlite_vec


def serialize(vector: Sequence[float]) -> bytes:
    """Pack *vector* into the compact float32 blob format used by sqlite-vec."""
    return sqlite_vec.serialize_float32(list(vector))


def check_dimensions(vector: Sequence[float], dimensions: int) -> None:
    """Raise ValueError if *vector* does not have exactly *dimensions* entries."""
    if len(vector) != dimensions:
        raise ValueError(
            f"Vector dimension mismatch: expected {dimensions}, got {len(vector)}"
        )


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|).

    Zero-magnitude vectors have similarity 0.0 with everything so that ranking
    stays well-defined.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} != {len(b)}")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
