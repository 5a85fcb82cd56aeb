"""Vector math and ID helpers for the storage layer."""

import math
import uuid


def cosine_similarity(vec_a: list[float], vec_b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        vec_a: First embedding vector
        vec_b: Second embedding vector

    Returns:
        float: Similarity in [-1, 1]; 0.0 for empty, mismatched or zero vectors
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0

    norm = math.hypot(*vec_a) * math.hypot(*vec_b)
    if norm == 0:
        return 0.0
    return math.fsum(a * b for a, b in zip(vec_a, vec_b)) / norm


def new_id(prefix: str) -> str:
    """Random entity ID such as ``doc-1f3a9c0b2d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def vector_id_for(document_id: str, chunk_id: str) -> str:
    """Vector-store ID of a chunk's embedding."""
    return f"kb_{document_id}_chunk_{chunk_id}"


def matches_filter(metadata: dict, filters: dict | None) -> bool:
    """True when every filter key equals the metadata value."""
    if not filters:
        return True
    return all(metadata.get(key) == value for key, value in filters.items())
