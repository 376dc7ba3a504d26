"""Embedding vector encoding and cosine similarity.

Embeddings are stored as flat little-endian IEEE-754 float32 buffers.
"""
from typing import Sequence, Union

import numpy as np

FLOAT_WIDTH = 4
_DTYPE = np.dtype("<f4")

VectorLike = Union[np.ndarray, Sequence[float]]


class EncodingError(ValueError):
    """Raised when an embedding buffer cannot be encoded or decoded."""


class DimensionMismatchError(ValueError):
    """Raised when two vectors of different dimension are compared."""


def bytes_to_vector(data: bytes) -> np.ndarray:
    """
    Decode a stored embedding buffer into a float32 vector.

    Args:
        data: Raw embedding bytes

    Returns:
        1-D float32 array, element order preserved

    Raises:
        EncodingError: If the buffer is empty or not a multiple of 4 bytes
    """
    if not data:
        raise EncodingError("Embedding bytes cannot be empty")

    if len(data) % FLOAT_WIDTH != 0:
        raise EncodingError(
            f"Embedding byte length must be a multiple of {FLOAT_WIDTH}, got {len(data)}"
        )

    return np.frombuffer(bytes(data), dtype=_DTYPE).astype(np.float32)


def vector_to_bytes(vector: VectorLike) -> bytes:
    """
    Encode a float vector as a flat float32 buffer.

    Raises:
        EncodingError: If the vector is empty
    """
    array = np.asarray(vector, dtype=_DTYPE)
    if array.size == 0:
        raise EncodingError("Embedding vector cannot be empty")

    return array.reshape(-1).tobytes()


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length
        ValueError: If the vectors are empty
    """
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)

    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatchError(
            f"Vectors must have same dimension. Got {va.shape[0]} and {vb.shape[0]}"
        )

    if va.shape[0] == 0:
        raise ValueError("Vectors cannot be empty")

    magnitude_a = float(np.linalg.norm(va))
    magnitude_b = float(np.linalg.norm(vb))

    if magnitude_a == 0.0 or magnitude_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb)) / (magnitude_a * magnitude_b)
    return float(min(1.0, max(-1.0, similarity)))


def cosine_similarity_bytes(a: bytes, b: bytes) -> float:
    """Cosine similarity between two encoded embeddings."""
    return cosine_similarity(bytes_to_vector(a), bytes_to_vector(b))
