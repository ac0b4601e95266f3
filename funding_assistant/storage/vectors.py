"""
Vector helpers: float32 packing and cosine-distance ranking with numpy.
"""

from typing import Iterable, Optional, Sequence, TypeVar

import numpy as np
import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def to_array(vector: Sequence[float]) -> np.ndarray:
    return np.asarray(vector, dtype=np.float32)


def pack(vector: Optional[Sequence[float]]) -> Optional[bytes]:
    if vector is None:
        return None
    return to_array(vector).tobytes()


def unpack(blob: Optional[bytes]) -> Optional[list[float]]:
    if blob is None:
        return None
    return np.frombuffer(blob, dtype=np.float32).tolist()


def cosine_distances(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """1 - cosine similarity per row; zero vectors get distance 1."""
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * query_norm
    similarities = np.divide(
        matrix @ query,
        denom,
        out=np.zeros(len(matrix), dtype=np.float32),
        where=denom > 0,
    )
    return 1.0 - similarities


def rank_by_distance(
    query: Sequence[float],
    candidates: Iterable[tuple[T, Sequence[float]]],
    limit: int,
) -> list[T]:
    """
    Return the limit items whose vectors are nearest to query.

    Candidates with a different dimensionality are skipped.
    """
    query_vec = to_array(query)
    items = []
    vectors = []

    for item, vector in candidates:
        if vector is None:
            continue
        vec = to_array(vector)
        if vec.shape != query_vec.shape:
            logger.warning(
                "embedding_dimension_mismatch",
                expected=int(query_vec.shape[0]),
                got=int(vec.shape[0]),
            )
            continue
        items.append(item)
        vectors.append(vec)

    if not items or limit <= 0:
        return []

    distances = cosine_distances(query_vec, np.vstack(vectors))
    # Stable sort keeps insertion order among equal distances
    order = np.argsort(distances, kind="stable")[:limit]
    return [items[i] for i in order]
