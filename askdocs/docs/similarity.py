"""Vector similarity helpers shared by the document stores."""

from collections.abc import Sequence

import numpy as np


def cosine_similarities(
    query_vector: Sequence[float], vectors: Sequence[Sequence[float]]
) -> np.ndarray:
    """Cosine similarity between one query vector and each row of `vectors`.

    Zero-norm rows (and a zero-norm query) score 0.0 instead of NaN.

    Raises:
        ValueError: If a row's dimension differs from the query's
    """
    if not vectors:
        return np.zeros(0, dtype=np.float64)

    query = np.asarray(query_vector, dtype=np.float64)
    matrix = np.asarray(vectors, dtype=np.float64)

    if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
        raise ValueError(
            f"dimension mismatch: query has {query.shape[0]}, stored vectors {matrix.shape}"
        )

    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * query_norm

    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    nonzero = denom > 0
    scores[nonzero] = (matrix[nonzero] @ query) / denom[nonzero]
    return scores
