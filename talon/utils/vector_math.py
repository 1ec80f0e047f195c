"""Cosine similarity ranking over stored embeddings.

Similarity is ``1 - cosine_distance``.  Only candidates with similarity
strictly greater than the threshold survive; survivors are ordered by
increasing distance with ties kept in candidate order, then cut to ``top_k``.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


def cosine_similarities(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Return the cosine similarity of *query* against every row of *matrix*.

    Rows (or a query) with zero norm score ``0.0`` instead of dividing by zero.
    """
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)

    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(m, axis=1)
    denom = row_norms * q_norm
    dots = m @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(denom > 0, dots / denom, 0.0)
    return sims


def rank_by_similarity(
    query: Sequence[float],
    vectors: Sequence[Sequence[float]],
    threshold: float,
    top_k: int,
) -> list[tuple[int, float]]:
    """Rank *vectors* against *query* and return ``(position, similarity)`` pairs.

    Parameters
    ----------
    query:
        The query embedding.
    vectors:
        Candidate embeddings; every one must share the query's dimension.
    threshold:
        Exclusive lower bound on similarity.
    top_k:
        Maximum number of results.

    Returns
    -------
    list[tuple[int, float]]
        Indices into *vectors* with their similarity, most similar first.
    """
    if top_k <= 0 or len(vectors) == 0:
        return []

    matrix = np.asarray(vectors, dtype=np.float64)
    sims = cosine_similarities(query, matrix)
    distances = 1.0 - sims

    # Stable sort keeps insertion order among equal distances.
    order = np.argsort(distances, kind="stable")
    ranked: list[tuple[int, float]] = []
    for idx in order:
        similarity = float(sims[idx])
        if similarity <= threshold:
            continue
        ranked.append((int(idx), similarity))
        if len(ranked) >= top_k:
            break
    return ranked
