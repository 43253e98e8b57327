"""Vector similarity helpers (numpy)."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of *a* and *b*.

    Returns ``0.0`` when the vectors differ in length or either has zero norm.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def rank_by_similarity(
    query: Sequence[float],
    candidates: Sequence[Sequence[float]],
) -> list[tuple[int, float]]:
    """Return ``(index, score)`` pairs for *candidates*, best first."""
    scored = [(i, cosine_similarity(query, vec)) for i, vec in enumerate(candidates)]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored
