# distances.py
"""
Distance functions and linkage combinators.

Everything here is a pure function over NumPy arrays. Distances are exposed
by name through the Distance enum, linkages through the Linkage enum; the
combinators for the dense engine are dispatched through a small table keyed
by Linkage.

Doxygen-style docstrings are used (with @param / @return tags).
"""

from enum import Enum
from typing import Callable, Dict, Union
import numpy as np

from .exceptions import ConfigurationError

__all__ = [
    "Distance",
    "Linkage",
    "DENSE_LINKAGES",
    "REPRESENTATIVE_LINKAGES",
    "resolve_distance",
    "resolve_linkage",
    "point_distances",
    "compute_pairwise_distances",
    "lance_williams_update",
    "ward_weight",
    "ward_distance",
    "box_prunable",
    "box_lower_bound",
]


class Distance(str, Enum):
    EUCLIDEAN = "euclidean"
    SQEUCLIDEAN = "sqeuclidean"
    MANHATTAN = "manhattan"
    CHEBYSHEV = "chebyshev"
    COSINE = "cosine"


class Linkage(str, Enum):
    COMPLETE = "complete"
    AVERAGE = "average"
    WARD = "ward"
    SINGLE = "single"
    CENTROID = "centroid"
    CURE = "cure"


DENSE_LINKAGES = frozenset({Linkage.COMPLETE, Linkage.AVERAGE, Linkage.WARD})
REPRESENTATIVE_LINKAGES = frozenset({Linkage.SINGLE, Linkage.CENTROID, Linkage.CURE})

# Metrics that grow monotonically with every per-coordinate |difference|, so
# the distance to the nearest point of a box is a lower bound.
_BOX_PRUNABLE = frozenset({
    Distance.EUCLIDEAN,
    Distance.SQEUCLIDEAN,
    Distance.MANHATTAN,
    Distance.CHEBYSHEV,
})


def resolve_distance(name: Union[str, Distance]) -> Distance:
    """
    Map a distance name onto the Distance enum.

    @param name: enum member or its string value (case-insensitive)
    @return: Distance member
    @raises ConfigurationError: for unknown names
    """
    if isinstance(name, Distance):
        return name
    try:
        return Distance(str(name).lower())
    except ValueError:
        known = ", ".join(d.value for d in Distance)
        raise ConfigurationError(f"unknown distance {name!r} (expected one of {known})",
                                 argument="distance") from None


def resolve_linkage(name: Union[str, Linkage]) -> Linkage:
    """
    Map a linkage name onto the Linkage enum.

    @param name: enum member or its string value (case-insensitive)
    @return: Linkage member
    @raises ConfigurationError: for unknown names
    """
    if isinstance(name, Linkage):
        return name
    try:
        return Linkage(str(name).lower())
    except ValueError:
        known = ", ".join(lk.value for lk in Linkage)
        raise ConfigurationError(f"unknown linkage {name!r} (expected one of {known})",
                                 argument="linkage") from None


def _euclidean(a: np.ndarray, B: np.ndarray) -> np.ndarray:
    return np.sqrt(_sqeuclidean(a, B))


def _sqeuclidean(a: np.ndarray, B: np.ndarray) -> np.ndarray:
    diff = B - a
    return np.einsum("ij,ij->i", diff, diff)


def _manhattan(a: np.ndarray, B: np.ndarray) -> np.ndarray:
    return np.abs(B - a).sum(axis=1)


def _chebyshev(a: np.ndarray, B: np.ndarray) -> np.ndarray:
    return np.abs(B - a).max(axis=1)


def _cosine(a: np.ndarray, B: np.ndarray) -> np.ndarray:
    denom = np.linalg.norm(B, axis=1) * np.linalg.norm(a)
    dots = B @ a
    sim = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
    return np.clip(1.0 - sim, 0.0, 2.0)


_METRICS: Dict[Distance, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    Distance.EUCLIDEAN: _euclidean,
    Distance.SQEUCLIDEAN: _sqeuclidean,
    Distance.MANHATTAN: _manhattan,
    Distance.CHEBYSHEV: _chebyshev,
    Distance.COSINE: _cosine,
}


def point_distances(metric: Union[str, Distance], a: np.ndarray, B: np.ndarray) -> np.ndarray:
    """
    Distances from a single vector to every row of B.

    @param metric: distance name or Distance member
    @param a: 1D array, shape (n_features,)
    @param B: 2D array, shape (m, n_features); a 1D B is treated as one row
    @return: 1D array of m non-negative distances
    """
    a = np.asarray(a, dtype=float)
    B = np.atleast_2d(np.asarray(B, dtype=float))
    return _METRICS[resolve_distance(metric)](a, B)


def compute_pairwise_distances(X: np.ndarray, metric: Union[str, Distance] = Distance.EUCLIDEAN) -> np.ndarray:
    """
    Compute the full pairwise distance matrix for rows of X.

    @param X: 2D array, shape (n_samples, n_features). Rows are observations.
    @param metric: distance name or Distance member (default Euclidean)
    @return: symmetric 2D array D shape (n_samples, n_samples), zero diagonal.
    """
    metric = resolve_distance(metric)
    X = np.asarray(X, dtype=float)
    if metric in (Distance.EUCLIDEAN, Distance.SQEUCLIDEAN):
        # centre first so that offset data does not cancel in the Gram trick
        Xc = X - X.mean(axis=0) if len(X) else X
        sq = np.sum(Xc * Xc, axis=1, keepdims=True)  # (n,1)
        D = sq + sq.T - 2.0 * (Xc @ Xc.T)
        # Numerical safety: clip small negatives to zero
        D[D < 0] = 0.0
        if metric is Distance.EUCLIDEAN:
            D = np.sqrt(D)
    else:
        D = np.vstack([_METRICS[metric](row, X) for row in X]) if len(X) else np.zeros((0, 0))
    D = 0.5 * (D + D.T)
    np.fill_diagonal(D, 0.0)
    return D


_LANCE_WILLIAMS = {
    Linkage.SINGLE: lambda d_ik, d_jk, size_i, size_j: np.minimum(d_ik, d_jk),
    Linkage.COMPLETE: lambda d_ik, d_jk, size_i, size_j: np.maximum(d_ik, d_jk),
    Linkage.AVERAGE: lambda d_ik, d_jk, size_i, size_j: (size_i * d_ik + size_j * d_jk) / (size_i + size_j),
}


def lance_williams_update(linkage: Union[str, Linkage],
                          d_ik, d_jk,
                          size_i: int, size_j: int):
    """
    Lance–Williams update for the linkages whose merged row depends only on
    the two old rows: single/complete/average.

    @param linkage: 'single' | 'complete' | 'average'
    @param d_ik: distance(s) between cluster i and k (scalar or array)
    @param d_jk: distance(s) between cluster j and k (scalar or array)
    @param size_i: size of cluster i (int)
    @param size_j: size of cluster j (int)
    @return: updated distance(s) d(i∪j, k)
    """
    try:
        update = _LANCE_WILLIAMS[resolve_linkage(linkage)]
    except (KeyError, ConfigurationError):
        raise ValueError("Unsupported linkage for lance_williams_update: " + str(linkage)) from None
    out = update(d_ik, d_jk, size_i, size_j)
    return float(out) if np.ndim(out) == 0 else out


def ward_weight(n1, n2):
    """Size weight n1*n2/(n1+n2) of Ward's increase-in-variance criterion."""
    return n1 * n2 / (n1 + n2)


def ward_distance(c1: np.ndarray, n1: int, C: np.ndarray, sizes: np.ndarray) -> np.ndarray:
    """
    Ward distance between one cluster and several others, computed from
    centroids: 2 * weight(n1, n) * ||c1 - c||^2.

    @param c1: centroid of the first cluster, shape (n_features,)
    @param n1: size of the first cluster
    @param C: centroids of the other clusters, shape (m, n_features)
    @param sizes: sizes of the other clusters, shape (m,)
    @return: 1D array of m distances
    """
    sizes = np.asarray(sizes, dtype=float)
    return 2.0 * ward_weight(float(n1), sizes) * _sqeuclidean(np.asarray(c1, dtype=float), np.atleast_2d(C))


def box_prunable(metric: Union[str, Distance]) -> bool:
    return resolve_distance(metric) in _BOX_PRUNABLE


def box_lower_bound(metric: Distance, query: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> float:
    """Smallest possible distance from query to any point inside [lo, hi]."""
    gap = np.maximum(lo - query, 0.0) + np.maximum(query - hi, 0.0)
    if metric is Distance.EUCLIDEAN:
        return float(np.sqrt(gap @ gap))
    if metric is Distance.SQEUCLIDEAN:
        return float(gap @ gap)
    if metric is Distance.MANHATTAN:
        return float(gap.sum())
    return float(gap.max())
