# config.py
"""
Explicit run configuration, validated once before any clustering work.
"""

from dataclasses import dataclass
from typing import Optional, Union
import numpy as np

from .distances import (
    Distance,
    Linkage,
    DENSE_LINKAGES,
    REPRESENTATIVE_LINKAGES,
    box_prunable,
    resolve_distance,
    resolve_linkage,
)
from .exceptions import ConfigurationError

__all__ = ["ClusteringConfig", "validate_points"]

DEFAULT_REP_COUNT = 4
DEFAULT_COMPRESSION = 0.5
DEFAULT_LEAF_SIZE = 16


@dataclass
class ClusteringConfig:
    """
    Parameters of one clustering pass.

    @param distance: distance name or Distance member
    @param linkage: linkage name or Linkage member
    @param n_clusters: stop when this many clusters remain; None builds the full dendrogram
    @param rep_count: maximum representative points per cluster (CURE)
    @param compression: CURE shrink factor towards the centroid, in [0, 1]
    @param leaf_size: spatial index leaf capacity hint
    """

    distance: Union[str, Distance] = Distance.EUCLIDEAN
    linkage: Union[str, Linkage] = Linkage.AVERAGE
    n_clusters: Optional[int] = None
    rep_count: int = DEFAULT_REP_COUNT
    compression: float = DEFAULT_COMPRESSION
    leaf_size: int = DEFAULT_LEAF_SIZE

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        self.distance = resolve_distance(self.distance)
        self.linkage = resolve_linkage(self.linkage)

        if self.linkage is Linkage.WARD and self.distance is not Distance.SQEUCLIDEAN:
            raise ConfigurationError(
                f"ward linkage requires 'sqeuclidean', got {self.distance.value!r}",
                argument="distance")
        if self.linkage in REPRESENTATIVE_LINKAGES and not box_prunable(self.distance):
            raise ConfigurationError(
                f"{self.linkage.value} linkage does not support {self.distance.value!r}",
                argument="distance")
        if self.n_clusters is not None and int(self.n_clusters) < 1:
            raise ConfigurationError("must be at least 1", argument="n_clusters")
        if int(self.rep_count) < 1:
            raise ConfigurationError("must be at least 1", argument="rep_count")
        if not 0.0 <= float(self.compression) <= 1.0:
            raise ConfigurationError("must lie in [0, 1]", argument="compression")
        if int(self.leaf_size) < 1:
            raise ConfigurationError("must be at least 1", argument="leaf_size")

    @property
    def engine(self) -> str:
        return "dense" if self.linkage in DENSE_LINKAGES else "representative"


def validate_points(X, n_clusters: Optional[int] = None) -> np.ndarray:
    """
    Coerce the point matrix and check it against the requested cluster count.

    @param X: array-like, shape (n_samples, n_features)
    @param n_clusters: requested cluster count or None
    @return: 2D float array
    @raises ConfigurationError: for non-2D, empty or non-finite input, or an
            n_clusters outside [1, n_samples]
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ConfigurationError("X must be a 2D array (n_samples, n_features).", argument="X")
    n = X.shape[0]
    if n == 0:
        raise ConfigurationError("X must contain at least one point.", argument="X")
    if not np.all(np.isfinite(X)):
        raise ConfigurationError("X must not contain NaN or infinite values.", argument="X")
    if n_clusters is not None and not (1 <= n_clusters <= n):
        raise ConfigurationError("n_clusters must be between 1 and n_samples.", argument="n_clusters")
    return X
