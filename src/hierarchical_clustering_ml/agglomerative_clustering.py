# agglomerative_clustering.py
"""
Entry points of the hierarchical clustering engine.

The driver validates the distance/linkage combination, picks the engine
(dense matrix for complete/average/Ward, representative points for
single/centroid/CURE) and returns either a SciPy-style linkage matrix
Z of shape (n-1, 4) with rows [idx1, idx2, dist, new_cluster_size], or a
flat label array.

Doxygen-style docstrings are used (with @param / @return tags).
"""

import logging
from typing import Optional, Tuple
import numpy as np

from .config import ClusteringConfig
from .dendrogram import cut_by_distance as _cut_by_distance, cut_by_k
from .dense import DenseEngine
from .distances import Distance, Linkage, resolve_linkage
from .representative import RepresentativeEngine

__all__ = [
    "make_engine",
    "hierarchical_cluster",
    "cure_cluster",
    "cut_to_k_clusters",
    "cut_by_distance",
    "k_clusters",
    "agglomerative",
]

logger = logging.getLogger(__name__)


def make_engine(X: np.ndarray, config: ClusteringConfig, dendrogram: bool = True):
    """
    Build the engine matching config.linkage.

    @param X: data matrix shape (n_samples, n_features)
    @param config: validated configuration
    @param dendrogram: record merges (representative engine only; dense always records)
    @return: DenseEngine or RepresentativeEngine, initialised and ready to run
    """
    if config.engine == "dense":
        engine = DenseEngine(X, config)
    else:
        engine = RepresentativeEngine(X, config, dendrogram=dendrogram)
    logger.info("clustering %d points: %s engine, %s linkage, %s distance",
                engine.X.shape[0], config.engine, config.linkage.value, config.distance.value)
    return engine


def hierarchical_cluster(X: np.ndarray,
                         distance="euclidean",
                         linkage="average",
                         **options) -> np.ndarray:
    """
    Full dendrogram of X.

    @param X: data matrix shape (n_samples, n_features)
    @param distance: distance name, see Distance
    @param linkage: linkage name, see Linkage
    @param options: rep_count, compression, leaf_size (see ClusteringConfig)
    @return: linkage matrix shape (n_samples - 1, 4)
    """
    config = ClusteringConfig(distance=distance, linkage=linkage, **options)
    engine = make_engine(X, config)
    engine.run(1)
    return engine.dendrogram.to_linkage()


def cure_cluster(X: np.ndarray,
                 distance="euclidean",
                 rep_count: int = 4,
                 compression: float = 0.5,
                 leaf_size: int = 16) -> np.ndarray:
    """
    Full CURE dendrogram of X.

    @param X: data matrix shape (n_samples, n_features)
    @param distance: distance name, see Distance
    @param rep_count: representative points per cluster
    @param compression: shrink factor towards the centroid, in [0, 1]
    @param leaf_size: spatial index leaf capacity hint
    @return: linkage matrix shape (n_samples - 1, 4)
    """
    return hierarchical_cluster(X, distance, Linkage.CURE, rep_count=rep_count,
                                compression=compression, leaf_size=leaf_size)


def cut_to_k_clusters(Z: np.ndarray, k: int) -> np.ndarray:
    """
    @param Z: full linkage matrix shape (n-1, 4)
    @param k: number of clusters, 1 <= k <= n
    @return: labels shape (n,) with values 0..k-1
    """
    return cut_by_k(Z, k)


def cut_by_distance(Z: np.ndarray, threshold: float) -> np.ndarray:
    """
    @param Z: full linkage matrix shape (n-1, 4)
    @param threshold: merges above this distance are not applied
    @return: labels shape (n,)
    """
    return _cut_by_distance(Z, threshold)


def k_clusters(X: np.ndarray,
               distance="euclidean",
               linkage="average",
               k: int = 1,
               **options) -> np.ndarray:
    """
    Flat k-cluster labels, stopping the merges as soon as k clusters remain.

    @param X: data matrix shape (n_samples, n_features)
    @param distance: distance name, see Distance
    @param linkage: linkage name, see Linkage
    @param k: number of clusters, 1 <= k <= n_samples
    @param options: rep_count, compression, leaf_size (see ClusteringConfig)
    @return: labels shape (n_samples,) with values 0..k-1
    """
    config = ClusteringConfig(distance=distance, linkage=linkage, n_clusters=k, **options)
    engine = make_engine(X, config, dendrogram=False)
    return engine.run(k)


def agglomerative(X: np.ndarray,
                  n_clusters: int = 1,
                  linkage: str = "average",
                  return_linkage: bool = False,
                  distance: Optional[str] = None,
                  **options) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Perform agglomerative clustering on data matrix X.

    @param X: data matrix shape (n_samples, n_features)
    @param n_clusters: desired number of clusters (1 <= n_clusters <= n_samples)
    @param linkage: one of 'complete', 'average', 'ward', 'single', 'centroid', 'cure'
    @param return_linkage: if True, also return the linkage matrix of the
                           merges performed, shape (n - n_clusters, 4)
    @param distance: distance name; defaults to 'sqeuclidean' for Ward and
                     'euclidean' otherwise
    @param options: rep_count, compression, leaf_size (see ClusteringConfig)

    @return: tuple (labels, linkage_matrix_or_None)
        - labels: integer array shape (n_samples,) with labels 0..(n_clusters-1)
        - linkage_matrix_or_None: np.ndarray if return_linkage else None
    """
    if distance is None:
        distance = Distance.SQEUCLIDEAN if resolve_linkage(linkage) is Linkage.WARD else Distance.EUCLIDEAN
    config = ClusteringConfig(distance=distance, linkage=linkage, n_clusters=n_clusters, **options)
    engine = make_engine(X, config, dendrogram=return_linkage)
    labels = engine.run(n_clusters)
    if return_linkage:
        return labels, engine.dendrogram.to_linkage()
    return labels, None
