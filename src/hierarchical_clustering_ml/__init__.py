"""Hierarchical clustering with dense and representative-point linkages."""

from .agglomerative_clustering import (
    agglomerative,
    cure_cluster,
    cut_by_distance,
    cut_to_k_clusters,
    hierarchical_cluster,
    k_clusters,
)
from .config import ClusteringConfig
from .dendrogram import UNASSIGNED, Dendrogram
from .distances import Distance, Linkage
from .exceptions import ClusteringError, ConfigurationError, InvariantViolation

__all__ = [
    "agglomerative",
    "cure_cluster",
    "cut_by_distance",
    "cut_to_k_clusters",
    "hierarchical_cluster",
    "k_clusters",
    "ClusteringConfig",
    "Dendrogram",
    "UNASSIGNED",
    "Distance",
    "Linkage",
    "ClusteringError",
    "ConfigurationError",
    "InvariantViolation",
]

__version__ = "0.2.0"
