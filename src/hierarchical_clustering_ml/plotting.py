import matplotlib.pyplot as plt
from matplotlib.axes import Axes
import numpy as np
from typing import Optional

from .dendrogram import UNASSIGNED


def plot_clusters(axis: Axes, X: np.ndarray, labels: np.ndarray,
                  representatives: Optional[np.ndarray] = None) -> Axes:
    """
    Plots the clustered data points in 2D.

    Args:
        axis (Axes): Target axes.
        X (np.ndarray): Data points of shape (n_samples, 2).
        labels (np.ndarray): Cluster labels of shape (n_samples,); -1 marks unassigned points.
        representatives (np.ndarray, optional): Representative points of shape (m, 2), drawn as crosses.
    """
    X = np.asarray(X, dtype=float)
    labels = np.asarray(labels)
    for label in np.unique(labels):
        cluster_points = X[labels == label]
        if label == UNASSIGNED:
            axis.scatter(cluster_points[:, 0], cluster_points[:, 1], c='lightgray', label='Unassigned')
        else:
            axis.scatter(cluster_points[:, 0], cluster_points[:, 1], label=f'Cluster {label}')
    if representatives is not None and len(representatives):
        reps = np.asarray(representatives, dtype=float)
        axis.scatter(reps[:, 0], reps[:, 1], marker='x', c='black', label='Representatives')

    axis.set_title('Hierarchical Clustering Results')
    axis.set_xlabel('Feature 1')
    axis.set_ylabel('Feature 2')
    axis.legend()
    axis.grid(True)
    return axis


def plot_dendrogram(Z: np.ndarray, axis: Optional[Axes] = None,
                    threshold: Optional[float] = None) -> Axes:
    """
    Plots the dendrogram of a linkage matrix.

    Args:
        Z (np.ndarray): Linkage matrix of shape (n_samples - 1, 4).
        axis (Axes, optional): Target axes; a new figure is created when omitted.
        threshold (float, optional): Draws the cut line of cut_by_distance.
    """
    from scipy.cluster.hierarchy import dendrogram

    if axis is None:
        _, axis = plt.subplots(figsize=(10, 7))
    dendrogram(np.asarray(Z, dtype=float), ax=axis,
               color_threshold=threshold)
    if threshold is not None:
        axis.axhline(threshold, color='gray', linestyle='--')
    axis.set_title('Dendrogram')
    axis.set_xlabel('Sample Index')
    axis.set_ylabel('Distance')
    return axis
