import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from hierarchical_clustering_ml import hierarchical_cluster
from hierarchical_clustering_ml.plotting import plot_clusters, plot_dendrogram


def test_plot_clusters_draws_one_collection_per_label():
    X = np.array([[0.0, 0.0], [0.0, 1.0], [5.0, 5.0], [9.0, 9.0]])
    labels = np.array([0, 0, 1, -1])
    fig, ax = plt.subplots()
    out = plot_clusters(ax, X, labels, representatives=np.array([[0.0, 0.5]]))
    assert out is ax
    assert len(ax.collections) == 4
    plt.close(fig)


def test_plot_dendrogram_with_threshold():
    X = np.array([[0.0, 0.0], [0.0, 1.0], [10.0, 0.0], [10.0, 1.0]])
    Z = hierarchical_cluster(X, "euclidean", "complete")
    ax = plot_dendrogram(Z, threshold=5.0)
    assert ax.get_ylabel() == "Distance"
    assert any(np.allclose(line.get_ydata(), 5.0) for line in ax.get_lines())
    plt.close(ax.figure)
