import matplotlib.pyplot as plt
import numpy as np

from hierarchical_clustering_ml import agglomerative, cure_cluster, cut_by_distance, cut_to_k_clusters
from hierarchical_clustering_ml.plotting import plot_clusters, plot_dendrogram

if __name__ == "__main__":
    # Example dataset
    X = [
        [1.0, 0.0],
        [9.0, 1.0],
        [1.0, 1.0],
        [6.0, 2.0],
        [5.0, 6.0],
    ]

    # Perform agglomerative clustering
    clusters, _ = agglomerative(X, n_clusters=3, linkage="average")

    for data, cluster in zip(X, clusters):
        print(f"Data point: {data}, Cluster: {cluster}")

    # Full CURE dendrogram of two blobs, cut by count and by distance
    rng = np.random.RandomState(0)
    A = rng.normal(loc=0.0, scale=0.3, size=(10, 2))
    B = rng.normal(loc=2.0, scale=0.3, size=(8, 2))
    X = np.vstack([A, B])

    Z = cure_cluster(X, rep_count=3, compression=0.3)
    labels = cut_to_k_clusters(Z, 2)
    print(cut_by_distance(Z, 1.0))

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 6))
    plot_clusters(ax1, X, labels)
    plot_dendrogram(Z, axis=ax2, threshold=1.0)
    plt.show()
