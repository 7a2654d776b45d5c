import numpy as np
import pytest
from scipy.cluster.hierarchy import linkage as scipy_linkage

from hierarchical_clustering_ml.config import ClusteringConfig
from hierarchical_clustering_ml.dense import (
    DenseEngine,
    extract_min_pair,
    init_clusters,
    init_nearest_neighbors,
    merge_clusters,
    nearest_of,
)
from hierarchical_clustering_ml.distances import compute_pairwise_distances
from hierarchical_clustering_ml.exceptions import InvariantViolation


def prepared(X):
    D = compute_pairwise_distances(X)
    np.fill_diagonal(D, np.inf)
    active, sizes, members, node_id = init_clusters(len(X))
    nn_slot, nn_dist = init_nearest_neighbors(D, node_id)
    return D, active, sizes, members, node_id, nn_slot, nn_dist


def test_init_clusters():
    """
    Test correct initialization of clusters.

    Verifies:
    - all clusters start active
    - each cluster has size 1
    - each cluster initially contains exactly one member
    - every slot holds its own cluster id
    """
    active, sizes, members, node_id = init_clusters(4)
    assert active.dtype == bool
    assert np.all(active)
    assert np.all(sizes == 1)
    assert members[0] == {0}
    assert members[3] == {3}
    assert list(node_id) == [0, 1, 2, 3]


def test_nearest_of_breaks_ties_by_cluster_id():
    D = np.array([[np.inf, 2.0, 1.0, 1.0],
                  [2.0, np.inf, 3.0, 3.0],
                  [1.0, 3.0, np.inf, 4.0],
                  [1.0, 3.0, 4.0, np.inf]])
    node_id = np.array([0, 1, 7, 5])
    assert nearest_of(0, D, node_id) == (3, 1.0)


def test_nearest_of_single_cluster():
    D = np.full((2, 2), np.inf)
    assert nearest_of(0, D, np.array([0, -1])) == (-1, np.inf)


def test_init_nearest_neighbors():
    X = np.array([[0.0, 0.0], [1.0, 0.0], [10.0, 0.0]])
    D, active, sizes, members, node_id, nn_slot, nn_dist = prepared(X)
    assert list(nn_slot) == [1, 0, 1]
    assert np.allclose(nn_dist, [1.0, 1.0, 9.0])


def test_extract_min_pair_uses_lowest_pairing_on_ties():
    X = np.array([[10.0, 0.0], [11.0, 0.0], [0.0, 0.0], [1.0, 0.0]])
    D, active, sizes, members, node_id, nn_slot, nn_dist = prepared(X)
    i, j, dist = extract_min_pair(nn_slot, nn_dist, active, node_id)
    assert (i, j) == (0, 1)
    assert dist == pytest.approx(1.0)


def test_extract_min_pair_without_pairs():
    with pytest.raises(InvariantViolation):
        extract_min_pair(np.array([-1]), np.array([np.inf]), np.array([True]), np.array([0]))


def test_merge_clusters_updates_state_average_linkage():
    """
    Test correct state updates after merging clusters using average linkage.
    """
    X = np.array([[0.0, 0.0],
                  [1.0, 0.0],
                  [10.0, 0.0]])
    D, active, sizes, members, node_id, nn_slot, nn_dist = prepared(X)

    i, j, dist = extract_min_pair(nn_slot, nn_dist, active, node_id)
    assert {i, j} == {0, 1}

    merge_clusters(i, j, active, sizes, D, "average", nn_slot, nn_dist, node_id, 3, members=members)

    assert active[i]
    assert not active[j]
    assert sizes[i] == 2
    assert sizes[j] == 0
    assert node_id[i] == 3
    assert members[i] == {0, 1}

    expected = (10.0 + 9.0) / 2.0
    assert pytest.approx(D[i, 2], rel=1e-10, abs=1e-10) == expected
    assert pytest.approx(D[2, i], rel=1e-10, abs=1e-10) == expected
    assert nn_slot[2] == i
    assert nn_dist[2] == pytest.approx(expected)
    assert nn_slot[i] == 2


def test_merge_clusters_ward_uses_centroids():
    X = np.array([[0.0, 0.0], [2.0, 0.0], [1.0, 3.0]])
    D = compute_pairwise_distances(X, "sqeuclidean")
    np.fill_diagonal(D, np.inf)
    active, sizes, members, node_id = init_clusters(3)
    nn_slot, nn_dist = init_nearest_neighbors(D, node_id)
    centroids = X.copy()

    merge_clusters(0, 1, active, sizes, D, "ward", nn_slot, nn_dist, node_id, 3, centroids=centroids)

    assert np.allclose(centroids[0], [1.0, 0.0])
    # 2 * (2*1 / 3) * ||(1,0) - (1,3)||^2
    assert D[0, 2] == pytest.approx(2.0 * 2.0 / 3.0 * 9.0)


def test_merge_clusters_rejects_invalid():
    X = np.array([[0.0, 0.0],
                  [1.0, 0.0]])
    D, active, sizes, members, node_id, nn_slot, nn_dist = prepared(X)

    with pytest.raises(ValueError):
        merge_clusters(0, 0, active, sizes, D, "average", nn_slot, nn_dist, node_id, 2, members=members)

    with pytest.raises(ValueError):
        merge_clusters(0, 1, np.array([True, False]), sizes, D, "average", nn_slot, nn_dist, node_id, 2)

    with pytest.raises(ValueError):
        merge_clusters(0, 1, active, sizes, D, "unknown", nn_slot, nn_dist, node_id, 2)

    with pytest.raises(ValueError):
        merge_clusters(0, 1, active, sizes, D, "ward", nn_slot, nn_dist, node_id, 2)


@pytest.fixture
def blobs():
    rng = np.random.default_rng(3)
    return np.vstack([
        rng.normal(loc=0.0, scale=0.4, size=(8, 2)),
        rng.normal(loc=3.0, scale=0.4, size=(7, 2)),
        rng.normal(loc=(0.0, 4.0), scale=0.4, size=(6, 2)),
    ])


@pytest.mark.parametrize("linkage", ["complete", "average"])
def test_engine_matches_scipy(blobs, linkage):
    engine = DenseEngine(blobs, ClusteringConfig(distance="euclidean", linkage=linkage))
    engine.run(1)
    Z = engine.dendrogram.to_linkage()
    expected = scipy_linkage(blobs, method=linkage)
    assert np.allclose(np.sort(Z[:, 2]), np.sort(expected[:, 2]))
    assert Z[-1, 3] == len(blobs)


def test_engine_ward_matches_scipy_after_square_root(blobs):
    engine = DenseEngine(blobs, ClusteringConfig(distance="sqeuclidean", linkage="ward"))
    engine.run(1)
    Z = engine.dendrogram.to_linkage()
    expected = scipy_linkage(blobs, method="ward")
    assert np.allclose(np.sqrt(np.sort(Z[:, 2])), np.sort(expected[:, 2]))


def test_engine_stops_at_requested_clusters(blobs):
    engine = DenseEngine(blobs, ClusteringConfig(linkage="average", n_clusters=3))
    labels = engine.run()
    assert engine.n_active == 3
    assert len(engine.dendrogram) == len(blobs) - 3
    assert sorted(set(labels)) == [0, 1, 2]
    assert set(labels[:8]) == {0}
    assert len(set(labels[8:15])) == 1
    assert len(set(labels[15:])) == 1


def test_engine_rejects_representative_linkage(blobs):
    with pytest.raises(ValueError):
        DenseEngine(blobs, ClusteringConfig(linkage="single"))
