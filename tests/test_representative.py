import numpy as np
import pytest
from scipy.cluster.hierarchy import linkage as scipy_linkage

from hierarchical_clustering_ml.config import ClusteringConfig
from hierarchical_clustering_ml.distances import point_distances
from hierarchical_clustering_ml.representative import RepresentativeEngine, select_representatives


@pytest.fixture
def blobs():
    rng = np.random.default_rng(7)
    return np.vstack([
        rng.normal(loc=0.0, scale=0.5, size=(12, 2)),
        rng.normal(loc=4.0, scale=0.5, size=(10, 2)),
    ])


def brute_min_distance(engine):
    """Smallest representative distance between two different valid clusters."""
    live = [c for c in np.flatnonzero(engine.valid)]
    best = np.inf
    for a in live:
        for b in live:
            if a >= b:
                continue
            for r in engine.reps[a]:
                d = point_distances(engine.metric, engine.coords[r], engine.coords[engine.reps[b]])
                best = min(best, d.min())
    return best


def test_select_representatives_single_point():
    reps = select_representatives(np.array([[1.0, 2.0]]), 4, 0.5)
    assert reps.shape == (1, 2)
    assert np.allclose(reps, [[1.0, 2.0]])


def test_select_representatives_one_is_the_centroid():
    points = np.array([[0.0, 0.0], [2.0, 0.0], [0.0, 4.0]])
    reps = select_representatives(points, 1, 0.0)
    assert np.allclose(reps, [[2.0 / 3.0, 4.0 / 3.0]])


def test_select_representatives_scatter_and_shrink():
    points = np.array([[0.0, 0.0], [4.0, 0.0], [0.0, 4.0], [4.0, 4.0], [2.0, 2.0]])
    reps = select_representatives(points, 3, 0.0)
    # centroid, then the lowest-index corner, then the first corner farthest from both
    assert np.allclose(reps, [[2.0, 2.0], [0.0, 0.0], [4.0, 0.0]])

    shrunk = select_representatives(points, 3, 0.5)
    assert np.allclose(shrunk, [[2.0, 2.0], [1.0, 1.0], [3.0, 1.0]])

    collapsed = select_representatives(points, 3, 1.0)
    assert np.allclose(collapsed, 2.0)


def test_select_representatives_stops_at_duplicates():
    reps = select_representatives(np.ones((5, 2)), 4, 0.2)
    assert reps.shape == (1, 2)


@pytest.mark.parametrize(
    "linkage, options",
    [
        ("single", {}),
        ("centroid", {}),
        ("cure", {"rep_count": 3, "compression": 0.3}),
        ("cure", {"rep_count": 5, "compression": 0.0}),
    ],
)
def test_every_merge_takes_the_closest_pair(blobs, linkage, options):
    engine = RepresentativeEngine(blobs, ClusteringConfig(linkage=linkage, leaf_size=3, **options))
    for _ in range(len(blobs) - 1):
        expected = brute_min_distance(engine)
        u, v, dist = engine.select_merge()
        assert dist == pytest.approx(expected)
        engine.merge(u, v, dist)
        engine.check()
    assert engine.n_valid == 1
    Z = engine.dendrogram.to_linkage()
    assert Z.shape == (len(blobs) - 1, 4)
    assert Z[-1, 3] == len(blobs)


@pytest.mark.parametrize("linkage", ["single", "centroid"])
def test_engine_matches_scipy(blobs, linkage):
    engine = RepresentativeEngine(blobs, ClusteringConfig(linkage=linkage))
    engine.run(1)
    Z = engine.dendrogram.to_linkage()
    expected = scipy_linkage(blobs, method=linkage)
    assert np.allclose(np.sort(Z[:, 2]), np.sort(expected[:, 2]))


def test_single_linkage_keeps_member_points_as_representatives(blobs):
    engine = RepresentativeEngine(blobs, ClusteringConfig(linkage="single", n_clusters=2))
    engine.run()
    for c in np.flatnonzero(engine.valid):
        assert sorted(engine.reps[c]) == engine.members[c]
    assert engine.next_rep == len(blobs)


def test_cure_respects_representative_cap(blobs):
    engine = RepresentativeEngine(blobs, ClusteringConfig(linkage="cure", rep_count=3, n_clusters=2))
    labels = engine.run()
    for c in np.flatnonzero(engine.valid):
        assert 1 <= len(engine.reps[c]) <= 3
    assert set(labels[:12]) == {0}
    assert set(labels[12:]) == {1}


def test_leaf_size_does_not_change_the_dendrogram(blobs):
    results = []
    for leaf_size in (1, 4, 64):
        engine = RepresentativeEngine(blobs, ClusteringConfig(linkage="cure", rep_count=3, leaf_size=leaf_size))
        engine.run(1)
        results.append(engine.dendrogram.to_linkage())
    assert np.allclose(results[0], results[1])
    assert np.allclose(results[0], results[2])


def test_without_dendrogram(blobs):
    engine = RepresentativeEngine(blobs, ClusteringConfig(linkage="centroid", n_clusters=2), dendrogram=False)
    labels = engine.run()
    assert engine.dendrogram is None
    assert sorted(set(labels)) == [0, 1]


def test_single_point():
    engine = RepresentativeEngine(np.array([[1.0, 1.0]]), ClusteringConfig(linkage="single"))
    assert list(engine.run(1)) == [0]
    assert engine.dendrogram.to_linkage().shape == (0, 4)


def test_engine_rejects_dense_linkage(blobs):
    with pytest.raises(ValueError):
        RepresentativeEngine(blobs, ClusteringConfig(linkage="complete"))


def test_single_linkage_requeries_only_broken_neighbours():
    """
    A merge only re-queries representatives whose neighbour fell inside the
    merged cluster, so the total query count stays linear in n.
    """
    rng = np.random.default_rng(11)
    X = rng.uniform(size=(500, 2))
    engine = RepresentativeEngine(X, ClusteringConfig(linkage="single"))
    engine.run(1)
    assert engine.queries < 10 * len(X)
    assert engine.dendrogram.to_linkage()[-1, 3] == len(X)


@pytest.mark.parametrize("linkage", ["centroid", "cure"])
def test_representative_linkages_requery_sparingly(linkage):
    rng = np.random.default_rng(12)
    X = rng.uniform(size=(400, 2))
    engine = RepresentativeEngine(X, ClusteringConfig(linkage=linkage, rep_count=3))
    engine.run(1)
    # initial queries plus a bounded number per merge
    assert engine.queries < len(X) + 20 * (len(X) - 1)
