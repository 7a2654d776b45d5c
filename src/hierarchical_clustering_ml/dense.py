# dense.py
"""
Dense pairwise-distance linkage engine (complete, average, Ward).

The engine stores the full inter-cluster distance matrix (O(n^2) memory)
and a nearest-neighbour table over the active clusters. Every round merges
the globally closest pair, rewrites the merged row (Lance–Williams for
complete/average, centroids for Ward), and refreshes only the neighbour
entries that the merge could have changed.

Clusters live in an arena of n slots: the surviving slot of a merge is
reused, the absorbed slot is deactivated. node_id maps slots to cluster
ids; a merged cluster receives the next id n, n+1, ...

Ties are deterministic: a row minimum goes to the lowest cluster id, the
global minimum goes to the lowest (smaller id, larger id) pairing.

Doxygen-style docstrings are used (with @param / @return tags).
"""

import logging
from typing import List, Optional, Tuple
import numpy as np

from .config import ClusteringConfig, validate_points
from .dendrogram import Dendrogram, labels_from_members
from .distances import Linkage, compute_pairwise_distances, lance_williams_update, resolve_linkage, ward_distance
from .exceptions import InvariantViolation

__all__ = [
    "init_clusters",
    "nearest_of",
    "init_nearest_neighbors",
    "extract_min_pair",
    "merge_clusters",
    "DenseEngine",
]

logger = logging.getLogger(__name__)


def init_clusters(n: int) -> Tuple[np.ndarray, np.ndarray, List[set], np.ndarray]:
    """
    Initialize cluster bookkeeping structures.

    @param n: Number of initial clusters (typically = number of samples).

    @return: A tuple (active, sizes, members, node_id)
        - active: boolean array length n (True indicates cluster is active)
        - sizes: integer array length n (cluster sizes)
        - members: list of sets; members[i] contains original sample indices in cluster i
        - node_id: integer array length n, cluster id held by each slot (initially the slot)
    """
    active = np.ones(n, dtype=bool)
    sizes = np.ones(n, dtype=int)
    members: List[set] = [{i} for i in range(n)]
    node_id = np.arange(n, dtype=int)
    return active, sizes, members, node_id


def nearest_of(slot: int, D: np.ndarray, node_id: np.ndarray) -> Tuple[int, float]:
    """
    Nearest active cluster of one slot.

    Relies on D holding +inf on the diagonal and in every inactive row/column.

    @param slot: slot to query
    @param D: inter-cluster distance matrix (n, n)
    @param node_id: slot -> cluster id, used to break ties
    @return: (neighbour slot, distance), or (-1, inf) if no other cluster is active
    """
    row = D[slot]
    dmin = row.min()
    if not np.isfinite(dmin):
        return -1, np.inf
    cand = np.flatnonzero(row == dmin)
    return int(cand[np.argmin(node_id[cand])]), float(dmin)


def init_nearest_neighbors(D: np.ndarray, node_id: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build the nearest-neighbour table for every slot.

    @param D: inter-cluster distance matrix (n, n), +inf diagonal
    @param node_id: slot -> cluster id
    @return: (nn_slot, nn_dist) arrays of length n
    """
    n = D.shape[0]
    nn_slot = np.full(n, -1, dtype=int)
    nn_dist = np.full(n, np.inf)
    for slot in range(n):
        nn_slot[slot], nn_dist[slot] = nearest_of(slot, D, node_id)
    return nn_slot, nn_dist


def extract_min_pair(nn_slot: np.ndarray, nn_dist: np.ndarray, active: np.ndarray,
                     node_id: np.ndarray) -> Tuple[int, int, float]:
    """
    Pick the globally closest pair from the nearest-neighbour table.

    @param nn_slot: nearest neighbour slot per slot
    @param nn_dist: nearest neighbour distance per slot
    @param active: boolean mask of active clusters
    @param node_id: slot -> cluster id, used to break ties
    @return: tuple (i, j, distance) with i < j
    @raises InvariantViolation: if no active cluster has a neighbour
    """
    slots = np.flatnonzero(active)
    dist = nn_dist[slots]
    if len(slots) == 0 or not np.isfinite(dist.min()):
        raise InvariantViolation("no active pair left to merge")
    dmin = dist.min()
    best = None
    for s in slots[dist == dmin]:
        t = nn_slot[s]
        a, b = sorted((int(node_id[s]), int(node_id[t])))
        if best is None or (a, b) < best[0]:
            best = ((a, b), int(s), int(t))
    _, s, t = best
    i, j = min(s, t), max(s, t)
    return i, j, float(dmin)


def merge_clusters(i: int, j: int,
                   active: np.ndarray,
                   sizes: np.ndarray,
                   D: np.ndarray,
                   linkage,
                   nn_slot: np.ndarray,
                   nn_dist: np.ndarray,
                   node_id: np.ndarray,
                   new_id: int,
                   members: Optional[List[set]] = None,
                   centroids: Optional[np.ndarray] = None) -> None:
    """
    Merge cluster j into cluster i. Update the distance rows, the active mask,
    sizes, members, centroids and the nearest-neighbour table in place.

    @param i: slot of the cluster to keep (int)
    @param j: slot of the cluster to deactivate (int). j != i.
    @param active: boolean mask of active clusters; modified in-place
    @param sizes: integer array of cluster sizes; modified in-place
    @param D: inter-cluster distance matrix (n, n); modified in-place
    @param linkage: 'complete' | 'average' | 'ward' (or 'single')
    @param nn_slot: nearest neighbour slots; modified in-place
    @param nn_dist: nearest neighbour distances; modified in-place
    @param node_id: slot -> cluster id; slot i receives new_id, slot j becomes -1
    @param new_id: cluster id of the merged cluster
    @param members: optional list of sets for members; updated in-place if provided
    @param centroids: (n, n_features) centroids, required for Ward; updated in-place
    @return: None
    """
    if i == j:
        raise ValueError("Cannot merge a cluster with itself.")
    if not (active[i] and active[j]):
        raise ValueError("Both clusters must be active to merge.")
    try:
        linkage = resolve_linkage(linkage)
    except ValueError:
        raise ValueError(f"Unsupported linkage: {linkage}") from None

    size_i = int(sizes[i])
    size_j = int(sizes[j])
    size_new = size_i + size_j

    act_idx = np.flatnonzero(active)
    others = act_idx[(act_idx != i) & (act_idx != j)]

    if linkage is Linkage.WARD:
        if centroids is None:
            raise ValueError("Ward linkage needs cluster centroids.")
        centroids[i] = (size_i * centroids[i] + size_j * centroids[j]) / size_new
        d_new = ward_distance(centroids[i], size_new, centroids[others], sizes[others])
    elif linkage in (Linkage.SINGLE, Linkage.COMPLETE, Linkage.AVERAGE):
        d_new = lance_williams_update(linkage, D[i, others], D[j, others], size_i, size_j)
    else:
        raise ValueError(f"Unsupported linkage: {linkage.value}")

    # write back for i <-> others
    D[i, others] = d_new
    D[others, i] = d_new

    # deactivate j: set its distances to +inf and update active/sizes
    D[j, :] = np.inf
    D[:, j] = np.inf
    active[j] = False
    sizes[i] = size_new
    sizes[j] = 0
    node_id[i] = new_id
    node_id[j] = -1

    if members is not None:
        members[i] = members[i].union(members[j])
        members[j] = set()

    nn_slot[j], nn_dist[j] = -1, np.inf
    nn_slot[i], nn_dist[i] = nearest_of(i, D, node_id)

    stale = (nn_slot[others] == i) | (nn_slot[others] == j)
    for k in others[stale]:
        nn_slot[k], nn_dist[k] = nearest_of(k, D, node_id)
    # the merged row may now be the closest one for an unaffected cluster
    closer = others[~stale & (D[others, i] < nn_dist[others])]
    nn_slot[closer] = i
    nn_dist[closer] = D[closer, i]


class DenseEngine:
    """
    Complete/average/Ward clustering over an explicit distance matrix.

    @param X: data matrix shape (n_samples, n_features)
    @param config: validated ClusteringConfig with a dense linkage
    """

    def __init__(self, X: np.ndarray, config: ClusteringConfig) -> None:
        if config.engine != "dense":
            raise ValueError(f"{config.linkage.value} linkage is not handled by the dense engine")
        self.X = validate_points(X, config.n_clusters)
        self.config = config
        n = self.X.shape[0]

        self.D = compute_pairwise_distances(self.X, config.distance)
        np.fill_diagonal(self.D, np.inf)
        self.active, self.sizes, self.members, self.node_id = init_clusters(n)
        self.centroids = self.X.copy() if config.linkage is Linkage.WARD else None
        self.nn_slot, self.nn_dist = init_nearest_neighbors(self.D, self.node_id)
        self.dendrogram = Dendrogram(n)
        self.next_id = n

    @property
    def n_active(self) -> int:
        return int(self.active.sum())

    def step(self) -> Tuple[int, int, float]:
        """
        Merge the closest pair once.

        @return: (left cluster id, right cluster id, distance) of the merge
        """
        i, j, dist = extract_min_pair(self.nn_slot, self.nn_dist, self.active, self.node_id)
        left, right = int(self.node_id[i]), int(self.node_id[j])
        new_size = int(self.sizes[i] + self.sizes[j])
        merge_clusters(i, j, self.active, self.sizes, self.D, self.config.linkage,
                       self.nn_slot, self.nn_dist, self.node_id, self.next_id,
                       members=self.members, centroids=self.centroids)
        self.dendrogram.add(left, right, dist, new_size, merged_id=self.next_id)
        logger.debug("merge %d + %d -> %d at %.6g (size %d)", left, right, self.next_id, dist, new_size)
        self.next_id += 1
        return left, right, dist

    def run(self, n_clusters: Optional[int] = None) -> np.ndarray:
        """
        Merge until n_clusters remain (1 when None).

        @param n_clusters: target cluster count, defaults to the config value or 1
        @return: label array shape (n_samples,)
        """
        target = n_clusters if n_clusters is not None else (self.config.n_clusters or 1)
        while self.n_active > target:
            self.step()
        logger.info("dense %s linkage: %d points, %d merges, %d clusters",
                    self.config.linkage.value, self.X.shape[0], len(self.dendrogram), self.n_active)
        return self.labels()

    def labels(self) -> np.ndarray:
        return labels_from_members(self.X.shape[0], (self.members[s] for s in np.flatnonzero(self.active)))
