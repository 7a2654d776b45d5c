# representative.py
"""
Representative-point linkage engine (single, centroid, CURE).

Each cluster is summarised by one or more representative points; the
distance between two clusters is the distance between their closest
representatives. A SpatialIndex over the live representatives answers
nearest-neighbour queries, so a merge only re-queries the representatives
whose neighbour relation could have changed.

Representatives per linkage:
    - single:   the member points themselves (the union is kept on merge)
    - centroid: one point, the member mean
    - cure:     the centroid plus up to rep_count - 1 well-scattered members,
                all shrunk towards the centroid by the compression factor

Clusters and representatives live in fixed-size arenas addressed by id.
A merged cluster is invalidated, never removed; new clusters take the next
id n, n+1, ... Ties in the global minimum go to the lowest cluster id.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import List, Optional, Tuple
import numpy as np

from .config import ClusteringConfig, validate_points
from .dendrogram import Dendrogram, labels_from_members
from .distances import Distance, Linkage, point_distances
from .exceptions import InvariantViolation
from .spatial_index import SpatialIndex

__all__ = ["SCCParams", "select_representatives", "RepresentativeEngine"]

logger = logging.getLogger(__name__)


@dataclass
class SCCParams:
    """
    @param k: number of clusters to stop at
    @param rep_count: representative points per cluster (CURE cap)
    @param compression: shrink factor towards the centroid
    @param dendrogram: record merges
    """

    k: int = 1
    rep_count: int = 1
    compression: float = 0.0
    dendrogram: bool = True


def select_representatives(points: np.ndarray, rep_count: int, compression: float,
                           metric=Distance.EUCLIDEAN) -> np.ndarray:
    """
    Scattered, shrunk representatives of a point set.

    Starts from the centroid and repeatedly adds the point farthest from
    everything chosen so far, stopping early once only duplicates remain.
    Every chosen point is then moved towards the centroid:
    rep * (1 - compression) + centroid * compression.

    @param points: member coordinates, shape (m, n_features)
    @param rep_count: maximum number of representatives (>= 1)
    @param compression: shrink factor in [0, 1]
    @param metric: distance used to measure spread
    @return: array shape (<= rep_count, n_features)
    """
    points = np.atleast_2d(np.asarray(points, dtype=float))
    centroid = points.mean(axis=0)
    chosen = [centroid]
    gap = point_distances(metric, centroid, points)
    while len(chosen) < rep_count:
        far = int(np.argmax(gap))
        if gap[far] <= 0.0:
            break
        chosen.append(points[far])
        gap = np.minimum(gap, point_distances(metric, points[far], points))
    reps = np.vstack(chosen)
    return reps * (1.0 - compression) + centroid * compression


class RepresentativeEngine:
    """
    Single/centroid/CURE clustering backed by a SpatialIndex.

    @param X: data matrix shape (n_samples, n_features)
    @param config: validated ClusteringConfig with a representative linkage
    @param dendrogram: record merge history
    """

    def __init__(self, X: np.ndarray, config: ClusteringConfig, dendrogram: bool = True) -> None:
        if config.engine != "representative":
            raise ValueError(f"{config.linkage.value} linkage is not handled by the representative engine")
        self.X = validate_points(X, config.n_clusters)
        self.config = config
        self.metric = config.distance
        self.linkage = config.linkage
        if self.linkage is Linkage.CURE:
            rep_count, compression = int(config.rep_count), float(config.compression)
        else:
            rep_count, compression = 1, 0.0
        self.params = SCCParams(k=config.n_clusters or 1, rep_count=rep_count,
                                compression=compression, dendrogram=dendrogram)

        n, d = self.X.shape
        self.n = n
        per_merge = 0 if self.linkage is Linkage.SINGLE else self.params.rep_count
        rep_capacity = n + max(n - 1, 0) * per_merge
        cluster_capacity = 2 * n - 1

        # cluster arena
        self.valid = np.zeros(cluster_capacity, dtype=bool)
        self.valid[:n] = True
        self.reps: List[List[int]] = [[i] for i in range(n)] + [[] for _ in range(n - 1)]
        self.members: List[List[int]] = [[i] for i in range(n)] + [[] for _ in range(n - 1)]
        self.closest = np.full(cluster_capacity, -1, dtype=int)
        self.distance = np.full(cluster_capacity, np.inf)
        self.next_cluster = n

        # representative arena
        self.coords = np.zeros((rep_capacity, d))
        self.coords[:n] = self.X
        self.owner = np.full(rep_capacity, -1, dtype=int)
        self.owner[:n] = np.arange(n)
        self.alive = np.zeros(rep_capacity, dtype=bool)
        self.alive[:n] = True
        self.leaf = np.full(rep_capacity, -1, dtype=int)
        self.closest_rep = np.full(rep_capacity, -1, dtype=int)
        self.closest_cluster = np.full(rep_capacity, -1, dtype=int)
        self.closest_dist = np.full(rep_capacity, np.inf)
        self.next_rep = n
        self.queries = 0

        self.index = SpatialIndex.build(self.coords, range(n), config.leaf_size, self.metric,
                                        owners=self.owner)
        for leaf in self.index.leaves():
            self.leaf[list(self.index.members(leaf))] = leaf

        for r in range(n):
            self._refresh_rep(r)
        for c in range(n):
            self._refresh_cluster(c)

        self.dendrogram = Dendrogram(n) if dendrogram else None

    # -- neighbour bookkeeping -------------------------------------------------

    def _refresh_rep(self, r: int) -> None:
        rid, dist = self.index.nearest_neighbor(self.coords[r], skip_owner=self.owner[r])
        self.queries += 1
        self.closest_rep[r] = rid
        self.closest_cluster[r] = self.owner[rid] if rid >= 0 else -1
        self.closest_dist[r] = dist

    def _refresh_cluster(self, c: int) -> None:
        rs = np.asarray(self.reps[c], dtype=int)
        dist = self.closest_dist[rs]
        dmin = dist.min()
        if not np.isfinite(dmin):
            self.closest[c], self.distance[c] = -1, np.inf
            return
        self.closest[c] = int(self.closest_cluster[rs[dist == dmin]].min())
        self.distance[c] = float(dmin)

    # -- merge step ------------------------------------------------------------

    @property
    def n_valid(self) -> int:
        return int(self.valid.sum())

    def select_merge(self) -> Tuple[int, int, float]:
        """
        Closest pair of valid clusters.

        @return: (u, v, distance) where u has the globally minimum distance
                 (lowest id on ties) and v is its recorded neighbour
        @raises InvariantViolation: if no valid cluster has a valid neighbour
        """
        live = np.flatnonzero(self.valid)
        dist = self.distance[live]
        if len(live) < 2 or not np.isfinite(dist.min()):
            raise InvariantViolation("no valid pair left to merge")
        u = int(live[np.argmin(dist)])
        v = int(self.closest[u])
        if v < 0 or not self.valid[v]:
            raise InvariantViolation(f"cluster {u} points at invalid neighbour {v}")
        return u, v, float(self.distance[u])

    def merge(self, u: int, v: int, dist: float) -> int:
        """
        Merge clusters u and v into a new cluster and repair all neighbour state.

        @param u: first cluster id
        @param v: second cluster id
        @param dist: join distance
        @return: id of the new cluster
        """
        w = self.next_cluster
        self.next_cluster += 1
        self.members[w] = sorted(self.members[u] + self.members[v])
        self.members[u], self.members[v] = [], []
        self.valid[u] = self.valid[v] = False
        self.valid[w] = True
        self.closest[u] = self.closest[v] = -1
        self.distance[u] = self.distance[v] = np.inf
        if self.dendrogram is not None:
            self.dendrogram.add(u, v, dist, len(self.members[w]), merged_id=w)

        old_reps = self.reps[u] + self.reps[v]
        self.reps[u], self.reps[v] = [], []
        merged = [u, v]
        if self.linkage is Linkage.SINGLE:
            self.reps[w] = old_reps
            self.owner[old_reps] = w
            new_reps = []
            # only representatives whose neighbour ended up inside w lost it
            own = np.asarray(old_reps, dtype=int)
            requery = own[np.isin(self.closest_cluster[own], merged)]
        else:
            new_reps = self._relocate(w, old_reps)
            requery = new_reps
        for r in requery:
            self._refresh_rep(r)
        self._refresh_cluster(w)

        live = np.flatnonzero(self.alive)
        live = live[self.owner[live] != w]
        pointed = live[np.isin(self.closest_cluster[live], merged)]
        if self.linkage is Linkage.SINGLE:
            # the neighbouring point is still live, now owned by w
            self.closest_cluster[pointed] = w
        else:
            for r in pointed:
                self._refresh_rep(r)
        touched = set(self.owner[pointed].tolist())

        if new_reps and len(live):
            # a representative can only move closer to w if it lies within its current neighbour distance
            radius = self.closest_dist[live].max()
            for q in new_reps:
                ids, gaps = self.index.within(self.coords[q], radius, skip_owner=w)
                closer = gaps < self.closest_dist[ids]
                ids, gaps = ids[closer], gaps[closer]
                self.closest_rep[ids] = q
                self.closest_cluster[ids] = w
                self.closest_dist[ids] = gaps
                touched.update(self.owner[ids].tolist())

        for c in touched:
            self._refresh_cluster(c)

        logger.debug("merge %d + %d -> %d at %.6g (size %d)", u, v, w, dist, len(self.members[w]))
        return w

    def _relocate(self, w: int, old_reps: List[int]) -> List[int]:
        by_leaf = defaultdict(list)
        for r in old_reps:
            by_leaf[int(self.leaf[r])].append(r)
        for leaf, rs in by_leaf.items():
            self.index.remove(leaf, rs)
        self.alive[old_reps] = False
        self.leaf[old_reps] = -1

        points = self.X[self.members[w]]
        shrunk = select_representatives(points, self.params.rep_count, self.params.compression, self.metric)
        new_reps = list(range(self.next_rep, self.next_rep + len(shrunk)))
        self.next_rep += len(shrunk)
        self.coords[new_reps] = shrunk
        self.owner[new_reps] = w
        self.alive[new_reps] = True
        self.reps[w] = new_reps
        for r in new_reps:
            leaf = self.index.leaf_of(self.coords[r])
            self.index.insert(leaf, [r])
            self.leaf[r] = leaf
        return new_reps

    def run(self, n_clusters: Optional[int] = None) -> np.ndarray:
        """
        Merge until n_clusters remain (the configured k when None).

        @param n_clusters: target cluster count
        @return: label array shape (n_samples,)
        """
        target = self.params.k if n_clusters is None else n_clusters
        for _ in range(self.n_valid - target):
            u, v, dist = self.select_merge()
            self.merge(u, v, dist)
        logger.info("%s linkage: %d points, %d clusters, %d live representatives",
                    self.linkage.value, self.n, self.n_valid, len(self.index))
        return self.labels()

    def labels(self) -> np.ndarray:
        return labels_from_members(self.n, (self.members[c] for c in np.flatnonzero(self.valid)))

    def check(self) -> None:
        """
        Verify arena and index consistency.

        @raises InvariantViolation: on any inconsistency
        """
        live = np.flatnonzero(self.alive)
        self.index.check(live)
        for c in np.flatnonzero(self.valid):
            for r in self.reps[c]:
                if not self.alive[r] or self.owner[r] != c:
                    raise InvariantViolation(f"representative {r} not owned by live cluster {c}")
        owned = sum(len(self.reps[c]) for c in np.flatnonzero(self.valid))
        if owned != len(live):
            raise InvariantViolation("orphaned representatives")
