# dendrogram.py
"""
Dendrogram accumulation, contiguous renumbering and flat cuts.

A finished dendrogram is a SciPy-style linkage matrix Z of shape (m, 4) with
rows [id1, id2, distance, merged_size]; point ids are 0..n-1 and the
cluster created by row r has id n + r. Flat labels are integer arrays with
-1 marking an unassigned point.
"""

import logging
from typing import Hashable, Iterable, List, Optional, Sequence, Tuple
import numpy as np

from .exceptions import ConfigurationError, InvariantViolation

__all__ = [
    "UNASSIGNED",
    "Dendrogram",
    "build_index",
    "labels_from_members",
    "cut_by_k",
    "cut_by_distance",
]

logger = logging.getLogger(__name__)

UNASSIGNED = -1

Record = Tuple[Hashable, Hashable, float, int, Hashable]


class Dendrogram:
    """
    Ordered merge records in raw engine ids.

    @param n_points: number of original points (ids 0..n_points-1)
    """

    def __init__(self, n_points: int) -> None:
        self.n_points = int(n_points)
        self.records: List[Record] = []

    def add(self, left: Hashable, right: Hashable, distance: float, size: int,
            merged_id: Optional[Hashable] = None) -> None:
        """
        Append one merge.

        @param left: raw id of the first merged cluster
        @param right: raw id of the second merged cluster
        @param distance: join distance
        @param size: number of points in the merged cluster
        @param merged_id: raw id given to the merged cluster; defaults to n + len(self)
        """
        if merged_id is None:
            merged_id = self.n_points + len(self.records)
        self.records.append((left, right, float(distance), int(size), merged_id))

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_complete(self) -> bool:
        return len(self.records) == self.n_points - 1

    def to_linkage(self) -> np.ndarray:
        return build_index(self.records, self.n_points)


def build_index(records: Sequence[Record], n_points: int) -> np.ndarray:
    """
    Renumber raw merge records into the contiguous linkage encoding.

    Point ids keep their value; the cluster created by record r becomes
    n_points + r. Each row is written with the smaller id first.

    @param records: (left, right, distance, size, merged_id) tuples in merge order
    @param n_points: number of original points
    @return: float array shape (len(records), 4)
    @raises InvariantViolation: if a record references an unknown or
            already merged id, or reuses a raw id
    """
    created = {}
    consumed = set()
    Z = np.empty((len(records), 4), dtype=float)

    def resolve(raw: Hashable) -> int:
        if raw in created:
            idx = created[raw]
        elif isinstance(raw, (int, np.integer)) and 0 <= raw < n_points:
            idx = int(raw)
        else:
            raise InvariantViolation(f"merge record references unknown cluster id {raw!r}")
        if idx in consumed:
            raise InvariantViolation(f"cluster id {raw!r} merged more than once")
        consumed.add(idx)
        return idx

    for r, (left, right, distance, size, merged_id) in enumerate(records):
        a = resolve(left)
        b = resolve(right)
        if merged_id in created or (isinstance(merged_id, (int, np.integer)) and 0 <= merged_id < n_points):
            raise InvariantViolation(f"raw cluster id {merged_id!r} reused")
        created[merged_id] = n_points + r
        Z[r] = (min(a, b), max(a, b), distance, size)
    return Z


def labels_from_members(n_points: int, groups: Iterable[Iterable[int]]) -> np.ndarray:
    """
    Flat labels from member lists, numbered by first occurrence in point order.

    @param n_points: number of original points
    @param groups: one collection of point indices per cluster
    @return: int array shape (n_points,); points in no group get UNASSIGNED
    """
    groups = [sorted(int(p) for p in g) for g in groups]
    groups = [g for g in groups if g]
    groups.sort(key=lambda g: g[0])
    labels = np.full(n_points, UNASSIGNED, dtype=int)
    for label, members in enumerate(groups):
        labels[members] = label
    return labels


def _check_linkage(Z) -> np.ndarray:
    Z = np.asarray(Z, dtype=float)
    if Z.ndim != 2 or Z.shape[1] != 4:
        raise ConfigurationError("linkage matrix must have shape (m, 4)", argument="Z")
    return Z


def cut_by_k(Z: np.ndarray, k: int, n_points: Optional[int] = None) -> np.ndarray:
    """
    Flatten a linkage matrix into k clusters.

    The cut sits after the first n_points - k merges. Clusters alive at the
    cut are expanded down to their leaf points; merges created at or after
    the cut boundary are never split.

    @param Z: linkage matrix shape (m, 4)
    @param k: requested number of clusters
    @param n_points: number of original points; defaults to m + 1 (a full dendrogram)
    @return: int label array shape (n_points,)
    @raises ConfigurationError: if k is outside what the dendrogram can resolve
    """
    Z = _check_linkage(Z)
    m = Z.shape[0]
    n = m + 1 if n_points is None else int(n_points)
    if m > n - 1:
        raise ConfigurationError(f"{m} merges cannot come from {n} points", argument="n_points")
    if not (n - m <= k <= n):
        raise ConfigurationError(f"k must be between {n - m} and {n}", argument="k")

    cut = n - k
    children = Z[:, :2].astype(int)

    consumed = np.zeros(n + cut, dtype=bool)
    for left, right in children[:cut]:
        consumed[left] = consumed[right] = True
    roots = [cid for cid in range(n + cut) if not consumed[cid]]
    if len(roots) != k:
        raise InvariantViolation(f"cut produced {len(roots)} clusters instead of {k}")

    groups = []
    for root in roots:
        leaves = []
        frontier = [root]
        while frontier:
            cid = frontier.pop()
            if cid < n:
                leaves.append(cid)
            elif cid < n + cut:
                frontier.extend(children[cid - n])
        groups.append(leaves)
    return labels_from_members(n, groups)


def cut_by_distance(Z: np.ndarray, threshold: float, n_points: Optional[int] = None) -> np.ndarray:
    """
    Flatten a linkage matrix so that merges above threshold stay split.

    The threshold becomes a cluster count: one cluster per unmerged
    component plus one per record whose distance exceeds threshold.

    @param Z: linkage matrix shape (m, 4)
    @param threshold: distance threshold
    @param n_points: number of original points; defaults to m + 1
    @return: int label array shape (n_points,)
    """
    Z = _check_linkage(Z)
    m = Z.shape[0]
    n = m + 1 if n_points is None else int(n_points)
    k = (n - m) + int(np.count_nonzero(Z[:, 2] > threshold))
    logger.debug("threshold %g maps to %d clusters", threshold, k)
    return cut_by_k(Z, k, n_points=n)
