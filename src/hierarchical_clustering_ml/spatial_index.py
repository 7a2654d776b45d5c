# spatial_index.py
"""
Kd-tree-like partition of representative points with mutable leaves.

The tree is built once by median splits on the widest dimension. After
that only leaf membership changes: ids are removed from and inserted into
leaves as clusters merge. The tree is never rebalanced; an insert widens
the bounding boxes of the receiving leaf and its ancestors so that the
box lower bound used for pruning stays valid. Boxes never shrink.

Coordinates live in a caller-owned arena array indexed by id, which lets
the caller append rows (new representatives) and insert them later.
"""

import logging
from typing import Iterable, List, Optional, Set, Tuple
import numpy as np

from .distances import Distance, box_lower_bound, box_prunable, point_distances, resolve_distance
from .exceptions import ConfigurationError, InvariantViolation

__all__ = ["SpatialIndex"]

logger = logging.getLogger(__name__)

_NO_NODE = -1


class SpatialIndex:
    """
    @param coords: arena array, shape (capacity, n_features); row i holds id i
    @param metric: box-prunable distance used by nearest_neighbor
    @param owners: optional arena array, owners[i] is the group of id i; lets
                   queries skip a whole group without listing its ids
    """

    def __init__(self, coords: np.ndarray, metric=Distance.EUCLIDEAN,
                 owners: Optional[np.ndarray] = None) -> None:
        metric = resolve_distance(metric)
        if not box_prunable(metric):
            raise ConfigurationError(f"spatial index cannot prune with {metric.value!r}", argument="distance")
        self.coords = coords
        self.metric = metric
        self.owners = owners
        self._lo: List[np.ndarray] = []
        self._hi: List[np.ndarray] = []
        self._split_dim: List[int] = []
        self._split_value: List[float] = []
        self._left: List[int] = []
        self._right: List[int] = []
        self._parent: List[int] = []
        self._count: List[int] = []
        self._members: List[Optional[Set[int]]] = []

    @classmethod
    def build(cls, coords: np.ndarray, ids: Iterable[int], leaf_size: int = 16,
              metric=Distance.EUCLIDEAN, owners: Optional[np.ndarray] = None) -> "SpatialIndex":
        """
        Partition ids recursively until every leaf holds at most leaf_size ids.

        A node whose points all coincide stays a leaf regardless of size.

        @param coords: arena array (see class docstring)
        @param ids: ids to index, rows of coords
        @param leaf_size: leaf capacity hint (>= 1)
        @param metric: distance name or Distance member
        @param owners: optional group arena (see class docstring)
        @return: the built index
        """
        index = cls(coords, metric, owners)
        ids = np.asarray(list(ids), dtype=int)
        leaf_size = max(1, int(leaf_size))

        root = index._new_node(ids, _NO_NODE)
        stack = [(root, ids)]
        while stack:
            node, node_ids = stack.pop()
            if len(node_ids) <= leaf_size:
                index._members[node] = set(node_ids.tolist())
                continue
            spread = index._hi[node] - index._lo[node]
            dim = int(np.argmax(spread))
            if spread[dim] <= 0.0:
                index._members[node] = set(node_ids.tolist())
                continue
            order = node_ids[np.argsort(coords[node_ids, dim], kind="stable")]
            mid = len(order) // 2
            index._split_dim[node] = dim
            index._split_value[node] = float(coords[order[mid - 1], dim])
            left = index._new_node(order[:mid], node)
            right = index._new_node(order[mid:], node)
            index._left[node] = left
            index._right[node] = right
            stack.append((right, order[mid:]))
            stack.append((left, order[:mid]))

        logger.debug("spatial index built: %d ids, %d nodes, %d leaves",
                     len(ids), len(index._lo), len(index.leaves()))
        return index

    def _new_node(self, ids: np.ndarray, parent: int) -> int:
        if len(ids):
            pts = self.coords[ids]
            lo, hi = pts.min(axis=0), pts.max(axis=0)
        else:
            lo = np.full(self.coords.shape[1], np.inf)
            hi = np.full(self.coords.shape[1], -np.inf)
        self._lo.append(lo.astype(float))
        self._hi.append(hi.astype(float))
        self._split_dim.append(-1)
        self._split_value.append(0.0)
        self._left.append(_NO_NODE)
        self._right.append(_NO_NODE)
        self._parent.append(parent)
        self._count.append(len(ids))
        self._members.append(None)
        return len(self._lo) - 1

    def __len__(self) -> int:
        return self._count[0] if self._count else 0

    def is_leaf(self, node: int) -> bool:
        return self._members[node] is not None

    def leaves(self) -> List[int]:
        return [node for node in range(len(self._members)) if self._members[node] is not None]

    def members(self, leaf: int) -> Set[int]:
        return set(self._members[leaf])

    def leaf_of(self, point: np.ndarray) -> int:
        """
        Leaf whose split region contains point.

        @param point: coordinates, shape (n_features,)
        @return: leaf node id
        """
        node = 0
        while not self.is_leaf(node):
            if point[self._split_dim[node]] <= self._split_value[node]:
                node = self._left[node]
            else:
                node = self._right[node]
        return node

    def remove(self, leaf: int, ids: Iterable[int]) -> None:
        """Drop ids from a leaf's membership."""
        members = self._members[leaf]
        if members is None:
            raise InvariantViolation(f"node {leaf} is not a leaf")
        removed = 0
        for pid in ids:
            try:
                members.remove(int(pid))
            except KeyError:
                raise InvariantViolation(f"id {pid} is not in leaf {leaf}") from None
            removed += 1
        node = leaf
        while node != _NO_NODE:
            self._count[node] -= removed
            node = self._parent[node]

    def insert(self, leaf: int, ids: Iterable[int]) -> None:
        """Add ids to a leaf's membership, widening boxes up to the root."""
        members = self._members[leaf]
        if members is None:
            raise InvariantViolation(f"node {leaf} is not a leaf")
        ids = [int(pid) for pid in ids]
        if not ids:
            return
        members.update(ids)
        pts = self.coords[ids]
        lo, hi = pts.min(axis=0), pts.max(axis=0)
        node = leaf
        while node != _NO_NODE:
            self._count[node] += len(ids)
            np.minimum(self._lo[node], lo, out=self._lo[node])
            np.maximum(self._hi[node], hi, out=self._hi[node])
            node = self._parent[node]

    def _candidates(self, leaf: int, exclude: Set[int], skip_owner: Optional[int]) -> np.ndarray:
        members = self._members[leaf]
        cand = np.fromiter(members, dtype=int, count=len(members))
        if exclude:
            cand = cand[[i not in exclude for i in cand.tolist()]]
        if skip_owner is not None:
            cand = cand[self.owners[cand] != skip_owner]
        return cand

    def nearest_neighbor(self, query: np.ndarray, exclude: Iterable[int] = (),
                         skip_owner: Optional[int] = None) -> Tuple[int, float]:
        """
        Closest indexed id to query, skipping ids in exclude and, when the
        index has owners, every id owned by skip_owner.

        Ties go to the lowest id.

        @param query: coordinates, shape (n_features,)
        @param exclude: ids that are not candidates
        @param skip_owner: group whose ids are not candidates
        @return: (id, distance), or (-1, inf) when no candidate exists
        """
        exclude = exclude if isinstance(exclude, (set, frozenset)) else set(exclude)
        best_id, best_dist = -1, np.inf
        stack = [(self._bound(0, query), 0)]
        while stack:
            bound, node = stack.pop()
            if bound > best_dist or self._count[node] == 0:
                continue
            if self._members[node] is not None:
                cand = self._candidates(node, exclude, skip_owner)
                if len(cand) == 0:
                    continue
                d = point_distances(self.metric, query, self.coords[cand])
                dmin = d.min()
                cid = int(cand[d == dmin].min())
                if dmin < best_dist or (dmin == best_dist and cid < best_id):
                    best_id, best_dist = cid, float(dmin)
                continue
            near, far = self._left[node], self._right[node]
            b_near, b_far = self._bound(near, query), self._bound(far, query)
            if b_far < b_near:
                near, far, b_near, b_far = far, near, b_far, b_near
            stack.append((b_far, far))
            stack.append((b_near, near))
        return best_id, best_dist

    def within(self, query: np.ndarray, radius: float,
               skip_owner: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Every indexed id strictly closer than radius to query.

        @param query: coordinates, shape (n_features,)
        @param radius: exclusive distance limit
        @param skip_owner: group whose ids are not returned
        @return: (ids, distances), ids ascending
        """
        found_ids, found_dist = [], []
        stack = [0]
        while stack:
            node = stack.pop()
            if self._count[node] == 0 or self._bound(node, query) >= radius:
                continue
            if self._members[node] is None:
                stack.append(self._left[node])
                stack.append(self._right[node])
                continue
            cand = self._candidates(node, set(), skip_owner)
            d = point_distances(self.metric, query, self.coords[cand])
            keep = d < radius
            found_ids.append(cand[keep])
            found_dist.append(d[keep])
        if not found_ids:
            return np.zeros(0, dtype=int), np.zeros(0)
        ids, dist = np.concatenate(found_ids), np.concatenate(found_dist)
        order = np.argsort(ids)
        return ids[order], dist[order]

    def _bound(self, node: int, query: np.ndarray) -> float:
        if self._count[node] == 0:
            return np.inf
        return box_lower_bound(self.metric, query, self._lo[node], self._hi[node])

    def check(self, live_ids: Iterable[int]) -> None:
        """
        Verify that every live id sits in exactly one leaf and nothing else does.

        @raises InvariantViolation: on any mismatch
        """
        seen = {}
        for leaf in self.leaves():
            for pid in self._members[leaf]:
                if pid in seen:
                    raise InvariantViolation(f"id {pid} in leaves {seen[pid]} and {leaf}")
                seen[pid] = leaf
        live = set(int(i) for i in live_ids)
        if set(seen) != live:
            raise InvariantViolation("leaf membership does not match live ids")
        if len(self) != len(live):
            raise InvariantViolation("node counts do not match leaf membership")
