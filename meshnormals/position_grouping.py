"""
Position Grouping Module

Groups vertex entries that occupy the same position so they can share a
smoothing group. Meshes store duplicate entries at seams (hard edges, UV
splits), and every such entry has to see the triangles incident on all of
its twins.

Grouping strategies:
1. ExactGrouping - component-wise float equality (default)
2. GridGrouping - positions rounded to a fixed decimal grid
3. ToleranceGrouping - positions closer than a distance are merged
   (transitively), using a KD-tree

The default never merges near-duplicates produced by floating-point drift;
tolerant strategies must be chosen explicitly.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

logger = logging.getLogger(__name__)


@dataclass
class PositionGroup:
    """All vertex entries and incident triangles sharing one position."""
    # Group id assigned by the grouping strategy
    key: int
    # Unique vertex-entry indices at this position, in first-seen corner order
    vertices: np.ndarray
    # Triangle ordinals, one occurrence per corner that lands on this position
    triangles: np.ndarray

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def is_split(self) -> bool:
        """True when two or more vertex entries share this position."""
        return len(self.vertices) >= 2


class GroupingStrategy:
    """
    Base class for position equality strategies.

    Subclasses implement group_ids(), which assigns every vertex entry an
    integer id such that entries with equal ids are "the same position".
    """

    name = "base"

    def group_ids(self, positions: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _ids_from_keys(keys: np.ndarray) -> np.ndarray:
    """Assign first-occurrence ids to rows of an (N, 3) key array."""
    ids = np.empty(len(keys), dtype=np.int64)
    seen: Dict[Tuple[float, float, float], int] = {}
    for i, row in enumerate(keys):
        key = (float(row[0]), float(row[1]), float(row[2]))
        group = seen.get(key)
        if group is None:
            group = len(seen)
            seen[key] = group
        ids[i] = group
    return ids


class ExactGrouping(GroupingStrategy):
    """
    Exact position equality.

    Two entries share a position iff every coordinate compares equal.
    No epsilon is applied, so positions that differ by a single ulp end up
    in different groups.
    """

    name = "exact"

    def group_ids(self, positions: np.ndarray) -> np.ndarray:
        return _ids_from_keys(positions)


class GridGrouping(GroupingStrategy):
    """Group positions after rounding to a fixed number of decimals."""

    name = "grid"

    def __init__(self, decimals: int = 5):
        if decimals < 0:
            raise ValueError(f"decimals must be >= 0, got {decimals}")
        self.decimals = int(decimals)

    def group_ids(self, positions: np.ndarray) -> np.ndarray:
        return _ids_from_keys(np.round(positions, self.decimals))

    def __repr__(self) -> str:
        return f"GridGrouping(decimals={self.decimals})"


class ToleranceGrouping(GroupingStrategy):
    """
    Merge positions that lie within `tolerance` of each other.

    Merging is transitive: a chain of points each within tolerance of the
    next collapses into one group.
    """

    name = "tolerance"

    def __init__(self, tolerance: float = 1e-6):
        if not tolerance > 0:
            raise ValueError(f"tolerance must be > 0, got {tolerance}")
        self.tolerance = float(tolerance)

    def group_ids(self, positions: np.ndarray) -> np.ndarray:
        n = len(positions)
        if n == 0:
            return np.zeros(0, dtype=np.int64)

        tree = cKDTree(positions)
        pairs = tree.query_pairs(r=self.tolerance, output_type='ndarray')
        graph = coo_matrix(
            (np.ones(len(pairs), dtype=np.int8), (pairs[:, 0], pairs[:, 1])),
            shape=(n, n)
        )
        _, labels = connected_components(graph, directed=False)

        # Relabel in first-occurrence order so ids do not depend on scipy internals
        _, first = np.unique(labels, return_index=True)
        order = np.argsort(first)
        remap = np.empty(len(order), dtype=np.int64)
        remap[order] = np.arange(len(order))
        return remap[labels]

    def __repr__(self) -> str:
        return f"ToleranceGrouping(tolerance={self.tolerance})"


GROUPING_STRATEGIES = {
    ExactGrouping.name: ExactGrouping,
    GridGrouping.name: GridGrouping,
    ToleranceGrouping.name: ToleranceGrouping,
}


def get_grouping(name: str = "exact", **kwargs) -> GroupingStrategy:
    """
    Create a grouping strategy by name.

    Args:
        name: One of "exact", "grid", "tolerance"
        **kwargs: Strategy parameters (decimals, tolerance)

    Returns:
        GroupingStrategy instance
    """
    try:
        cls = GROUPING_STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown grouping strategy: {name!r}. "
            f"Expected one of {sorted(GROUPING_STRATEGIES)}"
        ) from None
    return cls(**kwargs)


def build_position_groups(
    triangles: np.ndarray,
    group_ids: np.ndarray
) -> List[PositionGroup]:
    """
    Build position groups from triangle corners.

    Only entries referenced by at least one triangle end up in a group.
    A triangle is listed once per corner that falls on the group, so a
    collapsed triangle with two corners at one position is listed twice.

    Args:
        triangles: Mx3 array of vertex-entry indices
        group_ids: N array of group ids from a GroupingStrategy

    Returns:
        List of PositionGroup ordered by group id
    """
    corner_entries = triangles.reshape(-1)
    if corner_entries.size == 0:
        return []

    corner_groups = group_ids[corner_entries]

    # Stable sort keeps corner order inside each group
    order = np.argsort(corner_groups, kind='stable')
    boundaries = np.flatnonzero(np.diff(corner_groups[order])) + 1

    groups: List[PositionGroup] = []
    for corners in np.split(order, boundaries):
        entries = corner_entries[corners]
        _, first_seen = np.unique(entries, return_index=True)
        groups.append(PositionGroup(
            key=int(corner_groups[corners[0]]),
            vertices=entries[np.sort(first_seen)],
            triangles=corners // 3,
        ))

    logger.debug(f"Built {len(groups)} position groups from {corner_entries.size} corners")
    return groups


def find_split_vertices(
    positions: np.ndarray,
    grouping: Optional[GroupingStrategy] = None
) -> np.ndarray:
    """
    Find vertex entries whose position is shared by at least one other entry.

    Unlike build_position_groups this looks at every entry, including ones
    no triangle references.

    Args:
        positions: Nx3 array of vertex positions
        grouping: Position equality strategy (exact by default)

    Returns:
        Boolean mask of length N
    """
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    grouping = grouping or ExactGrouping()
    ids = grouping.group_ids(positions)
    if ids.size == 0:
        return np.zeros(0, dtype=bool)
    counts = np.bincount(ids)
    return counts[ids] >= 2
