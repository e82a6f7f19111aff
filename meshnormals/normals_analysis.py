"""
Normals Analysis Module

Diagnostics for recomputed vertex normals, and the line segments a viewer
draws to display them.

Analyzes:
- Vertex-entry, triangle and position-group counts
- Split vertices (positions shared by two or more entries)
- Degenerate (zero-area) triangles
- Zero normals and entries no triangle references
- Normals that are neither unit length nor zero
"""

from dataclasses import dataclass, field
from typing import List, Optional
import logging

import numpy as np

from meshnormals.normals_calculator import compute_face_normals, validate_mesh_arrays
from meshnormals.position_grouping import (
    GroupingStrategy,
    ExactGrouping,
    build_position_groups,
    find_split_vertices,
)

logger = logging.getLogger(__name__)

# Tolerance used when checking that a normal has unit length
UNIT_LENGTH_TOLERANCE = 1e-6


@dataclass
class NormalsDiagnostics:
    """Summary of a normal array computed for a mesh."""
    vertex_count: int
    triangle_count: int
    position_group_count: int
    split_vertex_count: int
    degenerate_triangle_count: int
    zero_normal_count: int
    unreferenced_vertex_count: int
    non_unit_normal_count: int
    issues: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """Every normal is unit length or exactly zero."""
        return self.non_unit_normal_count == 0

    def format(self) -> str:
        """Format diagnostics for display."""
        lines = [
            f"Vertices: {self.vertex_count:,}",
            f"Triangles: {self.triangle_count:,}",
            f"Position groups: {self.position_group_count:,}",
            f"Split vertices: {self.split_vertex_count:,}",
            "",
            f"Degenerate triangles: {self.degenerate_triangle_count:,}",
            f"Zero normals: {self.zero_normal_count:,}",
            f"Unreferenced vertices: {self.unreferenced_vertex_count:,}",
            f"Status: {'✓ Valid normals' if self.is_valid else '✗ Invalid normals'}",
        ]

        if self.issues:
            lines.append("")
            lines.append("Issues:")
            for issue in self.issues:
                lines.append(f"  • {issue}")

        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Convert diagnostics to dictionary."""
        return {
            'vertex_count': self.vertex_count,
            'triangle_count': self.triangle_count,
            'position_group_count': self.position_group_count,
            'split_vertex_count': self.split_vertex_count,
            'degenerate_triangle_count': self.degenerate_triangle_count,
            'zero_normal_count': self.zero_normal_count,
            'unreferenced_vertex_count': self.unreferenced_vertex_count,
            'non_unit_normal_count': self.non_unit_normal_count,
            'is_valid': self.is_valid,
            'issues': self.issues,
        }


class NormalsAnalyzer:
    """
    Normals diagnostics.

    Inspects a mesh together with its recomputed normal array.
    """

    def __init__(
        self,
        positions,
        triangles,
        normals,
        grouping: Optional[GroupingStrategy] = None
    ):
        """
        Initialize analyzer.

        Args:
            positions: Nx3 vertex positions
            triangles: Flat or Mx3 vertex-entry indices
            normals: Nx3 normal array aligned with positions
            grouping: Position equality strategy (exact by default)
        """
        self.positions, self.triangles = validate_mesh_arrays(positions, triangles)
        self.normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
        if len(self.normals) != len(self.positions):
            raise ValueError(
                f"Normals count {len(self.normals)} does not match vertex count {len(self.positions)}"
            )
        self.grouping = grouping or ExactGrouping()
        self._diagnostics: Optional[NormalsDiagnostics] = None

    def analyze(self) -> NormalsDiagnostics:
        """
        Perform normals analysis.

        Returns:
            NormalsDiagnostics containing all analysis results
        """
        issues: List[str] = []
        vertex_count = len(self.positions)
        triangle_count = len(self.triangles)

        group_ids = self.grouping.group_ids(self.positions)
        groups = build_position_groups(self.triangles, group_ids)
        split_vertex_count = int(np.count_nonzero(find_split_vertices(self.positions, self.grouping)))

        face_normals, _ = compute_face_normals(self.positions, self.triangles)
        degenerate_count = int(np.count_nonzero(~np.any(face_normals != 0, axis=1)))
        if degenerate_count:
            issues.append(f"Found {degenerate_count} degenerate (zero-area) triangles")

        referenced = np.zeros(vertex_count, dtype=bool)
        referenced[self.triangles.reshape(-1)] = True
        unreferenced_count = int(np.count_nonzero(~referenced))
        if unreferenced_count:
            issues.append(f"{unreferenced_count} vertices are not used by any triangle")

        lengths = np.linalg.norm(self.normals, axis=1)
        is_zero = ~np.any(self.normals != 0, axis=1)
        zero_count = int(np.count_nonzero(is_zero))
        if zero_count:
            issues.append(f"{zero_count} vertices have an undefined (zero) normal")

        non_unit = ~is_zero & (np.abs(lengths - 1.0) > UNIT_LENGTH_TOLERANCE)
        non_unit_count = int(np.count_nonzero(non_unit))
        if non_unit_count:
            issues.append(f"{non_unit_count} normals are neither unit length nor zero")

        if issues:
            logger.warning(f"Normals analysis found {len(issues)} issue(s)")

        self._diagnostics = NormalsDiagnostics(
            vertex_count=vertex_count,
            triangle_count=triangle_count,
            position_group_count=len(groups),
            split_vertex_count=split_vertex_count,
            degenerate_triangle_count=degenerate_count,
            zero_normal_count=zero_count,
            unreferenced_vertex_count=unreferenced_count,
            non_unit_normal_count=non_unit_count,
            issues=issues
        )

        return self._diagnostics

    @property
    def diagnostics(self) -> Optional[NormalsDiagnostics]:
        """Get cached diagnostics (call analyze() first)."""
        return self._diagnostics


def analyze_normals(positions, triangles, normals,
                    grouping: Optional[GroupingStrategy] = None) -> NormalsDiagnostics:
    """
    Convenience function to analyze normals.

    Returns:
        NormalsDiagnostics containing all analysis results
    """
    return NormalsAnalyzer(positions, triangles, normals, grouping).analyze()


@dataclass
class NormalSegments:
    """Line segments from vertex positions along their normals."""
    # Kx3 segment start points (the vertex positions)
    starts: np.ndarray
    # Kx3 segment end points
    ends: np.ndarray
    # K vertex-entry indices, for labelling
    indices: np.ndarray

    def __len__(self) -> int:
        return len(self.indices)

    def as_lines(self) -> np.ndarray:
        """Kx2x3 array of (start, end) pairs."""
        return np.stack([self.starts, self.ends], axis=1)


def build_normal_segments(
    positions,
    normals,
    length: float = 1.0,
    only_split: bool = False,
    grouping: Optional[GroupingStrategy] = None
) -> NormalSegments:
    """
    Build the segments used to visualize vertex normals.

    Each segment runs from a vertex position to position + normal * length.
    Zero normals yield zero-length segments.

    Args:
        positions: Nx3 vertex positions
        normals: Nx3 normals aligned with positions
        length: Segment length scale
        only_split: Keep only entries whose position is shared with another entry
        grouping: Position equality strategy used for only_split

    Returns:
        NormalSegments
    """
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    if len(normals) != len(positions):
        raise ValueError(
            f"Normals count {len(normals)} does not match vertex count {len(positions)}"
        )

    indices = np.arange(len(positions))
    if only_split:
        indices = indices[find_split_vertices(positions, grouping)]

    starts = positions[indices]
    ends = starts + normals[indices] * length
    return NormalSegments(starts=starts, ends=ends, indices=indices)


def save_segments(file_path: str, segments: NormalSegments) -> None:
    """
    Write segments to disk.

    .npy stores the Kx2x3 line array; any other extension stores one
    "index sx sy sz ex ey ez" row per segment.
    """
    if str(file_path).lower().endswith('.npy'):
        np.save(file_path, segments.as_lines())
    else:
        table = np.column_stack([segments.indices, segments.starts, segments.ends])
        np.savetxt(file_path, table, fmt=['%d'] + ['%.9g'] * 6,
                   header="index sx sy sz ex ey ez")
    logger.info(f"Wrote {len(segments)} normal segments to {file_path}")
