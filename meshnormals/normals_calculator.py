"""
Normals Calculator Module

Recomputes per-vertex-entry normals of a triangle mesh.

Pipeline:
1. Face-normal pass - one unnormalized cross-product normal per triangle,
   plus a provisional (reference) normal per vertex entry
2. Position grouping - vertex entries grouped by position
3. Smoothing pass - for each entry, every triangle incident on its
   position group is accepted or rejected by the smoothing-angle test and
   the accepted ones are accumulated with the selected weighting
4. Normalize - zero sums stay zero

Vertex entries are indices into the position array, not unique positions:
two entries at one position (a seam) are normalized independently, each
against its own reference normal.
"""

from enum import Enum
from typing import Iterator, Optional, Tuple, Union
import logging

import numpy as np
import trimesh

from meshnormals.position_grouping import (
    GroupingStrategy,
    ExactGrouping,
    build_position_groups,
)

logger = logging.getLogger(__name__)

# Default smoothing angle in degrees
DEFAULT_SMOOTHING_ANGLE = 60.0

# Angles involving a (near) zero-length vector are reported as 0 degrees
ANGLE_EPSILON = 1e-15

# Slack on the smoothing-angle test, in degrees; an entry's own face
# measures a few ulps away from its reference normal
ANGLE_TOLERANCE = 1e-6

# Largest accepted coordinate magnitude; keeps cross products and
# weighted sums finite
MAX_COORDINATE = 1e100

# For a matched corner index, the indices of the two remaining corners
_OTHER_CORNERS = np.array([[1, 2], [0, 2], [0, 1]])


class InvalidInputError(ValueError):
    """Raised when mesh data or parameters violate the calculator's preconditions."""


class NormalCalculationMode(Enum):
    """How face normals are weighted when accumulated into a vertex normal."""
    UNWEIGHTED = "unweighted"                  # Plain per-entry face normal sum
    AREA_WEIGHTED = "area"                     # Weighted by face area
    ANGLE_WEIGHTED = "angle"                   # Weighted by vertex angle on each face
    AREA_AND_ANGLE_WEIGHTED = "area_and_angle"  # Weighted by both

    @classmethod
    def parse(cls, value: Union["NormalCalculationMode", str]) -> "NormalCalculationMode":
        """Accept a member, its value ("area") or its name ("AREA_WEIGHTED")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            for mode in cls:
                if text.lower() == mode.value or text.upper() == mode.name:
                    return mode
        raise InvalidInputError(
            f"Unknown normal calculation mode: {value!r}. "
            f"Expected one of {[m.value for m in cls]}"
        )


def validate_mesh_arrays(positions, triangles) -> Tuple[np.ndarray, np.ndarray]:
    """
    Validate mesh data and copy it into owned working arrays.

    Args:
        positions: Sequence of N 3D positions (Nx3 array-like)
        triangles: Flat index sequence (length divisible by 3) or Mx3 array

    Returns:
        Tuple of (positions as Nx3 float64, triangles as Mx3 int64)

    Raises:
        InvalidInputError: if any precondition is violated
    """
    try:
        positions = np.array(positions, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Positions must be a numeric Nx3 array: {e}") from e
    if positions.size == 0:
        positions = positions.reshape(0, 3)
    if positions.ndim != 2 or positions.shape[1] != 3:
        raise InvalidInputError(f"Positions must be an Nx3 array, got shape {positions.shape}")
    if not np.all(np.isfinite(positions)):
        raise InvalidInputError("Positions contain non-finite values")
    if positions.size and np.abs(positions).max() > MAX_COORDINATE:
        raise InvalidInputError(f"Position coordinates exceed {MAX_COORDINATE:g} in magnitude")

    try:
        triangles = np.array(triangles)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Triangles must be an integer index array: {e}") from e
    if triangles.size == 0:
        return positions, np.zeros((0, 3), dtype=np.int64)

    if triangles.dtype.kind not in 'iu':
        raise InvalidInputError(f"Triangle indices must be integers, got dtype {triangles.dtype}")

    if triangles.ndim == 1:
        if triangles.size % 3 != 0:
            raise InvalidInputError(
                f"Triangle index count must be a multiple of 3, got {triangles.size}"
            )
        triangles = triangles.reshape(-1, 3)
    elif triangles.ndim != 2 or triangles.shape[1] != 3:
        raise InvalidInputError(f"Triangles must be flat or Mx3, got shape {triangles.shape}")

    triangles = triangles.astype(np.int64)
    low, high = int(triangles.min()), int(triangles.max())
    if low < 0 or high >= len(positions):
        raise InvalidInputError(
            f"Triangle index out of range [0, {len(positions)}): min={low}, max={high}"
        )

    return positions, triangles


def _scale_rows(vectors: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Split vectors into (largest absolute component, vector / that component)."""
    scale = np.max(np.abs(vectors), axis=-1, keepdims=True)
    scaled = np.zeros_like(vectors)
    np.divide(vectors, scale, out=scaled, where=scale > 0)
    return scale, scaled


def safe_normalize(vectors: np.ndarray) -> np.ndarray:
    """Normalize vectors along the last axis; zero vectors stay zero."""
    vectors = np.asarray(vectors, dtype=np.float64)
    # Rescale first so squaring large components cannot overflow
    _, scaled = _scale_rows(vectors)
    norms = np.linalg.norm(scaled, axis=-1, keepdims=True)
    result = np.zeros_like(vectors)
    np.divide(scaled, norms, out=result, where=norms > 0)
    return result


def vector_angles(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Angle in degrees between vectors, broadcasting over leading axes.

    Uses atan2(|a x b|, a . b) on the unit vectors, which stays accurate
    near 0 and 180 degrees. A zero-length operand gives 0 degrees rather
    than NaN.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    scale_a, scaled_a = _scale_rows(a)
    scale_b, scaled_b = _scale_rows(b)
    length_a = scale_a[..., 0] * np.linalg.norm(scaled_a, axis=-1)
    length_b = scale_b[..., 0] * np.linalg.norm(scaled_b, axis=-1)
    valid = length_a * length_b >= ANGLE_EPSILON

    unit_a = safe_normalize(a)
    unit_b = safe_normalize(b)
    sine = np.linalg.norm(np.cross(unit_a, unit_b), axis=-1)
    cosine = np.sum(unit_a * unit_b, axis=-1)
    return np.where(valid, np.degrees(np.arctan2(sine, cosine)), 0.0)


def compute_face_normals(
    positions: np.ndarray,
    triangles: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute face normals and the per-entry reference normals.

    The face normal is the raw cross product (p2 - p1) x (p3 - p1), whose
    length is twice the triangle area. The reference normal of an entry is
    the normalized face normal of the last triangle touching it, walking
    triangles in order; it only serves as the axis for the smoothing-angle
    test. Entries no triangle touches get a zero reference normal.

    Args:
        positions: Nx3 array of vertex positions
        triangles: Mx3 array of vertex-entry indices

    Returns:
        Tuple of (Mx3 face normals, Nx3 reference normals)
    """
    v0 = positions[triangles[:, 0]]
    v1 = positions[triangles[:, 1]]
    v2 = positions[triangles[:, 2]]
    face_normals = np.cross(v1 - v0, v2 - v0).reshape(-1, 3)

    reference_normals = np.zeros_like(positions)
    corner_entries = triangles.reshape(-1)
    if corner_entries.size:
        # Last corner touching each entry wins
        entries, first_from_end = np.unique(corner_entries[::-1], return_index=True)
        last_corner = corner_entries.size - 1 - first_from_end
        reference_normals[entries] = safe_normalize(face_normals[last_corner // 3])

    return face_normals, reference_normals


def compute_smooth_vertex_normals(positions: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """
    Unweighted smooth normals.

    Each vertex entry gets the normalized sum of the raw face normals of the
    triangles that reference it directly. No position grouping and no
    smoothing-angle test are applied.

    Args:
        positions: Nx3 array of vertex positions
        triangles: Mx3 array of vertex-entry indices

    Returns:
        Nx3 array of normals (unit length or zero)
    """
    face_normals, _ = compute_face_normals(positions, triangles)

    normal_accum = np.zeros((len(positions), 3), dtype=np.float64)
    np.add.at(normal_accum, triangles[:, 0], face_normals)
    np.add.at(normal_accum, triangles[:, 1], face_normals)
    np.add.at(normal_accum, triangles[:, 2], face_normals)

    return safe_normalize(normal_accum)


def _area_weights(face_normals: np.ndarray, vertex_angles: np.ndarray) -> np.ndarray:
    return face_normals


def _angle_weights(face_normals: np.ndarray, vertex_angles: np.ndarray) -> np.ndarray:
    return safe_normalize(face_normals) * vertex_angles[:, None]


def _area_and_angle_weights(face_normals: np.ndarray, vertex_angles: np.ndarray) -> np.ndarray:
    return face_normals * vertex_angles[:, None]


_WEIGHTING = {
    NormalCalculationMode.AREA_WEIGHTED: _area_weights,
    NormalCalculationMode.ANGLE_WEIGHTED: _angle_weights,
    NormalCalculationMode.AREA_AND_ANGLE_WEIGHTED: _area_and_angle_weights,
}


def _accepted_triangles(
    positions: np.ndarray,
    triangles: np.ndarray,
    face_normals: np.ndarray,
    reference_normals: np.ndarray,
    group_ids: np.ndarray,
    smoothing_angle: float
) -> Iterator[Tuple[int, np.ndarray, np.ndarray]]:
    """
    Yield (vertex entry, accepted face normals, subtended vertex angles).

    For an entry v and a triangle t incident on v's position group, t is
    rejected when the angle between v's reference normal and t's face
    normal exceeds `smoothing_angle` (plus ANGLE_TOLERANCE). v's corner of
    t is the group corner nearest to v, ties going to the earlier corner;
    the angle is measured there between the two other corners. Only
    entries referenced by a triangle are yielded.
    """
    for group in build_position_groups(triangles, group_ids):
        tris = group.triangles
        corners = triangles[tris]  # (K, 3)
        corner_positions = positions[corners]  # (K, 3, 3)
        in_group = group_ids[corners] == group.key
        group_normals = face_normals[tris]

        for vert in group.vertices:
            reference_angles = vector_angles(reference_normals[vert], group_normals)
            accepted = reference_angles <= smoothing_angle + ANGLE_TOLERANCE
            origin = positions[vert]

            candidates = corner_positions[accepted]
            distances = np.where(
                in_group[accepted],
                np.sum((candidates - origin) ** 2, axis=2),
                np.inf,
            )
            own_corner = np.argmin(distances, axis=1)
            others = _OTHER_CORNERS[own_corner]  # (A, 2)
            rows = np.arange(len(candidates))

            vertex_angles = vector_angles(
                candidates[rows, others[:, 0]] - origin,
                candidates[rows, others[:, 1]] - origin,
            )
            yield int(vert), group_normals[accepted], vertex_angles


def smooth_position_groups(
    positions: np.ndarray,
    triangles: np.ndarray,
    face_normals: np.ndarray,
    reference_normals: np.ndarray,
    group_ids: np.ndarray,
    mode: NormalCalculationMode,
    smoothing_angle: float
) -> np.ndarray:
    """
    Accumulate weighted face normals for every vertex entry.

    Returns:
        Nx3 array of normalized sums (zero where nothing contributed)
    """
    weight = _WEIGHTING[mode]
    sums = np.zeros_like(positions)

    for vert, normals, vertex_angles in _accepted_triangles(
            positions, triangles, face_normals, reference_normals, group_ids, smoothing_angle):
        if len(normals):
            sums[vert] = weight(normals, vertex_angles).sum(axis=0)

    zero_count = len(positions) - int(np.count_nonzero(np.any(sums != 0, axis=1)))
    if zero_count:
        logger.debug(f"{zero_count} vertices received no contribution and keep a zero normal")

    return safe_normalize(sums)


def smoothing_contribution_counts(
    positions,
    triangles,
    smoothing_angle: float = DEFAULT_SMOOTHING_ANGLE,
    grouping: Optional[GroupingStrategy] = None
) -> np.ndarray:
    """
    Count the triangles that pass the smoothing-angle test for each entry.

    A triangle touching a position through two corners counts twice, as
    it is accumulated twice.

    Returns:
        N array of contribution counts (0 for unreferenced entries)
    """
    positions, triangles = validate_mesh_arrays(positions, triangles)
    grouping = grouping or ExactGrouping()
    face_normals, reference_normals = compute_face_normals(positions, triangles)

    counts = np.zeros(len(positions), dtype=np.int64)
    for vert, normals, _ in _accepted_triangles(
            positions, triangles, face_normals, reference_normals,
            grouping.group_ids(positions), float(smoothing_angle)):
        counts[vert] = len(normals)
    return counts


def recalc_weighted_normals(
    positions,
    triangles,
    mode: Union[NormalCalculationMode, str] = NormalCalculationMode.AREA_AND_ANGLE_WEIGHTED,
    smoothing_angle: float = DEFAULT_SMOOTHING_ANGLE,
    grouping: Optional[GroupingStrategy] = None
) -> np.ndarray:
    """
    Recompute vertex normals with the given weighting and smoothing angle.

    Args:
        positions: Sequence of N 3D positions, duplicates allowed
        triangles: Flat index sequence (length divisible by 3) or Mx3 array
        mode: Weighting mode
        smoothing_angle: Hard-edge threshold in degrees
        grouping: Position equality strategy (exact by default); ignored
            for UNWEIGHTED

    Returns:
        Nx3 float64 array of unit-length or zero normals

    Raises:
        InvalidInputError: on malformed mesh data or parameters
    """
    mode = NormalCalculationMode.parse(mode)
    try:
        smoothing_angle = float(smoothing_angle)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Smoothing angle must be a number, got {smoothing_angle!r}") from None
    if not np.isfinite(smoothing_angle):
        raise InvalidInputError(f"Smoothing angle must be finite, got {smoothing_angle}")

    positions, triangles = validate_mesh_arrays(positions, triangles)
    logger.debug(
        f"Recalculating normals: {len(positions)} vertices, {len(triangles)} triangles, "
        f"mode={mode.value}, smoothing_angle={smoothing_angle}"
    )

    if mode is NormalCalculationMode.UNWEIGHTED:
        return compute_smooth_vertex_normals(positions, triangles)

    grouping = grouping or ExactGrouping()
    face_normals, reference_normals = compute_face_normals(positions, triangles)
    group_ids = grouping.group_ids(positions)

    return smooth_position_groups(
        positions,
        triangles,
        face_normals,
        reference_normals,
        group_ids,
        mode,
        smoothing_angle,
    )


class NormalsCalculator:
    """
    Stateless normals service.

    Holds only the calculation parameters; every call works on fresh
    copies of the input arrays.
    """

    def __init__(
        self,
        mode: Union[NormalCalculationMode, str] = NormalCalculationMode.AREA_AND_ANGLE_WEIGHTED,
        smoothing_angle: float = DEFAULT_SMOOTHING_ANGLE,
        grouping: Optional[GroupingStrategy] = None
    ):
        self.mode = NormalCalculationMode.parse(mode)
        self.smoothing_angle = smoothing_angle
        self.grouping = grouping or ExactGrouping()

    def calculate(self, positions, triangles) -> np.ndarray:
        """Recompute normals for raw position and index arrays."""
        return recalc_weighted_normals(
            positions,
            triangles,
            mode=self.mode,
            smoothing_angle=self.smoothing_angle,
            grouping=self.grouping,
        )

    def calculate_for_mesh(self, mesh: trimesh.Trimesh) -> np.ndarray:
        """
        Recompute normals for a trimesh mesh.

        Args:
            mesh: Mesh whose vertices are the vertex entries (load it with
                process=False to keep seam duplicates)

        Returns:
            Nx3 array of normals aligned with mesh.vertices
        """
        logger.info(
            f"Computing {self.mode.value} normals for {len(mesh.vertices)} vertices, "
            f"{len(mesh.faces)} faces (smoothing angle {self.smoothing_angle})"
        )
        return self.calculate(mesh.vertices, mesh.faces)

    def __repr__(self) -> str:
        return (f"NormalsCalculator(mode={self.mode.value!r}, "
                f"smoothing_angle={self.smoothing_angle}, grouping={self.grouping!r})")
