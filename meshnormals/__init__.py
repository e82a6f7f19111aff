# Weighted vertex normal recalculation for triangle meshes
from meshnormals.normals_calculator import (
    recalc_weighted_normals,
    compute_face_normals,
    compute_smooth_vertex_normals,
    smoothing_contribution_counts,
    safe_normalize,
    vector_angles,
    validate_mesh_arrays,
    NormalsCalculator,
    NormalCalculationMode,
    InvalidInputError,
    DEFAULT_SMOOTHING_ANGLE,
)
from meshnormals.position_grouping import (
    build_position_groups,
    find_split_vertices,
    get_grouping,
    PositionGroup,
    GroupingStrategy,
    ExactGrouping,
    GridGrouping,
    ToleranceGrouping,
)
from meshnormals.normals_analysis import (
    NormalsAnalyzer,
    NormalsDiagnostics,
    analyze_normals,
    build_normal_segments,
    save_segments,
    NormalSegments,
)
from meshnormals.mesh_loader import MeshLoader, load_mesh_file, LoadResult, apply_normals, save_normals
from meshnormals.config import NormalsConfig, DEFAULT_CONFIG

__version__ = "1.0.0"

__all__ = [
    # Calculator
    'recalc_weighted_normals',
    'compute_face_normals',
    'compute_smooth_vertex_normals',
    'smoothing_contribution_counts',
    'safe_normalize',
    'vector_angles',
    'validate_mesh_arrays',
    'NormalsCalculator',
    'NormalCalculationMode',
    'InvalidInputError',
    'DEFAULT_SMOOTHING_ANGLE',
    # Position grouping
    'build_position_groups',
    'find_split_vertices',
    'get_grouping',
    'PositionGroup',
    'GroupingStrategy',
    'ExactGrouping',
    'GridGrouping',
    'ToleranceGrouping',
    # Analysis
    'NormalsAnalyzer',
    'NormalsDiagnostics',
    'analyze_normals',
    'build_normal_segments',
    'save_segments',
    'NormalSegments',
    # Loading
    'MeshLoader',
    'load_mesh_file',
    'LoadResult',
    'apply_normals',
    'save_normals',
    # Config
    'NormalsConfig',
    'DEFAULT_CONFIG',
]
