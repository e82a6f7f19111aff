"""
Mesh File Loader

Loads triangle meshes (STL, OBJ, PLY, OFF, GLB/GLTF) using trimesh and
writes recomputed normals back out.

Meshes are loaded without trimesh's processing step: processing merges
duplicate vertices, which would erase the seam entries the normals
calculator treats as separate vertex entries.
"""

from pathlib import Path
from typing import Optional, Tuple
from dataclasses import dataclass
import logging

import numpy as np
import trimesh

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Result of mesh file loading operation."""
    mesh: Optional[trimesh.Trimesh]
    file_path: str
    file_name: str
    file_size_bytes: int
    success: bool
    error_message: Optional[str] = None
    load_time_ms: float = 0.0


class MeshLoader:
    """
    Triangle mesh loader.

    Uses trimesh for parsing; scenes are flattened into a single mesh.
    """

    SUPPORTED_EXTENSIONS = {'.stl', '.obj', '.ply', '.off', '.glb', '.gltf'}

    def __init__(self):
        self._last_result: Optional[LoadResult] = None

    @property
    def last_result(self) -> Optional[LoadResult]:
        """Get the result of the last load operation."""
        return self._last_result

    def is_valid_mesh_file(self, file_path: str) -> Tuple[bool, str]:
        """
        Check if a file looks like a loadable mesh file.

        Args:
            file_path: Path to the file to check

        Returns:
            Tuple of (is_valid, error_message)
        """
        path = Path(file_path)

        if not path.exists():
            return False, f"File does not exist: {file_path}"

        if not path.is_file():
            return False, f"Path is not a file: {file_path}"

        if path.suffix.lower() not in self.SUPPORTED_EXTENSIONS:
            expected = ", ".join(sorted(self.SUPPORTED_EXTENSIONS))
            return False, f"Unsupported file extension: {path.suffix}. Expected one of {expected}"

        if path.stat().st_size == 0:
            return False, "File is empty"

        return True, ""

    def load(self, file_path: str) -> LoadResult:
        """
        Load a mesh file and return a trimesh mesh.

        Args:
            file_path: Path to the mesh file

        Returns:
            LoadResult containing the mesh or error information
        """
        import time
        start_time = time.perf_counter()

        path = Path(file_path)
        file_name = path.name

        is_valid, error_msg = self.is_valid_mesh_file(file_path)
        if not is_valid:
            logger.error(f"Cannot load {file_path}: {error_msg}")
            self._last_result = LoadResult(
                mesh=None,
                file_path=str(path.absolute()),
                file_name=file_name,
                file_size_bytes=0,
                success=False,
                error_message=error_msg
            )
            return self._last_result

        file_size = path.stat().st_size

        try:
            mesh = trimesh.load(
                str(path),
                file_type=path.suffix.lower().lstrip('.'),
                force='mesh',
                process=False
            )

            if not isinstance(mesh, trimesh.Trimesh):
                raise ValueError(f"Expected Trimesh, got {type(mesh).__name__}")

            if len(mesh.faces) == 0:
                logger.warning(f"{file_name} contains no triangles")

            load_time = (time.perf_counter() - start_time) * 1000
            logger.info(f"Loaded {file_name}: {len(mesh.vertices)} vertices, "
                        f"{len(mesh.faces)} faces in {load_time:.0f}ms")

            self._last_result = LoadResult(
                mesh=mesh,
                file_path=str(path.absolute()),
                file_name=file_name,
                file_size_bytes=file_size,
                success=True,
                load_time_ms=load_time
            )

        except Exception as e:
            load_time = (time.perf_counter() - start_time) * 1000
            logger.error(f"Failed to load {file_name}: {e}")
            self._last_result = LoadResult(
                mesh=None,
                file_path=str(path.absolute()),
                file_name=file_name,
                file_size_bytes=file_size,
                success=False,
                error_message=str(e),
                load_time_ms=load_time
            )

        return self._last_result


def load_mesh_file(file_path: str) -> LoadResult:
    """
    Convenience function to load a mesh file.

    Args:
        file_path: Path to the mesh file

    Returns:
        LoadResult containing the mesh or error information
    """
    loader = MeshLoader()
    return loader.load(file_path)


def apply_normals(mesh: trimesh.Trimesh, normals: np.ndarray) -> trimesh.Trimesh:
    """
    Return a copy of the mesh carrying the given vertex normals.

    Args:
        mesh: Source mesh (left untouched)
        normals: Nx3 array aligned with mesh.vertices

    Returns:
        New mesh with vertex_normals set
    """
    normals = np.asarray(normals, dtype=np.float64)
    if normals.shape != mesh.vertices.shape:
        raise ValueError(
            f"Normals shape {normals.shape} does not match vertices shape {mesh.vertices.shape}"
        )
    result = mesh.copy()
    result.vertex_normals = normals
    return result


def save_normals(file_path: str, normals: np.ndarray) -> Path:
    """
    Write a normal array to disk.

    .npy files are written with numpy's binary format; .txt and .csv as
    one "x y z" (or "x,y,z") row per vertex entry.

    Returns:
        Path that was written
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix == '.npy':
        np.save(path, normals)
    elif suffix == '.csv':
        np.savetxt(path, normals, delimiter=',', fmt='%.9g')
    elif suffix == '.txt':
        np.savetxt(path, normals, fmt='%.9g')
    else:
        raise ValueError(f"Unsupported normals file extension: {path.suffix}. Expected .npy, .csv or .txt")

    logger.info(f"Wrote {len(normals)} normals to {path}")
    return path
