"""
Mesh Ingestion Module

This module handles:
- Loading mesh files (OBJ, and anything else trimesh can read)
- Splitting a file into named, triangulated meshes, one per scene node
- Vertex and face statistics for analysis
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
import logging
import numpy as np
import trimesh

from .errors import MeshLoadError
from .voxelizer import Mesh

logger = logging.getLogger(__name__)


class MeshLoader:
    """
    Mesh file loader producing the pipeline's Mesh objects.

    Key features:
    - One Mesh per object (scene node), named after it, in file order
    - Scene transforms baked into positions
    - Positions kept as loaded (no merging or reordering of vertices)
    """

    def __init__(self):
        """Initialize an empty loader."""
        self._meshes: List[Mesh] = []
        self._path: Optional[Path] = None

    def load(self, mesh_path: Union[str, Path]) -> "MeshLoader":
        """
        Load a mesh file.

        Args:
            mesh_path: Path to the mesh file (OBJ recommended)

        Returns:
            self for method chaining

        Raises:
            MeshLoadError: If the file is missing, unreadable, or has
                no triangle geometry
        """
        mesh_path = Path(mesh_path)
        if not mesh_path.exists():
            raise MeshLoadError(f"Mesh not found: {mesh_path}")

        try:
            scene = trimesh.load(
                str(mesh_path),
                force="scene",
                process=False,
                split_objects=True,
                group_material=False
            )
            object_order = self._object_order(mesh_path)
        except (ValueError, KeyError, IndexError, OSError) as e:
            raise MeshLoadError(f"Failed to load {mesh_path.name}: {e}") from e

        meshes = self._meshes_from_scene(scene, object_order)
        if not meshes:
            raise MeshLoadError(f"No triangle geometry in {mesh_path.name}")

        self._meshes = meshes
        self._path = mesh_path
        logger.debug(
            "Loaded %s: %d meshes, %d vertices, %d faces",
            mesh_path.name, len(meshes), self.vertex_count, self.face_count
        )
        return self

    def load_from_meshes(self, meshes: Sequence[Mesh]) -> "MeshLoader":
        """
        Use in-memory meshes instead of a file.

        Args:
            meshes: Meshes to hand to the pipeline

        Returns:
            self for method chaining
        """
        self._meshes = list(meshes)
        self._path = None
        return self

    @staticmethod
    def _object_order(mesh_path: Path) -> Dict[str, int]:
        """Map OBJ object names to their position in the file."""
        order: Dict[str, int] = {}
        if mesh_path.suffix.lower() != ".obj":
            return order

        with open(mesh_path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                if line.startswith("o "):
                    order.setdefault(line[2:].strip(), len(order))
        return order

    @staticmethod
    def _meshes_from_scene(
        scene: trimesh.Scene,
        object_order: Optional[Dict[str, int]] = None
    ) -> List[Mesh]:
        """
        Flatten a scene into world-space meshes.

        Meshes named in object_order come first, in that order; the rest
        keep the scene's node order.
        """
        object_order = object_order or {}
        unordered = len(object_order)
        meshes = []
        for node in scene.graph.nodes_geometry:
            transform, geometry_name = scene.graph[node]
            geometry = scene.geometry[geometry_name]
            if not isinstance(geometry, trimesh.Trimesh) or len(geometry.faces) == 0:
                continue

            positions = np.asarray(geometry.vertices, dtype=np.float64)
            if not np.allclose(transform, np.eye(4)):
                positions = trimesh.transform_points(positions, transform)

            rank = object_order.get(str(node), object_order.get(str(geometry_name), unordered))
            meshes.append((rank, Mesh(
                name=str(node),
                positions=positions,
                indices=np.asarray(geometry.faces, dtype=np.int64).reshape(-1)
            )))

        meshes.sort(key=lambda item: item[0])
        return [mesh for _, mesh in meshes]

    @property
    def meshes(self) -> List[Mesh]:
        """Get the loaded meshes."""
        return self._meshes

    @property
    def path(self) -> Optional[Path]:
        """Path of the loaded file, if loaded from disk."""
        return self._path

    @property
    def vertex_count(self) -> int:
        """Total vertices across all meshes."""
        return sum(m.vertex_count for m in self._meshes)

    @property
    def face_count(self) -> int:
        """Total triangles across all meshes."""
        return sum(m.triangle_count for m in self._meshes)
