"""
Main CuboidGenerator Class

This is the primary interface for the mesh-to-cuboid pipeline.
It orchestrates:
1. Mesh loading
2. Voxelization (SAT rasterization per triangle)
3. Greedy cuboid meshing
4. Export to Bedrock geometry JSON

Example Usage:
    generator = CuboidGenerator(scale=16)
    generator.load_file("statue.obj")
    generator.generate()
    generator.export_geometry("statue.geo.json")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union
import logging

from .errors import VoxelizerError
from .exporters import GeometryExporter
from .greedy_mesh import GreedyMesher, NaiveMesher
from .ingestion import MeshLoader
from .intersect import ContactRule
from .pipeline import PipelineConfig, PipelineResult, VoxelPipeline
from .voxelizer import Mesh

logger = logging.getLogger(__name__)

GEOMETRY_SUFFIX = ".geo.json"


@dataclass
class FileInfo:
    """Summary of a mesh file at a given scale."""
    path: str
    name: str
    vertices: int
    faces: int
    voxel_count: int
    cube_count: int


@dataclass
class ConvertResult:
    """Outcome of converting one file."""
    success: bool
    message: str
    output_path: Optional[str] = None
    voxel_count: int = 0
    cube_count: int = 0


class CuboidGenerator:
    """
    High-level interface for mesh to cuboid conversion.

    Attributes:
        config: Pipeline settings
        loader: The mesh loader holding the current meshes
        result: The most recent pipeline result
    """

    def __init__(
        self,
        scale: float = 16.0,
        contact_rule: ContactRule = ContactRule.BEHIND,
        mesh_workers: int = 4,
        triangle_workers: int = 1,
        max_candidate_cells: Optional[int] = None,
        naive: bool = False
    ):
        """
        Initialize the CuboidGenerator.

        Args:
            scale: Voxels per world unit
            contact_rule: Ownership of boundary contacts
            mesh_workers: Threads processing meshes concurrently
            triangle_workers: Threads per mesh for triangle chunks
            max_candidate_cells: Per-mesh rasterization limit (None = unbounded)
            naive: Emit one cuboid per voxel instead of greedy merging
        """
        self.config = PipelineConfig(
            scale=scale,
            contact_rule=contact_rule,
            mesh_workers=mesh_workers,
            triangle_workers=triangle_workers,
            max_candidate_cells=max_candidate_cells
        )
        self.naive = naive

        self._loader: Optional[MeshLoader] = None
        self._result: Optional[PipelineResult] = None

    def load_file(self, mesh_path: Union[str, Path]) -> "CuboidGenerator":
        """
        Load a mesh file for conversion.

        Args:
            mesh_path: Path to the mesh (OBJ recommended)

        Returns:
            self for method chaining
        """
        self._loader = MeshLoader().load(mesh_path)
        self._result = None
        return self

    def load_meshes(self, meshes: Sequence[Mesh]) -> "CuboidGenerator":
        """
        Load in-memory meshes.

        Args:
            meshes: Meshes to convert

        Returns:
            self for method chaining
        """
        self._loader = MeshLoader().load_from_meshes(meshes)
        self._result = None
        return self

    def generate(self) -> "CuboidGenerator":
        """
        Voxelize every mesh and merge the voxels into cuboids.

        Returns:
            self for method chaining
        """
        if self._loader is None:
            raise RuntimeError("No mesh loaded. Call load_file() first.")

        mesher = NaiveMesher() if self.naive else GreedyMesher()
        pipeline = VoxelPipeline(self.config, mesher=mesher)
        self._result = pipeline.run(self._loader.meshes)
        return self

    def export_geometry(
        self,
        output_path: Union[str, Path],
        model_name: Optional[str] = None
    ) -> Path:
        """
        Export the generated groups to a Bedrock .geo.json file.

        Args:
            output_path: Output file path
            model_name: Identifier suffix (default: derived from the file name)

        Returns:
            The written path
        """
        if self._result is None:
            self.generate()

        output_path = Path(output_path)
        if model_name is None:
            model_name = output_path.name
            if model_name.endswith(GEOMETRY_SUFFIX):
                model_name = model_name[:-len(GEOMETRY_SUFFIX)]
            else:
                model_name = output_path.stem

        exporter = GeometryExporter()
        return exporter.export(self._result.groups, output_path, model_name)

    def analyze_file(self, mesh_path: Union[str, Path]) -> FileInfo:
        """
        Load and process a file, reporting counts without writing output.

        Args:
            mesh_path: Path to the mesh

        Returns:
            FileInfo with vertex, face, voxel and cube counts
        """
        mesh_path = Path(mesh_path)
        self.load_file(mesh_path)
        self.generate()

        return FileInfo(
            path=str(mesh_path),
            name=mesh_path.name,
            vertices=self._loader.vertex_count,
            faces=self._loader.face_count,
            voxel_count=self.voxel_count,
            cube_count=self.cube_count,
        )

    def convert_file(
        self,
        mesh_path: Union[str, Path],
        output_dir: Union[str, Path],
        model_name: Optional[str] = None
    ) -> ConvertResult:
        """
        Convert a mesh file to <output_dir>/<model>.geo.json.

        Failures are reported in the result rather than raised.

        Args:
            mesh_path: Path to the mesh
            output_dir: Directory for the geometry file
            model_name: Model name (default: the mesh file stem)

        Returns:
            ConvertResult describing the outcome
        """
        mesh_path = Path(mesh_path)
        model_name = model_name or mesh_path.stem

        try:
            self.load_file(mesh_path)
            self.generate()
        except VoxelizerError as e:
            logger.warning("Conversion of %s failed: %s", mesh_path.name, e)
            return ConvertResult(success=False, message=str(e))

        if self._result.is_empty:
            return ConvertResult(success=False, message="No geometry generated")

        output_path = Path(output_dir) / f"{model_name}{GEOMETRY_SUFFIX}"
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            self.export_geometry(output_path, model_name)
        except OSError as e:
            return ConvertResult(success=False, message=f"Failed to write geometry: {e}")

        return ConvertResult(
            success=True,
            message=f"{self.voxel_count} voxels → {self.cube_count} cubes",
            output_path=str(output_path),
            voxel_count=self.voxel_count,
            cube_count=self.cube_count,
        )

    @property
    def meshes(self) -> List[Mesh]:
        """Get the loaded meshes."""
        if self._loader is None:
            return []
        return self._loader.meshes

    @property
    def result(self) -> Optional[PipelineResult]:
        """Get the current pipeline result."""
        return self._result

    @property
    def voxel_count(self) -> int:
        """Get the total number of voxels."""
        if self._result is None:
            return 0
        return self._result.total_voxels

    @property
    def cube_count(self) -> int:
        """Get the total number of cuboids."""
        if self._result is None:
            return 0
        return self._result.total_cuboids

    def get_mesh_stats(self) -> dict:
        """
        Get statistics including greedy meshing effectiveness.

        Returns:
            Dictionary with mesh statistics
        """
        if self._result is None:
            return {"error": "No result"}

        voxels = self._result.total_voxels
        cubes = self._result.total_cuboids
        reduction = (1 - cubes / voxels) * 100 if voxels > 0 else 0

        return {
            "meshes": len(self.meshes),
            "groups": len(self._result.groups),
            "vertex_count": self._loader.vertex_count,
            "face_count": self._loader.face_count,
            "voxel_count": voxels,
            "cube_count": cubes,
            "cuboid_reduction_percent": reduction,
        }


class BatchProcessor:
    """
    Batch conversion for directories of mesh files.

    Use this for converting many models with consistent settings.
    """

    def __init__(self, **generator_kwargs):
        """
        Initialize the batch processor.

        Args:
            **generator_kwargs: Arguments passed to CuboidGenerator
        """
        self.generator_kwargs = generator_kwargs

    def process_directory(
        self,
        input_dir: Union[str, Path],
        output_dir: Union[str, Path],
        pattern: str = "*.obj"
    ) -> List[ConvertResult]:
        """
        Convert all mesh files in a directory.

        Args:
            input_dir: Input directory
            output_dir: Output directory
            pattern: Glob pattern for input files

        Returns:
            One ConvertResult per matched file, in file name order
        """
        input_dir = Path(input_dir)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        results = []

        for mesh_path in sorted(input_dir.glob(pattern)):
            generator = CuboidGenerator(**self.generator_kwargs)
            result = generator.convert_file(mesh_path, output_dir)
            logger.info("%s: %s", mesh_path.name, result.message)
            results.append(result)

        return results
