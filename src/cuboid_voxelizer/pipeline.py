"""
Voxel Pipeline

Fans voxelization and greedy meshing out over every mesh of a model and
aggregates the results into named groups (bones) plus running totals.

Meshes are independent units of work. Each one is voxelized and meshed
on a worker thread; results are reduced in the calling thread (group
list append, integer sums), so no shared state is mutated concurrently.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union
import logging
import time

from .errors import ResourceLimitError
from .greedy_mesh import Cuboid, GreedyMesher, NaiveMesher
from .intersect import ContactRule
from .voxelizer import Mesh, Voxelizer, estimate_candidate_cells, validate_scale

logger = logging.getLogger(__name__)

Mesher = Union[GreedyMesher, NaiveMesher]


@dataclass
class PipelineConfig:
    """
    Settings for a pipeline run.

    Attributes:
        scale: Voxels per world unit
        contact_rule: Ownership of boundary contacts in the SAT test
        mesh_workers: Threads processing meshes concurrently
        triangle_workers: Threads per mesh for triangle chunks
        chunk_size: Triangles per rasterization chunk
        preserve_order: Return groups in input mesh order
        max_candidate_cells: Per-mesh limit on cells tested (None = unbounded)
    """

    scale: float = 1.0
    contact_rule: ContactRule = ContactRule.BEHIND
    mesh_workers: int = 4
    triangle_workers: int = 1
    chunk_size: int = 4096
    preserve_order: bool = True
    max_candidate_cells: Optional[int] = None

    def __post_init__(self):
        self.scale = validate_scale(self.scale)
        self.contact_rule = ContactRule(self.contact_rule)
        if self.mesh_workers < 1 or self.triangle_workers < 1:
            raise ValueError("Worker counts must be at least 1")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if self.max_candidate_cells is not None and self.max_candidate_cells < 1:
            raise ValueError("max_candidate_cells must be positive or None")


@dataclass
class Group:
    """A named bone holding the cuboids of one source mesh."""
    name: str
    cuboids: List[Cuboid]
    pivot: Tuple[int, int, int] = (0, 0, 0)
    voxel_count: int = 0

    @property
    def cuboid_count(self) -> int:
        return len(self.cuboids)

    def to_dict(self) -> dict:
        """Bone entry of the geometry file."""
        return {
            "name": self.name,
            "pivot": list(self.pivot),
            "cubes": [c.to_dict() for c in self.cuboids],
        }


@dataclass
class PipelineResult:
    """Groups produced for a model plus aggregate counters."""
    groups: List[Group] = field(default_factory=list)
    total_voxels: int = 0
    total_cuboids: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.groups


class VoxelPipeline:
    """
    Voxelize and mesh a list of meshes.

    Example:
        pipeline = VoxelPipeline(PipelineConfig(scale=16))
        result = pipeline.run(meshes)
        print(result.total_voxels, result.total_cuboids)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        mesher: Optional[Mesher] = None,
        **overrides
    ):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline settings (defaults when omitted)
            mesher: Voxel set to cuboid strategy (default: GreedyMesher)
            **overrides: Individual PipelineConfig fields, used when no
                config object is given
        """
        if config is None:
            config = PipelineConfig(**overrides)
        elif overrides:
            raise TypeError("Pass either a config or keyword overrides, not both")
        self.config = config
        self._voxelizer = Voxelizer(
            scale=config.scale,
            contact_rule=config.contact_rule,
            workers=config.triangle_workers,
            chunk_size=config.chunk_size
        )
        self._mesher = mesher if mesher is not None else GreedyMesher()

    @property
    def scale(self) -> float:
        return self.config.scale

    def check_resources(self, mesh: Mesh):
        """
        Enforce the configured candidate cell limit for a mesh.

        Raises:
            ResourceLimitError: If rasterizing the mesh would exceed it
        """
        limit = self.config.max_candidate_cells
        if limit is None:
            return
        mesh.validate()
        cells = estimate_candidate_cells(mesh, self.scale, self.config.contact_rule)
        if cells > limit:
            raise ResourceLimitError(
                f"Mesh '{mesh.name}' needs {cells} candidate cells at scale "
                f"{self.scale:g}, limit is {limit}"
            )

    def process_mesh(self, mesh: Mesh) -> Optional[Group]:
        """
        Voxelize and mesh a single mesh.

        Returns:
            Group for the mesh, or None when it produced no voxels
        """
        if mesh.is_empty:
            return None

        self.check_resources(mesh)
        voxels = self._voxelizer.voxelize(mesh)
        if len(voxels) == 0:
            return None

        cuboids = self._mesher.mesh(voxels)
        logger.debug(
            "Meshed '%s': %d voxels -> %d cuboids", mesh.name, len(voxels), len(cuboids)
        )
        return Group(name=mesh.name, cuboids=cuboids, voxel_count=len(voxels))

    def run(self, meshes: Sequence[Mesh]) -> PipelineResult:
        """
        Process every mesh and aggregate the groups.

        Args:
            meshes: Meshes of one model

        Returns:
            PipelineResult with groups and totals
        """
        start = time.perf_counter()
        finished: List[Tuple[int, Group]] = []

        if self.config.mesh_workers > 1 and len(meshes) > 1:
            with ThreadPoolExecutor(
                max_workers=self.config.mesh_workers,
                thread_name_prefix="pipeline"
            ) as pool:
                futures = {
                    pool.submit(self.process_mesh, mesh): index
                    for index, mesh in enumerate(meshes)
                }
                for future in as_completed(futures):
                    group = future.result()
                    if group is not None:
                        finished.append((futures[future], group))
        else:
            for index, mesh in enumerate(meshes):
                group = self.process_mesh(mesh)
                if group is not None:
                    finished.append((index, group))

        if self.config.preserve_order:
            finished.sort(key=lambda item: item[0])

        result = PipelineResult()
        for _, group in finished:
            result.groups.append(group)
            result.total_voxels += group.voxel_count
            result.total_cuboids += group.cuboid_count

        skipped = len(meshes) - len(result.groups)
        if skipped:
            logger.info("Skipped %d mesh(es) without voxels", skipped)
        logger.debug(
            "Pipeline: %d meshes -> %d groups, %d voxels, %d cuboids in %.3fs",
            len(meshes), len(result.groups), result.total_voxels,
            result.total_cuboids, time.perf_counter() - start
        )
        return result
