"""
Cuboid Voxelizer
================

Converts triangle meshes into compact sets of axis-aligned cuboids for
cuboid/bone model formats such as Minecraft Bedrock geometry.

Key Features:
- Exact triangle/box intersection (Separating Axis Theorem) with Numba JIT
- Surface voxelization with deterministic boundary ownership
- Greedy cuboid merging into an exact, non-overlapping partition
- Per-mesh and per-triangle-chunk parallelism
- Export to Bedrock .geo.json (one bone per mesh)

Example Usage:
    from cuboid_voxelizer import CuboidGenerator

    generator = CuboidGenerator(scale=16)
    generator.load_file("statue.obj")
    generator.generate()
    generator.export_geometry("statue.geo.json")
"""

__version__ = "1.0.0"
__author__ = "Cuboid Voxelizer Team"

from .errors import VoxelizerError, InvalidMeshError, ResourceLimitError, MeshLoadError
from .intersect import ContactRule, triangle_box_intersect
from .voxelizer import Mesh, VoxelSet, Voxelizer, estimate_candidate_cells, validate_scale
from .greedy_mesh import Cuboid, GreedyMesher, NaiveMesher
from .pipeline import Group, PipelineConfig, PipelineResult, VoxelPipeline
from .ingestion import MeshLoader
from .generator import CuboidGenerator, BatchProcessor, FileInfo, ConvertResult

__all__ = [
    "VoxelizerError",
    "InvalidMeshError",
    "ResourceLimitError",
    "MeshLoadError",
    "ContactRule",
    "triangle_box_intersect",
    "Mesh",
    "VoxelSet",
    "Voxelizer",
    "estimate_candidate_cells",
    "validate_scale",
    "Cuboid",
    "GreedyMesher",
    "NaiveMesher",
    "Group",
    "PipelineConfig",
    "PipelineResult",
    "VoxelPipeline",
    "MeshLoader",
    "CuboidGenerator",
    "BatchProcessor",
    "FileInfo",
    "ConvertResult",
]
