"""
Exception types raised by the voxelization pipeline.
"""


class VoxelizerError(Exception):
    """Base class for all cuboid voxelizer errors."""


class InvalidMeshError(VoxelizerError, ValueError):
    """A mesh's position or index buffer is malformed."""


class ResourceLimitError(VoxelizerError, RuntimeError):
    """Rasterization would test more cells than the configured limit."""


class MeshLoadError(VoxelizerError, IOError):
    """A mesh file could not be read or contained no triangles."""
