"""
Mesh Data Structures and Voxelization Engine

This module provides:
- Mesh: A named, triangulated, single-indexed surface mesh
- VoxelSet: The set of grid cells touched by one mesh
- Voxelizer: Engine rasterizing mesh triangles into a VoxelSet

A cell (x, y, z) covers the cube centered at (cell + 0.5) / scale with
half-extent 0.5 / scale. Only cells the surface touches are emitted; the
interior of a closed mesh is not filled.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Set, Tuple
import logging
import math
import time
import numpy as np
from numba import njit

from .errors import InvalidMeshError
from .intersect import ContactRule, _triangle_box_intersect, _BEHIND

logger = logging.getLogger(__name__)

Cell = Tuple[int, int, int]

# Corner bit layout: index = x + 2y + 4z. Every face is wound
# counter-clockwise when seen from outside the box.
_BOX_TRIANGLES = np.array([
    0, 2, 1, 1, 2, 3,  # -Z
    4, 5, 6, 5, 7, 6,  # +Z
    0, 1, 4, 1, 5, 4,  # -Y
    2, 6, 3, 3, 6, 7,  # +Y
    0, 4, 2, 2, 4, 6,  # -X
    1, 3, 5, 3, 7, 5,  # +X
], dtype=np.int64)


def validate_scale(scale: float) -> float:
    """
    Check that a scale is a positive, finite number.

    Returns:
        The scale as a float

    Raises:
        ValueError: If the scale is unusable
    """
    try:
        value = float(scale)
    except (TypeError, ValueError):
        raise ValueError(f"Scale must be a number, got {scale!r}")
    if not math.isfinite(value) or value <= 0.0:
        raise ValueError(f"Scale must be positive and finite, got {scale!r}")
    return value


@dataclass
class Mesh:
    """
    Triangulated surface mesh as handed over by a loader.

    Positions may be given flat (x0, y0, z0, x1, ...) or as an (N, 3)
    array; indices are flat, every three consecutive entries forming
    one triangle.
    """

    name: str
    positions: np.ndarray
    indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))

    def __post_init__(self):
        positions = np.asarray(self.positions, dtype=np.float64)
        if positions.ndim == 1:
            if positions.size % 3 != 0:
                raise InvalidMeshError(
                    f"Mesh '{self.name}': position buffer length {positions.size} "
                    "is not a multiple of 3"
                )
            positions = positions.reshape(-1, 3)
        elif positions.ndim != 2 or positions.shape[1] != 3:
            raise InvalidMeshError(
                f"Mesh '{self.name}': positions must be flat or shape (N, 3)"
            )
        self.positions = np.ascontiguousarray(positions)
        self.indices = np.ascontiguousarray(
            np.asarray(self.indices, dtype=np.int64).reshape(-1)
        )

    @classmethod
    def from_box(
        cls,
        name: str,
        lo: Tuple[float, float, float],
        hi: Tuple[float, float, float]
    ) -> "Mesh":
        """
        Build a closed axis-aligned box of 12 outward-facing triangles.

        Args:
            name: Mesh name
            lo: Minimum corner
            hi: Maximum corner
        """
        corners = np.array([
            [hi[0] if i & 1 else lo[0],
             hi[1] if i & 2 else lo[1],
             hi[2] if i & 4 else lo[2]]
            for i in range(8)
        ], dtype=np.float64)
        return cls(name, corners, _BOX_TRIANGLES.copy())

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def is_empty(self) -> bool:
        """True when the mesh has no index data."""
        return len(self.indices) == 0

    @property
    def triangles(self) -> np.ndarray:
        """Index buffer viewed as (T, 3)."""
        return self.indices.reshape(-1, 3)

    def validate(self):
        """
        Check buffer consistency before handing the mesh to compiled code.

        Raises:
            InvalidMeshError: On a ragged index buffer, out-of-range
                indices or non-finite positions
        """
        if len(self.indices) % 3 != 0:
            raise InvalidMeshError(
                f"Mesh '{self.name}': index buffer length {len(self.indices)} "
                "is not a multiple of 3"
            )
        if len(self.indices) == 0:
            return
        low = int(self.indices.min())
        high = int(self.indices.max())
        if low < 0 or high >= self.vertex_count:
            raise InvalidMeshError(
                f"Mesh '{self.name}': index out of range "
                f"[{low}, {high}] for {self.vertex_count} vertices"
            )
        if not np.all(np.isfinite(self.positions)):
            raise InvalidMeshError(f"Mesh '{self.name}': non-finite vertex position")


class VoxelSet:
    """
    Unique set of integer cells for one mesh.

    Cells are stored as a row-unique (N, 3) int64 array. Membership tests
    go through a lazily built Python set. Iteration order is unspecified;
    use sorted_cells() for a deterministic scan order.
    """

    def __init__(self, cells: Optional[np.ndarray] = None):
        if cells is None or len(cells) == 0:
            self._cells = np.zeros((0, 3), dtype=np.int64)
        else:
            cells = np.asarray(cells, dtype=np.int64).reshape(-1, 3)
            self._cells = np.unique(cells, axis=0)
        self._lookup: Optional[Set[Cell]] = None

    @classmethod
    def from_cells(cls, cells: Iterable[Cell]) -> "VoxelSet":
        """Build from an iterable of (x, y, z) tuples."""
        return cls(np.array(list(cells), dtype=np.int64).reshape(-1, 3))

    @classmethod
    def union(cls, parts: List[np.ndarray]) -> "VoxelSet":
        """Merge per-triangle or per-chunk emissions; duplicates collapse."""
        parts = [p for p in parts if len(p) > 0]
        if not parts:
            return cls()
        return cls(np.concatenate(parts, axis=0))

    @property
    def cells(self) -> np.ndarray:
        """The unique cells as an (N, 3) int64 array."""
        return self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[Cell]:
        for x, y, z in self._cells:
            yield (int(x), int(y), int(z))

    def __contains__(self, cell) -> bool:
        return tuple(int(c) for c in cell) in self.as_set()

    def __eq__(self, other) -> bool:
        if not isinstance(other, VoxelSet):
            return NotImplemented
        return np.array_equal(self._cells, other._cells)

    def __repr__(self) -> str:
        return f"VoxelSet({len(self)} cells)"

    def as_set(self) -> Set[Cell]:
        """Return the cells as a Python set of tuples."""
        if self._lookup is None:
            self._lookup = set(iter(self))
        return self._lookup

    def sorted_cells(self) -> np.ndarray:
        """Cells ordered by (y, z, x) ascending."""
        c = self._cells
        order = np.lexsort((c[:, 0], c[:, 2], c[:, 1]))
        return c[order]

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Get (min_xyz, max_xyz) with an exclusive upper bound."""
        if len(self._cells) == 0:
            zero = np.zeros(3, dtype=np.int64)
            return zero, zero.copy()
        return self._cells.min(axis=0), self._cells.max(axis=0) + 1


@njit(cache=True, nogil=True)
def _rasterize_triangles(
    positions: np.ndarray,
    triangles: np.ndarray,
    scale: float,
    rule: int
) -> np.ndarray:
    """
    Emit every cell touched by a batch of triangles.

    Args:
        positions: (N, 3) float64 vertex positions
        triangles: (T, 3) int64 vertex indices
        scale: Voxels per world unit
        rule: ContactRule value

    Returns:
        (K, 3) int64 cells, possibly with duplicates across triangles
    """
    half = 0.5 / scale

    out = np.empty((64, 3), dtype=np.int64)
    count = 0
    center = np.empty(3, dtype=np.float64)
    lo = np.empty(3, dtype=np.int64)
    hi = np.empty(3, dtype=np.int64)

    for t in range(triangles.shape[0]):
        v0 = positions[triangles[t, 0]]
        v1 = positions[triangles[t, 1]]
        v2 = positions[triangles[t, 2]]

        # Bounding box in grid units -> inclusive cell range
        for a in range(3):
            t_min = min(v0[a], v1[a], v2[a]) * scale
            t_max = max(v0[a], v1[a], v2[a]) * scale
            lo[a] = np.int64(np.floor(t_min))
            hi[a] = np.int64(np.ceil(t_max))
            if rule == _BEHIND and lo[a] == t_min:
                lo[a] -= 1  # The cell behind a grid-aligned face

        for x in range(lo[0], hi[0] + 1):
            center[0] = (x + 0.5) / scale
            for y in range(lo[1], hi[1] + 1):
                center[1] = (y + 0.5) / scale
                for z in range(lo[2], hi[2] + 1):
                    center[2] = (z + 0.5) / scale
                    if not _triangle_box_intersect(v0, v1, v2, center, half, rule):
                        continue
                    if count == out.shape[0]:
                        grown = np.empty((count * 2, 3), dtype=np.int64)
                        grown[:count] = out[:count]
                        out = grown
                    out[count, 0] = x
                    out[count, 1] = y
                    out[count, 2] = z
                    count += 1

    return out[:count]


def estimate_candidate_cells(
    mesh: Mesh,
    scale: float,
    rule: ContactRule = ContactRule.BEHIND
) -> int:
    """
    Count the cells the rasterizer would test for a mesh.

    Cost of voxelization is proportional to this number, which makes it
    the natural guard against scale/geometry combinations that would
    exhaust memory or time.

    Args:
        mesh: Mesh to inspect (must be valid)
        scale: Voxels per world unit
        rule: Contact rule, which affects range widening

    Returns:
        Sum over triangles of their candidate cell range volume
    """
    if mesh.is_empty:
        return 0

    points = mesh.positions[mesh.triangles] * scale  # (T, 3, 3)
    t_min = points.min(axis=1)
    t_max = points.max(axis=1)
    lo = np.floor(t_min)
    hi = np.ceil(t_max)
    if rule == ContactRule.BEHIND:
        lo = lo - (lo == t_min)

    extent = (hi - lo + 1).astype(np.float64)
    return int(np.prod(extent, axis=1).sum())


class Voxelizer:
    """
    Engine for converting triangle meshes to voxel sets.

    Triangles are rasterized independently: each one tests the cells of
    its bounding range against the SAT kernel. Work is split into
    chunks of triangles that may run on a thread pool (the compiled
    kernel releases the GIL); the chunk results are merged with a set
    union, so chunking never changes the output.
    """

    def __init__(
        self,
        scale: float = 1.0,
        contact_rule: ContactRule = ContactRule.BEHIND,
        workers: int = 1,
        chunk_size: int = 4096
    ):
        """
        Initialize the voxelizer.

        Args:
            scale: Voxels per world unit (positive, finite)
            contact_rule: Ownership of boundary contacts
            workers: Threads used for triangle chunks (1 = inline)
            chunk_size: Triangles per chunk
        """
        self.scale = validate_scale(scale)
        self.contact_rule = ContactRule(contact_rule)
        self.workers = max(1, int(workers))
        self.chunk_size = max(1, int(chunk_size))

    @property
    def voxel_size(self) -> float:
        """World-space edge length of one voxel."""
        return 1.0 / self.scale

    def voxelize(self, mesh: Mesh) -> VoxelSet:
        """
        Rasterize a mesh into the set of cells its surface touches.

        Args:
            mesh: Mesh to voxelize

        Returns:
            VoxelSet (empty for a mesh without triangles)

        Raises:
            InvalidMeshError: If the mesh buffers are inconsistent
        """
        mesh.validate()
        if mesh.is_empty:
            return VoxelSet()

        start = time.perf_counter()
        triangles = mesh.triangles
        chunks = [
            triangles[i:i + self.chunk_size]
            for i in range(0, len(triangles), self.chunk_size)
        ]

        rule = int(self.contact_rule)

        def rasterize(chunk: np.ndarray) -> np.ndarray:
            return _rasterize_triangles(mesh.positions, chunk, self.scale, rule)

        if self.workers > 1 and len(chunks) > 1:
            with ThreadPoolExecutor(
                max_workers=self.workers,
                thread_name_prefix="voxelizer"
            ) as pool:
                parts = list(pool.map(rasterize, chunks))
        else:
            parts = [rasterize(chunk) for chunk in chunks]

        voxels = VoxelSet.union(parts)
        logger.debug(
            "Voxelized '%s': %d triangles -> %d voxels in %.3fs",
            mesh.name, mesh.triangle_count, len(voxels),
            time.perf_counter() - start
        )
        return voxels
