"""
Greedy Cuboid Meshing with Numba JIT Compilation

This module compresses a voxel set into axis-aligned cuboids. Adjacent
cells are merged into boxes so that every voxel ends up in exactly one
cuboid (a partition, not merely a cover).

Algorithm Overview:
1. Sort: Order cells by (y, z, x) to fix the scan order
2. Grow: From each unclaimed cell grow width (+X), then depth (+Z),
   then height (+Y), accepting a step only if the whole new row, or
   rectangle, is present and unclaimed
3. Claim: Mark the box as used and emit it

This is first-fit greedy. Minimum box decomposition of a polycube is
NP-hard; the greedy pass is deterministic and roughly linear instead.
"""

from typing import Iterator, List, NamedTuple, Tuple
import numpy as np
from numba import njit, types
from numba.typed import Dict

from .voxelizer import VoxelSet


# Claim map key: one (x, y, z) cell
_CELL = types.UniTuple(types.int64, 3)


class Cuboid(NamedTuple):
    """Axis-aligned box of whole voxels."""
    origin: Tuple[int, int, int]     # Minimum cell
    size: Tuple[int, int, int]       # (width, height, depth) along (x, y, z)
    uv: Tuple[int, int] = (0, 0)     # Texture placement placeholder

    @property
    def volume(self) -> int:
        return self.size[0] * self.size[1] * self.size[2]

    def cells(self) -> Iterator[Tuple[int, int, int]]:
        """Iterate every cell the cuboid covers."""
        ox, oy, oz = self.origin
        w, h, d = self.size
        for x in range(ox, ox + w):
            for y in range(oy, oy + h):
                for z in range(oz, oz + d):
                    yield (x, y, z)

    def to_dict(self) -> dict:
        """Plain representation used by the geometry exporter."""
        return {
            "origin": list(self.origin),
            "size": list(self.size),
            "uv": list(self.uv),
        }


@njit(cache=True, nogil=True)
def _is_free(free, x, y, z) -> bool:
    """True if the cell is in the set and not yet claimed."""
    return free.get((x, y, z), False)


@njit(cache=True, nogil=True)
def _merge_runs(order: np.ndarray) -> np.ndarray:
    """
    Greedy box growth over a sparse claim map.

    Args:
        order: (N, 3) unique cells in (y, z, x) scan order

    Returns:
        (M, 6) int64 array of [x, y, z, width, height, depth]
    """
    n = order.shape[0]

    # Present cells map to True until claimed
    free = Dict.empty(key_type=_CELL, value_type=types.boolean)
    for i in range(n):
        free[(order[i, 0], order[i, 1], order[i, 2])] = True

    boxes = np.empty((n, 6), dtype=np.int64)
    count = 0

    for i in range(n):
        x = order[i, 0]
        y = order[i, 1]
        z = order[i, 2]
        if not free[(x, y, z)]:
            continue

        # Width along +X
        width = 1
        while _is_free(free, x + width, y, z):
            width += 1

        # Depth along +Z, one full row at a time
        depth = 1
        while True:
            row_ok = True
            for w in range(width):
                if not _is_free(free, x + w, y, z + depth):
                    row_ok = False
                    break
            if not row_ok:
                break
            depth += 1

        # Height along +Y, one full rectangle at a time
        height = 1
        while True:
            layer_ok = True
            for w in range(width):
                for d in range(depth):
                    if not _is_free(free, x + w, y + height, z + d):
                        layer_ok = False
                        break
                if not layer_ok:
                    break
            if not layer_ok:
                break
            height += 1

        for w in range(width):
            for h in range(height):
                for d in range(depth):
                    free[(x + w, y + h, z + d)] = False

        boxes[count, 0] = x
        boxes[count, 1] = y
        boxes[count, 2] = z
        boxes[count, 3] = width
        boxes[count, 4] = height
        boxes[count, 5] = depth
        count += 1

    return boxes[:count]


class GreedyMesher:
    """
    Greedy cuboid decomposition of voxel sets.

    Presence and claim checks go through a hash map keyed on the cell,
    so memory and time grow with the number of voxels, not with the
    volume of their bounding box.
    """

    def mesh(self, voxels: VoxelSet) -> List[Cuboid]:
        """
        Partition a voxel set into cuboids.

        Args:
            voxels: VoxelSet of one mesh

        Returns:
            Cuboids in scan order; their cells partition the input exactly
        """
        if len(voxels) == 0:
            return []

        order = np.ascontiguousarray(voxels.sorted_cells())
        boxes = _merge_runs(order)

        return [
            Cuboid(
                origin=(int(b[0]), int(b[1]), int(b[2])),
                size=(int(b[3]), int(b[4]), int(b[5])),
            )
            for b in boxes
        ]


class NaiveMesher:
    """
    Naive meshing for comparison/debugging.

    Emits one unit cuboid per voxel, in the same scan order as GreedyMesher.
    """

    def mesh(self, voxels: VoxelSet) -> List[Cuboid]:
        """Generate one cuboid per voxel."""
        return [
            Cuboid(origin=(int(x), int(y), int(z)), size=(1, 1, 1))
            for x, y, z in voxels.sorted_cells()
        ]
