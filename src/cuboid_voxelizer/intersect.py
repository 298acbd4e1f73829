"""
Exact Triangle / Box Intersection

Separating Axis Theorem test between a triangle and an axis-aligned cube.
Thirteen candidate axes are checked and the test rejects on the first one
that separates:

1. The three box face normals (X, Y, Z)
2. The triangle face normal
3. Nine cross products: each triangle edge x each box axis

No epsilon is used. What happens when the triangle only touches the box
boundary is decided by a ContactRule:

- CLOSED: the box is closed, any contact counts as intersecting.
- BEHIND: a boundary contact belongs to the box lying behind the triangle
  (opposite its right-hand face normal). This is the closed test applied to
  the open box and the triangle pushed infinitesimally against its normal,
  so a face lying exactly on a grid plane lands in exactly one layer of cells.
"""

from enum import IntEnum
import numpy as np
from numba import njit


class ContactRule(IntEnum):
    """Tie-break for triangles touching a box only on its boundary."""
    CLOSED = 0
    BEHIND = 1


# Plain ints for use inside compiled kernels
_CLOSED = 0
_BEHIND = 1


@njit(cache=True, nogil=True)
def _separates(p_min: float, p_max: float, r: float, facing: float, rule: int) -> bool:
    """
    Check whether projection interval [p_min, p_max] misses [-r, r].

    `facing` is the triangle normal dotted with the axis; it only matters
    when the intervals merely touch and the rule is BEHIND.
    """
    if p_min > r or p_max < -r:
        return True
    if rule == _BEHIND:
        if p_max == -r and facing >= 0.0:
            return True
        if p_min == r and facing <= 0.0:
            return True
    return False


@njit(cache=True, nogil=True)
def _cross_axis_separates(
    ax: float, ay: float, az: float,
    x0: float, y0: float, z0: float,
    x1: float, y1: float, z1: float,
    x2: float, y2: float, z2: float,
    h: float,
    nx: float, ny: float, nz: float,
    rule: int
) -> bool:
    """Project the triangle and the box onto one edge cross axis."""
    if ax == 0.0 and ay == 0.0 and az == 0.0:
        return False  # Edge parallel to this box axis

    p0 = x0 * ax + y0 * ay + z0 * az
    p1 = x1 * ax + y1 * ay + z1 * az
    p2 = x2 * ax + y2 * ay + z2 * az
    r = h * (abs(ax) + abs(ay) + abs(az))
    facing = nx * ax + ny * ay + nz * az

    return _separates(min(p0, p1, p2), max(p0, p1, p2), r, facing, rule)


@njit(cache=True, nogil=True)
def _triangle_box_intersect(
    v0: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray,
    center: np.ndarray,
    half_size: float,
    rule: int
) -> bool:
    """
    Compiled SAT kernel.

    Args:
        v0, v1, v2: Triangle vertices, arrays of shape (3,)
        center: Box center, array of shape (3,)
        half_size: Half the box edge length
        rule: ContactRule value

    Returns:
        True if the triangle intersects the box
    """
    h = half_size

    # Move the triangle into box-local space
    x0 = v0[0] - center[0]
    y0 = v0[1] - center[1]
    z0 = v0[2] - center[2]
    x1 = v1[0] - center[0]
    y1 = v1[1] - center[1]
    z1 = v1[2] - center[2]
    x2 = v2[0] - center[0]
    y2 = v2[1] - center[1]
    z2 = v2[2] - center[2]

    # Edges
    e0x, e0y, e0z = x1 - x0, y1 - y0, z1 - z0
    e1x, e1y, e1z = x2 - x1, y2 - y1, z2 - z1
    e2x, e2y, e2z = x0 - x2, y0 - y2, z0 - z2

    # Face normal (right-hand winding)
    nx = e0y * e1z - e0z * e1y
    ny = e0z * e1x - e0x * e1z
    nz = e0x * e1y - e0y * e1x

    # 1. Box face normals
    if _separates(min(x0, x1, x2), max(x0, x1, x2), h, nx, rule):
        return False
    if _separates(min(y0, y1, y2), max(y0, y1, y2), h, ny, rule):
        return False
    if _separates(min(z0, z1, z2), max(z0, z1, z2), h, nz, rule):
        return False

    # 2. Triangle normal; a degenerate triangle has none
    if nx != 0.0 or ny != 0.0 or nz != 0.0:
        d = nx * x0 + ny * y0 + nz * z0
        r = h * (abs(nx) + abs(ny) + abs(nz))
        if _separates(d, d, r, nx * nx + ny * ny + nz * nz, rule):
            return False

    # 3. Edge x box axis; for edge e the axes are X x e, Y x e, Z x e
    for ex, ey, ez in ((e0x, e0y, e0z), (e1x, e1y, e1z), (e2x, e2y, e2z)):
        if _cross_axis_separates(0.0, -ez, ey,
                                 x0, y0, z0, x1, y1, z1, x2, y2, z2,
                                 h, nx, ny, nz, rule):
            return False
        if _cross_axis_separates(ez, 0.0, -ex,
                                 x0, y0, z0, x1, y1, z1, x2, y2, z2,
                                 h, nx, ny, nz, rule):
            return False
        if _cross_axis_separates(-ey, ex, 0.0,
                                 x0, y0, z0, x1, y1, z1, x2, y2, z2,
                                 h, nx, ny, nz, rule):
            return False

    return True


def triangle_box_intersect(
    v0,
    v1,
    v2,
    center,
    half_size: float,
    rule: ContactRule = ContactRule.CLOSED
) -> bool:
    """
    Test whether a triangle intersects an axis-aligned cube.

    Args:
        v0, v1, v2: Triangle vertices (any 3-sequence of floats)
        center: Cube center
        half_size: Half of the cube's edge length
        rule: Boundary contact rule (default: closed box)

    Returns:
        True if no separating axis exists
    """
    return bool(_triangle_box_intersect(
        np.asarray(v0, dtype=np.float64),
        np.asarray(v1, dtype=np.float64),
        np.asarray(v2, dtype=np.float64),
        np.asarray(center, dtype=np.float64),
        float(half_size),
        int(rule)
    ))
