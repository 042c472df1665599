"""Voxel traversal along a ray (3D DDA).

The ray is walked from voxel to voxel by tracking, per axis, the ray
parameter ``t`` in [0, 1] at which the next voxel boundary is crossed and
always stepping the axis whose boundary comes first. Voxels are reported as
``RayElement`` runs: consecutive voxels of the same (x, y) column are folded
into one element's z-run.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from .errors import EmptyRay, InvalidTransform
from .types import RayElement


def _axis_setup(delta: float, origin: float, center: float, res: float
                ) -> Tuple[int, float, float]:
    """Step direction, parameter of the first boundary crossing, and
    parameter increment per voxel along one axis."""
    if delta > 0.0:
        return 1, (center + 0.5 * res - origin) / delta, res / delta
    if delta < 0.0:
        return -1, (center - 0.5 * res - origin) / delta, -res / delta
    return 0, math.inf, math.inf


def _emit(ray: List[RayElement], n: int, x: int, y: int, z: int) -> int:
    """Write element ``n`` of ``ray``, reusing an existing object if possible."""
    if n < len(ray):
        element = ray[n]
        element.x = x
        element.y = y
        element.z_first = z
        element.z_last = z
    else:
        ray.append(RayElement(x, y, z, z))
    return n + 1


def compute_ray(
    resolution: Sequence[float],
    origin: Sequence[float],
    origin_idx: Sequence[int],
    origin_center: Sequence[float],
    end: Sequence[float],
    end_idx: Sequence[int],
    ray: Optional[List[RayElement]] = None,
    num_cells: Optional[Sequence[int]] = None,
) -> List[RayElement]:
    """Enumerate the voxels a ray from ``origin`` to ``end`` passes through.

    All positions are given in the grid's axis-aligned local frame.

    Args:
        resolution: Voxel size along x, y and z.
        origin: Start point of the ray.
        origin_idx: Voxel index containing ``origin``.
        origin_center: Center of the voxel ``origin_idx``.
        end: End point of the ray (the measurement).
        end_idx: Voxel index containing ``end``.
        ray: Optional output list. It is cleared and refilled; its
            ``RayElement`` objects are reused.
        num_cells: Optional (x, y) grid extents. Traversal stops before
            leaving ``[0, num_cells)`` and returns the voxels found so far.

    Returns:
        The ray elements from the origin column towards the end column.
        Consecutive elements differ by one step in exactly one of x or y and
        the second starts at the z its predecessor ended at. Boundaries
        crossed at the same parameter are stepped in x, y, z order.

    Raises:
        InvalidTransform: if an input is not finite.
        EmptyRay: if the origin is outside ``num_cells``, or the ray has zero
            length while the endpoint voxels differ.
    """
    if ray is None:
        ray = []

    res_x, res_y, res_z = (float(r) for r in resolution)
    ox, oy, oz = (float(v) for v in origin)
    cx, cy, cz = (float(v) for v in origin_center)
    ex, ey, ez = (float(v) for v in end)
    if not all(math.isfinite(v) for v in (ox, oy, oz, cx, cy, cz, ex, ey, ez)):
        raise InvalidTransform("Ray end points must be finite")

    x, y, z = (int(v) for v in origin_idx)
    end_x, end_y, end_z = (int(v) for v in end_idx)
    if num_cells is not None:
        nx, ny = int(num_cells[0]), int(num_cells[1])
        if not (0 <= x < nx and 0 <= y < ny):
            raise EmptyRay(f"Ray origin voxel ({x}, {y}, {z}) is outside the grid")

    n = _emit(ray, 0, x, y, z)
    if (x, y, z) == (end_x, end_y, end_z):
        del ray[n:]
        return ray

    dx, dy, dz = ex - ox, ey - oy, ez - oz
    if dx == 0.0 and dy == 0.0 and dz == 0.0:
        del ray[:]
        raise EmptyRay("Zero-length ray between different voxels")

    step_x, t_max_x, t_delta_x = _axis_setup(dx, ox, cx, res_x)
    step_y, t_max_y, t_delta_y = _axis_setup(dy, oy, cy, res_y)
    step_z, t_max_z, t_delta_z = _axis_setup(dz, oz, cz, res_z)

    while x != end_x or y != end_y or z != end_z:
        if t_max_x <= t_max_y and t_max_x <= t_max_z:
            if t_max_x > 1.0:
                break
            x += step_x
            t_max_x += t_delta_x
        elif t_max_y <= t_max_z:
            if t_max_y > 1.0:
                break
            y += step_y
            t_max_y += t_delta_y
        else:
            if t_max_z > 1.0:
                break
            z += step_z
            t_max_z += t_delta_z
            ray[n - 1].z_last = z
            continue

        if num_cells is not None and not (0 <= x < nx and 0 <= y < ny):
            break
        n = _emit(ray, n, x, y, z)

    del ray[n:]
    return ray
