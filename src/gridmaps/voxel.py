"""Sparse voxel grid with per-column lazily allocated z-levels."""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

from .config import GridConfig
from .errors import EmptyRay
from .grid_map import GridMap
from .local_map import LocalMapData
from .types import Index, RayElement, StorageKind, VoxelIndex
from .voxel_traversal import compute_ray

T = TypeVar("T")


class VoxelGridMap(GridMap[Dict[int, T]]):
    """3D grid of voxels stored as sparse columns.

    Each (x, y) column is a dict from integer z level to value; columns and
    levels are only allocated when written. The z index is unbounded.
    """

    def __init__(
        self,
        num_cells: Sequence[int] = (0, 0),
        resolution: Sequence[float] = (1.0, 1.0, 1.0),
        data: LocalMapData | None = None,
        default_value: T = 0.0,  # type: ignore[assignment]
    ):
        res = self._check_resolution(resolution, 3)
        super().__init__(num_cells, res[:2], {}, data, StorageKind.SPARSE)
        self._z_resolution = res[2]
        self._voxel_default = default_value

    @classmethod
    def from_config(cls, config: GridConfig, **kwargs: Any) -> "VoxelGridMap":
        if len(config.resolution) != 3:
            raise ValueError("A voxel grid needs three resolution values")
        return cls(config.num_cells, config.resolution, config.make_local_map_data(), **kwargs)

    @property
    def voxel_resolution(self) -> Tuple[float, float, float]:
        return (self.resolution[0], self.resolution[1], self._z_resolution)

    @property
    def voxel_default_value(self) -> T:
        return self._voxel_default

    def set_resolution(self, resolution: Sequence[float]) -> None:
        res = self._check_resolution(resolution, 3)
        super().set_resolution(res[:2])
        self._z_resolution = res[2]

    def _local_to_voxel(self, local: np.ndarray) -> VoxelIndex:
        res = self.voxel_resolution
        return VoxelIndex(
            math.floor(local[0] / res[0]),
            math.floor(local[1] / res[1]),
            math.floor(local[2] / res[2]),
        )

    def to_voxel_grid(self, pos: Sequence[float]) -> Tuple[bool, Optional[VoxelIndex]]:
        """Voxel containing world position ``pos``; ``(False, None)`` outside the grid."""
        ok, idx = self.to_grid(pos)
        if not ok:
            return False, None
        z = self.to_local(pos)[2] / self._z_resolution
        if not math.isfinite(z):
            return False, None
        return True, VoxelIndex(idx.x, idx.y, math.floor(z))

    def from_voxel_grid(self, vidx: Sequence[int], in_world: bool = True
                        ) -> Tuple[bool, Optional[np.ndarray]]:
        """Center of voxel ``vidx``."""
        return self.from_grid(
            (vidx[0], vidx[1]), (int(vidx[2]) + 0.5) * self._z_resolution, in_world)

    def column(self, idx: Sequence[int]) -> Dict[int, T]:
        """Voxels of column ``idx``. Read only; empty if never written."""
        return self.get(idx)

    def get_voxel(self, vidx: Sequence[int]) -> T:
        return self.get((vidx[0], vidx[1])).get(int(vidx[2]), self._voxel_default)

    def set_voxel(self, vidx: Sequence[int], value: T) -> None:
        self.at((vidx[0], vidx[1]))[int(vidx[2])] = value

    def voxels(self) -> Iterator[Tuple[VoxelIndex, T]]:
        """Stored voxels, row-major by column and ascending in z."""
        for idx, column in self.items():
            for z in sorted(column):
                yield VoxelIndex(idx.x, idx.y, z), column[z]

    def count_voxels(self) -> int:
        return sum(len(column) for column in self)

    def compute_ray(self, origin: Sequence[float], end: Sequence[float],
                    ray: Optional[List[RayElement]] = None) -> List[RayElement]:
        """Voxels from world position ``origin`` towards ``end``.

        The ray is clipped at the grid border.

        Raises:
            EmptyRay: if ``origin`` is outside the grid.
        """
        ok, origin_idx = self.to_voxel_grid(origin)
        if not ok:
            raise EmptyRay(f"Ray origin {tuple(origin)} is outside the grid")
        local_origin = self.to_local(origin)
        local_end = self.to_local(end)
        _, center = self.from_voxel_grid(origin_idx, in_world=False)
        return compute_ray(
            self.voxel_resolution, local_origin, origin_idx, center,
            local_end, self._local_to_voxel(local_end), ray, self.num_cells)

    def integrate_ray(
        self,
        origin: Sequence[float],
        end: Sequence[float],
        free_update: Callable[[T], T],
        hit_update: Callable[[T], T],
        ray: Optional[List[RayElement]] = None,
    ) -> List[RayElement]:
        """Update the voxels along a sensor ray.

        ``free_update`` is applied to every traversed voxel except the one
        containing ``end``, which gets ``hit_update``. If the ray left the
        grid before reaching ``end``, all traversed voxels count as free.
        """
        ray = self.compute_ray(origin, end, ray)
        end_idx = self._local_to_voxel(self.to_local(end))
        for element in ray:
            column = self.at((element.x, element.y))
            step = 1 if element.z_last >= element.z_first else -1
            for z in range(element.z_first, element.z_last + step, step):
                value = column.get(z, self._voxel_default)
                if (element.x, element.y, z) == end_idx:
                    column[z] = hit_update(value)
                else:
                    column[z] = free_update(value)
        return ray

    def __getstate__(self) -> dict:
        state = super().__getstate__()
        state["resolution"] = self.voxel_resolution
        state["voxel_default"] = self._voxel_default
        return state

    def __setstate__(self, state: dict) -> None:
        res = tuple(state["resolution"])
        super().__setstate__({**state, "resolution": res[:2]})
        self._z_resolution = res[2]
        self._voxel_default = state["voxel_default"]

    def _cell_state(self, cell: Dict[int, T]) -> List[Tuple[int, T]]:
        return sorted(cell.items())

    def _restore_cell(self, idx: Index, levels: List[Tuple[int, T]]) -> None:
        if levels:
            self.at(idx).update(levels)
