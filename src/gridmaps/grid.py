"""Grid geometry: conversions between world positions and cell indices."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from . import transform
from .local_map import LocalMap, LocalMapData
from .types import Index


class Grid(LocalMap):
    """A regular 2D grid anchored in a local map frame.

    World positions are mapped into the local frame by the map's offset.
    Cell ``(x, y)`` covers ``[x * res_x, (x + 1) * res_x)`` by
    ``[y * res_y, (y + 1) * res_y)`` of the local frame.
    """

    def __init__(
        self,
        num_cells: Sequence[int] = (0, 0),
        resolution: Sequence[float] = (1.0, 1.0),
        data: LocalMapData | None = None,
    ):
        super().__init__(data)
        self._num_cells = Index(int(num_cells[0]), int(num_cells[1]))
        self._resolution = self._check_resolution(resolution, 2)

    @staticmethod
    def _check_resolution(resolution: Sequence[float], dims: int) -> tuple:
        res = tuple(float(r) for r in resolution)
        if len(res) != dims:
            raise ValueError(f"Expected {dims} resolution values, got {len(res)}")
        if not all(math.isfinite(r) and r > 0 for r in res):
            raise ValueError(f"Resolution must be positive and finite, got {res}")
        return res

    @property
    def num_cells(self) -> Index:
        return self._num_cells

    @property
    def resolution(self) -> tuple:
        return self._resolution

    def set_resolution(self, resolution: Sequence[float]) -> None:
        self._resolution = self._check_resolution(resolution, len(self._resolution))

    def resize(self, num_cells: Sequence[int]) -> None:
        self._num_cells = Index(int(num_cells[0]), int(num_cells[1]))

    def get_size(self) -> np.ndarray:
        """Metric (x, y) extents of the grid."""
        return np.array([
            self._num_cells.x * self._resolution[0],
            self._num_cells.y * self._resolution[1],
        ])

    def in_grid(self, idx: Sequence[int]) -> bool:
        return 0 <= idx[0] < self._num_cells.x and 0 <= idx[1] < self._num_cells.y

    def to_local(self, pos: Sequence[float]) -> np.ndarray:
        return transform.apply(self.local_frame, pos)

    def to_world(self, local_pos: Sequence[float]) -> np.ndarray:
        return transform.apply(transform.invert(self.local_frame), local_pos)

    def to_grid(self, pos: Sequence[float]) -> tuple[bool, Index | None]:
        """Map a world position to the index of the cell containing it.

        Returns:
            ``(True, idx)`` on success, ``(False, None)`` when the position is
            not finite or falls outside the grid.
        """
        ok, idx, _ = self.to_grid_with_diff(pos)
        return ok, idx

    def to_grid_with_diff(
        self, pos: Sequence[float]
    ) -> tuple[bool, Index | None, np.ndarray | None]:
        """Like ``to_grid`` but also return the offset from the cell center."""
        if not transform.is_finite(pos):
            return False, None, None
        local = self.to_local(pos)
        fx = local[0] / self._resolution[0]
        fy = local[1] / self._resolution[1]
        if not (math.isfinite(fx) and math.isfinite(fy)):
            return False, None, None
        idx = Index(math.floor(fx), math.floor(fy))
        if not self.in_grid(idx):
            return False, None, None
        center = np.array([
            (idx.x + 0.5) * self._resolution[0],
            (idx.y + 0.5) * self._resolution[1],
            0.0,
        ])
        return True, idx, local - center

    def from_grid(
        self, idx: Sequence[int], height: float = 0.0, in_world: bool = True
    ) -> tuple[bool, np.ndarray | None]:
        """Position of the center of cell ``idx`` at the given height.

        Args:
            idx: Cell index.
            height: z coordinate in the local frame.
            in_world: If False, return the position in the local frame.
        """
        if not self.in_grid(idx) or not math.isfinite(height):
            return False, None
        local = np.array([
            (idx[0] + 0.5) * self._resolution[0],
            (idx[1] + 0.5) * self._resolution[1],
            float(height),
        ])
        if not in_world:
            return True, local
        return True, self.to_world(local)

    def __getstate__(self) -> dict:
        state = super().__getstate__()
        state["num_cells"] = tuple(self._num_cells)
        state["resolution"] = self._resolution
        return state

    def __setstate__(self, state: dict) -> None:
        super().__setstate__(state)
        self._num_cells = Index(*state["num_cells"])
        self._resolution = tuple(state["resolution"])
