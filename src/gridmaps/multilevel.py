"""Grid maps whose cells hold an ordered list of layered values."""

from __future__ import annotations

import copy
from typing import Any, Callable, List, Sequence, Tuple, TypeVar

from .config import GridConfig
from .grid_map import GridMap
from .level_list import LevelList
from .local_map import LocalMapData
from .types import Index, StorageKind

T = TypeVar("T")


class MultiLevelGridMap(GridMap[LevelList[T]]):
    """A grid where every cell is a ``LevelList`` of values.

    Models overhangs and multiple floors: one cell may hold several layers
    at different heights. An empty ``LevelList`` is the default value.
    """

    def __init__(
        self,
        num_cells: Sequence[int] = (0, 0),
        resolution: Sequence[float] = (1.0, 1.0),
        data: LocalMapData | None = None,
        storage: StorageKind | str = StorageKind.DENSE,
        key: Callable[[T], Any] | None = None,
    ):
        super().__init__(num_cells, resolution, LevelList(key=key), data, storage)
        self._key = key

    @classmethod
    def from_config(cls, config: GridConfig, **kwargs: Any) -> "MultiLevelGridMap":
        return cls(
            config.num_cells,
            config.resolution[:2],
            config.make_local_map_data(),
            storage=config.storage,
            **kwargs,
        )

    def get_cell_extents(self) -> Tuple[Index, Index] | None:
        """Inclusive (min, max) index box of all non-empty cells, None if empty."""
        xs = []
        ys = []
        for idx, cell in self.items():
            if len(cell):
                xs.append(idx.x)
                ys.append(idx.y)
        if not xs:
            return None
        return Index(min(xs), min(ys)), Index(max(xs), max(ys))

    def copy(self) -> "MultiLevelGridMap[T]":
        """Copy of geometry, frame data and values. Shares nothing with self."""
        out: MultiLevelGridMap[T] = MultiLevelGridMap(
            self.num_cells, self.resolution, self.local_map_data.copy(),
            storage=self.storage_kind, key=self._key)
        for idx, cell in self.items():
            if len(cell):
                target = out.at(idx)
                for value in cell:
                    target.insert(copy.deepcopy(value))
        return out

    def _cell_state(self, cell: LevelList[T]) -> List[T]:
        return list(cell)

    def _restore_cell(self, idx: Index, values: List[T]) -> None:
        if not values:
            return
        cell = self.at(idx)
        for value in values:
            cell.insert(value)

    def __getstate__(self) -> dict:
        state = super().__getstate__()
        state["key"] = self._key
        return state

    def __setstate__(self, state: dict) -> None:
        self._key = state["key"]
        super().__setstate__(state)
