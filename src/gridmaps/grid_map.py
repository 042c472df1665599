"""Grid with one stored value per cell."""

from __future__ import annotations

import warnings
from typing import Any, Generic, Iterator, Sequence, Tuple, TypeVar

from . import transform
from .access import GridCellAccess, make_cell_storage
from .errors import DataDiscardedWarning
from .grid import Grid
from .local_map import LocalMapData
from .types import Index, StorageKind

T = TypeVar("T")


class GridMap(Grid, Generic[T]):
    """A grid storing a value of type ``T`` per cell.

    Cells start as copies of ``default_value``. The storage backend is fixed
    at construction (see ``gridmaps.access``).
    """

    def __init__(
        self,
        num_cells: Sequence[int] = (0, 0),
        resolution: Sequence[float] = (1.0, 1.0),
        default_value: T = None,  # type: ignore[assignment]
        data: LocalMapData | None = None,
        storage: StorageKind | str = StorageKind.DENSE,
    ):
        super().__init__(num_cells, resolution, data)
        self._storage: GridCellAccess[T] = make_cell_storage(
            storage, self.num_cells, default_value)

    @property
    def storage_kind(self) -> StorageKind:
        return self._storage.kind

    def get_default_value(self) -> T:
        return self._storage.get_default_value()

    def at(self, *idx: Any) -> T:
        """Mutable cell at ``at(index)`` or ``at(x, y)``.

        Raises:
            OutOfRangeIndex: if the index is outside the grid.
        """
        return self._storage.at(idx[0] if len(idx) == 1 else idx)

    def get(self, *idx: Any) -> T:
        """Read-only cell access that does not allocate sparse cells."""
        return self._storage.get(idx[0] if len(idx) == 1 else idx)

    def set(self, idx: Sequence[int], value: T) -> None:
        self._storage.set(idx, value)

    def items(self) -> Iterator[Tuple[Index, T]]:
        return self._storage.items()

    def __iter__(self) -> Iterator[T]:
        return iter(self._storage)

    def count_populated(self) -> int:
        return self._storage.count_populated()

    def clear(self) -> None:
        self._storage.clear()

    def _warn_discarded(self, discarded: int, operation: str) -> None:
        if discarded:
            warnings.warn(
                f"{operation} discarded {discarded} non-empty cell(s) of map '{self.id}'",
                DataDiscardedWarning,
                stacklevel=3,
            )

    def resize(self, num_cells: Sequence[int]) -> None:
        """Change the number of cells.

        Cells with ``x < min(old_x, new_x)`` and ``y < min(old_y, new_y)``
        keep their index; all others are discarded with a
        ``DataDiscardedWarning`` if they held non-default values.
        """
        discarded = self._storage.resize(num_cells)
        super().resize(num_cells)
        self._warn_discarded(discarded, "resize")

    def move_by(self, delta: Sequence[int]) -> None:
        """Shift the addressable window by ``delta`` cells.

        Content previously at index ``i`` is afterwards at ``i - delta``
        and keeps its world position, since the local frame is translated
        along. Cells leaving the window are discarded with a
        ``DataDiscardedWarning``; uncovered cells hold the default value.
        """
        discarded = self._storage.move_by(delta)
        transform.pretranslate(self.local_frame, [
            -int(delta[0]) * self.resolution[0],
            -int(delta[1]) * self.resolution[1],
            0.0,
        ])
        self._warn_discarded(discarded, "move_by")

    def _all_indices(self) -> Iterator[Index]:
        for y in range(self.num_cells.y):
            for x in range(self.num_cells.x):
                yield Index(x, y)

    def _cell_state(self, cell: T) -> Any:
        return cell

    def _restore_cell(self, idx: Index, state: Any) -> None:
        self._storage.set(idx, state)

    def __getstate__(self) -> dict:
        state = super().__getstate__()
        state["storage"] = self.storage_kind.value
        state["default_value"] = self.get_default_value()
        state["cells"] = [self._cell_state(self.get(idx)) for idx in self._all_indices()]
        return state

    def __setstate__(self, state: dict) -> None:
        super().__setstate__(state)
        default = state["default_value"]
        self._storage = make_cell_storage(state["storage"], self.num_cells, default)
        for idx, cell in zip(self._all_indices(), state["cells"]):
            if not self._storage._is_default(cell):
                self._restore_cell(idx, cell)
