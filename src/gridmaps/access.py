"""Cell storage backends for grid maps.

Two backends share the ``GridCellAccess`` capability set:

1. ``DenseCellStorage`` keeps every cell in a numpy object array.
2. ``SparseCellStorage`` keeps only populated cells in a dict and creates
   cells lazily on mutable access.

Both report cell indices as ``Index(x, y)`` and iterate in row-major order
(y outer, x inner).
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Dict, Generic, Iterator, Sequence, Tuple, TypeVar

import numpy as np

from .errors import OutOfRangeIndex
from .types import Index, StorageKind

T = TypeVar("T")


def _cells_equal(a: object, b: object) -> bool:
    # numpy arrays compare element-wise
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        return bool(np.array_equal(a, b))
    return bool(a == b)


class GridCellAccess(ABC, Generic[T]):
    """Capability set every cell storage backend provides."""

    kind: StorageKind

    def __init__(self, num_cells: Sequence[int], default_value: T) -> None:
        self._num_cells = Index(int(num_cells[0]), int(num_cells[1]))
        if self._num_cells.x < 0 or self._num_cells.y < 0:
            raise ValueError(f"Number of cells must be non-negative, got {num_cells}")
        self._default_value = default_value

    @property
    def num_cells(self) -> Index:
        return self._num_cells

    def get_default_value(self) -> T:
        return self._default_value

    def _new_cell(self) -> T:
        return copy.copy(self._default_value)

    def _is_default(self, cell: T) -> bool:
        return _cells_equal(cell, self._default_value)

    def check_index(self, idx: Sequence[int]) -> Index:
        """Return ``idx`` as an Index, raising OutOfRangeIndex if outside the grid."""
        x, y = int(idx[0]), int(idx[1])
        if not (0 <= x < self._num_cells.x and 0 <= y < self._num_cells.y):
            raise OutOfRangeIndex(
                f"Index ({x}, {y}) outside grid of {tuple(self._num_cells)} cells"
            )
        return Index(x, y)

    @abstractmethod
    def at(self, idx: Sequence[int]) -> T:
        """Mutable access to a cell. Raises OutOfRangeIndex outside the grid."""
        ...

    @abstractmethod
    def get(self, idx: Sequence[int]) -> T:
        """Read access that never allocates a cell."""
        ...

    @abstractmethod
    def set(self, idx: Sequence[int], value: T) -> None:
        ...

    @abstractmethod
    def items(self) -> Iterator[Tuple[Index, T]]:
        """Yield ``(index, cell)`` for populated cells in row-major order."""
        ...

    @abstractmethod
    def resize(self, num_cells: Sequence[int]) -> int:
        """Change the extents, keeping cells whose index stays inside.

        Returns:
            Number of non-default cells discarded.
        """
        ...

    @abstractmethod
    def move_by(self, delta: Sequence[int]) -> int:
        """Shift content so the cell at ``i`` ends up at ``i - delta``.

        Returns:
            Number of non-default cells that left the grid.
        """
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def count_populated(self) -> int:
        ...

    def __iter__(self) -> Iterator[T]:
        for _, cell in self.items():
            yield cell


class DenseCellStorage(GridCellAccess[T]):
    """Every cell stored in a ``(ny, nx)`` numpy object array."""

    kind = StorageKind.DENSE

    def __init__(self, num_cells: Sequence[int], default_value: T) -> None:
        super().__init__(num_cells, default_value)
        self._cells = self._allocate(self._num_cells)

    def _allocate(self, num_cells: Index) -> np.ndarray:
        cells = np.empty((num_cells.y, num_cells.x), dtype=object)
        self._fill_default(cells, np.ones(cells.shape, dtype=bool))
        return cells

    def _fill_default(self, cells: np.ndarray, mask: np.ndarray) -> None:
        # element-wise so sequence-like cell values are stored, not broadcast
        for y, x in zip(*np.nonzero(mask)):
            cells[y, x] = self._new_cell()

    def at(self, idx: Sequence[int]) -> T:
        x, y = self.check_index(idx)
        return self._cells[y, x]

    get = at

    def set(self, idx: Sequence[int], value: T) -> None:
        x, y = self.check_index(idx)
        self._cells[y, x] = value

    def items(self) -> Iterator[Tuple[Index, T]]:
        nx = self._num_cells.x
        for i, cell in enumerate(self._cells.flat):
            yield Index(i % nx, i // nx), cell

    def _count_discarded(self, keep: np.ndarray) -> int:
        return sum(1 for cell in self._cells[~keep] if not self._is_default(cell))

    def resize(self, num_cells: Sequence[int]) -> int:
        new_num = Index(int(num_cells[0]), int(num_cells[1]))
        nx = min(new_num.x, self._num_cells.x)
        ny = min(new_num.y, self._num_cells.y)

        keep = np.zeros(self._cells.shape, dtype=bool)
        keep[:ny, :nx] = True
        discarded = self._count_discarded(keep)

        cells = np.empty((new_num.y, new_num.x), dtype=object)
        cells[:ny, :nx] = self._cells[:ny, :nx]
        fresh = np.ones(cells.shape, dtype=bool)
        fresh[:ny, :nx] = False
        self._fill_default(cells, fresh)

        self._cells = cells
        self._num_cells = new_num
        return discarded

    def move_by(self, delta: Sequence[int]) -> int:
        dx, dy = int(delta[0]), int(delta[1])
        nx, ny = self._num_cells
        src_x = slice(max(dx, 0), nx + min(dx, 0))
        dst_x = slice(max(-dx, 0), nx + min(-dx, 0))
        src_y = slice(max(dy, 0), ny + min(dy, 0))
        dst_y = slice(max(-dy, 0), ny + min(-dy, 0))

        keep = np.zeros(self._cells.shape, dtype=bool)
        if abs(dx) < nx and abs(dy) < ny:
            keep[src_y, src_x] = True
        discarded = self._count_discarded(keep)

        cells = np.empty(self._cells.shape, dtype=object)
        fresh = np.ones(cells.shape, dtype=bool)
        if abs(dx) < nx and abs(dy) < ny:
            cells[dst_y, dst_x] = self._cells[src_y, src_x]
            fresh[dst_y, dst_x] = False
        self._fill_default(cells, fresh)

        self._cells = cells
        return discarded

    def clear(self) -> None:
        self._cells = self._allocate(self._num_cells)

    def count_populated(self) -> int:
        return int(self._cells.size)


class SparseCellStorage(GridCellAccess[T]):
    """Only populated cells are stored, keyed by Index."""

    kind = StorageKind.SPARSE

    def __init__(self, num_cells: Sequence[int], default_value: T) -> None:
        super().__init__(num_cells, default_value)
        self._cells: Dict[Index, T] = {}

    def at(self, idx: Sequence[int]) -> T:
        key = self.check_index(idx)
        if key not in self._cells:
            self._cells[key] = self._new_cell()
        return self._cells[key]

    def get(self, idx: Sequence[int]) -> T:
        key = self.check_index(idx)
        return self._cells.get(key, self._default_value)

    def set(self, idx: Sequence[int], value: T) -> None:
        self._cells[self.check_index(idx)] = value

    def is_populated(self, idx: Sequence[int]) -> bool:
        return self.check_index(idx) in self._cells

    def items(self) -> Iterator[Tuple[Index, T]]:
        for key in sorted(self._cells, key=lambda k: (k.y, k.x)):
            yield key, self._cells[key]

    def _rebase(self, shift: Index, num_cells: Index) -> int:
        cells: Dict[Index, T] = {}
        discarded = 0
        for key, cell in self._cells.items():
            new_key = key - shift
            if new_key.is_inside(num_cells):
                cells[new_key] = cell
            elif not self._is_default(cell):
                discarded += 1
        self._cells = cells
        self._num_cells = num_cells
        return discarded

    def resize(self, num_cells: Sequence[int]) -> int:
        return self._rebase(Index(0, 0), Index(int(num_cells[0]), int(num_cells[1])))

    def move_by(self, delta: Sequence[int]) -> int:
        return self._rebase(Index(int(delta[0]), int(delta[1])), self._num_cells)

    def clear(self) -> None:
        self._cells.clear()

    def count_populated(self) -> int:
        return len(self._cells)


_BACKENDS = {
    StorageKind.DENSE: DenseCellStorage,
    StorageKind.SPARSE: SparseCellStorage,
}


def make_cell_storage(
    kind: StorageKind | str,
    num_cells: Sequence[int],
    default_value: T,
) -> GridCellAccess[T]:
    """Create the backend for ``kind``."""
    try:
        backend = _BACKENDS[StorageKind(kind)]
    except ValueError as e:
        raise ValueError(f"Unknown storage kind: {kind!r}") from e
    return backend(num_cells, default_value)
