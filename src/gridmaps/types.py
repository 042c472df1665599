"""Shared value types for grid maps."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import NamedTuple


class Index(NamedTuple):
    """Integer (x, y) cell coordinate of a grid."""

    x: int
    y: int

    def __add__(self, other: tuple) -> "Index":  # type: ignore[override]
        return Index(self.x + other[0], self.y + other[1])

    def __sub__(self, other: tuple) -> "Index":
        return Index(self.x - other[0], self.y - other[1])

    def __neg__(self) -> "Index":
        return Index(-self.x, -self.y)

    def is_inside(self, num_cells: tuple[int, int]) -> bool:
        """Return True if 0 <= x < num_cells.x and 0 <= y < num_cells.y."""
        return 0 <= self.x < num_cells[0] and 0 <= self.y < num_cells[1]


class VoxelIndex(NamedTuple):
    """Integer (x, y, z) voxel coordinate. The z component is unbounded."""

    x: int
    y: int
    z: int

    @property
    def column(self) -> Index:
        return Index(self.x, self.y)


class MapType(IntEnum):
    """Kind of map a LocalMap describes."""

    UNKNOWN_MAP = 0
    GRID_MAP = 1
    GEOMETRIC_MAP = 2
    MLS_MAP = 3
    TOPOLOGICAL_MAP = 4
    POINTCLOUD_MAP = 5


class StorageKind(str, Enum):
    """Cell storage backend chosen when a map is constructed."""

    DENSE = "dense"
    SPARSE = "sparse"


class RayElement:
    """One (x, y) column of a traversed ray with its inclusive z-run.

    ``z_first`` is the first voxel entered in this column and ``z_last`` the
    last one, so ``z_first > z_last`` for rays pointing downwards.
    """

    __slots__ = ("x", "y", "z_first", "z_last")

    def __init__(self, x: int, y: int, z_first: int, z_last: int | None = None):
        self.x = x
        self.y = y
        self.z_first = z_first
        self.z_last = z_first if z_last is None else z_last

    @property
    def idx(self) -> Index:
        return Index(self.x, self.y)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RayElement):
            return NotImplemented
        return (self.x, self.y, self.z_first, self.z_last) == (
            other.x, other.y, other.z_first, other.z_last)

    def __repr__(self) -> str:
        return f"RayElement(x={self.x}, y={self.y}, z_first={self.z_first}, z_last={self.z_last})"
