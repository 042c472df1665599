"""Multi-level grid maps, traversability graphs and voxel ray traversal."""

from .access import DenseCellStorage, GridCellAccess, SparseCellStorage, make_cell_storage
from .config import GridConfig
from .errors import (
    BrokenGraphInvariant,
    DataDiscardedWarning,
    EmptyRay,
    GridMapsError,
    InvalidTransform,
    OutOfRangeIndex,
)
from .grid import Grid
from .grid_map import GridMap
from .level_list import LevelList
from .local_map import LocalMap, LocalMapData
from .multilevel import MultiLevelGridMap
from .traversability import (
    NodeArena,
    NodeType,
    TraversabilityBaseMap3d,
    TraversabilityMap3d,
    TraversabilityNode,
    TraversabilityNodeBase,
)
from .types import Index, MapType, RayElement, StorageKind, VoxelIndex
from .voxel import VoxelGridMap
from .voxel_traversal import compute_ray

__all__ = [
    "BrokenGraphInvariant",
    "DataDiscardedWarning",
    "DenseCellStorage",
    "EmptyRay",
    "Grid",
    "GridCellAccess",
    "GridConfig",
    "GridMap",
    "GridMapsError",
    "Index",
    "InvalidTransform",
    "LevelList",
    "LocalMap",
    "LocalMapData",
    "MapType",
    "MultiLevelGridMap",
    "NodeArena",
    "NodeType",
    "OutOfRangeIndex",
    "RayElement",
    "SparseCellStorage",
    "StorageKind",
    "TraversabilityBaseMap3d",
    "TraversabilityMap3d",
    "TraversabilityNode",
    "TraversabilityNodeBase",
    "VoxelGridMap",
    "VoxelIndex",
    "compute_ray",
    "make_cell_storage",
]
