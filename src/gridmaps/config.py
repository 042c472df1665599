"""Configuration for building grid maps."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Tuple

from .local_map import LocalMapData
from . import transform
from .types import MapType, StorageKind


@dataclass
class GridConfig:
    """Geometry and frame metadata of a map.

    ``resolution`` holds two values for 2D grids or three for voxel grids;
    2D maps ignore a third value. ``origin`` is the world position of the
    grid's (0, 0) corner.
    """

    num_cells: Tuple[int, int] = (100, 100)
    resolution: Tuple[float, ...] = (0.1, 0.1, 0.1)
    storage: StorageKind = StorageKind.DENSE
    frame_id: str = ""
    map_type: MapType = MapType.GRID_MAP
    epsg_code: str = "NONE"
    origin: Tuple[float, float, float] = field(default=(0.0, 0.0, 0.0))

    def __post_init__(self) -> None:
        self.num_cells = (int(self.num_cells[0]), int(self.num_cells[1]))
        self.resolution = tuple(float(r) for r in self.resolution)
        if len(self.resolution) not in (2, 3):
            raise ValueError(f"resolution needs 2 or 3 values, got {self.resolution}")
        self.storage = StorageKind(self.storage)
        self.map_type = MapType(self.map_type)
        self.origin = tuple(float(v) for v in self.origin)  # type: ignore[assignment]

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "GridConfig":
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        unknown = set(values) - set(known)
        if unknown:
            raise ValueError(f"Unknown grid config keys: {sorted(unknown)}")
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["storage"] = self.storage.value
        out["map_type"] = int(self.map_type)
        return out

    def make_local_map_data(self) -> LocalMapData:
        """Local map data whose frame places the grid corner at ``origin``."""
        offset = transform.make_transform(translation=[-v for v in self.origin])
        return LocalMapData(
            id=self.frame_id,
            offset=offset,
            map_type=self.map_type,
            epsg_code=self.epsg_code,
        )
