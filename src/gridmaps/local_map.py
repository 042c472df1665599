"""Local map frame shared between map views."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from . import transform
from .types import MapType


@dataclass
class LocalMapData:
    """Identifying metadata and frame of a local map.

    Attributes:
        id: Map identifier.
        offset: 4x4 transform from the world frame into the map's local frame.
        map_type: Kind of map.
        epsg_code: Coordinate reference system tag. Stored only.
    """

    id: str = ""
    offset: np.ndarray = field(default_factory=transform.identity)
    map_type: MapType = MapType.UNKNOWN_MAP
    epsg_code: str = "NONE"

    def copy(self) -> "LocalMapData":
        return LocalMapData(
            id=self.id,
            offset=self.offset.copy(),
            map_type=self.map_type,
            epsg_code=self.epsg_code,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocalMapData):
            return NotImplemented
        return (
            self.id == other.id
            and np.allclose(self.offset, other.offset)
            and self.map_type == other.map_type
            and self.epsg_code == other.epsg_code
        )


class LocalMap:
    """A view onto a LocalMapData.

    Views constructed from the same data object share it: writing the id or
    the frame through one view is observed by every other view. ``copy()``
    detaches the copy onto its own data.
    """

    def __init__(self, data: LocalMapData | None = None):
        self._data = LocalMapData() if data is None else data

    @property
    def local_map_data(self) -> LocalMapData:
        return self._data

    @property
    def id(self) -> str:
        return self._data.id

    @id.setter
    def id(self, value: str) -> None:
        self._data.id = value

    @property
    def map_type(self) -> MapType:
        return self._data.map_type

    @map_type.setter
    def map_type(self, value: MapType) -> None:
        self._data.map_type = MapType(value)

    @property
    def epsg_code(self) -> str:
        return self._data.epsg_code

    @epsg_code.setter
    def epsg_code(self, value: str) -> None:
        self._data.epsg_code = value

    @property
    def local_frame(self) -> np.ndarray:
        """The world-to-local transform. Mutating it in place affects all views."""
        return self._data.offset

    @local_frame.setter
    def local_frame(self, value: np.ndarray) -> None:
        # assign into the shared array so existing references stay valid
        self._data.offset[...] = np.asarray(value, dtype=float)

    # The frame was called "offset" in the persisted layout; both names are kept.
    offset = local_frame

    def copy(self) -> "LocalMap":
        return LocalMap(self._data.copy())

    def __getstate__(self) -> dict:
        return {"local_map_data": self._data}

    def __setstate__(self, state: dict) -> None:
        self._data = state["local_map_data"]
