"""Traversability graphs stored in a multi-level grid.

Every cell of a ``TraversabilityMap3d`` holds the nodes located in that
column, ordered by height. Nodes connect to nodes of other cells (or of
other levels of the same cell, e.g. below a bridge), which yields a graph
for path planners.

Nodes live in a ``NodeArena`` owned by exactly one map and are referenced
by integer handles. Views created by ``TraversabilityMap3d.cast`` share the
arena without owning it: clearing a view never releases nodes, clearing the
owner releases them for every view.
"""

from __future__ import annotations

import copy
from collections import deque
from enum import IntEnum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)

import numpy as np

from .access import make_cell_storage
from .config import GridConfig
from .errors import BrokenGraphInvariant, InvalidTransform
from .grid import Grid
from .level_list import LevelList
from .local_map import LocalMapData
from .multilevel import MultiLevelGridMap
from .types import Index, StorageKind

T = TypeVar("T")


class NodeType(IntEnum):
    OBSTACLE = 0
    TRAVERSABLE = 1
    UNKNOWN = 2
    HOLE = 3
    UNSET = 4
    FRONTIER = 5  # traversable, but at the border of missing map information


class NodeArena:
    """Handle table of the nodes allocated for one owning map.

    Handles are never reused, so a handle kept after its node was released
    keeps failing instead of resolving to an unrelated node.
    """

    def __init__(self) -> None:
        self._nodes: Dict[int, "TraversabilityNodeBase"] = {}
        self._next_handle = 0

    def add(self, node: "TraversabilityNodeBase") -> int:
        if node._arena is not None:
            raise BrokenGraphInvariant(
                f"Node {node!r} already belongs to a map; use a deep copy to duplicate it")
        if node._handle != -1 or node._connections:
            raise BrokenGraphInvariant(
                f"Node {node!r} was released by its map and still holds its old "
                f"connections; use a deep copy to duplicate it")
        handle = self._next_handle
        self._next_handle += 1
        self._nodes[handle] = node
        node._arena = self
        node._handle = handle
        return handle

    def get(self, handle: int) -> "TraversabilityNodeBase":
        try:
            return self._nodes[handle]
        except KeyError:
            raise BrokenGraphInvariant(
                f"Node handle {handle} does not reference a live node") from None

    def __contains__(self, handle: int) -> bool:
        return handle in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def release(self, node: "TraversabilityNodeBase") -> None:
        # connections stay; following them from a released node raises
        self._nodes.pop(node._handle, None)
        node._arena = None

    def release_all(self) -> None:
        for node in list(self._nodes.values()):
            self.release(node)


class TraversabilityNodeBase:
    """One walkable (or blocked) height level at one grid cell.

    A new node has type ``UNSET`` and is not expanded. Map builders assign
    the type and height; search code toggles the expansion flag to tell
    candidate nodes from finalized ones.
    """

    def __init__(self, height: float, idx: Sequence[int]):
        self._height = float(height)
        self._idx = Index(int(idx[0]), int(idx[1]))
        self._type = NodeType.UNSET
        self._expanded = False
        self._connections: List[int] = []
        self._arena: Optional[NodeArena] = None
        self._handle = -1

    @property
    def height(self) -> float:
        return self._height

    def get_height(self) -> float:
        return self._height

    def get_min(self) -> float:
        return self._height

    def get_max(self) -> float:
        return self._height

    def set_height(self, new_height: float) -> None:
        """Set the height. Use ``TraversabilityMap3d.set_node_height`` for
        nodes stored in a map so the cell stays sorted."""
        self._height = float(new_height)

    @property
    def index(self) -> Index:
        return self._idx

    def get_index(self) -> Index:
        return self._idx

    @property
    def handle(self) -> int:
        return self._handle

    @property
    def is_valid(self) -> bool:
        """False once the owning map released this node (or before it was added)."""
        return self._arena is not None and self._handle in self._arena

    @property
    def type(self) -> NodeType:
        return self._type

    @type.setter
    def type(self, value: NodeType) -> None:
        self._type = NodeType(value)

    def get_type(self) -> NodeType:
        return self._type

    def set_type(self, value: NodeType) -> None:
        self.type = value

    def is_expanded(self) -> bool:
        return self._expanded

    def set_expanded(self) -> None:
        self._expanded = True

    def set_not_expanded(self) -> None:
        self._expanded = False

    def get_vec3(self, grid_res: float | Sequence[float]) -> np.ndarray:
        """Position of this node in the map's local frame."""
        res = np.broadcast_to(np.asarray(grid_res, dtype=float), (2,))
        return np.array([
            (self._idx.x + 0.5) * res[0],
            (self._idx.y + 0.5) * res[1],
            self._height,
        ])

    def get_position(self, grid: Grid) -> np.ndarray:
        """World position of this node in ``grid``.

        Unlike ``get_vec3``, which stays in the map's local frame, the
        result goes through the grid's offset.
        """
        ok, pos = grid.from_grid(self._idx, self._height)
        if not ok:
            raise InvalidTransform(f"Cannot compute position of node at {tuple(self._idx)}")
        return pos

    def _resolve(self, handle: int) -> "TraversabilityNodeBase":
        if self._arena is None:
            raise BrokenGraphInvariant(f"Node at {tuple(self._idx)} is not part of a live map")
        return self._arena.get(handle)

    def add_connection(self, node: "TraversabilityNodeBase") -> None:
        """Add a directed edge from this node to ``node``.

        The reverse edge is not added; see ``TraversabilityMap3d.connect``.
        Both nodes must be in the same map.
        """
        if self._arena is None or node._arena is not self._arena:
            raise BrokenGraphInvariant("Connected nodes must belong to the same map")
        self._connections.append(node._handle)

    def remove_connection(self, node: "TraversabilityNodeBase") -> bool:
        """Remove the edge to ``node``. Returns False if there was none."""
        try:
            self._connections.remove(node._handle)
        except ValueError:
            return False
        return True

    @property
    def connection_handles(self) -> Tuple[int, ...]:
        return tuple(self._connections)

    def get_connections(self) -> List["TraversabilityNodeBase"]:
        return [self._resolve(h) for h in self._connections]

    def get_connected_node(self, to_idx: Sequence[int]) -> Optional["TraversabilityNodeBase"]:
        """First neighbor located in cell ``to_idx``, or None."""
        target = (int(to_idx[0]), int(to_idx[1]))
        for handle in self._connections:
            node = self._resolve(handle)
            if node._idx == target:
                return node
        return None

    def each_connected_node(
        self,
        visitor: Callable[["TraversabilityNodeBase"], Tuple[bool, bool]],
    ) -> None:
        """Breadth-first walk over the nodes reachable from this node.

        ``visitor(node)`` is called once per reached node (never for this
        node) and returns ``(expand, stop)``: ``expand`` queues the node so
        its own neighbors get visited, ``stop`` ends the walk immediately.
        """
        visited = {self._handle}
        to_visit = deque([self])
        while to_visit:
            current = to_visit.popleft()
            for handle in current._connections:
                if handle in visited:
                    continue
                visited.add(handle)
                node = current._resolve(handle)
                expand, stop = visitor(node)
                if stop:
                    return
                if expand:
                    to_visit.append(node)

    def _clone(self) -> "TraversabilityNodeBase":
        """Copy of the scalar fields, without connections or map membership."""
        clone = copy.copy(self)
        clone._connections = []
        clone._arena = None
        clone._handle = -1
        return clone

    def _payload(self) -> Any:
        return None

    def _restore_payload(self, payload: Any) -> None:
        pass

    def __lt__(self, other: "TraversabilityNodeBase") -> bool:
        return self._height < other._height

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(height={self._height}, idx={tuple(self._idx)}, "
                f"type={self._type.name})")


class TraversabilityNode(TraversabilityNodeBase, Generic[T]):
    """Node carrying an arbitrary payload for map builders or planners."""

    def __init__(self, height: float, idx: Sequence[int], user_data: Optional[T] = None):
        super().__init__(height, idx)
        self.user_data = user_data

    def get_user_data(self) -> Optional[T]:
        return self.user_data

    def _clone(self) -> "TraversabilityNode[T]":
        clone = super()._clone()
        clone.user_data = copy.deepcopy(self.user_data)  # type: ignore[attr-defined]
        return clone  # type: ignore[return-value]

    def _payload(self) -> Any:
        return self.user_data

    def _restore_payload(self, payload: Any) -> None:
        self.user_data = payload


N = TypeVar("N", bound=TraversabilityNodeBase)


def _node_height(node: TraversabilityNodeBase) -> float:
    return node._height


class TraversabilityMap3d(MultiLevelGridMap[N]):
    """Multi-level grid of traversability nodes.

    A map either owns its nodes (the default) or is a non-owning view over
    nodes owned by another map.
    """

    def __init__(
        self,
        num_cells: Sequence[int] = (0, 0),
        resolution: Sequence[float] = (1.0, 1.0),
        data: LocalMapData | None = None,
        node_type: Type[N] = TraversabilityNodeBase,  # type: ignore[assignment]
        storage: StorageKind | str = StorageKind.DENSE,
    ):
        super().__init__(num_cells, resolution, data, storage=storage, key=_node_height)
        self._node_type = node_type
        self._arena = NodeArena()
        self._owns_node_pointers = True

    @classmethod
    def from_config(cls, config: GridConfig, **kwargs: Any) -> "TraversabilityMap3d":
        return cls(
            config.num_cells,
            config.resolution[:2],
            config.make_local_map_data(),
            storage=config.storage,
            **kwargs,
        )

    @property
    def node_type(self) -> Type[N]:
        return self._node_type

    @property
    def owns_node_pointers(self) -> bool:
        return self._owns_node_pointers

    def set_map_owns_node_pointers(self, owns: bool) -> None:
        self._owns_node_pointers = bool(owns)

    def _check_owner(self, action: str = "allocate nodes") -> None:
        if not self._owns_node_pointers:
            raise BrokenGraphInvariant(f"A non-owning map view cannot {action}")

    def add_node(self, node: N) -> N:
        """Register ``node`` with this map and insert it into its cell."""
        self._check_owner()
        cell = self.at(node.index)
        self._arena.add(node)
        cell.insert(node)
        return node

    def create_node(self, height: float, idx: Sequence[int], node_type: NodeType = NodeType.UNSET,
                    **kwargs: Any) -> N:
        """Create a node of this map's node class at ``idx`` and add it."""
        node = self._node_type(height, idx, **kwargs)
        node.type = node_type
        return self.add_node(node)

    def connect(self, a: N, b: N) -> None:
        """Add edges in both directions between ``a`` and ``b``."""
        a.add_connection(b)
        b.add_connection(a)

    def set_node_height(self, node: N, height: float) -> None:
        """Change the height of a stored node, keeping its cell ordered."""
        cell = self.at(node.index)
        cell.remove(node)
        node.set_height(height)
        cell.insert(node)

    def nodes(self) -> Iterator[N]:
        """All nodes, row-major by cell then by height."""
        for cell in self:
            yield from cell

    def num_nodes(self) -> int:
        return sum(len(cell) for cell in self)

    def get_node_position(self, node: TraversabilityNodeBase) -> np.ndarray:
        ok, pos = self.from_grid(node.index, node.height)
        if not ok:
            raise InvalidTransform(
                f"Could not calculate position from index {tuple(node.index)}")
        return pos

    def get_closest_node(self, pos: Sequence[float]) -> Optional[N]:
        """Node of the cell containing ``pos`` whose height is closest to ``pos[2]``.

        Returns None if ``pos`` is outside the map or the cell is empty.
        """
        ok, idx = self.to_grid(pos)
        if not ok:
            return None
        z = float(pos[2])
        best = None
        best_dist = float("inf")
        for node in self.get(idx):
            dist = abs(node.height - z)
            if dist < best_dist:
                best_dist = dist
                best = node
        return best

    def clear(self) -> None:
        """Remove all nodes. Only an owning map releases them."""
        if self._owns_node_pointers:
            self._arena.release_all()
        super().clear()

    def _drop_nodes(self, keep: Callable[[Index], bool]) -> None:
        """Release the nodes whose cell fails ``keep`` and cut edges to them.

        A view leaves the shared nodes alone; its cells are simply dropped.
        """
        if not self._owns_node_pointers:
            return
        dropped = {node.handle: node for node in self.nodes() if not keep(node.index)}
        if not dropped:
            return
        for node in self.nodes():
            if node.handle not in dropped:
                node._connections = [h for h in node._connections if h not in dropped]
        for node in dropped.values():
            self._arena.release(node)

    def resize(self, num_cells: Sequence[int]) -> None:
        """Change the number of cells, releasing nodes of discarded cells.

        Edges from kept nodes to released ones are removed.
        """
        new_num_cells = Index(int(num_cells[0]), int(num_cells[1]))
        self._drop_nodes(lambda idx: idx.is_inside(new_num_cells))
        super().resize(new_num_cells)

    def move_by(self, delta: Sequence[int]) -> None:
        """Shift the window by ``delta`` cells, re-indexing the kept nodes.

        Nodes leaving the window are released and edges to them removed.

        Raises:
            BrokenGraphInvariant: on a view, whose frame and nodes belong
                to the owning map.
        """
        self._check_owner("move its window")
        shift = Index(int(delta[0]), int(delta[1]))
        self._drop_nodes(lambda idx: (idx - shift).is_inside(self.num_cells))
        super().move_by(shift)
        for idx, cell in self.items():
            for node in cell:
                node._idx = idx

    def _deep_copy(self, data: LocalMapData) -> "TraversabilityMap3d[N]":
        out: TraversabilityMap3d[N] = TraversabilityMap3d(
            self.num_cells, self.resolution, data,
            node_type=self._node_type, storage=self.storage_kind)

        # Edges may point at nodes not cloned yet, so clone all nodes first
        # and wire the edges in a second pass.
        in_to_out: Dict[int, TraversabilityNodeBase] = {}
        for node in self.nodes():
            if not node.is_valid:
                raise BrokenGraphInvariant(f"Cannot copy released node {node!r}")
            clone = node._clone()
            out._arena.add(clone)
            out.at(clone.index).insert(clone)
            in_to_out[node.handle] = clone

        for node in self.nodes():
            clone = in_to_out[node.handle]
            for handle in node._connections:
                target = in_to_out.get(handle)
                if target is None:
                    raise BrokenGraphInvariant(
                        f"{node!r} is connected to a node outside of the map")
                clone._connections.append(target.handle)
        return out

    def copy(self) -> "TraversabilityMap3d[N]":
        """Deep copy owning new nodes, with its own local map data."""
        return self._deep_copy(self.local_map_data.copy())

    def __deepcopy__(self, memo: dict) -> "TraversabilityMap3d[N]":
        return self.copy()

    def assign(self, other: "TraversabilityMap3d[N]") -> "TraversabilityMap3d[N]":
        """Replace the content of this map with a deep copy of ``other``.

        The local frame of ``other`` is copied into this map's (shared) frame
        data. Either the whole copy succeeds or this map is left untouched.
        """
        fresh = other._deep_copy(LocalMapData())
        frame = other.local_frame.copy()
        self.clear()
        self._num_cells = fresh._num_cells
        self._resolution = fresh._resolution
        self._storage = fresh._storage
        self._arena = fresh._arena
        self._node_type = fresh._node_type
        self._owns_node_pointers = True
        self.local_frame = frame
        return self

    def cast(self, node_type: Type[TraversabilityNodeBase] = TraversabilityNodeBase
             ) -> "TraversabilityMap3d":
        """Non-owning view of the same nodes, typed for ``node_type``.

        The view shares this map's local map data and node arena. It stays
        valid only as long as this map keeps its nodes.

        Raises:
            TypeError: if a stored node is not a ``node_type``.
        """
        out: TraversabilityMap3d = TraversabilityMap3d(
            self.num_cells, self.resolution, self.local_map_data,
            node_type=node_type, storage=self.storage_kind)
        out._arena = self._arena
        out.set_map_owns_node_pointers(False)

        for idx, cell in self.items():
            if not len(cell):
                continue
            target = out.at(idx)
            for node in cell:
                if not isinstance(node, node_type):
                    raise TypeError(
                        f"Cannot view {type(node).__name__} as {node_type.__name__}")
                target.insert(node)
        return out

    def __getstate__(self) -> dict:
        # Nodes are saved as a flat table and edges as position pairs. Saving
        # the nodes with their neighbors would recurse along every path of
        # the graph.
        state = Grid.__getstate__(self)
        nodes = list(self.nodes())
        position = {node.handle: i for i, node in enumerate(nodes)}
        edges = []
        for i, node in enumerate(nodes):
            for handle in node._connections:
                if handle not in position:
                    raise BrokenGraphInvariant(
                        f"{node!r} is connected to a node outside of the map")
                edges.append((i, position[handle]))

        state["storage"] = self.storage_kind.value
        state["node_type"] = self._node_type
        state["nodes"] = [
            (node.height, tuple(node.index), int(node.type), node.is_expanded(),
             node._payload())
            for node in nodes
        ]
        state["edges"] = edges
        return state

    def __setstate__(self, state: dict) -> None:
        num_cells = Index(*state["num_cells"])
        node_type = state["node_type"]
        storage = make_cell_storage(state["storage"], num_cells, LevelList(key=_node_height))
        arena = NodeArena()

        nodes: List[TraversabilityNodeBase] = []
        for height, idx, type_value, expanded, payload in state["nodes"]:
            if not Index(*idx).is_inside(num_cells):
                raise BrokenGraphInvariant(f"Stored node index {idx} is outside the grid")
            node = node_type(height, idx)
            node.type = NodeType(type_value)
            if expanded:
                node.set_expanded()
            node._restore_payload(payload)
            arena.add(node)
            storage.at(idx).insert(node)
            nodes.append(node)

        for src, dst in state["edges"]:
            if not (0 <= src < len(nodes) and 0 <= dst < len(nodes)):
                raise BrokenGraphInvariant(
                    f"Stored edge ({src}, {dst}) references a node missing from the "
                    f"node table of {len(nodes)} nodes")
            nodes[src]._connections.append(nodes[dst].handle)

        Grid.__setstate__(self, state)
        self._key = _node_height
        self._storage = storage
        self._arena = arena
        self._node_type = node_type
        self._owns_node_pointers = True


TraversabilityBaseMap3d = TraversabilityMap3d[TraversabilityNodeBase]
