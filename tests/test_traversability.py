"""Traversability graph: nodes, views, deep copy and persistence."""

import copy
import pickle

import numpy as np
import pytest

from gridmaps import transform
from gridmaps.config import GridConfig
from gridmaps.errors import BrokenGraphInvariant, DataDiscardedWarning, InvalidTransform
from gridmaps.traversability import (
    NodeType,
    TraversabilityMap3d,
    TraversabilityNode,
    TraversabilityNodeBase,
)
from gridmaps.types import Index


def _make_line_map(node_type=TraversabilityNodeBase) -> TraversabilityMap3d:
    """Five nodes a-b-c-d-e along x, connected in a line plus a cross edge a-d."""
    trav_map = TraversabilityMap3d((10, 10), (0.5, 0.5), node_type=node_type)
    trav_map.id = "line"
    nodes = [trav_map.create_node(0.1 * i, (i, 2), NodeType.TRAVERSABLE) for i in range(5)]
    for a, b in zip(nodes[:-1], nodes[1:]):
        trav_map.connect(a, b)
    trav_map.connect(nodes[0], nodes[3])
    nodes[2].set_expanded()
    nodes[4].type = NodeType.FRONTIER
    return trav_map


def _edge_set(trav_map):
    return {
        (tuple(node.index), node.height, tuple(n.index), n.height)
        for node in trav_map.nodes()
        for n in node.get_connections()
    }


def _node_fields(trav_map):
    return [
        (tuple(n.index), n.height, n.type, n.is_expanded()) for n in trav_map.nodes()
    ]


def test_new_node_defaults():
    node = TraversabilityNodeBase(1.5, (2, 3))
    assert node.type == NodeType.UNSET
    assert not node.is_expanded()
    assert node.get_height() == node.get_min() == node.get_max() == 1.5
    assert node.index == node.get_index() == Index(2, 3)
    assert not node.is_valid
    assert np.allclose(node.get_vec3(0.5), [1.25, 1.75, 1.5])
    assert np.allclose(node.get_vec3((0.5, 1.0)), [1.25, 3.5, 1.5])


def test_node_ordering_and_cell_sorting():
    trav_map = TraversabilityMap3d((3, 3), (1.0, 1.0))
    high = trav_map.create_node(5.0, (1, 1))
    low = trav_map.create_node(0.0, (1, 1))
    mid = trav_map.create_node(2.0, (1, 1))
    assert low < mid < high
    assert list(trav_map.at(1, 1)) == [low, mid, high]

    trav_map.set_node_height(low, 3.0)
    assert list(trav_map.at(1, 1)) == [mid, low, high]


def test_connections_are_directed_and_connect_is_reciprocal():
    trav_map = TraversabilityMap3d((3, 3), (1.0, 1.0))
    a = trav_map.create_node(0.0, (0, 0))
    b = trav_map.create_node(0.0, (1, 0))
    c = trav_map.create_node(0.0, (2, 0))

    a.add_connection(b)
    assert b.get_connections() == []
    trav_map.connect(b, c)
    assert b.get_connections() == [c]
    assert c.get_connections() == [b]
    assert b.get_connected_node((2, 0)) is c
    assert b.get_connected_node((0, 0)) is None

    assert b.remove_connection(c)
    assert not b.remove_connection(c)
    assert b.get_connections() == []


def test_connect_across_maps_is_rejected():
    a = TraversabilityMap3d((2, 2), (1.0, 1.0)).create_node(0.0, (0, 0))
    b = TraversabilityMap3d((2, 2), (1.0, 1.0)).create_node(0.0, (0, 0))
    with pytest.raises(BrokenGraphInvariant):
        a.add_connection(b)
    with pytest.raises(BrokenGraphInvariant):
        a.add_connection(TraversabilityNodeBase(0.0, (1, 1)))


def test_node_cannot_be_added_twice():
    trav_map = TraversabilityMap3d((2, 2), (1.0, 1.0))
    node = trav_map.create_node(0.0, (0, 0))
    with pytest.raises(BrokenGraphInvariant):
        trav_map.add_node(node)
    assert trav_map.num_nodes() == 1


def test_released_node_cannot_join_another_map():
    trav_map = _make_line_map()
    a = next(trav_map.nodes())
    trav_map.clear()

    other = TraversabilityMap3d((10, 10), (0.5, 0.5))
    other.create_node(0.0, (0, 2))
    other.create_node(0.0, (1, 2))
    with pytest.raises(BrokenGraphInvariant):
        other.add_node(a)
    assert not a.is_valid
    assert other.num_nodes() == 2


def test_each_connected_node_visits_breadth_first():
    trav_map = _make_line_map()
    nodes = list(trav_map.nodes())
    a = nodes[0]

    visited = []

    def expand_all(node):
        visited.append(node)
        return True, False

    a.each_connected_node(expand_all)
    assert a not in visited
    assert len(visited) == len(set(map(id, visited))) == 4
    assert visited[:2] == [nodes[1], nodes[3]]

    visited.clear()

    def expand_none(node):
        visited.append(node)
        return False, False

    a.each_connected_node(expand_none)
    assert visited == [nodes[1], nodes[3]]

    visited.clear()

    def stop_at_first(node):
        visited.append(node)
        return True, True

    a.each_connected_node(stop_at_first)
    assert visited == [nodes[1]]


def test_get_closest_node():
    trav_map = TraversabilityMap3d((4, 4), (1.0, 1.0))
    for height in (0.0, 2.0, 5.0):
        trav_map.create_node(height, (1, 1))

    closest = trav_map.get_closest_node([1.5, 1.5, 2.3])
    assert closest is not None
    assert closest.height == 2.0
    assert trav_map.get_closest_node([1.5, 1.5, 100.0]).height == 5.0
    assert trav_map.get_closest_node([2.5, 1.5, 2.3]) is None
    assert trav_map.get_closest_node([-1.0, 1.5, 2.3]) is None


def test_node_position_follows_frame():
    trav_map = TraversabilityMap3d((4, 4), (0.5, 0.5))
    node = trav_map.create_node(1.0, (2, 1))
    transform.pretranslate(trav_map.local_frame, [-1.0, 0.0, 0.0])

    assert np.allclose(trav_map.get_node_position(node), [2.25, 0.75, 1.0])
    assert np.allclose(node.get_position(trav_map), [2.25, 0.75, 1.0])
    assert np.allclose(node.get_vec3(0.5), [1.25, 0.75, 1.0]), "get_vec3 stays in the local frame"

    stray = TraversabilityNodeBase(0.0, (7, 7))
    with pytest.raises(InvalidTransform):
        trav_map.get_node_position(stray)


def test_pickle_round_trip():
    """Node table and edge set survive persistence, cycles included."""
    trav_map = _make_line_map()
    loaded = pickle.loads(pickle.dumps(trav_map))

    assert loaded.id == "line"
    assert loaded.num_cells == trav_map.num_cells
    assert loaded.resolution == trav_map.resolution
    assert loaded.node_type is TraversabilityNodeBase
    assert loaded.owns_node_pointers
    assert _node_fields(loaded) == _node_fields(trav_map)
    assert _edge_set(loaded) == _edge_set(trav_map)
    assert len(_edge_set(loaded)) == 10

    added = loaded.create_node(3.0, (0, 2))
    assert list(loaded.at(0, 2))[-1] is added


def test_pickle_round_trip_with_user_data():
    trav_map = TraversabilityMap3d((4, 4), (1.0, 1.0), node_type=TraversabilityNode,
                                   storage="sparse")
    a = trav_map.create_node(0.0, (0, 0), user_data={"cost": 1.5})
    b = trav_map.create_node(1.0, (1, 0), user_data=[1, 2])
    trav_map.connect(a, b)

    loaded = pickle.loads(pickle.dumps(trav_map))
    assert loaded.storage_kind == trav_map.storage_kind
    assert loaded.count_populated() == 2
    la = loaded.get_closest_node([0.5, 0.5, 0.0])
    assert isinstance(la, TraversabilityNode)
    assert la.get_user_data() == {"cost": 1.5}
    assert la.get_connections()[0].user_data == [1, 2]


def test_load_rejects_dangling_edge():
    state = _make_line_map().__getstate__()
    state["edges"].append((0, 99))

    target = TraversabilityMap3d((1, 1), (1.0, 1.0))
    kept = target.create_node(0.0, (0, 0))
    with pytest.raises(BrokenGraphInvariant):
        target.__setstate__(state)
    assert target.num_cells == Index(1, 1)
    assert list(target.nodes()) == [kept]


def test_load_rejects_node_outside_grid():
    state = _make_line_map().__getstate__()
    height, _, type_value, expanded, payload = state["nodes"][0]
    state["nodes"][0] = (height, (42, 0), type_value, expanded, payload)
    with pytest.raises(BrokenGraphInvariant):
        TraversabilityMap3d().__setstate__(state)


def test_deep_copy_is_isomorphic_without_aliasing():
    trav_map = _make_line_map(TraversabilityNode)
    for node in trav_map.nodes():
        node.user_data = {"visits": [node.index.x]}

    for duplicate in (trav_map.copy(), copy.deepcopy(trav_map)):
        assert _node_fields(duplicate) == _node_fields(trav_map)
        assert _edge_set(duplicate) == _edge_set(trav_map)
        assert duplicate.local_map_data == trav_map.local_map_data
        assert duplicate.local_map_data is not trav_map.local_map_data

        source_ids = {id(n) for n in trav_map.nodes()}
        for node in duplicate.nodes():
            assert id(node) not in source_ids
            for neighbor in node.get_connections():
                assert id(neighbor) not in source_ids

        first = next(duplicate.nodes())
        duplicate.set_node_height(first, 9.0)
        first.user_data["visits"].append(-1)
        assert next(trav_map.nodes()).height == 0.0
        assert next(trav_map.nodes()).user_data == {"visits": [0]}


def test_assign_replaces_content():
    source = _make_line_map()
    transform.pretranslate(source.local_frame, [1.0, 2.0, 0.0])
    target = TraversabilityMap3d((2, 2), (1.0, 1.0))
    old = target.create_node(0.0, (0, 0))

    target.assign(source)
    assert not old.is_valid
    assert target.num_cells == source.num_cells
    assert _edge_set(target) == _edge_set(source)
    assert np.allclose(target.local_frame, source.local_frame)
    assert target.id == ""


def test_view_clear_keeps_owner_nodes():
    owner = _make_line_map(TraversabilityNode)
    view = owner.cast(TraversabilityNodeBase)
    assert not view.owns_node_pointers
    assert view.local_map_data is owner.local_map_data
    assert view.num_nodes() == owner.num_nodes() == 5

    view.clear()
    assert view.num_nodes() == 0
    assert owner.num_nodes() == 5
    assert all(node.is_valid for node in owner.nodes())
    assert len(next(owner.nodes()).get_connections()) == 2


def test_owner_clear_invalidates_view_nodes():
    owner = _make_line_map()
    view = owner.cast()
    seen = list(view.nodes())

    owner.clear()
    assert owner.num_nodes() == 0
    assert not any(node.is_valid for node in seen)
    with pytest.raises(BrokenGraphInvariant):
        view.copy()
    with pytest.raises(BrokenGraphInvariant):
        seen[0].get_connections()


def test_view_cannot_allocate_nodes():
    view = _make_line_map().cast()
    with pytest.raises(BrokenGraphInvariant):
        view.create_node(0.0, (0, 0))


def test_cast_rejects_mismatched_node_type():
    trav_map = _make_line_map()
    with pytest.raises(TypeError):
        trav_map.cast(TraversabilityNode)


def test_from_config():
    config = GridConfig(num_cells=(8, 9), resolution=(0.25, 0.25, 0.1), frame_id="trav")
    trav_map = TraversabilityMap3d.from_config(config, node_type=TraversabilityNode)
    assert trav_map.num_cells == Index(8, 9)
    assert trav_map.resolution == (0.25, 0.25)
    assert trav_map.node_type is TraversabilityNode
    assert trav_map.id == "trav"


def _make_row_map(storage) -> TraversabilityMap3d:
    """Three nodes a-b-c on a 3 x 1 grid, connected in a line."""
    trav_map = TraversabilityMap3d((3, 1), (1.0, 1.0), storage=storage)
    a, b, c = (trav_map.create_node(0.0, (x, 0), NodeType.TRAVERSABLE) for x in range(3))
    trav_map.connect(a, b)
    trav_map.connect(b, c)
    return trav_map


@pytest.mark.parametrize("storage", ["dense", "sparse"])
def test_resize_releases_dropped_nodes(storage):
    trav_map = _make_row_map(storage)
    a, b, c = trav_map.nodes()

    with pytest.warns(DataDiscardedWarning):
        trav_map.resize((2, 1))
    assert trav_map.num_nodes() == 2
    assert not c.is_valid
    assert a.is_valid and b.is_valid
    assert b.get_connections() == [a]

    duplicate = trav_map.copy()
    assert _edge_set(duplicate) == _edge_set(trav_map)
    loaded = pickle.loads(pickle.dumps(trav_map))
    assert _node_fields(loaded) == _node_fields(trav_map)
    assert _edge_set(loaded) == _edge_set(trav_map)


@pytest.mark.parametrize("storage", ["dense", "sparse"])
def test_move_by_reindexes_kept_nodes(storage):
    trav_map = _make_row_map(storage)
    a, b, c = trav_map.nodes()
    b_position = trav_map.get_node_position(b)

    with pytest.warns(DataDiscardedWarning):
        trav_map.move_by((1, 0))
    assert not a.is_valid
    assert b.index == Index(0, 0)
    assert c.index == Index(1, 0)
    assert list(trav_map.at(0, 0)) == [b]
    assert list(trav_map.at(1, 0)) == [c]
    assert b.get_connections() == [c]
    assert c.get_connections() == [b]
    assert np.allclose(trav_map.get_node_position(b), b_position)

    loaded = pickle.loads(pickle.dumps(trav_map))
    assert _node_fields(loaded) == _node_fields(trav_map)
    assert _edge_set(loaded) == _edge_set(trav_map)
    assert len(_edge_set(copy.deepcopy(trav_map))) == 2


def test_view_resize_keeps_owner_nodes():
    owner = _make_row_map("dense")
    view = owner.cast()

    with pytest.warns(DataDiscardedWarning):
        view.resize((1, 1))
    assert view.num_nodes() == 1
    assert owner.num_nodes() == 3
    assert all(node.is_valid for node in owner.nodes())
    assert _edge_set(owner.copy()) == _edge_set(owner)


def test_view_cannot_move():
    view = _make_row_map("sparse").cast()
    with pytest.raises(BrokenGraphInvariant):
        view.move_by((1, 0))
    assert view.num_nodes() == 3
