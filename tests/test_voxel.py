"""VoxelGridMap access, ray integration and persistence."""

import pickle

import numpy as np
import pytest

from gridmaps.config import GridConfig
from gridmaps.errors import EmptyRay
from gridmaps.types import StorageKind, VoxelIndex
from gridmaps.voxel import VoxelGridMap


def _make_voxel_grid() -> VoxelGridMap:
    return VoxelGridMap((10, 10), (1.0, 1.0, 0.5), default_value=0)


def test_voxel_index_conversions():
    grid = _make_voxel_grid()
    assert grid.voxel_resolution == (1.0, 1.0, 0.5)
    assert grid.storage_kind == StorageKind.SPARSE

    ok, vidx = grid.to_voxel_grid([2.5, 3.5, -0.75])
    assert ok
    assert vidx == VoxelIndex(2, 3, -2)
    assert vidx.column == (2, 3)

    ok, pos = grid.from_voxel_grid(vidx)
    assert ok
    assert np.allclose(pos, [2.5, 3.5, -0.75])

    assert grid.to_voxel_grid([10.5, 0.0, 0.0]) == (False, None)


def test_voxels_are_allocated_lazily():
    grid = _make_voxel_grid()
    assert grid.get_voxel((1, 1, 7)) == 0
    assert grid.count_populated() == 0

    grid.set_voxel((1, 1, 7), 3)
    grid.set_voxel((1, 1, -2), 4)
    grid.set_voxel((0, 2, 0), 5)
    assert grid.get_voxel((1, 1, 7)) == 3
    assert grid.column((1, 1)) == {7: 3, -2: 4}
    assert grid.count_populated() == 2
    assert grid.count_voxels() == 3
    assert list(grid.voxels()) == [
        (VoxelIndex(1, 1, -2), 4),
        (VoxelIndex(1, 1, 7), 3),
        (VoxelIndex(0, 2, 0), 5),
    ]


def test_integrate_ray_marks_free_and_hit():
    grid = _make_voxel_grid()
    ray = grid.integrate_ray(
        [0.5, 0.5, 0.25], [3.5, 0.5, 0.25],
        free_update=lambda v: v - 1,
        hit_update=lambda v: v + 1,
    )
    assert len(ray) == 4
    assert [grid.get_voxel((x, 0, 0)) for x in range(4)] == [-1, -1, -1, 1]

    grid.integrate_ray([0.5, 0.5, 0.25], [0.5, 0.5, 1.75], lambda v: v - 1, lambda v: v + 1)
    assert grid.column((0, 0)) == {0: -2, 1: -1, 2: -1, 3: 1}


def test_integrate_ray_leaving_grid_has_no_hit():
    grid = _make_voxel_grid()
    grid.integrate_ray([8.5, 0.5, 0.25], [20.5, 0.5, 0.25], lambda v: v - 1, lambda v: v + 1)
    assert grid.count_voxels() == 2
    assert all(value == -1 for _, value in grid.voxels())


def test_compute_ray_outside_origin():
    grid = _make_voxel_grid()
    with pytest.raises(EmptyRay):
        grid.compute_ray([-1.0, 0.5, 0.0], [3.0, 0.5, 0.0])


def test_from_config_requires_three_resolutions():
    config = GridConfig(num_cells=(4, 4), resolution=(0.5, 0.5, 0.2))
    grid = VoxelGridMap.from_config(config)
    assert grid.voxel_resolution == (0.5, 0.5, 0.2)
    with pytest.raises(ValueError):
        VoxelGridMap.from_config(GridConfig(resolution=(0.5, 0.5)))


def test_pickle_round_trip():
    grid = _make_voxel_grid()
    grid.id = "voxels"
    grid.set_voxel((1, 1, 7), 3)
    grid.set_voxel((4, 9, -1), 8)
    loaded = pickle.loads(pickle.dumps(grid))

    assert loaded.voxel_resolution == grid.voxel_resolution
    assert loaded.voxel_default_value == 0
    assert loaded.id == "voxels"
    assert list(loaded.voxels()) == list(grid.voxels())
    assert loaded.count_populated() == 2
