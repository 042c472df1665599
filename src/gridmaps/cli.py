"""gridmaps command-line interface."""

import json
import pickle
import sys
from typing import Tuple

import rich_click as click
from rich.console import Console
from rich.table import Table

from gridmaps.config import GridConfig
from gridmaps.errors import GridMapsError
from gridmaps.grid import Grid
from gridmaps.grid_map import GridMap
from gridmaps.traversability import TraversabilityMap3d
from gridmaps.voxel import VoxelGridMap


def _summary_rows(grid: Grid) -> list[tuple[str, str]]:
    rows = [
        ("class", type(grid).__name__),
        ("id", repr(grid.id)),
        ("map type", grid.map_type.name),
        ("EPSG code", grid.epsg_code),
        ("cells", f"{grid.num_cells.x} x {grid.num_cells.y}"),
    ]
    if isinstance(grid, VoxelGridMap):
        rows.append(("resolution", " x ".join(f"{r:g}" for r in grid.voxel_resolution)))
    else:
        rows.append(("resolution", " x ".join(f"{r:g}" for r in grid.resolution)))
    size = grid.get_size()
    rows.append(("size", f"{size[0]:g} x {size[1]:g}"))
    if isinstance(grid, GridMap):
        rows.append(("storage", grid.storage_kind.value))
        rows.append(("populated cells", str(grid.count_populated())))
    if isinstance(grid, TraversabilityMap3d):
        rows.append(("nodes", str(grid.num_nodes())))
        rows.append(("edges", str(sum(len(n.connection_handles) for n in grid.nodes()))))
    if isinstance(grid, VoxelGridMap):
        rows.append(("voxels", str(grid.count_voxels())))
    return rows


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="gridmaps")
def main() -> None:
    """gridmaps: multi-level grid maps and voxel ray traversal."""
    pass


@main.command("info")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def info(path: str) -> None:
    """Summarize a pickled map."""
    console = Console()
    with open(path, "rb") as f:
        grid = pickle.load(f)
    if not isinstance(grid, Grid):
        console.print(f"[red]Error:[/red] not a grid map: {path}")
        sys.exit(1)

    table = Table(title=path, show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    for name, value in _summary_rows(grid):
        table.add_row(name, value)
    console.print(table)


@main.command("ray")
@click.option("--origin", nargs=3, type=float, required=True,
              help="Ray origin in world coordinates")
@click.option("--end", nargs=3, type=float, required=True,
              help="Ray end (measurement) in world coordinates")
@click.option("--num-cells", nargs=2, type=int, default=(100, 100), show_default=True,
              help="Number of grid cells along x and y")
@click.option("--resolution", nargs=3, type=float, default=(0.1, 0.1, 0.1), show_default=True,
              help="Voxel size along x, y and z")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="JSON grid configuration (overrides --num-cells/--resolution)")
def ray(
    origin: Tuple[float, float, float],
    end: Tuple[float, float, float],
    num_cells: Tuple[int, int],
    resolution: Tuple[float, float, float],
    config_path: str | None,
) -> None:
    """Print the voxels traversed by a ray."""
    console = Console()
    if config_path is not None:
        with open(config_path) as f:
            config = GridConfig.from_dict(json.load(f))
    else:
        config = GridConfig(num_cells=num_cells, resolution=resolution)

    try:
        voxel_grid = VoxelGridMap.from_config(config)
        elements = voxel_grid.compute_ray(origin, end)
    except (GridMapsError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    table = Table(title=f"{len(elements)} ray element(s)")
    for column in ("x", "y", "z_first", "z_last"):
        table.add_column(column, justify="right")
    for element in elements:
        table.add_row(str(element.x), str(element.y), str(element.z_first), str(element.z_last))
    console.print(table)


if __name__ == "__main__":
    main()
