"""Plotting utilities for traversability maps."""

from typing import Any, Dict, Optional, Tuple

import numpy as np
from skimage.morphology import erosion

from .traversability import NodeType, TraversabilityMap3d


_BACKGROUND_GRAY = 0.75
"""Fill for cells without nodes."""

NODE_TYPE_COLORS: Dict[NodeType, Tuple[float, float, float]] = {
    NodeType.OBSTACLE: (0.35, 0.35, 0.35),
    NodeType.TRAVERSABLE: (1.0, 1.0, 1.0),
    NodeType.UNKNOWN: (0.6, 0.6, 0.9),
    NodeType.HOLE: (0.2, 0.2, 0.2),
    NodeType.UNSET: (0.9, 0.9, 0.6),
    NodeType.FRONTIER: (0.4, 0.8, 0.4),
}


def make_plotting_grid(trav_map: TraversabilityMap3d, height: Optional[float] = None
                       ) -> np.ndarray:
    """Convert a traversability map to an (nx, ny, 3) RGB grid.

    Each cell is colored by the type of one of its nodes: the highest node,
    or the node closest to ``height`` if given. Obstacle regions get a black
    boundary.
    """
    nx, ny = trav_map.num_cells
    grid = np.ones([nx, ny, 3]) * _BACKGROUND_GRAY
    obstacle = np.zeros([nx, ny], dtype=bool)

    for idx, cell in trav_map.items():
        if not len(cell):
            continue
        if height is None:
            node = cell[len(cell) - 1]
        else:
            node = min(cell, key=lambda n: abs(n.height - height))
        grid[idx.x, idx.y, :] = NODE_TYPE_COLORS[node.type]
        obstacle[idx.x, idx.y] = node.type == NodeType.OBSTACLE

    thinned = erosion(obstacle, footprint=np.ones((3, 3)))
    boundary = np.logical_xor(obstacle, thinned)
    grid[boundary] = 0
    return grid


def plot_connections(ax: Any, trav_map: TraversabilityMap3d, **kwargs: Any) -> None:
    """Draw every node connection as a line between cell indices."""
    line_kwargs = {"color": "tab:blue", "linewidth": 0.5, "alpha": 0.6}
    line_kwargs.update(kwargs)
    for node in trav_map.nodes():
        for neighbor in node.get_connections():
            ax.plot(
                [node.index.x, neighbor.index.x],
                [node.index.y, neighbor.index.y],
                **line_kwargs,
            )


def plot_traversability_map(
    ax: Any,
    trav_map: TraversabilityMap3d,
    height: Optional[float] = None,
    show_connections: bool = True,
) -> None:
    """Plot node types of a traversability map, optionally with its edges.

    The grid is transposed before rendering so that x runs horizontally.
    """
    ax.imshow(make_plotting_grid(trav_map, height).transpose(1, 0, 2), origin="lower")
    if show_connections:
        plot_connections(ax, trav_map)
