"""Exceptions and warnings raised by grid maps."""


class GridMapsError(Exception):
    """Base class for all grid map errors."""


class OutOfRangeIndex(GridMapsError, IndexError):
    """A cell was accessed outside the grid bounds."""


class InvalidTransform(GridMapsError, ValueError):
    """A position cannot be mapped to or from the grid."""


class BrokenGraphInvariant(GridMapsError, RuntimeError):
    """A traversability graph references a node that is not in its node table."""


class EmptyRay(GridMapsError, ValueError):
    """A ray traversal request that cannot produce any voxel."""


class DataDiscardedWarning(UserWarning):
    """Emitted when resizing or moving a map drops populated cells."""
