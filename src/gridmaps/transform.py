"""Affine transform helpers on 4x4 homogeneous matrices."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from scipy.spatial.transform import Rotation


def identity() -> np.ndarray:
    return np.eye(4)


def make_transform(
    rotation: np.ndarray | Rotation | None = None,
    translation: Sequence[float] | np.ndarray | None = None,
) -> np.ndarray:
    """Build a 4x4 transform from a rotation and a translation.

    Args:
        rotation: 3x3 linear part or a scipy ``Rotation``. Identity if None.
        translation: 3-vector. Zero if None.
    """
    out = np.eye(4)
    if rotation is not None:
        if isinstance(rotation, Rotation):
            out[:3, :3] = rotation.as_matrix()
        else:
            out[:3, :3] = np.asarray(rotation, dtype=float)
    if translation is not None:
        out[:3, 3] = np.asarray(translation, dtype=float)
    return out


def from_quaternion(
    quat_xyzw: Sequence[float],
    translation: Sequence[float] | np.ndarray | None = None,
) -> np.ndarray:
    """Build a transform from a (x, y, z, w) quaternion and a translation."""
    return make_transform(Rotation.from_quat(quat_xyzw), translation)


def invert(transform: np.ndarray) -> np.ndarray:
    # offsets may carry scale, so the rotation is not assumed orthonormal
    return np.linalg.inv(transform)


def apply(transform: np.ndarray, point: Sequence[float] | np.ndarray) -> np.ndarray:
    """Apply a transform to a 3D point."""
    p = np.asarray(point, dtype=float)
    return transform[:3, :3] @ p + transform[:3, 3]


def translate(transform: np.ndarray, translation: Sequence[float] | np.ndarray) -> None:
    """Post-multiply ``transform`` in place by a pure translation."""
    transform[:3, 3] += transform[:3, :3] @ np.asarray(translation, dtype=float)


def pretranslate(transform: np.ndarray, translation: Sequence[float] | np.ndarray) -> None:
    """Pre-multiply ``transform`` in place by a pure translation."""
    transform[:3, 3] += np.asarray(translation, dtype=float)


def is_finite(values: Sequence[float] | np.ndarray) -> bool:
    return bool(np.all(np.isfinite(np.asarray(values, dtype=float))))
