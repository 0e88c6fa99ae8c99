"""Positions, rotations and 4x4 affine transforms for placing lanes and cars."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence, Tuple

Row = Tuple[float, float, float, float]
Matrix = Tuple[Row, Row, Row, Row]
Vector = Tuple[float, float, float]


def identity() -> Matrix:
    """Return the 4x4 identity matrix."""
    return (
        (1.0, 0.0, 0.0, 0.0),
        (0.0, 1.0, 0.0, 0.0),
        (0.0, 0.0, 1.0, 0.0),
        (0.0, 0.0, 0.0, 1.0),
    )


def _multiply(a: Sequence[Sequence[float]], b: Sequence[Sequence[float]]) -> Matrix:
    columns = list(zip(*b))
    return tuple(  # type: ignore[return-value]
        tuple(sum(x * y for x, y in zip(row, column)) for column in columns)
        for row in a
    )


def translate(matrix: Matrix, vector: Sequence[float]) -> Matrix:
    """Return ``matrix`` followed by a translation by ``vector`` in its local frame."""
    x, y, z = (float(v) for v in vector[:3])
    translation = (
        (1.0, 0.0, 0.0, x),
        (0.0, 1.0, 0.0, y),
        (0.0, 0.0, 1.0, z),
        (0.0, 0.0, 0.0, 1.0),
    )
    return _multiply(matrix, translation)


def rotate(matrix: Matrix, angle: float, axis: Sequence[float]) -> Matrix:
    """Return ``matrix`` followed by a right-handed rotation of ``angle`` radians about ``axis``."""
    ax, ay, az = (float(v) for v in axis[:3])
    norm = math.sqrt(ax * ax + ay * ay + az * az)
    if norm == 0.0:
        raise ValueError("rotation axis must not be the zero vector")
    x, y, z = ax / norm, ay / norm, az / norm
    c = math.cos(angle)
    s = math.sin(angle)
    t = 1.0 - c
    rotation = (
        (c + x * x * t, x * y * t - z * s, x * z * t + y * s, 0.0),
        (x * y * t + z * s, c + y * y * t, y * z * t - x * s, 0.0),
        (x * z * t - y * s, y * z * t + x * s, c + z * z * t, 0.0),
        (0.0, 0.0, 0.0, 1.0),
    )
    return _multiply(matrix, rotation)


def apply(matrix: Matrix, point: Sequence[float]) -> Vector:
    """Transform a 3D point (with implicit w = 1) by ``matrix``."""
    px, py, pz = (float(v) for v in point[:3])
    homogeneous = (px, py, pz, 1.0)
    x, y, z, w = (sum(m * p for m, p in zip(row, homogeneous)) for row in matrix)
    if w != 1.0 and w != 0.0:
        return (x / w, y / w, z / w)
    return (x, y, z)


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __iter__(self):
        return iter((self.x, self.y, self.z))


@dataclass
class Rotation:
    """Euler angles in radians, applied in x, y, z order."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def apply_to(self, matrix: Matrix) -> Matrix:
        """Rotate ``matrix`` about the x, y and z axes in turn."""
        matrix = rotate(matrix, self.x, (1.0, 0.0, 0.0))
        matrix = rotate(matrix, self.y, (0.0, 1.0, 0.0))
        return rotate(matrix, self.z, (0.0, 0.0, 1.0))


@dataclass
class Transform:
    value: Matrix = field(default_factory=identity)