"""Integrator-native target surface descriptors.

All values in native units [mm]. Rotation columns are the local axes;
column 2 is the cylinder axis. Instances are immutable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

# Below this, a direction is treated as parallel to the surface
_PARALLEL_EPS = 1e-14


def _frozen(values, shape) -> NDArray[np.float64]:
    a = np.array(values, dtype=np.float64).reshape(shape)
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class PlaneTarget:
    """Plane stopping condition.

    Attributes:
        point: Point on the plane [mm].
        normal: Unit normal.
    """
    point: NDArray[np.float64]
    normal: NDArray[np.float64]

    def __post_init__(self) -> None:
        object.__setattr__(self, "point", _frozen(self.point, 3))
        object.__setattr__(self, "normal", _frozen(self.normal, 3))

    def signed_distance(self, point: ArrayLike) -> float:
        """Distance from the plane along the normal [mm]."""
        return float(np.dot(np.asarray(point, dtype=np.float64) - self.point, self.normal))

    def distance_along(self, point: ArrayLike, direction: ArrayLike) -> float | None:
        """Straight-line distance to the plane along a unit direction [mm].

        Returns None if the line is parallel to the plane or the plane
        lies behind the point.
        """
        d = np.asarray(direction, dtype=np.float64)
        denom = float(np.dot(self.normal, d))
        if abs(denom) < _PARALLEL_EPS:
            return None
        s = -self.signed_distance(point) / denom
        return s if s >= 0.0 else None

    def describe(self) -> str:
        return f"Plane(point={self.point.tolist()} mm, normal={self.normal.tolist()})"


@dataclass(frozen=True, eq=False)
class CylinderTarget:
    """Cylinder stopping condition.

    Attributes:
        radius: Radius [mm].
        position: Point on the axis [mm].
        rotation: 3×3 rotation, columns = local axes.
    """
    radius: float
    position: NDArray[np.float64]
    rotation: NDArray[np.float64]

    def __post_init__(self) -> None:
        object.__setattr__(self, "radius", float(self.radius))
        object.__setattr__(self, "position", _frozen(self.position, 3))
        object.__setattr__(self, "rotation", _frozen(self.rotation, (3, 3)))

    @property
    def axis(self) -> NDArray[np.float64]:
        return np.array(self.rotation[:, 2])

    def _radial(self, v: NDArray[np.float64]) -> NDArray[np.float64]:
        a = self.axis
        return v - np.dot(v, a) * a

    def signed_distance(self, point: ArrayLike) -> float:
        """Distance from the wall [mm]; negative inside."""
        rel = np.asarray(point, dtype=np.float64) - self.position
        return float(np.linalg.norm(self._radial(rel)) - self.radius)

    def distance_along(self, point: ArrayLike, direction: ArrayLike) -> float | None:
        """Smallest non-negative straight-line distance to the wall [mm].

        Solves |r⊥ + s·d⊥|² = R². Returns None when the line runs
        parallel to the axis or misses the cylinder.
        """
        rel = np.asarray(point, dtype=np.float64) - self.position
        r_perp = self._radial(rel)
        d_perp = self._radial(np.asarray(direction, dtype=np.float64))

        a = float(np.dot(d_perp, d_perp))
        if a < _PARALLEL_EPS:
            return None
        b = 2.0 * float(np.dot(r_perp, d_perp))
        c = float(np.dot(r_perp, r_perp)) - self.radius * self.radius
        disc = b * b - 4.0 * a * c
        if disc < 0.0:
            return None
        sqrt_disc = math.sqrt(disc)
        roots = sorted(((-b - sqrt_disc) / (2.0 * a), (-b + sqrt_disc) / (2.0 * a)))
        for s in roots:
            if s >= 0.0:
                return s
        return None

    def describe(self) -> str:
        return (
            f"Cylinder(radius={self.radius} mm, position={self.position.tolist()} mm, "
            f"axis={self.axis.tolist()})"
        )


NativeTarget = Union[PlaneTarget, CylinderTarget]
