"""Destination surface data models.

Caller-facing geometry in global units [cm]. Native target descriptors
live in trackprop.core.targets.

Rotation convention: rows of ``rotation`` are the local x, y, z axes
expressed in global coordinates; the local z axis is the plane normal
or the cylinder axis.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.spatial.transform import Rotation


class SurfaceSide(Enum):
    """Which side of a surface a state sits on.

    Propagation results always carry AT_CENTER: entering/leaving side
    information is not produced.
    """
    BEFORE = "before_surface"
    AT_CENTER = "at_center_of_surface"
    AFTER = "after_surface"


def _frozen(values, shape) -> NDArray[np.float64]:
    a = np.array(values, dtype=np.float64).reshape(shape)
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class Plane:
    """Infinite plane.

    Attributes:
        point: Any point on the plane [cm].
        normal: Plane normal (unit length expected; not enforced here).
    """
    point: NDArray[np.float64]
    normal: NDArray[np.float64]

    def __post_init__(self) -> None:
        object.__setattr__(self, "point", _frozen(self.point, 3))
        object.__setattr__(self, "normal", _frozen(self.normal, 3))

    def local_z(self, point: ArrayLike) -> float:
        """Signed distance of a global point from the plane [cm]."""
        n = self.normal / np.linalg.norm(self.normal)
        return float(np.dot(np.asarray(point, dtype=np.float64) - self.point, n))


@dataclass(frozen=True, eq=False)
class Cylinder:
    """Infinite circular cylinder.

    Attributes:
        radius: Radius [cm].
        position: Point on the cylinder axis [cm].
        rotation: 3×3 orientation, rows = local axes; row 2 is the axis.
    """
    radius: float
    position: NDArray[np.float64]
    rotation: NDArray[np.float64]

    def __post_init__(self) -> None:
        object.__setattr__(self, "radius", float(self.radius))
        object.__setattr__(self, "position", _frozen(self.position, 3))
        object.__setattr__(self, "rotation", _frozen(self.rotation, (3, 3)))

    @classmethod
    def from_axis(
        cls,
        radius: float,
        position: ArrayLike = (0.0, 0.0, 0.0),
        axis: ArrayLike = (0.0, 0.0, 1.0),
    ) -> Cylinder:
        """Build a cylinder whose local z axis is aligned with *axis*.

        Args:
            radius: Radius [cm].
            position: Point on the axis [cm].
            axis: Axis direction (any nonzero length).
        """
        target = np.asarray(axis, dtype=np.float64).reshape(3)
        norm = np.linalg.norm(target)
        if not norm > 0.0:
            raise ValueError(f"Cylinder axis must be nonzero, got {target.tolist()!r}")
        rot, _ = Rotation.align_vectors([target / norm], [[0.0, 0.0, 1.0]])
        # align_vectors returns the active rotation (local → global);
        # its columns are the local axes, stored here as rows.
        return cls(radius=radius, position=position, rotation=rot.as_matrix().T)

    @property
    def axis(self) -> NDArray[np.float64]:
        return np.array(self.rotation[2])

    def radial_distance(self, point: ArrayLike) -> float:
        """Signed distance of a global point from the cylinder wall [cm].

        Negative inside, positive outside.
        """
        a = self.axis / np.linalg.norm(self.axis)
        rel = np.asarray(point, dtype=np.float64) - self.position
        radial = rel - np.dot(rel, a) * a
        return float(np.linalg.norm(radial) - self.radius)


TargetSurface = Union[Plane, Cylinder]
