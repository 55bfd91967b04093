"""Target surface builder — caller geometry [cm] → native target [mm].

Validates geometry before anything reaches the integrator: degenerate
input raises DegenerateGeometryError instead of producing an undefined
stopping condition.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import ArrayLike

from trackprop.constants import NORMAL_MIN_NORM, ROTATION_ORTHONORMAL_TOL
from trackprop.core.targets import CylinderTarget, NativeTarget, PlaneTarget
from trackprop.core.units import (
    global_length_to_native,
    global_normal_to_native,
    global_point_to_native,
    global_rotation_to_native,
)
from trackprop.models.surface import Cylinder, Plane, TargetSurface

logger = logging.getLogger(__name__)


class DegenerateGeometryError(ValueError):
    """Target geometry cannot define a stopping condition."""


def _check_finite(name: str, values: ArrayLike) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if not np.all(np.isfinite(arr)):
        raise DegenerateGeometryError(f"{name} must be finite, got {arr.tolist()!r}")
    return arr


class TargetSurfaceBuilder:
    """Builds immutable native target descriptors."""

    def build(self, surface: TargetSurface) -> NativeTarget:
        """Dispatch on the caller's surface type.

        Raises:
            TypeError: If *surface* is neither a Plane nor a Cylinder.
            DegenerateGeometryError: If the geometry is degenerate.
        """
        if isinstance(surface, Plane):
            return self.build_from_plane(surface.point, surface.normal)
        if isinstance(surface, Cylinder):
            return self.build_from_cylinder(surface.radius, surface.position, surface.rotation)
        raise TypeError(f"Unsupported target surface: {type(surface).__name__}")

    def build_from_plane(self, point: ArrayLike, normal: ArrayLike) -> PlaneTarget:
        """Plane target from a point [cm] and a normal.

        Args:
            point: Point on the plane [cm].
            normal: Normal direction; renormalized.
        Returns:
            PlaneTarget in native units [mm].
        """
        point = _check_finite("Plane point", point)
        normal = _check_finite("Plane normal", normal)
        if np.linalg.norm(normal) < NORMAL_MIN_NORM:
            raise DegenerateGeometryError(f"Plane normal has zero length: {normal.tolist()!r}")

        target = PlaneTarget(
            point=global_point_to_native(point),
            normal=global_normal_to_native(normal),
        )
        logger.debug("Built target %s", target.describe())
        return target

    def build_from_cylinder(
        self,
        radius: float,
        position: ArrayLike,
        rotation: ArrayLike,
    ) -> CylinderTarget:
        """Cylinder target from radius [cm], axis point [cm] and orientation.

        Args:
            radius: Radius [cm], strictly positive.
            position: Point on the axis [cm].
            rotation: 3×3 orthonormal matrix, rows = local axes.
        Returns:
            CylinderTarget in native units [mm].
        """
        if not np.isfinite(radius) or radius <= 0.0:
            raise DegenerateGeometryError(f"Cylinder radius must be positive, got {radius!r}")
        position = _check_finite("Cylinder position", position)
        rot = _check_finite("Cylinder rotation", rotation)
        if rot.shape != (3, 3):
            raise DegenerateGeometryError(f"Cylinder rotation must be 3x3, got shape {rot.shape!r}")
        if not np.allclose(rot @ rot.T, np.eye(3), atol=ROTATION_ORTHONORMAL_TOL):
            raise DegenerateGeometryError("Cylinder rotation is not orthonormal")

        target = CylinderTarget(
            radius=global_length_to_native(radius),
            position=global_point_to_native(position),
            rotation=global_rotation_to_native(rot),
        )
        logger.debug("Built target %s", target.describe())
        return target
