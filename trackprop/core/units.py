"""Unit conversion module — single conversion point between global and native conventions.

CRITICAL: All conversions into or out of the integrator MUST go through this module.

Global (caller) units:
    Length   : cm
    Momentum : GeV
    Rotation : rows are the local axes in global coordinates
    Error    : (q/p [1/GeV], lambda, phi, x_perp [cm], y_perp [cm])

Native (integrator) units:
    Length   : mm
    Momentum : MeV
    Rotation : columns are the local axes in global coordinates
    Error    : (q/p [1/MeV], lambda, phi, y_perp [mm], z_perp [mm])

Both error conventions use the same curvilinear basis in the same order,
so error conversion is a diagonal rescaling.

Functions are total: NaN and Inf propagate unchanged.
"""

from __future__ import annotations

import math
from typing import NewType

import numpy as np
from numpy.typing import ArrayLike, NDArray

from trackprop.constants import (
    CM_TO_MM,
    GEV_TO_MEV,
    MEV_TO_GEV,
    MM_TO_CM,
)

# Type aliases — zero runtime cost, visible in IDE for unit-error detection
Cm = NewType('Cm', float)
Mm = NewType('Mm', float)
GeV = NewType('GeV', float)
MeV = NewType('MeV', float)
Radian = NewType('Radian', float)

# Diagonal scale for the curvilinear error, global → native.
# q/p: 1/GeV → 1/MeV, angles unchanged, offsets cm → mm.
_ERROR_SCALE_TO_NATIVE = np.array([MEV_TO_GEV, 1.0, 1.0, CM_TO_MM, CM_TO_MM])
_ERROR_SCALE_TO_GLOBAL = np.array([GEV_TO_MEV, 1.0, 1.0, MM_TO_CM, MM_TO_CM])


def _as_vector(v: ArrayLike) -> NDArray[np.float64]:
    return np.asarray(v, dtype=np.float64).reshape(3)


# ---------------------------------------------------------------------------
# Scalar conversions
# ---------------------------------------------------------------------------

def cm_to_mm(cm: float) -> Mm:
    """Global (cm) → Native (mm)."""
    return Mm(cm * CM_TO_MM)


def mm_to_cm(mm: float) -> Cm:
    """Native (mm) → Global (cm)."""
    return Cm(mm * MM_TO_CM)


def GeV_to_MeV(gev: float) -> MeV:
    """GeV → MeV."""
    return MeV(gev * GEV_TO_MEV)


def MeV_to_GeV(mev: float) -> GeV:
    """MeV → GeV."""
    return GeV(mev * MEV_TO_GEV)


def deg_to_rad(deg: float) -> Radian:
    """Degree → Radian."""
    return Radian(deg * (math.pi / 180.0))


def rad_to_deg(rad: float) -> float:
    """Radian → Degree."""
    return rad * (180.0 / math.pi)


def global_length_to_native(length_cm: float) -> Mm:
    """Scalar length (radius, path length) [cm] → [mm]."""
    return cm_to_mm(length_cm)


def native_length_to_global(length_mm: float) -> Cm:
    """Scalar length [mm] → [cm]."""
    return mm_to_cm(length_mm)


# ---------------------------------------------------------------------------
# Points and vectors
# ---------------------------------------------------------------------------

def global_point_to_native(point_cm: ArrayLike) -> NDArray[np.float64]:
    """Point [cm] → point [mm]."""
    return _as_vector(point_cm) * CM_TO_MM


def native_point_to_global(point_mm: ArrayLike) -> NDArray[np.float64]:
    """Point [mm] → point [cm]."""
    return _as_vector(point_mm) * MM_TO_CM


def global_vector_to_native(vector_cm: ArrayLike) -> NDArray[np.float64]:
    """Displacement vector [cm] → [mm]. Length scale only."""
    return _as_vector(vector_cm) * CM_TO_MM


def native_vector_to_global(vector_mm: ArrayLike) -> NDArray[np.float64]:
    """Displacement vector [mm] → [cm]. Length scale only."""
    return _as_vector(vector_mm) * MM_TO_CM


def global_momentum_to_native(momentum_gev: ArrayLike) -> NDArray[np.float64]:
    """Momentum [GeV] → [MeV]. Energy scale only."""
    return _as_vector(momentum_gev) * GEV_TO_MEV


def native_momentum_to_global(momentum_mev: ArrayLike) -> NDArray[np.float64]:
    """Momentum [MeV] → [GeV]. Energy scale only."""
    return _as_vector(momentum_mev) * MEV_TO_GEV


def _renormalize(v: NDArray[np.float64]) -> NDArray[np.float64]:
    norm = np.linalg.norm(v)
    # Zero stays zero; NaN/Inf fall through the comparison unchanged
    if norm > 0.0 and np.isfinite(norm):
        return v / norm
    return v


def global_normal_to_native(normal: ArrayLike) -> NDArray[np.float64]:
    """Unit direction → unit direction. Dimensionless, renormalized."""
    return _renormalize(_as_vector(normal))


def native_normal_to_global(normal: ArrayLike) -> NDArray[np.float64]:
    """Unit direction → unit direction. Dimensionless, renormalized."""
    return _renormalize(_as_vector(normal))


# ---------------------------------------------------------------------------
# Rotations
# ---------------------------------------------------------------------------

def global_rotation_to_native(rotation: ArrayLike) -> NDArray[np.float64]:
    """Rotation with local axes as rows → local axes as columns.

    No unit scaling; the transpose is exact so the round trip is lossless.
    """
    return np.asarray(rotation, dtype=np.float64).reshape(3, 3).T.copy()


def native_rotation_to_global(rotation: ArrayLike) -> NDArray[np.float64]:
    """Rotation with local axes as columns → local axes as rows."""
    return np.asarray(rotation, dtype=np.float64).reshape(3, 3).T.copy()


# ---------------------------------------------------------------------------
# Curvilinear error matrix
# ---------------------------------------------------------------------------

def _rescale_error(error: ArrayLike, scale: NDArray[np.float64]) -> NDArray[np.float64]:
    m = np.asarray(error, dtype=np.float64).reshape(5, 5)
    scaled = m * np.outer(scale, scale)
    return 0.5 * (scaled + scaled.T)


def global_error_to_native(error: ArrayLike) -> NDArray[np.float64]:
    """5×5 curvilinear error, global units → native units.

    S·C·S with S = diag(1e-3, 1, 1, 10, 10), then symmetrized.

    Args:
        error: Symmetric 5×5 matrix [(1/GeV, rad, rad, cm, cm)²].
    Returns:
        Symmetric 5×5 matrix [(1/MeV, rad, rad, mm, mm)²].
    """
    return _rescale_error(error, _ERROR_SCALE_TO_NATIVE)


def native_error_to_global(error: ArrayLike) -> NDArray[np.float64]:
    """5×5 curvilinear error, native units → global units.

    Args:
        error: Symmetric 5×5 matrix [(1/MeV, rad, rad, mm, mm)²].
    Returns:
        Symmetric 5×5 matrix [(1/GeV, rad, rad, cm, cm)²].
    """
    return _rescale_error(error, _ERROR_SCALE_TO_GLOBAL)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

def perp(v: ArrayLike) -> float:
    """Transverse magnitude sqrt(x² + y²)."""
    x, y, _ = _as_vector(v)
    return math.hypot(x, y)


def phi(v: ArrayLike) -> Radian:
    """Azimuthal angle [radian]."""
    x, y, _ = _as_vector(v)
    return Radian(math.atan2(y, x))


def eta(v: ArrayLike) -> float:
    """Pseudorapidity -ln(tan(theta/2)). Zero vector → 0."""
    x, y, z = _as_vector(v)
    rho = math.hypot(x, y)
    if rho == 0.0:
        if z == 0.0:
            return 0.0
        return math.copysign(math.inf, z)
    return math.asinh(z / rho)
