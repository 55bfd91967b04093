"""Particle state data models.

All values in global units: cm, GeV, Tesla.
Native (integrator) values are produced via trackprop.core.units.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import numpy as np
from numpy.typing import NDArray

from trackprop.constants import C_LIGHT_GEV_PER_T_CM, CURVILINEAR_DIM
from trackprop.core import units

if TYPE_CHECKING:
    from trackprop.core.field import MagneticField


def _vector3(values) -> NDArray[np.float64]:
    v = np.array(values, dtype=np.float64).reshape(3)
    v.setflags(write=False)
    return v


@dataclass(frozen=True, eq=False)
class FreeState:
    """Charged particle state not yet attached to any surface.

    Attributes:
        position: Position [cm].
        momentum: Momentum [GeV].
        charge: Charge [e], +1 or -1.
        field: Ambient field reference used to reconstruct curvature.
    """
    position: NDArray[np.float64]
    momentum: NDArray[np.float64]
    charge: int
    field: Optional[MagneticField] = None

    def __post_init__(self) -> None:
        position = _vector3(self.position)
        momentum = _vector3(self.momentum)
        if not (np.all(np.isfinite(position)) and np.all(np.isfinite(momentum))):
            raise ValueError(
                f"FreeState requires finite position and momentum, got "
                f"{position.tolist()!r}, {momentum.tolist()!r}"
            )
        if not np.any(momentum):
            raise ValueError("FreeState momentum must be nonzero")
        if self.charge not in (1, -1):
            raise ValueError(f"FreeState charge must be +1 or -1, got {self.charge!r}")
        object.__setattr__(self, "position", position)
        object.__setattr__(self, "momentum", momentum)
        object.__setattr__(self, "charge", int(self.charge))

    @property
    def momentum_magnitude(self) -> float:
        """|p| [GeV]."""
        return float(np.linalg.norm(self.momentum))

    @property
    def transverse_momentum(self) -> float:
        """p_T [GeV]."""
        return units.perp(self.momentum)

    @property
    def signed_inverse_momentum(self) -> float:
        """q/p [1/GeV]."""
        return self.charge / self.momentum_magnitude

    @property
    def perp(self) -> float:
        """Transverse distance of the position from the z axis [cm]."""
        return units.perp(self.position)

    @property
    def eta(self) -> float:
        return units.eta(self.position)

    @property
    def phi(self) -> float:
        return units.phi(self.position)

    def transverse_curvature(self, field: Optional[MagneticField] = None) -> float:
        """Signed transverse curvature [1/cm] from the local Bz.

        κ = -c · q · Bz / p_T. Zero without a field or with p_T = 0.

        Args:
            field: Field to evaluate instead of the state's own.
        """
        field = field if field is not None else self.field
        pt = self.transverse_momentum
        if field is None or pt == 0.0:
            return 0.0
        bz = float(field.in_tesla(self.position)[2])
        return -C_LIGHT_GEV_PER_T_CM * self.charge * bz / pt


@dataclass(eq=False)
class CurvilinearError:
    """Symmetric 5×5 error over the curvilinear track parameters.

    Parameters (global units): q/p [1/GeV], λ [rad], φ [rad], x⊥ [cm], y⊥ [cm].
    The matrix is symmetrized on construction.

    Attributes:
        matrix: 5×5 covariance.
    """
    matrix: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros((CURVILINEAR_DIM, CURVILINEAR_DIM)),
    )

    def __post_init__(self) -> None:
        m = np.array(self.matrix, dtype=np.float64)
        if m.shape != (CURVILINEAR_DIM, CURVILINEAR_DIM):
            raise ValueError(f"Curvilinear error must be 5x5, got shape {m.shape!r}")
        self.matrix = 0.5 * (m + m.T)

    @classmethod
    def identity(cls, scale: float = 1.0) -> CurvilinearError:
        return cls(np.eye(CURVILINEAR_DIM) * scale)

    def is_symmetric(self, atol: float = 1e-12) -> bool:
        return bool(np.allclose(self.matrix, self.matrix.T, rtol=0.0, atol=atol))

    def is_positive_semidefinite(self, rtol: float = 1e-10) -> bool:
        """True if all eigenvalues ≥ -rtol · max|eigenvalue| (round-off allowed)."""
        eigvals = np.linalg.eigvalsh(self.matrix)
        bound = rtol * max(float(np.max(np.abs(eigvals))), 1e-300)
        return bool(np.all(eigvals >= -bound))

    def sigma(self, index: int) -> float:
        """Standard deviation of one parameter."""
        return math.sqrt(max(float(self.matrix[index, index]), 0.0))
