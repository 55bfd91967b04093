"""Traversed material description for error transport.

Only multiple scattering is modelled; there is no energy loss.
Lengths in native units [mm], momenta in [MeV].
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from trackprop.constants import HIGHLAND_SCALE_MEV, PARTICLE_MASSES_MEV


@dataclass(frozen=True)
class Medium:
    """Homogeneous material filling the propagation volume.

    Attributes:
        name: Display name.
        radiation_length_mm: Radiation length X0 [mm]. ``math.inf`` for vacuum.
    """
    name: str
    radiation_length_mm: float

    @property
    def is_vacuum(self) -> bool:
        return math.isinf(self.radiation_length_mm)


VACUUM = Medium("Vacuum", math.inf)
# PDG values
AIR = Medium("Air", 303_900.0)
IRON = Medium("Fe", 17.57)


def particle_mass(particle_name: str) -> float | None:
    """Rest mass [MeV] for a signed or unsigned particle name.

    Returns None for unknown particles.
    """
    base = particle_name.rstrip("+-")
    return PARTICLE_MASSES_MEV.get(base)


def scattering_variance(
    medium: Medium,
    step_mm: float,
    momentum_mev: float,
    mass_mev: float | None,
    charge: int = 1,
) -> float:
    """Variance of the projected scattering angle over one step [rad²].

    θ₀ = 13.6 MeV / (β p) · |z| · sqrt(x / X0). The logarithmic Highland
    correction is left out because it is not additive over steps.

    Args:
        medium: Traversed medium.
        step_mm: Step length [mm] (sign ignored).
        momentum_mev: Momentum magnitude [MeV].
        mass_mev: Rest mass [MeV]; None means β = 1.
        charge: Particle charge [e].
    Returns:
        θ₀² [rad²]. Zero in vacuum.
    """
    if medium.is_vacuum or momentum_mev <= 0.0:
        return 0.0
    if mass_mev is None:
        beta = 1.0
    else:
        energy = math.hypot(momentum_mev, mass_mev)
        beta = momentum_mev / energy
    theta0 = HIGHLAND_SCALE_MEV / (beta * momentum_mev) * abs(charge)
    return theta0 * theta0 * abs(step_mm) / medium.radiation_length_mm
