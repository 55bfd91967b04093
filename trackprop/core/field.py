"""Ambient magnetic field models.

Field values in Tesla, positions in global units [cm].
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np
from numpy.typing import ArrayLike, NDArray


@runtime_checkable
class MagneticField(Protocol):
    """Structural typing port for field providers."""

    def in_tesla(self, position_cm: ArrayLike) -> NDArray[np.float64]: ...


@dataclass(frozen=True)
class UniformMagneticField:
    """Constant field over all space.

    Attributes:
        bx: X component [T].
        by: Y component [T].
        bz: Z component [T].
    """
    bx: float = 0.0
    by: float = 0.0
    bz: float = 0.0

    def in_tesla(self, position_cm: ArrayLike) -> NDArray[np.float64]:
        return np.array([self.bx, self.by, self.bz], dtype=np.float64)


ZERO_FIELD = UniformMagneticField()
