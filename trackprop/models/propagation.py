"""Propagation configuration and result data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Optional

import numpy as np
from numpy.typing import NDArray

from trackprop.constants import (
    DEFAULT_MAX_CROSSING_ITERATIONS,
    DEFAULT_MAX_PATH_MM,
    DEFAULT_MAX_STEP_MM,
    DEFAULT_MAX_STEPS,
    DEFAULT_SURFACE_TOLERANCE_MM,
)
from trackprop.models.state import CurvilinearError, FreeState
from trackprop.models.surface import SurfaceSide, TargetSurface

if TYPE_CHECKING:
    from trackprop.core.field import MagneticField


class PropagationDirection(Enum):
    """Caller-facing propagation direction."""
    ALONG_MOMENTUM = "along_momentum"
    OPPOSITE_TO_MOMENTUM = "opposite_to_momentum"


class IntegratorMode(Enum):
    """Integrator-native direction mode."""
    FORWARDS = "forwards"
    BACKWARDS = "backwards"


class IntegratorStatus(IntEnum):
    """Integrator return code. Zero is success."""
    SUCCESS = 0
    STEP_LIMIT = 1
    TARGET_UNREACHABLE = 2
    NUMERICAL_FAILURE = 3
    NOT_INITIALIZED = 4


@dataclass
class IntegratorConfig:
    """Reference integrator stepping limits (native units).

    Attributes:
        max_step_mm: Upper bound on a single step [mm].
        max_steps: Accepted-step limit per call.
        max_path_mm: Path limit per call [mm].
        surface_tolerance_mm: Convergence distance to the target [mm].
        max_crossing_iterations: Secant retries when a step overshoots.
    """
    max_step_mm: float = DEFAULT_MAX_STEP_MM
    max_steps: int = DEFAULT_MAX_STEPS
    max_path_mm: float = DEFAULT_MAX_PATH_MM
    surface_tolerance_mm: float = DEFAULT_SURFACE_TOLERANCE_MM
    max_crossing_iterations: int = DEFAULT_MAX_CROSSING_ITERATIONS


@dataclass
class PropagatorConfig:
    """PropagationEngine options.

    Attributes:
        initial_error_scale: Placeholder input error is this times the
            5×5 identity (native units). The caller's uncertainty is never
            an input.
    """
    initial_error_scale: float = 0.0


@dataclass(frozen=True, eq=False)
class PropagationResult:
    """State on the destination surface.

    Attributes:
        position: Final position [cm].
        momentum: Final momentum [GeV].
        charge: Charge [e], same as the input state.
        covariance: Transported curvilinear error (global units).
        surface: Destination surface as supplied by the caller.
        surface_side: Always SurfaceSide.AT_CENTER.
        status: Integrator return code; anything but SUCCESS means the
            state is unreliable.
        path_length: Path travelled [cm]; only set by propagate_with_path.
        field: Ambient field reference carried over from the input state.
    """
    position: NDArray[np.float64]
    momentum: NDArray[np.float64]
    charge: int
    covariance: CurvilinearError
    surface: TargetSurface
    surface_side: SurfaceSide = SurfaceSide.AT_CENTER
    status: IntegratorStatus = IntegratorStatus.SUCCESS
    path_length: Optional[float] = None
    field: Optional[MagneticField] = field(default=None, repr=False)

    @property
    def is_valid(self) -> bool:
        return self.status == IntegratorStatus.SUCCESS

    def free_state(self) -> FreeState:
        """Detach the result from its surface for chained propagation."""
        return FreeState(
            position=self.position,
            momentum=self.momentum,
            charge=self.charge,
            field=self.field,
        )
