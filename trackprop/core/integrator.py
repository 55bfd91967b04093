"""Trajectory integrator port and reference Runge-Kutta implementation.

The PropagationEngine only depends on the TrajectoryIntegrator protocol.
RungeKuttaIntegrator is a self-contained implementation of that contract:

    initialize()                 — idempotent process setup
    set_step_observer(observer)  — one observer notified of every step
    propagate(state, target, mode) -> status code (0 = success)

All internal computations in native units: mm, MeV. The field is sampled
in global units (cm → Tesla) through trackprop.core.units.

Equations of motion in arc length s:
    dx/ds = t
    dt/ds = c · (q/p) · t × B      c = 0.299792458 MeV/(T·mm)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from trackprop.constants import (
    C_LIGHT_MEV_PER_T_MM,
    CURVILINEAR_DIM,
    NEGATIVE_SUFFIX,
    POSITIVE_SUFFIX,
)
from trackprop.core.field import ZERO_FIELD, MagneticField
from trackprop.core.medium import VACUUM, Medium, particle_mass, scattering_variance
from trackprop.core.targets import NativeTarget
from trackprop.core.units import native_point_to_global
from trackprop.models.propagation import IntegratorConfig, IntegratorMode, IntegratorStatus

logger = logging.getLogger(__name__)

# Floor on cos(lambda) in the curvilinear Jacobian (track along the z axis)
_MIN_COS_LAMBDA = 1e-6


# ── Ports ──


@runtime_checkable
class StepObserver(Protocol):
    """Receives the signed length [mm] of every accepted step."""

    def on_step(self, step_length: float) -> None: ...


@runtime_checkable
class TrajectoryIntegrator(Protocol):
    """Structural typing port for the stepping engine."""

    step_observer: Optional[StepObserver]

    def initialize(self) -> None: ...

    def set_step_observer(self, observer: Optional[StepObserver]) -> None: ...

    def propagate(
        self,
        state: NativeFreeState,
        target: NativeTarget,
        mode: IntegratorMode,
    ) -> int: ...


# ── Native state ──


@dataclass(eq=False)
class NativeFreeState:
    """Mutable integrator state, updated in place by propagate().

    Attributes:
        particle_name: Signed particle name, e.g. "mu+" or "mu-".
        position: Position [mm].
        momentum: Momentum [MeV].
        error: 5×5 curvilinear error, native units.
        field: Field to integrate in for this call; None means the
            integrator's own field.
    """
    particle_name: str
    position: NDArray[np.float64]
    momentum: NDArray[np.float64]
    error: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros((CURVILINEAR_DIM, CURVILINEAR_DIM)),
    )
    field: Optional[MagneticField] = None

    def __post_init__(self) -> None:
        self.position = np.array(self.position, dtype=np.float64).reshape(3)
        self.momentum = np.array(self.momentum, dtype=np.float64).reshape(3)
        self.error = np.array(self.error, dtype=np.float64).reshape(
            CURVILINEAR_DIM, CURVILINEAR_DIM,
        )

    @property
    def charge(self) -> int:
        """Charge sign decoded from the particle name suffix."""
        if self.particle_name.endswith(POSITIVE_SUFFIX):
            return 1
        if self.particle_name.endswith(NEGATIVE_SUFFIX):
            return -1
        return 0


# ── RungeKuttaIntegrator ──


class RungeKuttaIntegrator:
    """Fourth-order Runge-Kutta stepper with curvilinear error transport.

    Steps toward the target using the straight-line distance as the step
    length (capped at ``max_step_mm``). A step that crosses the surface is
    discarded and retried with a secant-shortened length, so every step
    reported to the observer lies on the final trajectory.

    Args:
        field: Ambient magnetic field (default: zero field).
        medium: Traversed medium for multiple scattering (default: vacuum).
        config: Stepping limits.
    """

    def __init__(
        self,
        field: MagneticField | None = None,
        medium: Medium = VACUUM,
        config: IntegratorConfig | None = None,
    ) -> None:
        self._field = field if field is not None else ZERO_FIELD
        self._medium = medium
        self._config = config or IntegratorConfig()
        self._initialized = False
        self.step_observer: Optional[StepObserver] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> IntegratorConfig:
        return self._config

    def initialize(self) -> None:
        """Validate the configuration once. Later calls are no-ops."""
        if self._initialized:
            return
        cfg = self._config
        if cfg.max_step_mm <= 0 or cfg.max_steps <= 0 or cfg.max_path_mm <= 0:
            raise ValueError(f"Invalid integrator limits: {cfg!r}")
        if cfg.surface_tolerance_mm <= 0:
            raise ValueError(f"Surface tolerance must be positive, got {cfg.surface_tolerance_mm!r}")
        self._initialized = True
        logger.debug(
            "RungeKuttaIntegrator initialized: medium=%s, max_step=%.3g mm",
            self._medium.name, cfg.max_step_mm,
        )

    def set_step_observer(self, observer: Optional[StepObserver]) -> None:
        self.step_observer = observer

    def propagate(
        self,
        state: NativeFreeState,
        target: NativeTarget,
        mode: IntegratorMode,
    ) -> int:
        """Advance *state* in place until it reaches *target*.

        Args:
            state: Native state [mm, MeV]; position, momentum and error
                are overwritten with the final values.
            target: Native target descriptor [mm].
            mode: FORWARDS along the momentum, BACKWARDS against it.
        Returns:
            IntegratorStatus value; 0 on success. On failure the state
            holds the last accepted (finite) step.
        """
        if not self._initialized:
            logger.warning("propagate() called before initialize()")
            return int(IntegratorStatus.NOT_INITIALIZED)

        cfg = self._config
        sign = 1.0 if mode == IntegratorMode.FORWARDS else -1.0
        charge = state.charge
        momentum = float(np.linalg.norm(state.momentum))
        if momentum == 0.0 or not math.isfinite(momentum):
            return int(IntegratorStatus.NUMERICAL_FAILURE)
        qop = charge / momentum
        mass = particle_mass(state.particle_name)
        field = state.field if state.field is not None else self._field

        x = state.position.copy()
        t = state.momentum / momentum
        error = state.error.copy()
        path = 0.0
        steps = 0

        while True:
            f0 = target.signed_distance(x)
            if abs(f0) <= cfg.surface_tolerance_mm:
                status = IntegratorStatus.SUCCESS
                break
            if steps >= cfg.max_steps:
                status = IntegratorStatus.STEP_LIMIT
                break
            if path >= cfg.max_path_mm:
                status = IntegratorStatus.TARGET_UNREACHABLE
                break

            s = target.distance_along(x, sign * t)
            h = cfg.max_step_mm if s is None else min(s, cfg.max_step_mm)

            x1, t1 = self._rk4_step(x, t, qop, sign * h, field)
            f1 = target.signed_distance(x1)
            retries = 0
            while (
                f0 * f1 < 0.0
                and abs(f1) > cfg.surface_tolerance_mm
                and retries < cfg.max_crossing_iterations
            ):
                h *= f0 / (f0 - f1)
                x1, t1 = self._rk4_step(x, t, qop, sign * h, field)
                f1 = target.signed_distance(x1)
                retries += 1

            if not (np.all(np.isfinite(x1)) and np.all(np.isfinite(t1))):
                status = IntegratorStatus.NUMERICAL_FAILURE
                break

            error = self._transport_error(error, x, t, momentum, charge, mass, sign * h, field)
            x, t = x1, t1
            path += h
            steps += 1
            if self.step_observer is not None:
                self.step_observer.on_step(h)

        state.position = x
        state.momentum = momentum * t
        state.error = error

        logger.debug(
            "Integrator finished: status=%s, steps=%d, path=%.6g mm",
            status.name, steps, path,
        )
        return int(status)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _field_at(field: MagneticField, x_mm: NDArray[np.float64]) -> NDArray[np.float64]:
        return np.asarray(field.in_tesla(native_point_to_global(x_mm)), dtype=np.float64)

    def _derivatives(
        self,
        x: NDArray[np.float64],
        t: NDArray[np.float64],
        qop: float,
        field: MagneticField,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        b = self._field_at(field, x)
        return t, C_LIGHT_MEV_PER_T_MM * qop * np.cross(t, b)

    def _rk4_step(
        self,
        x: NDArray[np.float64],
        t: NDArray[np.float64],
        qop: float,
        h: float,
        field: MagneticField,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Single RK4 step of signed length *h* [mm]."""
        k1x, k1t = self._derivatives(x, t, qop, field)
        k2x, k2t = self._derivatives(x + 0.5 * h * k1x, t + 0.5 * h * k1t, qop, field)
        k3x, k3t = self._derivatives(x + 0.5 * h * k2x, t + 0.5 * h * k2t, qop, field)
        k4x, k4t = self._derivatives(x + h * k3x, t + h * k3t, qop, field)

        x_new = x + (h / 6.0) * (k1x + 2.0 * k2x + 2.0 * k3x + k4x)
        t_new = t + (h / 6.0) * (k1t + 2.0 * k2t + 2.0 * k3t + k4t)
        return x_new, t_new / np.linalg.norm(t_new)

    def _transport_error(
        self,
        error: NDArray[np.float64],
        x: NDArray[np.float64],
        t: NDArray[np.float64],
        momentum: float,
        charge: int,
        mass: float | None,
        h: float,
        field: MagneticField,
    ) -> NDArray[np.float64]:
        """C ← J·C·Jᵀ + Q over one step of signed length *h* [mm].

        Parameters (q/p, λ, φ, x⊥, y⊥): x⊥ lies along the φ direction,
        y⊥ along the λ direction.
        """
        cos_l = max(math.hypot(t[0], t[1]), _MIN_COS_LAMBDA)
        sin_l = float(t[2])
        phi = math.atan2(t[1], t[0])
        u = np.array([-math.sin(phi), math.cos(phi), 0.0])
        v = np.array([-sin_l * math.cos(phi), -sin_l * math.sin(phi), cos_l])
        bend = C_LIGHT_MEV_PER_T_MM * np.cross(t, self._field_at(field, x))

        jac = np.eye(CURVILINEAR_DIM)
        jac[1, 0] = h * float(np.dot(bend, v))
        jac[2, 0] = h * float(np.dot(bend, u)) / cos_l
        jac[3, 0] = 0.5 * h * cos_l * jac[2, 0]
        jac[4, 0] = 0.5 * h * jac[1, 0]
        jac[3, 2] = h * cos_l
        jac[4, 1] = h

        out = jac @ error @ jac.T

        theta2 = scattering_variance(self._medium, h, momentum, mass, charge or 1)
        if theta2 > 0.0:
            length = abs(h)
            noise = np.zeros((CURVILINEAR_DIM, CURVILINEAR_DIM))
            noise[1, 1] = theta2
            noise[2, 2] = theta2 / (cos_l * cos_l)
            noise[3, 3] = noise[4, 4] = theta2 * length * length / 3.0
            noise[1, 4] = noise[4, 1] = theta2 * h / 2.0
            noise[2, 3] = noise[3, 2] = theta2 * h / (2.0 * cos_l)
            out += noise

        return 0.5 * (out + out.T)
