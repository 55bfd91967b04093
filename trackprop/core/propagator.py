"""Propagation engine — free state to plane or cylinder.

Orchestrates one propagation call:
  1. Lazily initialize the integrator and register the path accumulator.
  2. Build the native target from the caller's surface.
  3. Convert the state to native units and pick the signed particle name.
  4. Run the integrator with a placeholder input error.
  5. Convert position, momentum and error back to global units.

The returned covariance is whatever the integrator accumulated along the
path; the caller's own uncertainty is never an input. The surface side is
always SurfaceSide.AT_CENTER: entering/leaving information is not
computed, so results are not suitable for tracking-grade surface crossing.

Only one propagation may run at a time in the whole process. A second
concurrent call raises PropagatorBusyError.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator

import numpy as np

from trackprop.constants import (
    CURVILINEAR_DIM,
    DEFAULT_PARTICLE_NAME,
    NEGATIVE_SUFFIX,
    POSITIVE_SUFFIX,
)
from trackprop.core import units
from trackprop.core.field import MagneticField
from trackprop.core.integrator import (
    NativeFreeState,
    RungeKuttaIntegrator,
    TrajectoryIntegrator,
)
from trackprop.core.step_accumulator import StepPathAccumulator
from trackprop.core.surface_builder import TargetSurfaceBuilder
from trackprop.models.propagation import (
    IntegratorMode,
    IntegratorStatus,
    PropagationDirection,
    PropagationResult,
    PropagatorConfig,
)
from trackprop.models.state import CurvilinearError, FreeState
from trackprop.models.surface import Plane, SurfaceSide, TargetSurface

logger = logging.getLogger(__name__)

# Guards every propagation in the process: the integrator is not
# re-entrant and the accumulator keeps a single running total.
_PROPAGATION_LOCK = threading.Lock()


class PropagatorBusyError(RuntimeError):
    """Raised when a propagation starts while another is in flight."""


@contextmanager
def _exclusive() -> Iterator[None]:
    if not _PROPAGATION_LOCK.acquire(blocking=False):
        raise PropagatorBusyError("Another propagation is in flight; calls must be serialized")
    try:
        yield
    finally:
        _PROPAGATION_LOCK.release()


def _distance_to_surface(surface: TargetSurface, point_cm) -> float:
    if isinstance(surface, Plane):
        return surface.local_z(point_cm)
    return surface.radial_distance(point_cm)


def _reference_point(surface: TargetSurface) -> np.ndarray:
    if isinstance(surface, Plane):
        return surface.point
    return surface.position


class PropagationEngine:
    """Propagates free states to planes and cylinders.

    Args:
        field: Ambient field for every call. When None, each call
            integrates in the input state's field (zero field if that is
            None too).
        particle_name: Base particle name; "+" or "-" is appended from
            the sign of the charge.
        direction: Default propagation direction for every call.
        integrator: Integrator handle. When None, a RungeKuttaIntegrator
            over *field* is created on first use.
        config: Engine options.
    """

    def __init__(
        self,
        field: MagneticField | None = None,
        particle_name: str = DEFAULT_PARTICLE_NAME,
        direction: PropagationDirection = PropagationDirection.ALONG_MOMENTUM,
        integrator: TrajectoryIntegrator | None = None,
        config: PropagatorConfig | None = None,
    ) -> None:
        self._field = field
        self._particle_name = particle_name
        self._direction = direction
        self._integrator = integrator
        self._config = config or PropagatorConfig()
        self._builder = TargetSurfaceBuilder()
        self._accumulator: StepPathAccumulator | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._accumulator is not None

    @property
    def direction(self) -> PropagationDirection:
        return self._direction

    @property
    def integrator(self) -> TrajectoryIntegrator | None:
        return self._integrator

    @property
    def accumulator(self) -> StepPathAccumulator | None:
        return self._accumulator

    def ensure_initialized(self) -> None:
        """Uninitialized → Ready. Runs at most once per engine."""
        if self._accumulator is not None:
            return
        if self._integrator is None:
            self._integrator = RungeKuttaIntegrator(field=self._field)
        self._integrator.initialize()
        self._accumulator = StepPathAccumulator()
        self._integrator.set_step_observer(self._accumulator)
        logger.debug("Propagation engine initialized for particle %r", self._particle_name)

    def close(self) -> None:
        """Unregister the path accumulator and release it."""
        if self._accumulator is None:
            return
        if self._integrator.step_observer is self._accumulator:
            self._integrator.set_step_observer(None)
        self._accumulator = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def propagate(
        self,
        state: FreeState,
        surface: TargetSurface,
        direction: PropagationDirection | None = None,
    ) -> PropagationResult:
        """Propagate *state* to *surface*.

        A nonzero integrator status is logged and stored in the result,
        never raised.

        Args:
            state: Initial free state [cm, GeV].
            surface: Destination Plane or Cylinder [cm].
            direction: Per-call override of the engine direction.
        Returns:
            PropagationResult on the surface, path_length unset.
        Raises:
            PropagatorBusyError: If another propagation is running.
            DegenerateGeometryError: If the surface is degenerate.
        """
        with _exclusive():
            self._ready()
            return self._propagate(state, surface, direction)

    def propagate_with_path(
        self,
        state: FreeState,
        surface: TargetSurface,
        direction: PropagationDirection | None = None,
    ) -> tuple[PropagationResult, float]:
        """Same as propagate(), plus the exact path length [cm].

        The accumulator is reset immediately before the integration, so
        the length covers this call's steps only.
        """
        with _exclusive():
            self._ready()
            self._accumulator.reset()
            result = self._propagate(state, surface, direction)
            path_cm = float(units.native_length_to_global(self._accumulator.total()))
            logger.debug("Path length: %.6g cm", path_cm)
            return _with_path(result, path_cm), path_cm

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ready(self) -> None:
        self.ensure_initialized()
        # The integrator may be shared with another engine that registered
        # its own accumulator in the meantime.
        if self._integrator.step_observer is not self._accumulator:
            self._integrator.set_step_observer(self._accumulator)

    def _particle_for(self, charge: int) -> str:
        suffix = POSITIVE_SUFFIX if charge > 0 else NEGATIVE_SUFFIX
        return self._particle_name + suffix

    def _field_for(self, state: FreeState) -> MagneticField | None:
        if self._field is None:
            return state.field
        if state.field is not None and state.field != self._field:
            logger.warning(
                "State field %r differs from the engine field %r; integrating in the engine field",
                state.field, self._field,
            )
        return self._field

    def _mode_for(self, direction: PropagationDirection | None) -> IntegratorMode:
        direction = direction or self._direction
        if direction == PropagationDirection.OPPOSITE_TO_MOMENTUM:
            logger.debug("Propagator mode is 'backwards'")
            return IntegratorMode.BACKWARDS
        logger.debug("Propagator mode is 'forwards'")
        return IntegratorMode.FORWARDS

    def _propagate(
        self,
        state: FreeState,
        surface: TargetSurface,
        direction: PropagationDirection | None,
    ) -> PropagationResult:
        target = self._builder.build(surface)

        dest = _reference_point(surface)
        logger.debug(
            "Destination surface reference point: %s cm (R=%.4g cm, eta=%.4g, phi=%.4g deg)",
            dest.tolist(), units.perp(dest), units.eta(dest),
            units.rad_to_deg(units.phi(dest)),
        )

        init_pos = units.global_point_to_native(state.position)
        init_mom = units.global_momentum_to_native(state.momentum)
        logger.debug(
            "Initial position %s cm (%s mm), momentum %s GeV (%s MeV)",
            state.position.tolist(), init_pos.tolist(),
            state.momentum.tolist(), init_mom.tolist(),
        )
        logger.debug(
            "Distance from initial point to surface: %.6g cm",
            _distance_to_surface(surface, state.position),
        )

        field = self._field_for(state)
        logger.debug(
            "Initial transverse curvature: %.6g 1/cm", state.transverse_curvature(field),
        )

        particle = self._particle_for(state.charge)
        logger.debug("Particle name: %s", particle)

        native = NativeFreeState(
            particle_name=particle,
            position=init_pos,
            momentum=init_mom,
            error=np.eye(CURVILINEAR_DIM) * self._config.initial_error_scale,
            field=field,
        )
        mode = self._mode_for(direction)

        code = self._integrator.propagate(native, target, mode)
        try:
            status = IntegratorStatus(code)
        except ValueError:
            status = IntegratorStatus.NUMERICAL_FAILURE
            logger.warning("Unknown integrator return code %r", code)
        if status != IntegratorStatus.SUCCESS:
            logger.warning(
                "Integrator returned %d (%s) for %s to %s; result is unreliable",
                int(code), status.name, particle, type(surface).__name__,
            )

        final_pos = units.native_point_to_global(native.position)
        final_mom = units.native_momentum_to_global(native.momentum)
        logger.debug(
            "Final position %s cm (%s mm), momentum %s GeV (%s MeV)",
            final_pos.tolist(), native.position.tolist(),
            final_mom.tolist(), native.momentum.tolist(),
        )
        logger.debug(
            "Distance from final point to surface: %.6g cm",
            _distance_to_surface(surface, final_pos),
        )
        logger.debug("SurfaceSide is always AT_CENTER after propagation")

        return PropagationResult(
            position=final_pos,
            momentum=final_mom,
            charge=state.charge,
            covariance=CurvilinearError(units.native_error_to_global(native.error)),
            surface=surface,
            surface_side=SurfaceSide.AT_CENTER,
            status=status,
            field=field,
        )


def _with_path(result: PropagationResult, path_cm: float) -> PropagationResult:
    return replace(result, path_length=path_cm)
