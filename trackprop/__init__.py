"""trackprop — charged-particle propagation to planes and cylinders.

Adapter between a caller convention (cm, GeV) and a stepping integrator
working in mm and MeV.
"""

from trackprop.constants import APP_VERSION
from trackprop.core.field import UniformMagneticField, ZERO_FIELD
from trackprop.core.propagator import PropagationEngine, PropagatorBusyError
from trackprop.core.surface_builder import DegenerateGeometryError
from trackprop.models.propagation import (
    IntegratorStatus,
    PropagationDirection,
    PropagationResult,
)
from trackprop.models.state import CurvilinearError, FreeState
from trackprop.models.surface import Cylinder, Plane, SurfaceSide

__version__ = APP_VERSION

__all__ = [
    "CurvilinearError",
    "Cylinder",
    "DegenerateGeometryError",
    "FreeState",
    "IntegratorStatus",
    "Plane",
    "PropagationDirection",
    "PropagationEngine",
    "PropagationResult",
    "PropagatorBusyError",
    "SurfaceSide",
    "UniformMagneticField",
    "ZERO_FIELD",
]
