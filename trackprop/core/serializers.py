"""Serialization utilities — state/surface/result ↔ JSON-safe dict conversion.

Handles Enum fields, NumPy arrays, and the Plane/Cylinder union.
The ambient field reference is not serialized; pass it back in on load.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import numpy as np

from trackprop.core.field import MagneticField
from trackprop.models.propagation import IntegratorStatus, PropagationResult
from trackprop.models.state import CurvilinearError, FreeState
from trackprop.models.surface import Cylinder, Plane, SurfaceSide, TargetSurface

_PLANE_TAG = "plane"
_CYLINDER_TAG = "cylinder"


# =====================================================================
# Generic helpers
# =====================================================================


def _serialize_value(val: Any) -> Any:
    """Convert a value to a JSON-safe type."""
    if val is None:
        return None
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, np.ndarray):
        return val.tolist()
    if isinstance(val, (np.floating, np.integer)):
        return val.item()
    if isinstance(val, (list, tuple)):
        return [_serialize_value(v) for v in val]
    if isinstance(val, (int, float, str, bool)):
        return val
    return str(val)


# =====================================================================
# Free state
# =====================================================================


def free_state_to_dict(state: FreeState) -> dict:
    """Serialize a FreeState. The field reference is dropped."""
    return {
        "position": _serialize_value(state.position),
        "momentum": _serialize_value(state.momentum),
        "charge": state.charge,
    }


def dict_to_free_state(data: dict, field: MagneticField | None = None) -> FreeState:
    """Deserialize a FreeState.

    Args:
        data: JSON-parsed dict.
        field: Field reference to attach.
    """
    return FreeState(
        position=data["position"],
        momentum=data["momentum"],
        charge=int(data["charge"]),
        field=field,
    )


# =====================================================================
# Surfaces
# =====================================================================


def surface_to_dict(surface: TargetSurface) -> dict:
    """Serialize a Plane or Cylinder, tagged with ``_surface_type``."""
    if isinstance(surface, Plane):
        return {
            "_surface_type": _PLANE_TAG,
            "point": _serialize_value(surface.point),
            "normal": _serialize_value(surface.normal),
        }
    if isinstance(surface, Cylinder):
        return {
            "_surface_type": _CYLINDER_TAG,
            "radius": surface.radius,
            "position": _serialize_value(surface.position),
            "rotation": _serialize_value(surface.rotation),
        }
    raise ValueError(f"Unknown surface type: {type(surface)}")


def dict_to_surface(data: dict) -> TargetSurface:
    """Deserialize a tagged surface dict."""
    tag = data.get("_surface_type")
    if tag == _PLANE_TAG:
        return Plane(point=data["point"], normal=data["normal"])
    if tag == _CYLINDER_TAG:
        return Cylinder(
            radius=float(data["radius"]),
            position=data["position"],
            rotation=data["rotation"],
        )
    raise ValueError(f"Unknown surface type tag: {tag!r}")


# =====================================================================
# Propagation result
# =====================================================================


def result_to_dict(result: PropagationResult) -> dict:
    """Serialize a PropagationResult to a JSON-safe dict."""
    return {
        "position": _serialize_value(result.position),
        "momentum": _serialize_value(result.momentum),
        "charge": result.charge,
        "covariance": _serialize_value(result.covariance.matrix),
        "surface": surface_to_dict(result.surface),
        "surface_side": _serialize_value(result.surface_side),
        "status": int(result.status),
        "path_length": result.path_length,
    }


def dict_to_result(data: dict, field: MagneticField | None = None) -> PropagationResult:
    """Deserialize a PropagationResult.

    Missing optional keys fall back to their defaults.
    """
    return PropagationResult(
        position=np.asarray(data["position"], dtype=np.float64),
        momentum=np.asarray(data["momentum"], dtype=np.float64),
        charge=int(data["charge"]),
        covariance=CurvilinearError(np.asarray(data["covariance"], dtype=np.float64)),
        surface=dict_to_surface(data["surface"]),
        surface_side=SurfaceSide(data.get("surface_side", SurfaceSide.AT_CENTER.value)),
        status=IntegratorStatus(int(data.get("status", 0))),
        path_length=data.get("path_length"),
        field=field,
    )
