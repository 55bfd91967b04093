"""Extrapolation check — propagated track positions vs. recorded hits.

Builds a free state for every simulated muon track and propagates it to
the surface of each of its hits, recording the distance between the
extrapolated point and the hit. Detector-geometry lookup and event
bookkeeping stay with the caller: tracks and hits arrive as plain data.

Selection:
  - tracks: |PDG id| = 13 and p ≥ 2 GeV
  - hits: |PDG id| = 13 and |p at entry| ≥ 0.5 GeV

All results in global units (cm, GeV).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from trackprop.constants import (
    MIN_HIT_MOMENTUM_GEV,
    MIN_TRACK_MOMENTUM_GEV,
    MUON_PDG_ID,
)
from trackprop.core.field import MagneticField
from trackprop.core.propagator import PropagationEngine
from trackprop.core.units import mm_to_cm
from trackprop.models.propagation import IntegratorStatus
from trackprop.models.state import FreeState
from trackprop.models.surface import TargetSurface

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Input / result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class SimTrack:
    """Simulated track.

    Attributes:
        track_id: Identifier shared with the track's hits.
        pdg_id: PDG particle code (13 = mu-, -13 = mu+).
        momentum: Momentum [GeV].
        vertex_mm: Production vertex [mm], None if unknown.
    """
    track_id: int
    pdg_id: int
    momentum: NDArray[np.float64]
    vertex_mm: Optional[NDArray[np.float64]] = None


@dataclass
class SimHit:
    """Recorded hit on a detector surface.

    Attributes:
        track_id: Owning track.
        pdg_id: PDG code of the particle that left the hit.
        position: Hit position [cm].
        momentum_at_entry: Momentum at entry [GeV].
        surface: Detector surface holding the hit.
    """
    track_id: int
    pdg_id: int
    position: NDArray[np.float64]
    momentum_at_entry: NDArray[np.float64]
    surface: TargetSurface


@dataclass
class ExtrapolationResidual:
    """Distance between one hit and the propagated track."""
    track_id: int
    hit_position: NDArray[np.float64]
    extrapolated_position: NDArray[np.float64]
    residual_cm: float
    status: IntegratorStatus


@dataclass
class ExtrapolationSummary:
    """Aggregated extrapolation check results."""
    residuals: list[ExtrapolationResidual] = field(default_factory=list)
    tracks_used: int = 0
    tracks_skipped: int = 0
    hits_skipped: int = 0
    failures: int = 0
    duration_s: float = 0.0

    @property
    def mean_residual_cm(self) -> float:
        good = [r.residual_cm for r in self.residuals if r.status == IntegratorStatus.SUCCESS]
        return float(np.mean(good)) if good else 0.0

    @property
    def max_residual_cm(self) -> float:
        good = [r.residual_cm for r in self.residuals if r.status == IntegratorStatus.SUCCESS]
        return float(np.max(good)) if good else 0.0


# ---------------------------------------------------------------------------
# Track → free state
# ---------------------------------------------------------------------------

def free_state_from_sim_track(
    track: SimTrack,
    field: MagneticField | None = None,
) -> FreeState | None:
    """Initial state for a simulated muon track.

    Charge is -1 for a positive PDG id (mu-), +1 otherwise. The vertex is
    converted mm → cm; tracks without a vertex start at the origin.

    Returns:
        FreeState, or None for non-muons and tracks below 2 GeV.
    """
    if abs(track.pdg_id) != MUON_PDG_ID:
        logger.debug("Track %d is not a muon: %d", track.track_id, track.pdg_id)
        return None
    momentum = np.asarray(track.momentum, dtype=np.float64)
    if np.linalg.norm(momentum) < MIN_TRACK_MOMENTUM_GEV:
        return None

    if track.vertex_mm is None:
        logger.debug("Track %d has no vertex, defaulting to (0,0,0)", track.track_id)
        position = np.zeros(3)
    else:
        position = np.array([mm_to_cm(c) for c in np.asarray(track.vertex_mm, dtype=np.float64)])

    charge = -1 if track.pdg_id > 0 else 1
    return FreeState(position=position, momentum=momentum, charge=charge, field=field)


# ---------------------------------------------------------------------------
# Checker
# ---------------------------------------------------------------------------

class ExtrapolationChecker:
    """Propagates every selected track to the surfaces of its hits.

    Args:
        engine: Propagation engine to use.
        progress_callback: Called with (percent, track_id).
        cancel_check: Returns True to stop between tracks.
    """

    def __init__(
        self,
        engine: PropagationEngine,
        progress_callback: Callable[[int, int], None] | None = None,
        cancel_check: Callable[[], bool] | None = None,
    ) -> None:
        self._engine = engine
        self._progress = progress_callback or (lambda pct, track_id: None)
        self._cancelled = cancel_check or (lambda: False)

    def run(
        self,
        tracks: list[SimTrack],
        hits: list[SimHit],
        field: MagneticField | None = None,
    ) -> ExtrapolationSummary:
        t0 = time.perf_counter()
        summary = ExtrapolationSummary()

        hits_by_track: dict[int, list[SimHit]] = {}
        for hit in hits:
            hits_by_track.setdefault(hit.track_id, []).append(hit)

        for idx, track in enumerate(tracks):
            if self._cancelled():
                break
            self._progress(min(int(idx / max(len(tracks), 1) * 100), 99), track.track_id)

            state = free_state_from_sim_track(track, field)
            if state is None:
                summary.tracks_skipped += 1
                continue
            summary.tracks_used += 1

            for hit in hits_by_track.get(track.track_id, []):
                if abs(hit.pdg_id) != MUON_PDG_ID:
                    summary.hits_skipped += 1
                    continue
                if np.linalg.norm(hit.momentum_at_entry) < MIN_HIT_MOMENTUM_GEV:
                    summary.hits_skipped += 1
                    continue

                result = self._engine.propagate(state, hit.surface)
                hit_pos = np.asarray(hit.position, dtype=np.float64)
                residual = float(np.linalg.norm(result.position - hit_pos))
                if not result.is_valid:
                    summary.failures += 1
                logger.debug(
                    "Track %d: difference between hit and final position: %.4g cm",
                    track.track_id, residual,
                )
                summary.residuals.append(ExtrapolationResidual(
                    track_id=track.track_id,
                    hit_position=hit_pos,
                    extrapolated_position=result.position,
                    residual_cm=residual,
                    status=result.status,
                ))

        summary.duration_s = time.perf_counter() - t0
        if not self._cancelled():
            self._progress(100, -1)
        return summary
