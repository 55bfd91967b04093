"""Extrapolation check — residuals between propagated tracks and recorded hits."""

import numpy as np
import pytest

from trackprop.core.extrapolation_check import (
    ExtrapolationChecker,
    SimHit,
    SimTrack,
    free_state_from_sim_track,
)
from trackprop.core.field import UniformMagneticField
from trackprop.core.propagator import PropagationEngine
from trackprop.models.propagation import IntegratorStatus
from trackprop.models.surface import Cylinder, Plane


# ── Fixtures ──


@pytest.fixture
def engine() -> PropagationEngine:
    return PropagationEngine()


def _track(track_id=1, pdg_id=13, momentum=(10.0, 0.0, 0.0), vertex_mm=None) -> SimTrack:
    return SimTrack(
        track_id=track_id,
        pdg_id=pdg_id,
        momentum=np.array(momentum),
        vertex_mm=None if vertex_mm is None else np.array(vertex_mm),
    )


def _plane_hit(track_id=1, x_cm=100.0, pdg_id=13, momentum=(10.0, 0.0, 0.0)) -> SimHit:
    return SimHit(
        track_id=track_id,
        pdg_id=pdg_id,
        position=np.array([x_cm, 0.0, 0.0]),
        momentum_at_entry=np.array(momentum),
        surface=Plane(point=[x_cm, 0.0, 0.0], normal=[1.0, 0.0, 0.0]),
    )


# ── Track conversion ──


class TestFreeStateFromTrack:
    def test_mu_minus_charge(self):
        state = free_state_from_sim_track(_track(pdg_id=13))
        assert state.charge == -1

    def test_mu_plus_charge(self):
        state = free_state_from_sim_track(_track(pdg_id=-13))
        assert state.charge == 1

    def test_vertex_mm_to_cm(self):
        state = free_state_from_sim_track(_track(vertex_mm=[10.0, 20.0, 30.0]))
        np.testing.assert_allclose(state.position, [1.0, 2.0, 3.0])

    def test_missing_vertex_at_origin(self):
        state = free_state_from_sim_track(_track())
        np.testing.assert_array_equal(state.position, [0.0, 0.0, 0.0])

    def test_non_muon_skipped(self):
        assert free_state_from_sim_track(_track(pdg_id=11)) is None

    def test_low_momentum_skipped(self):
        assert free_state_from_sim_track(_track(momentum=(1.5, 0.0, 0.0))) is None

    def test_field_attached(self):
        field = UniformMagneticField(bz=3.8)
        assert free_state_from_sim_track(_track(), field).field is field


# ── Checker ──


class TestExtrapolationChecker:
    def test_straight_track_hits(self, engine):
        hits = [_plane_hit(x_cm=50.0), _plane_hit(x_cm=120.0)]
        summary = ExtrapolationChecker(engine).run([_track()], hits)

        assert summary.tracks_used == 1
        assert len(summary.residuals) == 2
        assert summary.failures == 0
        assert summary.max_residual_cm == pytest.approx(0.0, abs=1e-6)
        np.testing.assert_allclose(summary.residuals[1].extrapolated_position, [120.0, 0.0, 0.0])

    def test_cylinder_hit_in_field(self):
        field = UniformMagneticField(bz=3.8)
        engine = PropagationEngine(field=field)
        cyl = Cylinder.from_axis(60.0)
        hit = SimHit(
            track_id=1, pdg_id=13,
            position=np.array([60.0, 0.0, 0.0]),
            momentum_at_entry=np.array([10.0, 0.0, 0.0]),
            surface=cyl,
        )
        summary = ExtrapolationChecker(engine).run([_track()], [hit], field=field)

        residual = summary.residuals[0]
        assert residual.status == IntegratorStatus.SUCCESS
        # The track bends in the field, so the hit at phi = 0 is missed
        assert residual.residual_cm > 0.1
        assert np.linalg.norm(residual.extrapolated_position[:2]) == pytest.approx(60.0, abs=1e-3)

    def test_run_field_used_by_fieldless_engine(self, engine):
        field = UniformMagneticField(bz=3.8)
        hit = SimHit(
            track_id=1, pdg_id=13,
            position=np.array([60.0, 0.0, 0.0]),
            momentum_at_entry=np.array([10.0, 0.0, 0.0]),
            surface=Cylinder.from_axis(60.0),
        )
        bent = ExtrapolationChecker(engine).run([_track()], [hit], field=field)
        straight = ExtrapolationChecker(engine).run([_track()], [hit])

        # mu- in +Bz curves towards +y
        assert bent.residuals[0].extrapolated_position[1] > 1.0
        assert bent.residuals[0].residual_cm > 1.0
        assert straight.residuals[0].residual_cm == pytest.approx(0.0, abs=1e-6)

    def test_track_selection(self, engine):
        tracks = [_track(1), _track(2, pdg_id=211), _track(3, momentum=(1.0, 0.0, 0.0))]
        hits = [_plane_hit(1), _plane_hit(2), _plane_hit(3)]
        summary = ExtrapolationChecker(engine).run(tracks, hits)
        assert summary.tracks_used == 1
        assert summary.tracks_skipped == 2
        assert len(summary.residuals) == 1

    def test_hit_selection(self, engine):
        hits = [
            _plane_hit(x_cm=50.0, pdg_id=11),
            _plane_hit(x_cm=60.0, momentum=(0.2, 0.0, 0.0)),
            _plane_hit(x_cm=70.0),
        ]
        summary = ExtrapolationChecker(engine).run([_track()], hits)
        assert summary.hits_skipped == 2
        assert len(summary.residuals) == 1

    def test_unreachable_hit_counted(self):
        engine = PropagationEngine()
        # Plane behind the track start along its momentum
        summary = ExtrapolationChecker(engine).run([_track()], [_plane_hit(x_cm=-5000.0)])
        assert summary.failures == 1
        assert summary.mean_residual_cm == 0.0

    def test_progress_and_cancel(self, engine):
        calls = []
        summary = ExtrapolationChecker(
            engine,
            progress_callback=lambda pct, track_id: calls.append(pct),
            cancel_check=lambda: True,
        ).run([_track()], [_plane_hit()])
        assert summary.tracks_used == 0
        assert calls == []

    def test_progress_reported(self, engine):
        calls = []
        ExtrapolationChecker(
            engine, progress_callback=lambda pct, track_id: calls.append((pct, track_id)),
        ).run([_track(1), _track(2)], [])
        assert calls == [(0, 1), (50, 2), (100, -1)]
