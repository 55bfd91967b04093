"""Unit conversion between the global (cm, GeV) and native (mm, MeV) conventions.

Covers scalar factors, vector/normal/rotation conversion and the
curvilinear error rescaling.
"""

import math

import numpy as np
import pytest

from trackprop.core.units import (
    GeV_to_MeV,
    MeV_to_GeV,
    cm_to_mm,
    deg_to_rad,
    eta,
    global_error_to_native,
    global_length_to_native,
    global_momentum_to_native,
    global_normal_to_native,
    global_point_to_native,
    global_rotation_to_native,
    global_vector_to_native,
    mm_to_cm,
    native_error_to_global,
    native_length_to_global,
    native_momentum_to_global,
    native_normal_to_global,
    native_point_to_global,
    native_rotation_to_global,
    native_vector_to_global,
    perp,
    phi,
    rad_to_deg,
)
from trackprop.models.state import CurvilinearError


class TestScalarConversion:
    def test_cm_to_mm(self):
        assert cm_to_mm(1.0) == pytest.approx(10.0)
        assert cm_to_mm(0.0) == pytest.approx(0.0)
        assert cm_to_mm(0.1) == pytest.approx(1.0)

    def test_mm_to_cm(self):
        assert mm_to_cm(10.0) == pytest.approx(1.0)
        assert mm_to_cm(1.0) == pytest.approx(0.1)

    def test_GeV_to_MeV(self):
        assert GeV_to_MeV(10.0) == pytest.approx(10000.0)
        assert MeV_to_GeV(500.0) == pytest.approx(0.5)

    def test_length_roundtrip(self):
        assert native_length_to_global(global_length_to_native(42.5)) == pytest.approx(42.5)

    def test_angle_roundtrip(self):
        assert deg_to_rad(180.0) == pytest.approx(math.pi)
        assert rad_to_deg(deg_to_rad(45.0)) == pytest.approx(45.0)


class TestVectorConversion:
    def test_point_scaled(self):
        np.testing.assert_allclose(global_point_to_native([1.0, -2.0, 100.0]), [10.0, -20.0, 1000.0])

    def test_point_roundtrip(self):
        p = np.array([12.345, -0.001, 987.6])
        np.testing.assert_allclose(native_point_to_global(global_point_to_native(p)), p, rtol=1e-12)

    def test_displacement_scaled(self):
        d = np.array([0.5, 0.0, -2.0])
        np.testing.assert_allclose(global_vector_to_native(d), [5.0, 0.0, -20.0])
        np.testing.assert_allclose(native_vector_to_global(global_vector_to_native(d)), d)

    def test_momentum_roundtrip(self):
        p = np.array([3.0, 4.0, -12.0])
        np.testing.assert_allclose(global_momentum_to_native(p), [3000.0, 4000.0, -12000.0])
        np.testing.assert_allclose(native_momentum_to_global(global_momentum_to_native(p)), p)

    def test_normal_renormalized(self):
        n = global_normal_to_native([0.0, 0.0, 2.0])
        np.testing.assert_allclose(n, [0.0, 0.0, 1.0])

    def test_normal_direction_preserved(self):
        n = np.array([1.0, 2.0, 2.0]) / 3.0
        np.testing.assert_allclose(native_normal_to_global(global_normal_to_native(n)), n)

    def test_zero_normal_unchanged(self):
        np.testing.assert_array_equal(global_normal_to_native([0.0, 0.0, 0.0]), [0.0, 0.0, 0.0])

    def test_nan_propagates(self):
        out = global_point_to_native([math.nan, 0.0, 1.0])
        assert math.isnan(out[0])
        assert out[2] == pytest.approx(10.0)


class TestRotationConversion:
    def test_transpose(self):
        c, s = math.cos(0.3), math.sin(0.3)
        rot = np.array([[c, s, 0.0], [-s, c, 0.0], [0.0, 0.0, 1.0]])
        np.testing.assert_allclose(global_rotation_to_native(rot), rot.T)

    def test_roundtrip_exact(self):
        rot = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0], [1.0, 0.0, 0.0]])
        np.testing.assert_array_equal(native_rotation_to_global(global_rotation_to_native(rot)), rot)

    def test_local_z_axis_moves_from_row_to_column(self):
        rot = np.array([[0.0, 0.0, -1.0], [0.0, 1.0, 0.0], [1.0, 0.0, 0.0]])
        native = global_rotation_to_native(rot)
        np.testing.assert_allclose(native[:, 2], rot[2])


class TestErrorConversion:
    def test_identity_scaling(self):
        native = global_error_to_native(np.eye(5))
        np.testing.assert_allclose(np.diag(native), [1e-6, 1.0, 1.0, 100.0, 100.0])

    def test_off_diagonal_scaling(self):
        err = np.zeros((5, 5))
        err[0, 3] = err[3, 0] = 2.0
        native = global_error_to_native(err)
        assert native[0, 3] == pytest.approx(2.0 * 1e-3 * 10.0)
        assert native[3, 0] == pytest.approx(native[0, 3])

    def test_roundtrip(self):
        rng = np.random.default_rng(7)
        a = rng.normal(size=(5, 5))
        err = a @ a.T
        np.testing.assert_allclose(native_error_to_global(global_error_to_native(err)), err, rtol=1e-12)

    def test_symmetrized(self):
        err = np.eye(5)
        err[1, 2] = 1e-3
        out = global_error_to_native(err)
        np.testing.assert_array_equal(out, out.T)

    def test_psd_preserved(self):
        rng = np.random.default_rng(11)
        a = rng.normal(size=(5, 3))
        native = global_error_to_native(a @ a.T)
        assert CurvilinearError(native).is_positive_semidefinite()


class TestDiagnostics:
    def test_perp(self):
        assert perp([3.0, 4.0, 12.0]) == pytest.approx(5.0)

    def test_phi(self):
        assert phi([0.0, 1.0, 0.0]) == pytest.approx(math.pi / 2)

    def test_eta_transverse(self):
        assert eta([1.0, 0.0, 0.0]) == pytest.approx(0.0)

    def test_eta_forward(self):
        # theta = 45 deg
        assert eta([1.0, 0.0, 1.0]) == pytest.approx(-math.log(math.tan(math.pi / 8)))

    def test_eta_on_axis(self):
        assert eta([0.0, 0.0, 5.0]) == math.inf
        assert eta([0.0, 0.0, -5.0]) == -math.inf

    def test_eta_zero_vector(self):
        assert eta([0.0, 0.0, 0.0]) == 0.0
