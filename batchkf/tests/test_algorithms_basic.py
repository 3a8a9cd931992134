import numpy as np
from numpy.testing import assert_allclose, assert_array_equal
from scipy.linalg import solve_discrete_are
import pytest
import batchkf


def normalized_error_rms(result, Xt, start=1):
    en = ((result.X[start:] - Xt[start:]) /
          np.diagonal(result.P[start:], axis1=1, axis2=2) ** 0.5)
    return batchkf.util.compute_rms(en)


def test_linear_equivalence():
    p_lin, p_nl = batchkf.examples.generate_linear_pendulum_as_nl_problem()
    kf_result = batchkf.run_kalman_filter(p_lin.x0, p_lin.P0, p_lin.F, p_lin.G,
                                          p_lin.Q, p_lin.H, p_lin.R, p_lin.z)
    context = p_nl.create_context()

    result = batchkf.run_ekf(context)
    assert_allclose(result.X, kf_result.x, rtol=1e-10, atol=1e-12)
    assert_allclose(result.P, kf_result.P, rtol=1e-10, atol=1e-14)
    assert_allclose(result.nu, kf_result.nu, rtol=1e-8, atol=1e-12)
    assert_allclose(result.eta, kf_result.eta, rtol=1e-8, atol=1e-12)

    # Relinearization steps move the estimate, but the covariance does not
    # depend on it for a linear system.
    result = batchkf.run_iekf(context)
    assert_allclose(result.P, kf_result.P, rtol=1e-10, atol=1e-14)

    en = (kf_result.x - p_lin.xt) / np.diagonal(kf_result.P, axis1=1, axis2=2) ** 0.5
    assert np.all(batchkf.util.compute_rms(en) > 0.7)
    assert np.all(batchkf.util.compute_rms(en) < 1.3)


def test_iekf_single_iteration_equals_ekf():
    p = batchkf.examples.generate_range_tracking()
    context = p.create_context(n_iter=1)
    ekf_result = batchkf.run_ekf(context)
    iekf_result = batchkf.run_iekf(context)

    assert_array_equal(iekf_result.X, ekf_result.X)
    assert_array_equal(iekf_result.P, ekf_result.P)
    assert_array_equal(iekf_result.nu, ekf_result.nu)
    assert_array_equal(iekf_result.eta, ekf_result.eta)
    assert np.all(iekf_result.n_iter == 1)
    assert not np.any(iekf_result.stalled)


def test_random_walk():
    p = batchkf.examples.generate_random_walk()
    context = p.create_context()
    P_prior = solve_discrete_are(np.ones((1, 1)), np.ones((1, 1)), p.Q, p.R)
    P_steady = P_prior - P_prior @ np.linalg.inv(P_prior + p.R) @ P_prior

    for algorithm in [batchkf.run_ekf, batchkf.run_iekf]:
        result = algorithm(context)
        assert_allclose(result.P[-1], P_steady, rtol=1e-8)
        assert np.all(np.diff(result.P[:, 0, 0]) < 1e-12)

    # Statistics of a priori innovations are tested, the iterated filter reports
    # them for the a posteriori estimate.
    result = batchkf.run_ekf(context)
    check = batchkf.util.innovation_consistency(result.eta, 1, significance=1e-3)
    assert check.passed
    assert 0.5 < check.mean < 1.6


def test_nonlinear_pendulum():
    p = batchkf.examples.generate_nonlinear_pendulum()
    context = p.create_context()
    assert context.options.coupling == 'continuous'

    for algorithm in [batchkf.run_ekf, batchkf.run_iekf]:
        result = algorithm(context)
        rms = normalized_error_rms(result, p.Xt)
        assert np.all(rms > 0.5)
        assert np.all(rms < 2.0)


def test_range_tracking():
    p = batchkf.examples.generate_range_tracking()
    context = p.create_context(n_iter=5)
    ekf_result = batchkf.run_ekf(context)
    iekf_result = batchkf.run_iekf(context)

    rms = normalized_error_rms(iekf_result, p.Xt)
    assert np.all(rms > 0.5)
    assert np.all(rms < 2.0)

    error_ekf = batchkf.util.compute_rms(ekf_result.X[1:, :2] - p.Xt[1:, :2])
    error_iekf = batchkf.util.compute_rms(iekf_result.X[1:, :2] - p.Xt[1:, :2])
    assert np.all(error_iekf < 1.5 * error_ekf)

    assert np.all(iekf_result.n_iter >= 2)
    assert np.all(iekf_result.n_iter <= 5)


def test_general_properties():
    p = batchkf.examples.generate_range_tracking()
    context = p.create_context()

    for algorithm in [batchkf.run_ekf, batchkf.run_iekf]:
        result = algorithm(context)
        assert np.all(result.eta >= -1e-12)

        asymmetry = np.linalg.norm(result.P - np.transpose(result.P, (0, 2, 1)),
                                   axis=(1, 2))
        assert np.all(asymmetry <= 1e-9 * np.linalg.norm(result.P, axis=(1, 2)))

        second = algorithm(context)
        for key in result:
            assert_array_equal(result[key], second[key])


def test_k_init():
    p = batchkf.examples.generate_random_walk(n_epochs=20)

    context = p.create_context(k_init=20)
    for algorithm in [batchkf.run_ekf, batchkf.run_iekf]:
        result = algorithm(context)
        assert_array_equal(result.X[20], p.X0)
        assert_array_equal(result.P[20], p.P0)
        assert np.all(np.isnan(result.X[:20]))
        assert np.all(np.isnan(result.eta))

    X5 = p.Xt[5] + 0.5 * p.P0[0] ** 0.5
    context = p.create_context(k_init=5, X0=X5)
    result = batchkf.run_ekf(context)
    assert_array_equal(result.X[5], X5)
    assert np.all(np.isnan(result.X[:5]))
    assert np.all(np.isnan(result.eta[:5]))
    assert np.all(np.isfinite(result.X[5:]))
    assert np.all(np.isfinite(result.eta[5:]))


def test_singular_innovation_covariance():
    def h(k, X, with_jacobian=True):
        return np.zeros(1), np.zeros((1, 1))

    p = batchkf.examples.generate_random_walk(n_epochs=5)
    context = batchkf.create_context(p.f, h, p.X0, p.P0, p.Q, np.zeros((1, 1)),
                                     p.z, p.u)
    for algorithm in [batchkf.run_ekf, batchkf.run_iekf]:
        with pytest.raises(np.linalg.LinAlgError):
            algorithm(context)
