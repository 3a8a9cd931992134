import numpy as np
from numpy.testing import assert_allclose, assert_array_equal
import pytest
import batchkf
from batchkf import FilterOptions, create_context


def make_context(**kwargs):
    p = batchkf.examples.generate_random_walk(n_epochs=10)
    return create_context(p.f, p.h, p.X0, p.P0, p.Q, p.R, p.z, p.u, **kwargs)


def test_options_defaults():
    options = FilterOptions()
    assert options.n_rk == 10
    assert options.n_iter == 5
    assert options.alpha_min == 0.01
    assert options.coupling == 'discrete'


@pytest.mark.parametrize("kwargs", [
    dict(n_rk=4),
    dict(n_rk=7.5),
    dict(n_iter=0),
    dict(n_iter=1001),
    dict(alpha_min=0),
    dict(alpha_min=1),
    dict(alpha_min=-0.5),
    dict(coupling='hybrid'),
])
def test_options_validation(kwargs):
    with pytest.raises(ValueError):
        FilterOptions(**kwargs)
    with pytest.raises(ValueError):
        make_context(**kwargs)


def test_options_integral_floats():
    options = FilterOptions(n_rk=12.0, n_iter=3.0)
    assert type(options.n_rk) is int
    assert type(options.n_iter) is int
    assert options == FilterOptions(n_rk=12, n_iter=3)

    p = batchkf.examples.generate_random_walk(n_epochs=5)
    result = batchkf.run_iekf(p.create_context(n_iter=5.0))
    expected = batchkf.run_iekf(p.create_context(n_iter=5))
    assert_array_equal(result.X, expected.X)

    p = batchkf.examples.generate_nonlinear_pendulum(n_epochs=5)
    result = batchkf.run_ekf(p.create_context(n_rk=10.0))
    expected = batchkf.run_ekf(p.create_context(n_rk=10))
    assert_array_equal(result.X, expected.X)


def test_create_context():
    context = make_context(n_iter=3)
    assert context.kmax == 10
    assert context.n_states == 1
    assert context.n_noises == 1
    assert context.n_meas == 1
    assert context.options == FilterOptions(n_iter=3)
    assert_allclose(context.t, np.arange(1, 11))
    assert context.time(0) == 0
    assert context.time(3) == 3
    assert_array_equal(context.measurement(1), context.z[0])
    assert_array_equal(context.input(10), context.u[9])

    context = make_context(options=FilterOptions(alpha_min=0.1), t0=5.0,
                           t=np.linspace(5.5, 10, 10))
    assert context.options.alpha_min == 0.1
    assert context.time(0) == 5.0
    assert context.time(1) == 5.5

    with pytest.raises(ValueError):
        make_context(options=FilterOptions(), n_iter=2)


def test_create_context_validation():
    p = batchkf.examples.generate_random_walk(n_epochs=10)

    with pytest.raises(ValueError):
        create_context(p.f, p.h, p.X0, np.identity(2), p.Q, p.R, p.z)
    with pytest.raises(ValueError):
        create_context(p.f, p.h, p.X0, p.P0, np.ones(2), p.R, p.z)
    with pytest.raises(ValueError):
        create_context(p.f, p.h, p.X0, p.P0, p.Q, p.R, p.z, p.u[:5])
    with pytest.raises(ValueError):
        create_context(p.f, p.h, p.X0, p.P0, p.Q, p.R, p.z, t=np.arange(9))
    with pytest.raises(ValueError):
        create_context(p.f, p.h, p.X0, p.P0, p.Q, p.R, p.z, t=np.zeros(10))
    with pytest.raises(ValueError):
        create_context(p.f, p.h, p.X0, p.P0, p.Q, p.R, p.z, k_init=11)
    with pytest.raises(ValueError):
        create_context(p.f, p.h, p.X0, p.P0, p.Q, p.R, p.z, k_init=-1)


def test_allocate_history():
    context = make_context(k_init=3)
    history = context.allocate_history()
    assert history.X.shape == (11, 1)
    assert history.P.shape == (11, 1, 1)
    assert history.nu.shape == (10, 1)
    assert history.eta.shape == (10,)
    assert_array_equal(history.X[3], context.X0)
    assert_array_equal(history.P[3], context.P0)
    assert np.isnan(history.X[4, 0])
    assert np.all(np.isnan(history.eta))

    assert context.allocate_history().X is not history.X
