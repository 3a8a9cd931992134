"""Utility functions."""
import numpy as np
from scipy.stats import chi2


class Bunch(dict):
    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    __setattr__ = dict.__setitem__
    __delattr__ = dict.__delitem__

    def __repr__(self):
        if self.keys():
            m = max(map(len, list(self.keys()))) + 1
            return '\n'.join(['{}: {}'.format(k.rjust(m), type(v))
                              for k, v in self.items()])
        else:
            return self.__class__.__name__ + "()"

    def __dir__(self):
        return list(self.keys())


def compute_rms(data):
    """Compute root-mean-square of data along 0 axis."""
    return np.mean(np.square(data), axis=0) ** 0.5


def integrate_rk4_with_jac(fun, t_span, X0, u, W, n_steps):
    """Integrate ODE with fixed-step RK4 and compute the solution Jacobians.

    The Jacobians of the final state with respect to the initial state and to the
    noise vector (held constant over the interval) satisfy the linear matrix ODEs::

        dF / dt = A(t, X) @ F,          F(t0) = I
        dG / dt = A(t, X) @ G + B(t, X), G(t0) = 0

    where ``A`` and ``B`` are the Jacobians of `fun` with respect to ``X`` and ``W``.
    They are integrated along with ``X`` as a single augmented system, so the
    returned ``F`` and ``G`` are the exact derivatives of the discrete RK4 map.

    Parameters
    ----------
    fun : callable
        Continuous dynamics, must follow `continuous_process_callable` interface.
    t_span : tuple with 2 elements
        Start and end integration times.
    X0 : array_like, shape (n_states,)
        Initial state.
    u : ndarray, shape (n_inputs,)
        Control input, constant over the interval.
    W : ndarray, shape (n_noises,)
        Noise vector, constant over the interval.
    n_steps : int
        Number of RK4 substeps.

    Returns
    -------
    X : ndarray, shape (n_states,)
        State at the end of the interval.
    F : ndarray, shape (n_states, n_states)
        Jacobian of `X` with respect to `X0`.
    G : ndarray, shape (n_states, n_noises)
        Jacobian of `X` with respect to `W`.
    """
    X0 = np.asarray(X0, dtype=float)
    n_states = len(X0)
    n_noises = len(W)
    n_F = n_states * n_states

    def fun_augmented(t, y):
        X = y[:n_states]
        F = y[n_states:n_states + n_F].reshape(n_states, n_states)
        G = y[n_states + n_F:].reshape(n_states, n_noises)
        dXdt, A, B = fun(t, X, u, W)
        A = np.asarray(A)
        dFdt = A @ F
        dGdt = A @ G + np.asarray(B).reshape(n_states, n_noises)
        return np.hstack((dXdt, dFdt.ravel(), dGdt.ravel()))

    t0, t1 = t_span
    h = (t1 - t0) / n_steps
    y = np.hstack((X0, np.identity(n_states).ravel(), np.zeros(n_states * n_noises)))
    for i in range(n_steps):
        t = t0 + i * h
        k1 = fun_augmented(t, y)
        k2 = fun_augmented(t + 0.5 * h, y + 0.5 * h * k1)
        k3 = fun_augmented(t + 0.5 * h, y + 0.5 * h * k2)
        k4 = fun_augmented(t + h, y + h * k3)
        y = y + h / 6 * (k1 + 2 * k2 + 2 * k3 + k4)

    X = y[:n_states]
    F = y[n_states:n_states + n_F].reshape(n_states, n_states)
    G = y[n_states + n_F:].reshape(n_states, n_noises)
    return X, F, G


def innovation_consistency(eta, n_meas, significance=0.05):
    """Check the time-averaged normalized innovation statistic.

    For a consistent filter the sum of ``N`` statistics has chi-square distribution
    with ``N * n_meas`` degrees of freedom. The average is compared with the
    two-sided acceptance interval of that distribution scaled by ``1 / N``.

    Parameters
    ----------
    eta : array_like, shape (n_epochs,)
        Normalized innovation statistics. NaN entries (epochs without an update)
        are ignored.
    n_meas : int
        Measurement vector size.
    significance : float, optional
        Probability of rejecting a consistent filter. Default is 0.05.

    Returns
    -------
    Bunch with the following fields:

        - mean : float
            Average statistic.
        - lower, upper : float
            Acceptance interval for `mean`.
        - passed : bool
            Whether `mean` lies within the interval.
    """
    eta = np.asarray(eta, dtype=float)
    eta = eta[~np.isnan(eta)]
    n = len(eta)
    if n == 0:
        raise ValueError("No innovation statistics to test")

    dof = n * n_meas
    mean = np.mean(eta)
    lower = chi2.ppf(0.5 * significance, dof) / n
    upper = chi2.ppf(1 - 0.5 * significance, dof) / n
    return Bunch(mean=mean, lower=lower, upper=upper,
                 passed=bool(lower <= mean <= upper))


def process_callable(k, X, u, W=None, with_jacobian=True):
    """Discrete process callable interface.

    This function stub is included to conveniently describe the expected interface
    of discrete process callables (denoted as ``f``) used with ``'discrete'``
    coupling.

    Parameters
    ----------
    k : int
        Epoch index at which the function is evaluated. The function maps the
        state at epoch ``k`` to the state at epoch ``k + 1``.
    X : ndarray, shape (n_states,)
        State vector.
    u : ndarray, shape (n_inputs,)
        Control input applied over the transition.
    W : ndarray, shape (n_noises,) or None, optional
        Noise vector. If None (default) must be interpreted as zeros with appropriate
        size.
    with_jacobian : bool, optional
        Whether to return function Jacobian with respect to X and W.
        Default is True.

    Returns
    -------
    X_next : ndarray, shape (n_states,)
        Computed value of ``f_k(X, u, W)``.
    F : ndarray, shape (n_states, n_states)
        Jacobian of ``f`` with respect to ``X``. Must be returned only when
        `with_jacobian` is True.
    G : ndarray, shape (n_states, n_noises)
        Jacobian of ``f`` with respect to ``W``. Must be returned only when
        `with_jacobian` is True.
    """
    pass


def continuous_process_callable(t, X, u, W=None, with_jacobian=True):
    """Continuous process callable interface.

    Describes the right-hand side of ``dX / dt = f(t, X, u, W)`` used with
    ``'continuous'`` coupling. It is discretized by `integrate_rk4_with_jac`.

    Parameters
    ----------
    t : float
        Time.
    X : ndarray, shape (n_states,)
        State vector.
    u : ndarray, shape (n_inputs,)
        Control input.
    W : ndarray, shape (n_noises,) or None, optional
        Noise vector. If None (default) must be interpreted as zeros with appropriate
        size.
    with_jacobian : bool, optional
        Whether to return function Jacobian with respect to X and W.
        Default is True.

    Returns
    -------
    dXdt : ndarray, shape (n_states,)
        Time derivative of the state.
    A : ndarray, shape (n_states, n_states)
        Jacobian of ``f`` with respect to ``X``. Must be returned only when
        `with_jacobian` is True.
    B : ndarray, shape (n_states, n_noises)
        Jacobian of ``f`` with respect to ``W``. Must be returned only when
        `with_jacobian` is True.
    """
    pass


def measurement_callable(k, X, with_jacobian=True):
    """Measurement callable interface.

    This function stub is included to conveniently describe the expected interface
    of measurement callables (denoted as ``h``) used in the estimation algorithms
    provided in the package.

    Parameters
    ----------
    k : int
        Epoch index at which the function is evaluated, that is the function might
        explicitly depend on the epoch index.
    X : ndarray, shape (n_states,)
        State vector.
    with_jacobian : bool, optional
        Whether to return function Jacobian with respect to X. Default is True.

    Returns
    -------
    Z : ndarray, shape (n_meas,)
        Compute value of ``h_k(X)``.
    H : ndarray, shape (n_meas, n_states)
        Jacobian of ``h`` with respect to ``X``. Must be returned only when
        `with_jacobian` is True.
    """
    pass
