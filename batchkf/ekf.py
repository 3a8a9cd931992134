"""Extended Kalman Filter."""
import numpy as np
from scipy import linalg
from ._common import StepResult, run_filter
from .util import integrate_rk4_with_jac


def propagate(context, k, X, P):
    """Propagate estimate from epoch k to epoch k + 1.

    Parameters
    ----------
    context : FilterContext
        Estimation problem.
    k : int
        Epoch of the estimate.
    X : ndarray, shape (n_states,)
        State estimate at epoch k.
    P : ndarray, shape (n_states, n_states)
        Error covariance at epoch k.

    Returns
    -------
    X_prior : ndarray, shape (n_states,)
        A priori state estimate at epoch k + 1.
    P_prior : ndarray, shape (n_states, n_states)
        A priori error covariance at epoch k + 1.
    """
    u = context.input(k + 1)
    W = np.zeros(context.n_noises)
    if context.options.coupling == 'continuous':
        X_prior, F, G = integrate_rk4_with_jac(
            context.f, (context.time(k), context.time(k + 1)), X, u, W,
            context.options.n_rk)
    else:
        X_prior, F, G = context.f(k, X, u, W)
    return np.asarray(X_prior), F @ P @ F.T + G @ context.Q @ G.T


def ekf_update(h, k, Z, R, X_prior, P_prior):
    """Compute Extended Kalman Filter measurement update.

    Parameters
    ----------
    h : callable
        Measurement function, must follow `batchkf.util.measurement_callable`.
    k : int
        Epoch of the measurement.
    Z : ndarray, shape (n_meas,)
        Measurement vector.
    R : ndarray, shape (n_meas, n_meas)
        Measurement noise covariance.
    X_prior : ndarray, shape (n_states,)
        A priori state estimate.
    P_prior : ndarray, shape (n_states, n_states)
        A priori error covariance.

    Returns
    -------
    StepResult
    """
    Z_pred, H = h(k, X_prior)
    nu = Z - Z_pred
    S = H @ P_prior @ H.T + R
    S_factor = linalg.cho_factor(S)
    K = linalg.cho_solve(S_factor, H @ P_prior).T
    X = X_prior + K @ nu
    P = P_prior - K @ S @ K.T
    eta = np.dot(nu, linalg.cho_solve(S_factor, nu))
    return StepResult(X, P, nu, eta)


def ekf_step(context, k, X, P):
    """Propagate estimate to epoch k + 1 and process the measurement there."""
    X_prior, P_prior = propagate(context, k, X, P)
    return ekf_update(context.h, k + 1, context.measurement(k + 1), context.R,
                      X_prior, P_prior)


def run_ekf(context):
    """Run Extended Kalman Filter.

    The filter starts from ``context.X0`` and ``context.P0`` at ``context.k_init``
    and processes all following epochs. At each epoch the estimate is propagated
    through the linearized process model and updated with the measurement
    linearized at the a priori estimate.

    Any failure of Cholesky factorization (singular innovation covariance) raises
    `numpy.linalg.LinAlgError` and aborts the run.

    Parameters
    ----------
    context : FilterContext
        Estimation problem created by `batchkf.create_context`.

    Returns
    -------
    Bunch with the following fields:

        X : ndarray, shape (kmax + 1, n_states)
            State estimates.
        P : ndarray, shape (kmax + 1, n_states, n_states)
            Error covariance estimates.
        nu : ndarray, shape (kmax, n_meas)
            Innovations, row ``k - 1`` corresponds to epoch ``k``.
        eta : ndarray, shape (kmax,)
            Normalized innovation statistics, row ``k - 1`` corresponds to
            epoch ``k``.

    Entries for epochs before ``context.k_init`` are NaN.
    """
    return run_filter(context, ekf_step, "EKF")
