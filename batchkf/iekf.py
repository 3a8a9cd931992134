"""Iterated Extended Kalman Filter."""
from dataclasses import dataclass
import logging
import numpy as np
from scipy import linalg
from ._common import StepResult, run_filter
from .ekf import ekf_update, propagate


logger = logging.getLogger(__name__)

XTOL = 1e-12


@dataclass(frozen=True)
class _Iterate:
    X: np.ndarray
    Z_pred: np.ndarray
    H: np.ndarray
    P: np.ndarray
    eta: float
    cost: float


def map_update(h, k, Z, R, X_prior, P_prior, n_iter=5, alpha_min=0.01):
    """Compute iterated measurement update as a MAP estimate.

    The a posteriori estimate is sought as the minimizer of the negative
    log-posterior::

        J(X) = (X - X_prior)^T P_prior^-1 (X - X_prior)
               + (Z - h(X))^T R^-1 (Z - h(X))

    by relinearization iterations starting from `X_prior`. The full step from
    ``X_i`` is the linear update applied at ``X_i`` with the gain computed from
    `P_prior` and the measurement model linearized at ``X_i``::

        X_gn = X_i + K_i (Z - h(X_i))

    so the first iteration coincides with the ordinary EKF update. Unlike the
    Gauss-Newton step of [1]_ it does not account for the prior mean term, hence
    the cost control below. Each step is scaled by ``alpha``, which starts at 1
    and is halved until the cost at the new point does not exceed the current
    cost or the next ``alpha`` would drop below `alpha_min`. In the latter case the last tried point is accepted even though
    the cost has not decreased, such iteration is reported as stalled.

    The iterations stop after ``n_iter - 1`` steps or when the relative change of
    the estimate is below 1e-12. The covariance is computed in the information
    form at the accepted estimate::

        P = (P_prior^-1 + H^T R^-1 H)^-1

    Every iteration emits a DEBUG record with the accepted step scale and the
    cost before and after the step.

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
    n_iter : int, optional
        Number of iterations including the initial EKF linearization. With 1 the
        EKF update is returned. Default is 5.
    alpha_min : float, optional
        Lower limit of the step scale. Default is 0.01.

    Returns
    -------
    result : StepResult
        Estimate, covariance, innovation and normalized innovation statistic, the
        last two are evaluated at the accepted estimate.
    n_done : int
        Number of iterations performed including the initial one.
    stalled : bool
        Whether any step was accepted without decreasing the cost.

    References
    ----------
    .. [1] B. M. Bell, F. W. Cathey, "The iterated Kalman filter update as a
       Gauss-Newton method", IEEE Transactions on Automatic Control 1993, Vol. 38,
       No. 2
    """
    if n_iter == 1:
        return ekf_update(h, k, Z, R, X_prior, P_prior), 1, False

    n_states = len(X_prior)
    P_prior_factor = linalg.cho_factor(P_prior)
    R_factor = linalg.cho_factor(R)
    P_prior_inv = linalg.cho_solve(P_prior_factor, np.identity(n_states))

    def evaluate(X):
        Z_pred, H = h(k, X)
        dX = X - X_prior
        nu = Z - Z_pred
        cost = (np.dot(dX, linalg.cho_solve(P_prior_factor, dX)) +
                np.dot(nu, linalg.cho_solve(R_factor, nu)))
        info = P_prior_inv + H.T @ linalg.cho_solve(R_factor, H)
        P = linalg.cho_solve(linalg.cho_factor(info), np.identity(n_states))
        S = H @ P @ H.T + R
        eta = np.dot(nu, linalg.cho_solve(linalg.cho_factor(S), nu))
        return _Iterate(X, Z_pred, H, P, eta, cost)

    current = evaluate(X_prior)
    n_done = 1
    stalled = False
    for iteration in range(1, n_iter):
        H = current.H
        S = H @ P_prior @ H.T + R
        K = linalg.cho_solve(linalg.cho_factor(S), H @ P_prior).T
        X_gn = current.X + K @ (Z - current.Z_pred)

        alpha = 1.0
        while True:
            trial = evaluate(current.X + alpha * (X_gn - current.X))
            if trial.cost <= current.cost or 0.5 * alpha < alpha_min:
                break
            alpha *= 0.5

        logger.debug("Epoch %d, iteration %d: alpha=%g, cost %g -> %g",
                     k, iteration, alpha, current.cost, trial.cost)
        if trial.cost > current.cost:
            stalled = True
            logger.debug("Epoch %d, iteration %d: step accepted without cost "
                         "decrease", k, iteration)

        n_done += 1
        converged = (np.linalg.norm(trial.X - current.X) <
                     XTOL * np.linalg.norm(current.X))
        current = trial
        if converged:
            logger.debug("Epoch %d: converged after %d iterations", k, n_done)
            break

    result = StepResult(current.X, current.P, Z - current.Z_pred, current.eta)
    return result, n_done, stalled


def iekf_step(context, k, X, P):
    """Propagate estimate to epoch k + 1 and process the measurement there."""
    X_prior, P_prior = propagate(context, k, X, P)
    result, n_done, stalled = map_update(
        context.h, k + 1, context.measurement(k + 1), context.R, X_prior, P_prior,
        context.options.n_iter, context.options.alpha_min)
    return result, dict(n_iter=n_done, stalled=stalled)


def run_iekf(context):
    """Run Iterated Extended Kalman Filter.

    The filter uses the same propagation as `run_ekf` and computes measurement
    updates by `map_update` with ``context.options.n_iter`` and
    ``context.options.alpha_min``. With ``n_iter = 1`` the result is identical to
    the one of `run_ekf`.

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
            Normalized innovation statistics.
        n_iter : ndarray, shape (kmax,)
            Number of MAP iterations performed, 0 for epochs without an update.
        stalled : ndarray, shape (kmax,)
            Whether a step was accepted without decreasing the cost.

    Entries of `X`, `P`, `nu` and `eta` for epochs before ``context.k_init`` are
    NaN.
    """
    return run_filter(context, iekf_step, "iterated EKF",
                      extra=dict(n_iter=(0, int), stalled=(False, bool)))
