"""Linear Kalman filter."""
import numpy as np
from scipy import linalg
from .util import Bunch


def run_kalman_filter(x0, P0, F, G, Q, H, R, z, u=None, B=None):
    """Run linear Kalman filter.

    The system model is::

        x_{k + 1} = F x_k + B u_{k + 1} + G w_k
        z_k = H x_k + v_k

    with constant matrices. The measurements are available at epochs 1 to
    ``len(z)``, the initial estimate corresponds to epoch 0. Row ``k - 1`` of `u`
    is applied over the transition into epoch ``k``.

    Parameters
    ----------
    x0 : array_like, shape (n_states,)
        Initial state mean.
    P0 : array_like, shape (n_states, n_states)
        Initial state covariance.
    F : array_like, shape (n_states, n_states)
        Transition matrix.
    G : array_like, shape (n_states, n_noises)
        Process noise input matrix.
    Q : array_like, shape (n_noises, n_noises)
        Process noise covariance matrix.
    H : array_like, shape (n_meas, n_states)
        Measurement matrix.
    R : array_like, shape (n_meas, n_meas)
        Measurement noise covariance matrix.
    z : array_like, shape (n_epochs - 1, n_meas)
        Measurements.
    u : array_like, shape (n_epochs - 1, n_inputs) or None, optional
        Control inputs. None (default) means no inputs.
    B : array_like, shape (n_states, n_inputs) or None, optional
        Control input matrix. None (default) means identity.

    Returns
    -------
    Bunch object with the following fields:

        - x : ndarray, shape (n_epochs, n_states)
            State estimates.
        - P : ndarray, shape (n_epochs, n_states, n_states)
            Error covariance matrices.
        - nu : ndarray, shape (n_epochs - 1, n_meas)
            Innovations.
        - eta : ndarray, shape (n_epochs - 1,)
            Normalized innovation statistics.
    """
    x0 = np.asarray(x0, dtype=float)
    P0 = np.asarray(P0, dtype=float)
    F = np.asarray(F)
    G = np.asarray(G)
    Q = np.asarray(Q)
    H = np.asarray(H)
    R = np.asarray(R)
    z = np.asarray(z, dtype=float)
    if z.ndim == 1:
        z = z[:, None]

    n_states = len(x0)
    n_noises = len(Q)
    n_meas = len(R)
    n_epochs = len(z) + 1

    if u is None:
        u = np.zeros((n_epochs - 1, n_states))
        B = np.identity(n_states)
    else:
        u = np.asarray(u, dtype=float)
        if u.ndim == 1:
            u = u[:, None]
        B = np.identity(n_states) if B is None else np.asarray(B)

    if (P0.shape != (n_states, n_states) or
        F.shape != (n_states, n_states) or
        G.shape != (n_states, n_noises) or
        Q.shape != (n_noises, n_noises) or
        H.shape != (n_meas, n_states) or
        R.shape != (n_meas, n_meas) or
        z.shape != (n_epochs - 1, n_meas) or
        u.shape != (n_epochs - 1, B.shape[1])
    ):
        raise ValueError("Inconsistent sizes of inputs")

    x = np.empty((n_epochs, n_states))
    P = np.empty((n_epochs, n_states, n_states))
    nu = np.empty((n_epochs - 1, n_meas))
    eta = np.empty(n_epochs - 1)
    x[0] = x0
    P[0] = P0

    for i in range(n_epochs - 1):
        x_prior = F @ x[i] + B @ u[i]
        P_prior = F @ P[i] @ F.T + G @ Q @ G.T
        x[i + 1], P[i + 1], nu[i], eta[i] = _kalman_update(x_prior, P_prior, z[i],
                                                           H, R)

    return Bunch(x=x, P=P, nu=nu, eta=eta)


def _kalman_update(x, P, z, H, R):
    S = H @ P @ H.T + R
    S_factor = linalg.cho_factor(S)
    K = linalg.cho_solve(S_factor, H @ P).T
    e = z - H @ x
    U = np.eye(len(x)) - K @ H
    return (x + K @ e, U @ P @ U.T + K @ R @ K.T, e,
            np.dot(e, linalg.cho_solve(S_factor, e)))
