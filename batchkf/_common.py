from dataclasses import dataclass
import logging
import numpy as np


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepResult:
    """Result of a single filter step.

    Parameters
    ----------
    X : ndarray, shape (n_states,)
        A posteriori state estimate.
    P : ndarray, shape (n_states, n_states)
        A posteriori error covariance.
    nu : ndarray, shape (n_meas,)
        Innovation vector.
    eta : float
        Normalized innovation statistic.
    """
    X: np.ndarray
    P: np.ndarray
    nu: np.ndarray
    eta: float


def check_input_arrays(X0, P0, Q, R):
    X0 = np.array(X0, dtype=float)
    P0 = np.array(P0, dtype=float)
    Q = np.array(Q, dtype=float)
    R = np.array(R, dtype=float)

    if X0.ndim != 1:
        raise ValueError("Inconsistent input shapes")
    n_states = len(X0)
    n_noises = len(Q)
    n_meas = len(R)

    if (P0.shape != (n_states, n_states) or Q.shape != (n_noises, n_noises) or
            R.shape != (n_meas, n_meas)):
        raise ValueError("Inconsistent input shapes")

    return X0, P0, Q, R, n_states, n_noises, n_meas


def check_histories(z, u, t, t0):
    z = np.array(z, dtype=float)
    if z.ndim == 1:
        z = z[:, None]
    kmax = len(z)

    if u is None:
        u = np.empty((kmax, 0))
    else:
        u = np.array(u, dtype=float)
        if u.ndim == 1:
            u = u[:, None]

    if t is None:
        t = t0 + np.arange(1, kmax + 1, dtype=float)
    else:
        t = np.array(t, dtype=float)

    if z.ndim != 2 or u.ndim != 2 or len(u) != kmax or t.shape != (kmax,):
        raise ValueError("Inconsistent shapes in histories")
    if np.any(np.diff(np.hstack((t0, t))) <= 0):
        raise ValueError("Times must be increasing")

    return z, u, t


def run_filter(context, step, name, extra=None):
    """Run a forward filter recursion.

    Parameters
    ----------
    context : FilterContext
        Estimation problem.
    step : callable
        Called as ``step(context, k, X, P)`` to compute the estimate at
        ``k + 1`` from the estimate at ``k``. Returns ``StepResult`` or a tuple
        ``(StepResult, diagnostics)`` where diagnostics is a dict of scalars
        stored into histories allocated by `extra`.
    name : str
        Filter name used in log messages.
    extra : dict or None, optional
        Additional per-epoch histories as ``{name: (fill_value, dtype)}``. Each
        is allocated with shape (kmax,), row ``k - 1`` for epoch ``k``.

    Returns
    -------
    Bunch with filter histories, see `FilterContext.allocate_history`.
    """
    history = context.allocate_history()
    for key, (fill_value, dtype) in (extra or {}).items():
        history[key] = np.full(context.kmax, fill_value, dtype=dtype)

    logger.info("Running %s over epochs %d to %d", name, context.k_init, context.kmax)

    X = context.X0
    P = context.P0
    for k in range(context.k_init, context.kmax):
        result = step(context, k, X, P)
        if isinstance(result, tuple):
            result, diagnostics = result
            for key, value in diagnostics.items():
                history[key][k] = value

        history.X[k + 1] = result.X
        history.P[k + 1] = result.P
        history.nu[k] = result.nu
        history.eta[k] = result.eta
        X = result.X
        P = result.P

    return history
