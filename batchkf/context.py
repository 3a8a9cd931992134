"""Filter configuration and input histories."""
from dataclasses import dataclass
import numpy as np
from .util import Bunch
from ._common import check_input_arrays, check_histories


COUPLINGS = ('continuous', 'discrete')


@dataclass(frozen=True)
class FilterOptions:
    """Options of the batch filters.

    Parameters
    ----------
    n_rk : int, optional
        Number of RK4 substeps used to discretize continuous dynamics over each
        interval. Must be at least 5. Integral floats are converted to int.
        Default is 10.
    n_iter : int, optional
        Number of MAP iterations in the iterated EKF update, including the initial
        linearization. Value of 1 corresponds to the ordinary EKF update. Must be
        within [1, 1000]. Default is 5.
    alpha_min : float, optional
        Lower limit of the Gauss-Newton step scale, must be within (0, 1).
        Default is 0.01.
    coupling : {'discrete', 'continuous'}, optional
        Type of the process model. With 'discrete' (default) the process callable
        maps the state between epochs directly. With 'continuous' it defines the
        time derivative and is integrated with `batchkf.util.integrate_rk4_with_jac`.
    """
    n_rk: int = 10
    n_iter: int = 5
    alpha_min: float = 0.01
    coupling: str = 'discrete'

    def __post_init__(self):
        if int(self.n_rk) != self.n_rk or self.n_rk < 5:
            raise ValueError("`n_rk` must be an integer not less than 5")
        if int(self.n_iter) != self.n_iter or not 1 <= self.n_iter <= 1000:
            raise ValueError("`n_iter` must be an integer within [1, 1000]")
        object.__setattr__(self, 'n_rk', int(self.n_rk))
        object.__setattr__(self, 'n_iter', int(self.n_iter))
        if not 0 < self.alpha_min < 1:
            raise ValueError("`alpha_min` must be within (0, 1)")
        if self.coupling not in COUPLINGS:
            raise ValueError("`coupling` must be one of {}".format(COUPLINGS))


@dataclass(frozen=True, eq=False)
class FilterContext:
    """Estimation problem prepared for the batch filters.

    Use `create_context` to construct and validate it. Row ``k - 1`` of `u`, `z`
    and `t` belongs to epoch ``k``, the time of epoch 0 is `t0`.

    Parameters
    ----------
    f : callable
        Process function, must follow `batchkf.util.process_callable` or
        `batchkf.util.continuous_process_callable` interface depending on
        ``options.coupling``.
    h : callable
        Measurement function, must follow `batchkf.util.measurement_callable`
        interface.
    X0 : ndarray, shape (n_states,)
        Initial state estimate at epoch `k_init`.
    P0 : ndarray, shape (n_states, n_states)
        Initial error covariance at epoch `k_init`.
    Q : ndarray, shape (n_noises, n_noises)
        Process noise covariance.
    R : ndarray, shape (n_meas, n_meas)
        Measurement noise covariance.
    z : ndarray, shape (kmax, n_meas)
        Measurements.
    u : ndarray, shape (kmax, n_inputs)
        Control inputs.
    t : ndarray, shape (kmax,)
        Epoch times.
    k_init : int
        Epoch of the initial estimate.
    t0 : float
        Time of epoch 0.
    options : FilterOptions
        Filter options.
    """
    f: callable
    h: callable
    X0: np.ndarray
    P0: np.ndarray
    Q: np.ndarray
    R: np.ndarray
    z: np.ndarray
    u: np.ndarray
    t: np.ndarray
    k_init: int
    t0: float
    options: FilterOptions

    @property
    def kmax(self):
        return len(self.z)

    @property
    def n_states(self):
        return len(self.X0)

    @property
    def n_noises(self):
        return len(self.Q)

    @property
    def n_meas(self):
        return self.z.shape[-1]

    def time(self, k):
        return self.t0 if k == 0 else self.t[k - 1]

    def input(self, k):
        return self.u[k - 1]

    def measurement(self, k):
        return self.z[k - 1]

    def allocate_history(self):
        """Allocate output histories seeded with the initial estimate.

        Returns
        -------
        Bunch with the following fields:

            X : ndarray, shape (kmax + 1, n_states)
            P : ndarray, shape (kmax + 1, n_states, n_states)
            nu : ndarray, shape (kmax, n_meas)
            eta : ndarray, shape (kmax,)

        All entries except those at epoch `k_init` are NaN.
        """
        X = np.full((self.kmax + 1, self.n_states), np.nan)
        P = np.full((self.kmax + 1, self.n_states, self.n_states), np.nan)
        X[self.k_init] = self.X0
        P[self.k_init] = self.P0
        return Bunch(X=X, P=P, nu=np.full((self.kmax, self.n_meas), np.nan),
                     eta=np.full(self.kmax, np.nan))


def create_context(f, h, X0, P0, Q, R, z, u=None, t=None, k_init=0, t0=0.0,
                   options=None, **option_kwargs):
    """Validate inputs and create `FilterContext`.

    Parameters
    ----------
    f, h : callable
        Process and measurement functions, see `FilterContext`.
    X0 : array_like, shape (n_states,)
        Initial state estimate.
    P0 : array_like, shape (n_states, n_states)
        Initial error covariance.
    Q : array_like, shape (n_noises, n_noises)
        Process noise covariance.
    R : array_like, shape (n_meas, n_meas)
        Measurement noise covariance.
    z : array_like, shape (kmax, n_meas)
        Measurements at epochs 1 to kmax.
    u : array_like, shape (kmax, n_inputs) or None, optional
        Control inputs applied over the transition into epochs 1 to kmax.
        None (default) means no inputs.
    t : array_like, shape (kmax,) or None, optional
        Times of epochs 1 to kmax, must be increasing. None (default) corresponds
        to ``t0 + 1, ..., t0 + kmax``.
    k_init : int, optional
        Epoch of the initial estimate, within [0, kmax]. Default is 0.
    t0 : float, optional
        Time of epoch 0. Default is 0.
    options : FilterOptions or None, optional
        Filter options. If None (default), created from `option_kwargs`.
    **option_kwargs
        Fields of `FilterOptions`, cannot be combined with `options`.

    Returns
    -------
    FilterContext
    """
    if options is None:
        options = FilterOptions(**option_kwargs)
    elif option_kwargs:
        raise ValueError("Pass either `options` or option keywords, not both")

    X0, P0, Q, R, _, _, n_meas = check_input_arrays(X0, P0, Q, R)
    z, u, t = check_histories(z, u, t, t0)
    if z.shape[1] != n_meas:
        raise ValueError("Inconsistent shapes of `z` and `R`")

    if int(k_init) != k_init or not 0 <= k_init <= len(z):
        raise ValueError("`k_init` must be an integer within [0, {}]".format(len(z)))

    return FilterContext(f, h, X0, P0, Q, R, z, u, t, int(k_init), float(t0),
                         options)
