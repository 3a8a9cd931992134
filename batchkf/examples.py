"""Example of estimation problems."""
from dataclasses import dataclass, field
import numpy as np
from .context import create_context
from .util import integrate_rk4_with_jac


@dataclass
class LinearProblemExample:
    """Example of a linear estimation problem.

    The measurements are available at epochs 1 to `n_epochs`.

    Parameters
    ----------
    x0 : ndarray, shape (n_states,)
        Initial state estimate.
    P0 : ndarray, shape (n_states, n_states)
        Initial covariance.
    F : ndarray, shape (n_states, n_states)
        Transition matrix.
    G : ndarray, shape (n_states, n_noises)
        Noise input matrix.
    Q : ndarray, shape (n_noises, n_noises)
        Process noise covariance matrix.
    H : ndarray, shape (n_meas, n_states)
        Measurement matrix.
    R : ndarray, shape (n_meas, n_meas)
        Measurement noise covariance matrix.
    z : ndarray, shape (n_epochs, n_meas)
        Measurements.
    n_epochs : int
        Number of epochs with measurements.
    xt : ndarray, shape (n_epochs + 1, n_states)
        True state for each epoch.
    wt : ndarray, shape (n_epochs, n_noises)
        True noise values.
    """
    x0 : np.ndarray
    P0 : np.ndarray
    F : np.ndarray
    G : np.ndarray
    Q : np.ndarray
    H : np.ndarray
    R : np.ndarray
    z : np.ndarray
    n_epochs : int
    xt : np.ndarray
    wt : np.ndarray


@dataclass
class NonlinearProblemExample:
    """Example of a nonlinear estimation problem.

    The measurements are available at epochs 1 to `n_epochs`.

    Parameters
    ----------
    X0 : ndarray, shape (n_states,)
        Initial state estimate.
    P0 : ndarray, shape (n_states, n_states)
        Initial covariance.
    f : callable
        Process function, see `batchkf.util.process_callable` and
        `batchkf.util.continuous_process_callable`.
    h : callable
        Measurement function, see `batchkf.util.measurement_callable`.
    Q : ndarray, shape (n_noises, n_noises)
        Process noise covariance matrix.
    R : ndarray, shape (n_meas, n_meas)
        Measurement noise covariance matrix.
    z : ndarray, shape (n_epochs, n_meas)
        Measurements.
    n_epochs : int
        Number of epochs with measurements.
    Xt : ndarray, shape (n_epochs + 1, n_states)
        True state for each epoch.
    Wt : ndarray, shape (n_epochs, n_noises)
        True noise values.
    u : ndarray, shape (n_epochs, n_inputs) or None
        Control inputs.
    t : ndarray, shape (n_epochs,) or None
        Epoch times.
    coupling : str
        Process model type, see `batchkf.FilterOptions`.
    """
    X0 : np.ndarray
    P0 : np.ndarray
    f : callable
    h : callable
    Q : np.ndarray
    R : np.ndarray
    z : np.ndarray
    n_epochs : int
    Xt : np.ndarray
    Wt : np.ndarray
    u : np.ndarray = None
    t : np.ndarray = None
    coupling : str = field(default='discrete')

    def create_context(self, k_init=0, X0=None, **option_kwargs):
        """Create `FilterContext` for the problem.

        The filter starts at epoch `k_init` from `X0` with covariance `P0`. If
        `X0` is None, the stored initial estimate is used.
        """
        option_kwargs.setdefault('coupling', self.coupling)
        if X0 is None:
            X0 = self.X0
        return create_context(self.f, self.h, X0, self.P0, self.Q, self.R, self.z,
                              self.u, self.t, k_init=k_init, **option_kwargs)


def generate_random_walk(n_epochs=50, x0=0.0, P0=1.0, q=0.01, r=0.1, rng=0):
    """Generate data for a scalar random walk measured directly.

    The system model is::

        x_{k + 1} = x_k + u_k + w_k
        z_k = x_k + v_k

    with zero control input ``u_k``.

    Parameters
    ----------
    n_epochs : int
        Number of epochs with measurements.
    x0 : float
        Initial state estimate.
    P0 : float
        Initial state variance.
    q : float
        Process noise variance.
    r : float
        Measurement noise variance.
    rng : None, int or `numpy.random.Generator`
        Seed or already created generator. None corresponds to nondeterministic
        seeding.

    Returns
    -------
    NonlinearProblemExample
    """
    rng = np.random.default_rng(rng)
    Q = np.array([[q]])
    R = np.array([[r]])

    def f(k, X, u, W=None, with_jacobian=True):
        if W is None:
            W = np.zeros(1)
        X_next = X + u + W
        if not with_jacobian:
            return X_next
        return X_next, np.identity(1), np.identity(1)

    def h(k, X, with_jacobian=True):
        return (X.copy(), np.identity(1)) if with_jacobian else X.copy()

    u = np.zeros((n_epochs, 1))
    Xt = np.empty((n_epochs + 1, 1))
    Wt = rng.normal(0, q ** 0.5, size=(n_epochs, 1))
    Xt[0] = x0 + rng.normal(0, P0 ** 0.5)
    for k in range(n_epochs):
        Xt[k + 1] = f(k, Xt[k], u[k], Wt[k], with_jacobian=False)
    z = Xt[1:] + rng.normal(0, r ** 0.5, size=(n_epochs, 1))

    return NonlinearProblemExample(np.array([x0]), np.array([[P0]]), f, h, Q, R, z,
                                   n_epochs, Xt, Wt, u=u)


def generate_linear_pendulum(
    n_epochs=1000,
    x0=np.array([1.0, 0.0]),
    P0=np.diag([0.1**2, 0.05**2]),
    tau=0.1,
    T=10.0,
    eta=0.1,
    qf=0.03,
    sigma_angle=0.2,
    sigma_rate=0.1,
    rng=0,
):
    """Generate data for an example of a linear pendulum with friction.

    The continuous system model is::

        dx1 / dt = x2
        dx2 / dt = -omega**2 * x1 - 2 * eta * omega * x2 + f

    with ``f`` being an external force. It is discretized with a time step `tau`
    (first order), the external force is modeled as a random white sequence.

    The measurements consist of both x1 and x2 (angle and angular rate).

    Parameters
    ----------
    n_epochs : int
        Number of epochs with measurements.
    x0 : array_like, shape (2,)
        Initial state estimate.
    P0 : array_like, shape (2, 2)
        Initial state covariance.
    tau : float
        Time step in seconds.
    T : float
        Pendulum period in seconds.
    eta : float
        Dimensionless friction coefficient.
    qf : float
        Intensity of force process in rad/s/sqrt(s)
    sigma_angle : float
        Accuracy of angle measurements in rad.
    sigma_rate : float
        Accuracy of angular rate measurements in rad/s.
    rng : None, int or `numpy.random.Generator`
        Seed or already created generator. None corresponds to nondeterministic
        seeding.

    Returns
    -------
    LinearProblemExample
    """
    rng = np.random.default_rng(rng)
    n_states = 2
    n_noises = 1
    n_meas = 2

    x0 = np.asarray(x0)
    P0 = np.asarray(P0)
    xt = np.empty((n_epochs + 1, n_states))
    xt[0] = rng.multivariate_normal(x0, P0)

    omega = 2 * np.pi / T
    F = np.array([[1, tau], [-(omega ** 2) * tau, 1 - 2 * eta * omega * tau]])
    G = np.array([[0.0], [1.0]])
    Q = np.array([[tau * qf**2]])
    wt = np.empty((n_epochs, n_noises))

    R = np.diag([sigma_angle**2, sigma_rate**2])
    H = np.identity(n_meas)
    z = np.empty((n_epochs, n_meas))

    for i in range(n_epochs):
        wt[i] = rng.multivariate_normal(np.zeros(n_noises), Q)
        xt[i + 1] = F @ xt[i] + G @ wt[i]
        z[i] = H @ xt[i + 1] + rng.multivariate_normal(np.zeros(n_meas), R)

    return LinearProblemExample(x0, P0, F, G, Q, H, R, z, n_epochs, xt, wt)


def generate_linear_pendulum_as_nl_problem(n_epochs=1000, rng=0, **kwargs):
    """Generate data for an example of a linear pendulum with friction.

    This function returns the problem defined in `generate_linear_pendulum` as a
    general nonlinear problem which can be used for testing and verification purposes.
    The keyword arguments are passed to `generate_linear_pendulum`.

    Returns
    -------
    lin_problem : LinearProblemExample
    nl_problem : NonlinearProblemExample
    """
    lin_problem = generate_linear_pendulum(n_epochs, rng=rng, **kwargs)
    F = lin_problem.F
    G = lin_problem.G
    H = lin_problem.H

    def f(k, X, u, W=None, with_jacobian=True):
        if W is None:
            W = np.zeros(1)
        X_next = F @ X + G @ W
        if not with_jacobian:
            return X_next
        return X_next, F, G

    def h(k, X, with_jacobian=True):
        return (H @ X, H) if with_jacobian else H @ X

    return lin_problem, NonlinearProblemExample(
        lin_problem.x0, lin_problem.P0, f, h, lin_problem.Q, lin_problem.R,
        lin_problem.z, n_epochs, lin_problem.xt, lin_problem.wt)


def generate_nonlinear_pendulum(
    n_epochs=200,
    X0=np.array([1.0, 0.0]),
    P0=np.diag([0.1**2, 0.05**2]),
    tau=0.1,
    T=5.0,
    eta=0.1,
    sigma_f=0.3,
    sigma_angle=0.05,
    torque_amplitude=0.5,
    n_rk=10,
    rng=0
):
    """Generate data for an example of a continuous-time pendulum with friction.

    The continuous time system model is::

        dx1 / dt = x2
        dx2 / dt = -omega**2 * sin(x1) - 2 * eta * omega * x2 + u + f

    with ``u`` being a known sinusoidal torque and ``f`` being an unknown external
    force, constant within each time step. The true trajectory is integrated with
    the same RK4 scheme the filters use with `n_rk` substeps.

    The measurements of ``sin(x1)`` are available.

    Parameters
    ----------
    n_epochs : int
        Number of epochs with measurements.
    X0 : array_like, shape (2,)
        Initial state estimate.
    P0 : array_like, shape (2, 2)
        Initial state covariance.
    tau : float
        Time step in seconds.
    T : float
        Pendulum period in seconds.
    eta : float
        Dimensionless friction coefficient.
    sigma_f : float
        Standard deviation of external force.
    sigma_angle : float
        Accuracy of measurements.
    torque_amplitude : float
        Amplitude of the known torque.
    n_rk : int
        Number of RK4 substeps for the simulation.
    rng : None, int or `numpy.random.Generator`
        Seed or already created generator. None corresponds to nondeterministic
        seeding.

    Returns
    -------
    NonlinearProblemExample
    """
    rng = np.random.default_rng(rng)
    omega = 2 * np.pi / T
    Q = np.array([[sigma_f**2]])
    R = np.array([[sigma_angle**2]])

    def f(t, X, u, W=None, with_jacobian=True):
        if W is None:
            W = np.zeros(1)
        dXdt = np.array([
            X[1],
            -omega**2 * np.sin(X[0]) - 2 * eta * omega * X[1] + u[0] + W[0]
        ])
        if not with_jacobian:
            return dXdt
        A = np.array([
            [0, 1],
            [-omega**2 * np.cos(X[0]), -2 * eta * omega]
        ])
        B = np.array([[0.0], [1.0]])
        return dXdt, A, B

    def h(k, X, with_jacobian=True):
        Z = np.array([np.sin(X[0])])
        if not with_jacobian:
            return Z
        return Z, np.array([[np.cos(X[0]), 0]])

    X0 = np.asarray(X0)
    P0 = np.asarray(P0)
    t = tau * np.arange(1, n_epochs + 1)
    u = torque_amplitude * np.sin(0.5 * omega * t)[:, None]
    Xt = np.empty((n_epochs + 1, 2))
    Wt = rng.multivariate_normal(np.zeros(1), Q, size=n_epochs)
    z = np.empty((n_epochs, 1))

    Xt[0] = rng.multivariate_normal(X0, P0)
    for k in range(n_epochs):
        Xt[k + 1], *_ = integrate_rk4_with_jac(f, (k * tau, (k + 1) * tau), Xt[k],
                                               u[k], Wt[k], n_rk)
        z[k] = (h(k + 1, Xt[k + 1], with_jacobian=False)
                + rng.multivariate_normal(np.zeros(1), R))

    return NonlinearProblemExample(X0, P0, f, h, Q, R, z, n_epochs, Xt, Wt, u=u,
                                   t=t, coupling='continuous')


def generate_range_tracking(
    n_epochs=100,
    X0=np.array([20.0, 30.0, -1.0, 2.0]),
    P0=np.diag([5.0**2, 5.0**2, 0.5**2, 0.5**2]),
    tau=1.0,
    q=0.01,
    sigma_range=0.1,
    sigma_bearing=0.01,
    rng=0,
):
    """Generate data for a target tracked by range and bearing measurements.

    The target moves in a plane with nearly constant velocity::

        p_{k + 1} = p_k + tau * v_k + tau**2 / 2 * w_k
        v_{k + 1} = v_k + tau * w_k

    where ``p`` and ``v`` are 2-dimensional position and velocity, ``w`` is random
    acceleration. A sensor at the origin measures range ``|p|`` and bearing
    ``atan2(p_y, p_x)``. Accurate measurements close to the sensor together with
    large initial uncertainty make the measurement model strongly nonlinear over
    the prior spread.

    Parameters
    ----------
    n_epochs : int
        Number of epochs with measurements.
    X0 : array_like, shape (4,)
        Initial state estimate.
    P0 : array_like, shape (4, 4)
        Initial state covariance.
    tau : float
        Time step.
    q : float
        Variance of random acceleration components.
    sigma_range : float
        Accuracy of range measurements.
    sigma_bearing : float
        Accuracy of bearing measurements in rad.
    rng : None, int or `numpy.random.Generator`
        Seed or already created generator. None corresponds to nondeterministic
        seeding.

    Returns
    -------
    NonlinearProblemExample
    """
    rng = np.random.default_rng(rng)
    F = np.identity(4)
    F[0, 2] = F[1, 3] = tau
    G = np.array([
        [0.5 * tau**2, 0],
        [0, 0.5 * tau**2],
        [tau, 0],
        [0, tau]
    ])
    Q = q * np.identity(2)
    R = np.diag([sigma_range**2, sigma_bearing**2])

    def f(k, X, u, W=None, with_jacobian=True):
        if W is None:
            W = np.zeros(2)
        X_next = F @ X + G @ W
        if not with_jacobian:
            return X_next
        return X_next, F, G

    def h(k, X, with_jacobian=True):
        px, py = X[:2]
        r = np.hypot(px, py)
        Z = np.array([r, np.arctan2(py, px)])
        if not with_jacobian:
            return Z
        H = np.array([
            [px / r, py / r, 0, 0],
            [-py / r**2, px / r**2, 0, 0]
        ])
        return Z, H

    X0 = np.asarray(X0)
    P0 = np.asarray(P0)
    Xt = np.empty((n_epochs + 1, 4))
    Wt = rng.multivariate_normal(np.zeros(2), Q, size=n_epochs)
    z = np.empty((n_epochs, 2))

    Xt[0] = rng.multivariate_normal(X0, P0)
    for k in range(n_epochs):
        Xt[k + 1] = f(k, Xt[k], None, Wt[k], with_jacobian=False)
        z[k] = (h(k + 1, Xt[k + 1], with_jacobian=False)
                + rng.multivariate_normal(np.zeros(2), R))

    return NonlinearProblemExample(X0, P0, f, h, Q, R, z, n_epochs, Xt, Wt)
