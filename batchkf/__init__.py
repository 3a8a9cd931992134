"""batchkf: Batch nonlinear Kalman filtering.

The package contains filters processing a recorded batch of control inputs and
measurements of a discrete-time stochastic system::

    X_{k + 1} = f_k(X_k, u_{k + 1}, W_k)
    Z_k = h_k(X_k) + V_k

Where

    - k   - integer epoch index
    - X_k - state vector
    - u_k - control input vector
    - W_k - process noise vector
    - Z_k - measurement vector
    - V_k - measurement noise vector
    - f_k - process function
    - h_k - measurement function

The process function might also be given in continuous time, in which case it is
discretized by fixed-step Runge-Kutta integration along with its Jacobians.

Two filters are provided: Extended Kalman Filter (`run_ekf`) and Iterated Extended
Kalman Filter (`run_iekf`), which computes the measurement update as a maximum a
posteriori estimate by damped Gauss-Newton iterations.

The problem is described by `FilterContext` created with `create_context`.
Process and measurement functions must follow `batchkf.util.process_callable`
(or `batchkf.util.continuous_process_callable`) and
`batchkf.util.measurement_callable` signatures. Refer to `batchkf.examples` for
examples of correctly defined problems.

References
----------
.. [1] J. L. Crassidis, J. L. Junkins, "Optimal Estimation of Dynamic Systems",
   2nd edition
.. [2] Y. Bar-Shalom, X. R. Li, T. Kirubarajan, "Estimation with Applications to
   Tracking and Navigation"
"""
from . import examples, util
from .context import FilterContext, FilterOptions, create_context
from .linear import run_kalman_filter
from .ekf import run_ekf
from .iekf import run_iekf
