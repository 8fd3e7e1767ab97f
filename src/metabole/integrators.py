"""
Explicit Runge-Kutta integration.

The same :class:`RungeKuttaIntegrator` drives dynamics-only and joint
(dynamics + variational) propagation. Steps are stateless: ``step`` only
reads the Butcher tableau, so one integrator may be shared between runs.
With adaptive step control the local error is measured on the dynamics
components alone, so a joint propagation visits exactly the epochs of the
corresponding dynamics-only propagation.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .config import config
from .exceptions import ConfigurationError, IntegrationError

logger = logging.getLogger(__name__)

RightHandSide = Callable[[float, np.ndarray], np.ndarray]


# ========== BUTCHER TABLEAUX ==========

@dataclass(frozen=True)
class RungeKuttaCoefficients:
    """
    Butcher tableau of an explicit Runge-Kutta method.

    Attributes
    ----------
    name : str
        Method name
    c : tuple
        Stage nodes
    a : tuple of tuple
        Lower-triangular stage coefficients (row i has i entries)
    b : tuple
        Weights of the propagated solution
    b_embedded : tuple, optional
        Weights of the embedded solution used for error estimation
    order : int
        Order of the propagated solution
    embedded_order : int, optional
        Order of the embedded solution
    """
    name: str
    c: Tuple[float, ...]
    a: Tuple[Tuple[float, ...], ...]
    b: Tuple[float, ...]
    b_embedded: Optional[Tuple[float, ...]] = None
    order: int = 4
    embedded_order: Optional[int] = None

    def __post_init__(self):
        stages = len(self.c)
        if len(self.b) != stages or len(self.a) != stages - 1:
            raise ConfigurationError(f"Inconsistent Butcher tableau '{self.name}'")
        if any(len(row) != i + 1 for i, row in enumerate(self.a)):
            raise ConfigurationError(f"Butcher tableau '{self.name}' is not explicit")
        if self.b_embedded is not None and len(self.b_embedded) != stages:
            raise ConfigurationError(f"Inconsistent embedded weights in '{self.name}'")

    @property
    def stages(self) -> int:
        return len(self.c)

    @property
    def has_error_estimate(self) -> bool:
        return self.b_embedded is not None


RK4 = RungeKuttaCoefficients(
    name='rk4',
    c=(0.0, 0.5, 0.5, 1.0),
    a=((0.5,), (0.0, 0.5), (0.0, 0.0, 1.0)),
    b=(1 / 6, 1 / 3, 1 / 3, 1 / 6),
    order=4,
)

RKF45 = RungeKuttaCoefficients(
    name='rkf45',
    c=(0.0, 1 / 4, 3 / 8, 12 / 13, 1.0, 1 / 2),
    a=((1 / 4,),
       (3 / 32, 9 / 32),
       (1932 / 2197, -7200 / 2197, 7296 / 2197),
       (439 / 216, -8.0, 3680 / 513, -845 / 4104),
       (-8 / 27, 2.0, -3544 / 2565, 1859 / 4104, -11 / 40)),
    b=(16 / 135, 0.0, 6656 / 12825, 28561 / 56430, -9 / 50, 2 / 55),
    b_embedded=(25 / 216, 0.0, 1408 / 2565, 2197 / 4104, -1 / 5, 0.0),
    order=5,
    embedded_order=4,
)

DOPRI5 = RungeKuttaCoefficients(
    name='dopri5',
    c=(0.0, 1 / 5, 3 / 10, 4 / 5, 8 / 9, 1.0, 1.0),
    a=((1 / 5,),
       (3 / 40, 9 / 40),
       (44 / 45, -56 / 15, 32 / 9),
       (19372 / 6561, -25360 / 2187, 64448 / 6561, -212 / 729),
       (9017 / 3168, -355 / 33, 46732 / 5247, 49 / 176, -5103 / 18656),
       (35 / 384, 0.0, 500 / 1113, 125 / 192, -2187 / 6784, 11 / 84)),
    b=(35 / 384, 0.0, 500 / 1113, 125 / 192, -2187 / 6784, 11 / 84, 0.0),
    b_embedded=(5179 / 57600, 0.0, 7571 / 16695, 393 / 640, -92097 / 339200,
                187 / 2100, 1 / 40),
    order=5,
    embedded_order=4,
)

COEFFICIENT_TABLES: Dict[str, RungeKuttaCoefficients] = {
    table.name: table for table in (RK4, RKF45, DOPRI5)
}


def get_coefficients(method) -> RungeKuttaCoefficients:
    """Look up a tableau by name (case-insensitive) or pass one through."""
    if isinstance(method, RungeKuttaCoefficients):
        return method
    try:
        return COEFFICIENT_TABLES[str(method).lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown integration method '{method}'. "
            f"Valid methods: {sorted(COEFFICIENT_TABLES)}"
        ) from None


# ========== SETTINGS ==========

@dataclass
class IntegratorSettings:
    """
    Integrator configuration.

    Attributes
    ----------
    method : str or RungeKuttaCoefficients
        'rk4', 'rkf45', 'dopri5' or a custom tableau
    initial_time : float
        Propagation start epoch
    step_size : float
        Fixed step size, or initial step size with adaptive control.
        Its sign is ignored; the direction follows the final time.
    adaptive : bool, optional
        Use embedded error control; defaults to True for methods that
        have an embedded solution
    relative_tolerance, absolute_tolerance : float
        Error tolerances of adaptive control
    minimum_step, maximum_step : float, optional
        Bounds on the adaptive step magnitude
    safety_factor, minimum_factor, maximum_factor : float
        Step-size update controls
    maximum_steps : int
        Abort after this many (accepted and rejected) steps
    """
    method: object = 'rk4'
    initial_time: float = 0.0
    step_size: float = 60.0
    adaptive: Optional[bool] = None
    relative_tolerance: float = 1e-12
    absolute_tolerance: float = 1e-12
    minimum_step: Optional[float] = None
    maximum_step: Optional[float] = None
    safety_factor: float = 0.8
    minimum_factor: float = 0.1
    maximum_factor: float = 4.0
    maximum_steps: int = 10_000_000
    coefficients: RungeKuttaCoefficients = field(init=False, repr=False)

    def __post_init__(self):
        self.coefficients = get_coefficients(self.method)
        if self.adaptive is None:
            self.adaptive = self.coefficients.has_error_estimate
        elif self.adaptive and not self.coefficients.has_error_estimate:
            raise ConfigurationError(
                f"Method '{self.coefficients.name}' has no embedded error "
                f"estimate; adaptive step control is unavailable"
            )

        if not math.isfinite(self.initial_time):
            raise ConfigurationError(f"Initial time must be finite, got {self.initial_time}")
        if not math.isfinite(self.step_size) or self.step_size == 0.0:
            raise ConfigurationError(f"Step size must be finite and non-zero, got {self.step_size}")
        if self.relative_tolerance <= 0 or self.absolute_tolerance <= 0:
            raise ConfigurationError("Integration tolerances must be positive")
        if self.minimum_step is not None and self.minimum_step <= 0:
            raise ConfigurationError(f"Minimum step must be positive, got {self.minimum_step}")
        if (self.minimum_step is not None and self.maximum_step is not None
                and self.minimum_step > self.maximum_step):
            raise ConfigurationError(
                f"Minimum step {self.minimum_step} exceeds maximum step {self.maximum_step}"
            )
        if not 0 < self.safety_factor <= 1:
            raise ConfigurationError(f"Safety factor must be in (0, 1], got {self.safety_factor}")
        if not 0 < self.minimum_factor < 1 < self.maximum_factor:
            raise ConfigurationError(
                "Step factors must satisfy 0 < minimum_factor < 1 < maximum_factor"
            )
        if self.maximum_steps < 1:
            raise ConfigurationError(f"maximum_steps must be positive, got {self.maximum_steps}")


# ========== INTEGRATOR ==========

class RungeKuttaIntegrator:
    """
    Explicit Runge-Kutta integrator for ``dy/dt = rhs(t, y)``.

    Parameters
    ----------
    settings : IntegratorSettings
        Method, step size and step control

    Examples
    --------
    >>> integrator = RungeKuttaIntegrator(IntegratorSettings(step_size=10.0))
    >>> times, states = integrator.integrate(lambda t, y: -y, np.ones(2), 0.0, 100.0)
    """

    def __init__(self, settings: IntegratorSettings):
        self.settings = settings
        self.coefficients = settings.coefficients
        self._a = [np.array(row) for row in self.coefficients.a]
        self._b = np.array(self.coefficients.b)
        if self.coefficients.has_error_estimate:
            self._error_weights = self._b - np.array(self.coefficients.b_embedded)
        else:
            self._error_weights = None

    def step(self, rhs: RightHandSide, time: float, state: np.ndarray,
             step_size: float) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """
        Advance one step.

        Returns
        -------
        next_state : np.ndarray
            State at ``time + step_size``
        error : np.ndarray or None
            Local error estimate (None without an embedded solution)
        """
        c = self.coefficients.c
        stages = [rhs(time, state)]
        for i, row in enumerate(self._a, start=1):
            stage_state = state + step_size * _combine(row, stages)
            stages.append(rhs(time + c[i] * step_size, stage_state))

        next_state = state + step_size * _combine(self._b, stages)
        error = None
        if self._error_weights is not None:
            error = step_size * _combine(self._error_weights, stages)
        return next_state, error

    def integrate(self, rhs: RightHandSide, initial_state, initial_time: float,
                  final_time: float, error_components: slice = slice(None)
                  ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Integrate from ``initial_time`` to ``final_time``.

        Parameters
        ----------
        rhs : callable
            Right-hand side ``rhs(t, y) -> dy/dt``
        initial_state : array_like
            State at ``initial_time``
        initial_time, final_time : float
            Interval; ``final_time < initial_time`` integrates backward
        error_components : slice, optional
            Components entering the adaptive error norm

        Returns
        -------
        times : np.ndarray
            Sample epochs, shape (n_samples,), including both bounds
        states : np.ndarray
            States at the sample epochs, shape (n_samples, state size)

        Raises
        ------
        IntegrationError
            If a step produces a non-finite state or the step limit is hit
        """
        state = np.array(initial_state, dtype=float)
        if not np.all(np.isfinite(state)):
            raise IntegrationError("Non-finite initial state", initial_time, 0)
        if final_time == initial_time:
            return np.array([float(initial_time)]), state[np.newaxis, :].copy()

        if self.settings.adaptive:
            times, states = self._integrate_adaptive(
                rhs, state, float(initial_time), float(final_time), error_components)
        else:
            times, states = self._integrate_fixed(
                rhs, state, float(initial_time), float(final_time))
        return np.array(times), np.array(states)

    # ---------- fixed step ----------
    def _integrate_fixed(self, rhs, state, t0, tf):
        direction = 1.0 if tf > t0 else -1.0
        step = direction * abs(self.settings.step_size)
        # grid t0 + k h, last step shortened to land on tf
        n_steps = max(1, math.ceil((tf - t0) / step - 1e-9))
        if n_steps > self.settings.maximum_steps:
            raise IntegrationError(
                f"{n_steps} fixed steps exceed maximum_steps={self.settings.maximum_steps}", t0)

        times = [t0]
        states = [state]
        for k in range(1, n_steps + 1):
            t_next = tf if k == n_steps else t0 + k * step
            state, _ = self.step(rhs, times[-1], state, t_next - times[-1])
            self._check_finite(state, t_next, k)
            times.append(t_next)
            states.append(state)
            self._log_progress(k, t_next)
        return times, states

    # ---------- adaptive step ----------
    def _integrate_adaptive(self, rhs, state, t0, tf, error_components):
        settings = self.settings
        direction = 1.0 if tf > t0 else -1.0
        exponent = -1.0 / (self.coefficients.embedded_order + 1)
        h = min(abs(settings.step_size), abs(tf - t0))

        times = [t0]
        states = [state]
        t = t0
        attempts = 0
        while direction * (tf - t) > 0:
            attempts += 1
            if attempts > settings.maximum_steps:
                raise IntegrationError(
                    f"Exceeded maximum_steps={settings.maximum_steps}", t, len(times) - 1)
            h = self._bound_step(h)
            last = h >= abs(tf - t)
            step = tf - t if last else direction * h

            candidate, error = self.step(rhs, t, state, step)
            self._check_finite(candidate, t + step, len(times))

            scale = (settings.absolute_tolerance + settings.relative_tolerance
                     * np.maximum(np.abs(state[error_components]),
                                  np.abs(candidate[error_components])))
            error_norm = float(np.max(np.abs(error[error_components]) / scale))

            if error_norm <= 1.0:
                t = tf if last else t + step
                state = candidate
                times.append(t)
                states.append(state)
                self._log_progress(len(times) - 1, t)
            elif settings.minimum_step is not None and h <= settings.minimum_step:
                raise IntegrationError(
                    f"Step rejected at minimum step size {settings.minimum_step} "
                    f"(error norm {error_norm:.3e})", t, len(times) - 1)

            if error_norm == 0.0:
                factor = settings.maximum_factor
            else:
                factor = settings.safety_factor * error_norm**exponent
            factor = min(settings.maximum_factor, max(settings.minimum_factor, factor))
            h = abs(step) * factor
        return times, states

    def _bound_step(self, h):
        if self.settings.maximum_step is not None:
            h = min(h, self.settings.maximum_step)
        if self.settings.minimum_step is not None:
            h = max(h, self.settings.minimum_step)
        return h

    # ---------- diagnostics ----------
    @staticmethod
    def _check_finite(state, epoch, step_index):
        if not np.all(np.isfinite(state)):
            raise IntegrationError("Integration produced a non-finite state", epoch, step_index)

    @staticmethod
    def _log_progress(step_index, epoch):
        interval = config.PROGRESS_LOG_INTERVAL
        if interval > 0 and step_index % interval == 0:
            logger.debug("Step %d reached epoch %.6f", step_index, epoch)

    def __repr__(self):
        mode = "adaptive" if self.settings.adaptive else "fixed"
        return f"RungeKuttaIntegrator({self.coefficients.name}, {mode}, h={self.settings.step_size})"


def _combine(weights, stages):
    """Weighted sum of stage derivatives, evaluated entrywise."""
    # entrywise: each component is independent of the vector length
    total = np.zeros_like(stages[0])
    for weight, stage in zip(weights, stages):
        if weight != 0.0:
            total += weight * stage
    return total
