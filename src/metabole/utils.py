"""
Utility functions and classes for the Metabole package.
"""

import logging
import warnings
from time import perf_counter
from typing import Optional, Type

import numpy as np
from scipy.interpolate import make_interp_spline

from .config import config
from .exceptions import ConfigurationError, RangeError


class Timer:
    """
    Context manager for timing code execution.

    Examples
    --------
    >>> from metabole.utils import Timer
    >>> with Timer("Propagation"):
    ...     solver.integrate_variational_and_dynamical_equations()
    Propagation: 0.123456 s

    >>> with Timer("Propagation", logger=logging.getLogger("metabole")) as t:
    ...     # ... code ...
    >>> print(f"Took {t.elapsed:.6f} seconds")
    """
    def __init__(self, name="Operation", verbose=True,
                 logger: Optional[logging.Logger] = None):
        """
        Parameters
        ----------
        name : str, optional
            Name to display when timing completes (default: "Operation")
        verbose : bool, optional
            Whether to report timing automatically (default: True)
        logger : logging.Logger, optional
            If given, the timing is reported at INFO level on this logger
            instead of printed
        """
        self.name = name
        self.verbose = verbose
        self.logger = logger
        self.elapsed = None

    def __enter__(self):
        self.start = perf_counter()
        return self

    def __exit__(self, *args):
        self.end = perf_counter()
        self.elapsed = self.end - self.start
        if not self.verbose:
            return
        if self.logger is not None:
            self.logger.info("%s: %.6f s", self.name, self.elapsed)
        else:
            print(f"{self.name}: {self.elapsed:.6f} s")


def validation_error(message: str,
                     error_class: Type[Exception] = ConfigurationError):
    """
    Raise error or warn based on config.STRICT_VALIDATION.

    This function provides consistent validation behavior across the package.
    When STRICT_VALIDATION is True (default), raises the specified exception.
    When False, issues a UserWarning instead.

    Parameters
    ----------
    message : str
        Validation error message
    error_class : Type[Exception], optional
        Exception class to raise if STRICT_VALIDATION is True.
        Default: ConfigurationError

    Raises
    ------
    Exception (of type error_class)
        If config.STRICT_VALIDATION is True

    Warns
    -----
    UserWarning
        If config.STRICT_VALIDATION is False
    """
    if config.STRICT_VALIDATION:
        raise error_class(message)
    else:
        warnings.warn(message, UserWarning, stacklevel=2)


class HistoryInterpolator:
    """
    Entrywise spline interpolation of a time-tagged history.

    Queries at a stored epoch return the stored sample exactly; other
    epochs inside the sampled interval are interpolated with a B-spline of
    order ``config.INTERPOLATION_ORDER`` (lowered when fewer samples are
    available). The spline is built on first use.

    Parameters
    ----------
    times : array_like
        Sample epochs, in any order but without duplicates
    values : array_like
        Samples, shape (n_samples, ...)
    order : int, optional
        Spline order; defaults to ``config.INTERPOLATION_ORDER``

    Raises
    ------
    ValueError
        If the history is empty, shapes disagree or epochs repeat
    """

    def __init__(self, times, values, order: Optional[int] = None):
        times = np.asarray(times, dtype=float).ravel()
        values = np.asarray(values, dtype=float)
        if times.size == 0:
            raise ValueError("Cannot interpolate an empty history")
        if values.shape[0] != times.size:
            raise ValueError(
                f"Got {times.size} epochs but {values.shape[0]} samples"
            )
        sort_index = np.argsort(times, kind='stable')
        self._times = times[sort_index]
        self._values = values[sort_index]
        if np.any(np.diff(self._times) <= 0):
            raise ValueError("History epochs must be unique")
        self._order = config.INTERPOLATION_ORDER if order is None else order
        self._spline = None

    @property
    def times(self) -> np.ndarray:
        return self._times

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def bounds(self):
        return self._times[0], self._times[-1]

    def __call__(self, time: float) -> np.ndarray:
        """
        Sample at ``time``.

        Raises
        ------
        RangeError
            If ``time`` lies outside the sampled interval
        """
        time = float(time)
        lower, upper = self.bounds
        slack = config.EPOCH_TOLERANCE * (upper - lower)
        if time < lower - slack or time > upper + slack:
            raise RangeError(
                f"Epoch {time} outside the propagated interval [{lower}, {upper}]"
            )
        time = min(max(time, lower), upper)

        index = np.searchsorted(self._times, time)
        if index < self._times.size and self._times[index] == time:
            return self._values[index].copy()

        if self._spline is None:
            k = max(1, min(self._order, self._times.size - 1))
            self._spline = make_interp_spline(self._times, self._values, k=k, axis=0)
        return np.asarray(self._spline(time))

    def __len__(self):
        return self._times.size
