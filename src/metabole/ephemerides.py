"""
Ephemerides of bodies that are not numerically integrated.

An ephemeris returns the Cartesian state of a body in the global (base)
frame at an epoch. Only the minimal providers needed to drive a
propagation are defined here; any object with a compatible
``get_cartesian_state(epoch)`` method can be attached to a
:class:`~metabole.bodies.Body`.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np

from .exceptions import EvaluationError
from .kepler import keplerian_to_cartesian, propagate_kepler_orbit


class Ephemeris(ABC):
    """Interface for Cartesian state providers."""

    def __init__(self, valid_interval: Optional[Tuple[float, float]] = None):
        if valid_interval is not None:
            lower, upper = (float(v) for v in valid_interval)
            if lower > upper:
                raise ValueError(
                    f"Invalid ephemeris interval [{lower}, {upper}]"
                )
            valid_interval = (lower, upper)
        self._valid_interval = valid_interval

    @property
    def valid_interval(self) -> Optional[Tuple[float, float]]:
        """Epoch interval in which the ephemeris may be evaluated (None = unbounded)."""
        return self._valid_interval

    def get_cartesian_state(self, epoch: float) -> np.ndarray:
        """
        Cartesian state [x, y, z, vx, vy, vz] at ``epoch``.

        Raises
        ------
        EvaluationError
            If ``epoch`` lies outside the valid interval
        """
        if self._valid_interval is not None:
            lower, upper = self._valid_interval
            if not (lower <= epoch <= upper):
                raise EvaluationError(
                    f"{type(self).__name__} not available outside "
                    f"[{lower}, {upper}]", epoch
                )
        return self._compute_state(epoch)

    @abstractmethod
    def _compute_state(self, epoch: float) -> np.ndarray:
        ...


class ConstantEphemeris(Ephemeris):
    """Body at rest (or a fixed state) for all epochs."""

    def __init__(self, state=None, valid_interval=None):
        super().__init__(valid_interval)
        if state is None:
            state = np.zeros(6)
        self._state = np.array(state, dtype=float)
        if self._state.shape != (6,):
            raise ValueError(f"State must have 6 elements, got {self._state.shape}")
        self._state.flags.writeable = False

    def _compute_state(self, epoch):
        return self._state.copy()

    def __repr__(self):
        return f"ConstantEphemeris(state={self._state.tolist()})"


class KeplerEphemeris(Ephemeris):
    """
    Analytic two-body ephemeris, optionally relative to a parent ephemeris.

    Parameters
    ----------
    initial_state : array_like
        Cartesian state relative to the parent at ``reference_epoch``
    reference_epoch : float
        Epoch of ``initial_state``
    mu : float
        Gravitational parameter of the two-body problem
        (parent + body when the body's mass is significant)
    parent : Ephemeris, optional
        Ephemeris of the body the orbit is expressed about; its state is
        added to the Keplerian state. None means the frame origin.
    valid_interval : tuple of float, optional
        Epoch interval in which the ephemeris may be evaluated
    """

    def __init__(self, initial_state, reference_epoch: float, mu: float,
                 parent: Optional[Ephemeris] = None, valid_interval=None):
        super().__init__(valid_interval)
        self._initial_state = np.array(initial_state, dtype=float)
        if self._initial_state.shape != (6,):
            raise ValueError(
                f"Initial state must have 6 elements, got {self._initial_state.shape}"
            )
        if mu <= 0:
            raise ValueError(f"Gravitational parameter must be positive, got {mu}")
        self._reference_epoch = float(reference_epoch)
        self._mu = float(mu)
        self._parent = parent

    @classmethod
    def from_keplerian_elements(cls, elements, reference_epoch, mu,
                                parent=None, valid_interval=None):
        """Create from Keplerian elements [a, e, i, Omega, w, nu] at ``reference_epoch``."""
        return cls(keplerian_to_cartesian(elements, mu), reference_epoch, mu,
                   parent=parent, valid_interval=valid_interval)

    @property
    def mu(self) -> float:
        return self._mu

    @property
    def parent(self) -> Optional[Ephemeris]:
        return self._parent

    def _compute_state(self, epoch):
        state = propagate_kepler_orbit(
            self._initial_state, float(epoch) - self._reference_epoch, self._mu
        )
        if self._parent is not None:
            state = state + self._parent.get_cartesian_state(epoch)
        return state

    def __repr__(self):
        return (f"KeplerEphemeris(reference_epoch={self._reference_epoch}, "
                f"mu={self._mu:.6e})")
