"""
Estimatable parameters.

A parameter set is an ordered collection of parameters whose flattened
values form the parameter vector. Initial-state parameters come first, one
6-element block per integrated body; their combined size is the width of
the state transition matrix. All remaining parameters form the columns of
the sensitivity matrix.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .bodies import DEFAULT_FRAME_ORIGIN, Body
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class EstimatableParameter(ABC):
    """
    Interface of an estimatable parameter.

    Subclasses set ``analytic_partials = False`` when acceleration models
    cannot supply analytic partials with respect to them, in which case the
    aggregator falls back to central differences.
    """

    analytic_partials: bool = True
    is_initial_state: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def size(self) -> int:
        ...

    @abstractmethod
    def get_value(self) -> np.ndarray:
        ...

    @abstractmethod
    def set_value(self, value) -> None:
        ...

    def _check_size(self, value) -> np.ndarray:
        value = np.atleast_1d(np.asarray(value, dtype=float))
        if value.shape != (self.size,):
            raise ConfigurationError(
                f"Parameter '{self.name}' expects {self.size} values, got {value.shape}"
            )
        return value

    def __repr__(self):
        return f"{type(self).__name__}('{self.name}')"


class InitialTranslationalStateParameter(EstimatableParameter):
    """
    Initial Cartesian state of an integrated body w.r.t. its central body.

    Parameters
    ----------
    body_name : str
        Integrated body
    initial_state : array_like
        Base-frame initial state [x, y, z, vx, vy, vz]
    central_body : str, optional
        Central body the state is expressed relative to
    """

    is_initial_state = True

    def __init__(self, body_name: str, initial_state,
                 central_body: str = DEFAULT_FRAME_ORIGIN):
        self._body_name = body_name
        self._central_body = central_body
        self._value = np.zeros(6)
        self.set_value(initial_state)

    @property
    def name(self) -> str:
        return f"initial_state:{self._body_name}"

    @property
    def body_name(self) -> str:
        return self._body_name

    @property
    def central_body(self) -> str:
        return self._central_body

    @property
    def size(self) -> int:
        return 6

    def get_value(self) -> np.ndarray:
        return self._value.copy()

    def set_value(self, value) -> None:
        self._value = self._check_size(value).copy()


class GravitationalParameter(EstimatableParameter):
    """
    Gravitational parameter of a body.

    The value lives on the :class:`~metabole.bodies.Body` itself, so
    setting it changes every acceleration model that reads it.
    """

    def __init__(self, body: Body):
        if body.gravitational_parameter is None:
            raise ConfigurationError(
                f"Body '{body.name}' has no gravitational parameter to estimate"
            )
        self._body = body

    @property
    def name(self) -> str:
        return f"gravitational_parameter:{self._body.name}"

    @property
    def body_name(self) -> str:
        return self._body.name

    @property
    def size(self) -> int:
        return 1

    def get_value(self) -> np.ndarray:
        return np.array([self._body.gravitational_parameter], dtype=float)

    def set_value(self, value) -> None:
        value = self._check_size(value)[0]
        if not np.isfinite(value) or value <= 0:
            raise ConfigurationError(
                f"Gravitational parameter of '{self._body.name}' must be "
                f"positive and finite, got {value}"
            )
        self._body.gravitational_parameter = float(value)


class EstimatableParameterSet:
    """
    Ordered collection of estimatable parameters.

    Parameters
    ----------
    parameters : sequence of EstimatableParameter
        Initial-state parameters first, then all others

    Raises
    ------
    ConfigurationError
        If an initial-state parameter follows a non-state parameter or a
        parameter appears twice
    """

    def __init__(self, parameters: Sequence[EstimatableParameter]):
        self._parameters = tuple(parameters)

        seen_other = False
        names = set()
        for parameter in self._parameters:
            if parameter.name in names:
                raise ConfigurationError(f"Duplicate parameter '{parameter.name}'")
            names.add(parameter.name)
            if parameter.is_initial_state and seen_other:
                raise ConfigurationError(
                    f"Initial-state parameter '{parameter.name}' must precede "
                    f"all other parameters"
                )
            if not parameter.is_initial_state:
                seen_other = True

        self._indices: List[Tuple[int, int]] = []
        start = 0
        for parameter in self._parameters:
            self._indices.append((start, parameter.size))
            start += parameter.size
        self._total_size = start
        self._initial_state_size = sum(p.size for p in self.initial_state_parameters)
        logger.debug("Parameter set with %d entries (%d state, %d other)",
                     self._total_size, self._initial_state_size,
                     self._total_size - self._initial_state_size)

    # ========== SIZES AND LAYOUT ==========
    @property
    def parameters(self) -> Tuple[EstimatableParameter, ...]:
        return self._parameters

    @property
    def initial_state_parameters(self) -> Tuple[EstimatableParameter, ...]:
        return tuple(p for p in self._parameters if p.is_initial_state)

    @property
    def other_parameters(self) -> Tuple[EstimatableParameter, ...]:
        return tuple(p for p in self._parameters if not p.is_initial_state)

    @property
    def initial_state_size(self) -> int:
        return self._initial_state_size

    @property
    def parameter_size(self) -> int:
        """Number of non-state parameter entries (sensitivity matrix width)."""
        return self._total_size - self._initial_state_size

    @property
    def total_size(self) -> int:
        return self._total_size

    def parameter_indices(self) -> Dict[str, Tuple[int, int]]:
        """Start index and size of each parameter in the full vector."""
        return {p.name: idx for p, idx in zip(self._parameters, self._indices)}

    def other_parameter_columns(self):
        """(parameter, start column in the sensitivity matrix) for non-state parameters."""
        offset = self._initial_state_size
        return [(p, start - offset) for p, (start, _) in zip(self._parameters, self._indices)
                if not p.is_initial_state]

    # ========== VALUES ==========
    def get_full_parameter_values(self) -> np.ndarray:
        if not self._parameters:
            return np.zeros(0)
        return np.concatenate([p.get_value() for p in self._parameters])

    def reset_parameter_values(self, values) -> None:
        """
        Write a full parameter vector back to the parameters.

        The write is all-or-nothing: if any parameter rejects its slice,
        the previous values are restored before the error propagates.

        Raises
        ------
        ConfigurationError
            If the vector length does not match ``total_size`` or a
            parameter rejects its value
        """
        values = np.asarray(values, dtype=float).ravel()
        if values.size != self._total_size:
            raise ConfigurationError(
                f"Parameter vector must have {self._total_size} entries, got {values.size}"
            )
        previous = [p.get_value().copy() for p in self._parameters]
        try:
            for parameter, (start, size) in zip(self._parameters, self._indices):
                parameter.set_value(values[start:start + size])
        except Exception:
            for parameter, value in zip(self._parameters, previous):
                parameter.set_value(value)
            raise

    def get_initial_states(self) -> np.ndarray:
        """Concatenated initial-state parameter values."""
        states = [p.get_value() for p in self.initial_state_parameters]
        return np.concatenate(states) if states else np.zeros(0)

    def __len__(self):
        return len(self._parameters)

    def __repr__(self):
        names = ", ".join(p.name for p in self._parameters)
        return f"EstimatableParameterSet([{names}])"
