"""
Propagation formulations.

A formulation maps the base-frame system state (Cartesian state of each
body relative to its central body) to the representation the integrator
works on, and builds the derivative of that representation from the total
accelerations. Two formulations exist:

- Cowell: the base-frame state is integrated directly.
- Encke: the deviation from an unperturbed two-body reference orbit of
  every body about its central body is integrated. The reference orbits
  are seeded with the initial state at the start of each propagation and
  stay fixed for the whole interval.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional

import heyoka as hy
import numpy as np

from .config import config
from .exceptions import ConfigurationError, EvaluationError
from .frames import CentralBodyGraph
from .kepler import propagate_kepler_orbit, two_body_acceleration

logger = logging.getLogger(__name__)


class PropagatorType(Enum):
    COWELL = 'cowell'
    ENCKE = 'encke'

    @classmethod
    def parse(cls, value) -> "PropagatorType":
        """Convert a string or enum to PropagatorType."""
        if isinstance(value, PropagatorType):
            return value
        if isinstance(value, str):
            type_map = {
                'cowell': cls.COWELL,
                'cartesian': cls.COWELL,
                'encke': cls.ENCKE,
            }
            if value.lower() in type_map:
                return type_map[value.lower()]
            raise ConfigurationError(
                f"Unknown propagator type '{value}'. Use: {list(type_map.keys())}"
            )
        raise TypeError(f"propagator must be PropagatorType or str, got {type(value)}")


# ========== REFERENCE ORBITS ==========

class KeplerReferenceOrbit:
    """
    Analytic two-body reference orbit.

    Parameters
    ----------
    initial_state : array_like
        Cartesian state relative to the central body at ``initial_time``
    initial_time : float
        Epoch the orbit is seeded at
    mu : float
        Gravitational parameter of the two-body problem
    """

    def __init__(self, initial_state, initial_time: float, mu: float,
                 final_time: Optional[float] = None):
        self._initial_state = np.array(initial_state, dtype=float)
        self._initial_time = float(initial_time)
        self._mu = float(mu)
        self._last_time = None
        self._last_state = None

    @property
    def mu(self) -> float:
        return self._mu

    def state_at(self, time: float) -> np.ndarray:
        # Runge-Kutta stages repeat epochs, keep the latest one
        if time != self._last_time:
            self._last_state = propagate_kepler_orbit(
                self._initial_state, time - self._initial_time, self._mu)
            self._last_time = time
        return self._last_state


class TaylorReferenceOrbit:
    """
    Two-body reference orbit integrated with heyoka's Taylor method.

    The orbit is integrated once over [initial_time, final_time] with
    continuous output, which is then evaluated at the requested epochs.
    The compiled integrator is shared between instances and copied for
    each new orbit.
    """

    _templates: Dict[float, "hy.taylor_adaptive"] = {}
    _lock = threading.Lock()

    def __init__(self, initial_state, initial_time: float, mu: float,
                 final_time: Optional[float] = None):
        if final_time is None:
            raise ConfigurationError("Taylor reference orbit requires a final time")
        self._mu = float(mu)
        self._initial_time = float(initial_time)
        self._final_time = float(final_time)

        ta = self._integrator()
        ta.pars[0] = self._mu
        ta.time = self._initial_time
        ta.state[:] = np.asarray(initial_state, dtype=float)
        self._output = ta.propagate_until(self._final_time, c_output=True)[4]
        if self._output is None or not np.all(np.isfinite(ta.state)):
            raise EvaluationError(
                "Taylor reference orbit integration failed", ta.time
            )

    @classmethod
    def _integrator(cls):
        tolerance = config.TAYLOR_TOLERANCE
        with cls._lock:
            if tolerance not in cls._templates:
                logger.info("Compiling two-body Taylor integrator (tol=%g)", tolerance)
                x, y, z, vx, vy, vz = hy.make_vars("x", "y", "z", "vx", "vy", "vz")
                r = hy.sqrt(x**2 + y**2 + z**2)
                mu = hy.par[0]
                sys = [
                    (x, vx), (y, vy), (z, vz),
                    (vx, -mu * x / r**3),
                    (vy, -mu * y / r**3),
                    (vz, -mu * z / r**3),
                ]
                cls._templates[tolerance] = hy.taylor_adaptive(
                    sys=sys,
                    state=[1.0, 0.0, 0.0, 0.0, 1.0, 0.0],  # dummy state
                    pars=[1.0],
                    tol=tolerance,
                )
            return copy.deepcopy(cls._templates[tolerance])

    @property
    def mu(self) -> float:
        return self._mu

    def state_at(self, time: float) -> np.ndarray:
        return np.array(self._output(float(time)))  # heyoka requires float input


REFERENCE_ORBITS = {
    'kepler': KeplerReferenceOrbit,
    'taylor': TaylorReferenceOrbit,
}


def reference_orbit_class(name: Optional[str] = None):
    """Resolve a reference orbit class, defaulting to ``config.ENCKE_REFERENCE``."""
    name = config.ENCKE_REFERENCE if name is None else name
    try:
        return REFERENCE_ORBITS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown Encke reference '{name}'. Use: {list(REFERENCE_ORBITS)}"
        ) from None


def create_reference_orbit(initial_state, initial_time, mu, final_time=None):
    """Build the reference orbit selected by ``config.ENCKE_REFERENCE``."""
    return reference_orbit_class()(initial_state, initial_time, mu, final_time)


# ========== FORMULATIONS ==========

class PropagationFormulation(ABC):
    """
    Mapping between base-frame and integrated states.

    Parameters
    ----------
    graph : CentralBodyGraph
        Topology of the integrated bodies
    """

    propagator_type: PropagatorType

    def __init__(self, graph: CentralBodyGraph):
        self._graph = graph

    @property
    def graph(self) -> CentralBodyGraph:
        return self._graph

    def initialize(self, initial_time: float, base_state, final_time: float) -> np.ndarray:
        """Prepare a propagation and return the initial integrated state."""
        return self.to_internal_state(base_state, initial_time)

    @abstractmethod
    def to_base_frame(self, internal_state, time: float) -> np.ndarray:
        ...

    @abstractmethod
    def to_internal_state(self, base_state, time: float) -> np.ndarray:
        ...

    @abstractmethod
    def state_derivative(self, time: float, internal_state, base_state,
                         accelerations: np.ndarray) -> np.ndarray:
        """
        Derivative of the integrated state.

        Parameters
        ----------
        time : float
            Evaluation epoch
        internal_state : np.ndarray
            Integrated state
        base_state : np.ndarray
            Corresponding base-frame state
        accelerations : np.ndarray
            Total acceleration of each body relative to its central body,
            shape (n_bodies, 3)
        """

    def __repr__(self):
        return f"{type(self).__name__}({self._graph!r})"


class CowellFormulation(PropagationFormulation):
    """Direct integration of the base-frame state."""

    propagator_type = PropagatorType.COWELL

    def to_base_frame(self, internal_state, time):
        return np.asarray(internal_state, dtype=float)

    def to_internal_state(self, base_state, time):
        return np.array(base_state, dtype=float)

    def state_derivative(self, time, internal_state, base_state, accelerations):
        blocks = np.asarray(base_state).reshape(-1, 6)
        return np.hstack((blocks[:, 3:], accelerations)).ravel()


class EnckeFormulation(PropagationFormulation):
    """
    Integration of deviations from two-body reference orbits.

    The reference orbit of each body uses the gravitational parameter of
    its central body plus, when defined, its own.

    Raises
    ------
    ConfigurationError
        If a central body has no gravitational parameter
        or ``config.ENCKE_REFERENCE`` names no known reference orbit
    """

    propagator_type = PropagatorType.ENCKE

    def __init__(self, graph: CentralBodyGraph):
        super().__init__(graph)
        for body, central in zip(graph.bodies_to_integrate, graph.central_bodies):
            central_body = graph.bodies.get(central)
            if central_body is None or central_body.gravitational_parameter is None:
                raise ConfigurationError(
                    f"Encke propagation of '{body}' requires a gravitational "
                    f"parameter for its central body '{central}'"
                )
        self._reference_class = reference_orbit_class()
        self._references: Optional[List] = None

    def _reference_mu(self, index):
        bodies = self._graph.bodies
        mu = bodies[self._graph.central_bodies[index]].gravitational_parameter
        own = bodies[self._graph.bodies_to_integrate[index]].gravitational_parameter
        return mu + own if own is not None else mu

    def initialize(self, initial_time, base_state, final_time):
        blocks = np.asarray(base_state, dtype=float).reshape(-1, 6)
        self._references = [
            self._reference_class(blocks[i], initial_time, self._reference_mu(i), final_time)
            for i in range(self._graph.n_bodies)
        ]
        logger.debug("Seeded %d %s reference orbits at t=%s",
                     len(self._references), self._reference_class.__name__, initial_time)
        return np.zeros(blocks.size)

    @property
    def references(self) -> List:
        if self._references is None:
            raise EvaluationError("Encke formulation used before initialization")
        return self._references

    def _reference_states(self, time):
        return np.concatenate([ref.state_at(time) for ref in self.references])

    def to_base_frame(self, internal_state, time):
        return np.asarray(internal_state, dtype=float) + self._reference_states(time)

    def to_internal_state(self, base_state, time):
        return np.asarray(base_state, dtype=float) - self._reference_states(time)

    def state_derivative(self, time, internal_state, base_state, accelerations):
        deviations = np.asarray(internal_state).reshape(-1, 6)
        derivative = np.empty_like(deviations)
        for i, reference in enumerate(self.references):
            state = reference.state_at(time)
            derivative[i, :3] = deviations[i, 3:]
            derivative[i, 3:] = accelerations[i] - two_body_acceleration(state[:3], reference.mu)
        return derivative.ravel()


def create_formulation(propagator, graph: CentralBodyGraph) -> PropagationFormulation:
    """Build the formulation for a PropagatorType (or its string name)."""
    propagator = PropagatorType.parse(propagator)
    if propagator == PropagatorType.ENCKE:
        return EnckeFormulation(graph)
    return CowellFormulation(graph)
