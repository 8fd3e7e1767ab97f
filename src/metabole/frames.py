"""
Central-body topology and evaluation context.

Integrated bodies are propagated relative to a central body, which may be
another integrated body (hierarchical chains such as Moon -> Earth -> Sun),
a body with an ephemeris, or the global frame origin. The
:class:`CentralBodyGraph` validates this topology once, before any
integration, and resolves base-frame (relative) states into absolute states
by walking the chain in a fixed update order.

The :class:`EvaluationContext` is the read-only object handed to every
acceleration model at one evaluation: it holds the epoch, the base-frame
system state and the absolute states of all bodies needed so far.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .bodies import DEFAULT_FRAME_ORIGIN, BodyMap
from .exceptions import ConfigurationError


class CentralBodyGraph:
    """
    Validated central-body assignment of the integrated bodies.

    Parameters
    ----------
    bodies_to_integrate : sequence of str
        Integrated bodies, in state-vector order
    central_bodies : sequence of str
        Central body of each integrated body
    bodies : dict of str to Body
        Environment; non-integrated central bodies need an ephemeris
    frame_origin : str, optional
        Name of the global frame origin (state identically zero)

    Raises
    ------
    ConfigurationError
        On length mismatch, duplicates, unknown or self-referencing
        central bodies, central bodies without ephemeris, or cycles
    """

    def __init__(self, bodies_to_integrate: Sequence[str],
                 central_bodies: Sequence[str], bodies: BodyMap,
                 frame_origin: str = DEFAULT_FRAME_ORIGIN):
        self._bodies_to_integrate = tuple(bodies_to_integrate)
        self._central_bodies = tuple(central_bodies)
        self._bodies = bodies
        self._frame_origin = frame_origin

        self._validate()
        self._index = {name: i for i, name in enumerate(self._bodies_to_integrate)}
        self._update_order = self._compute_update_order()
        self._conversion_matrix = self._compute_conversion_matrix()

    # ========== VALIDATION ==========
    def _validate(self):
        if not self._bodies_to_integrate:
            raise ConfigurationError("At least one body must be integrated")
        if len(self._bodies_to_integrate) != len(self._central_bodies):
            raise ConfigurationError(
                f"Got {len(self._bodies_to_integrate)} bodies to integrate but "
                f"{len(self._central_bodies)} central bodies"
            )
        if len(set(self._bodies_to_integrate)) != len(self._bodies_to_integrate):
            raise ConfigurationError(
                f"Duplicate integrated bodies: {self._bodies_to_integrate}"
            )
        if self._frame_origin in self._bodies_to_integrate:
            raise ConfigurationError(
                f"Frame origin '{self._frame_origin}' cannot be integrated"
            )

        for body, central in zip(self._bodies_to_integrate, self._central_bodies):
            if body not in self._bodies:
                raise ConfigurationError(f"Integrated body '{body}' is not defined")
            if central == body:
                raise ConfigurationError(
                    f"Body '{body}' cannot be its own central body"
                )
            if central == self._frame_origin or central in self._bodies_to_integrate:
                continue
            if central not in self._bodies:
                raise ConfigurationError(
                    f"Central body '{central}' of '{body}' is not defined"
                )
            if self._bodies[central].ephemeris is None:
                raise ConfigurationError(
                    f"Central body '{central}' of '{body}' is not integrated "
                    f"and has no ephemeris"
                )

    def _compute_update_order(self) -> Tuple[int, ...]:
        """Indices ordered so every integrated central body precedes its satellites."""
        order: List[int] = []
        state: Dict[int, str] = {}

        def visit(i, path):
            if state.get(i) == 'done':
                return
            if state.get(i) == 'active':
                cycle = " -> ".join(self._bodies_to_integrate[j] for j in path + [i])
                raise ConfigurationError(f"Cyclic central-body chain: {cycle}")
            state[i] = 'active'
            central = self._central_bodies[i]
            if central in self._index:
                visit(self._index[central], path + [i])
            state[i] = 'done'
            order.append(i)

        for i in range(len(self._bodies_to_integrate)):
            visit(i, [])
        return tuple(order)

    def _compute_conversion_matrix(self) -> np.ndarray:
        """
        Map from the base-frame system state to absolute integrated states.

        Block (i, k) is the 6x6 identity if k is body i or one of its
        integrated ancestors, zero otherwise.
        """
        n = len(self._bodies_to_integrate)
        matrix = np.zeros((6 * n, 6 * n))
        for i in range(n):
            for k in self.integrated_chain(i):
                matrix[6 * i:6 * i + 6, 6 * k:6 * k + 6] = np.eye(6)
        return matrix

    # ========== TOPOLOGY QUERIES ==========
    def integrated_chain(self, index: int) -> Tuple[int, ...]:
        """Index of body ``index`` followed by its integrated ancestors."""
        chain = [index]
        central = self._central_bodies[index]
        while central in self._index:
            chain.append(self._index[central])
            central = self._central_bodies[self._index[central]]
        return tuple(chain)

    def chain_root(self, index: int) -> str:
        """First non-integrated body (or frame origin) up the chain of ``index``."""
        return self._central_bodies[self.integrated_chain(index)[-1]]

    def index_of(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise ConfigurationError(f"Body '{name}' is not integrated") from None

    def is_integrated(self, name: str) -> bool:
        return name in self._index

    def external_state(self, name: str, time: float) -> np.ndarray:
        """Absolute state of a non-integrated body (zero for the frame origin)."""
        if name == self._frame_origin:
            return np.zeros(6)
        if name not in self._bodies:
            raise ConfigurationError(f"Body '{name}' is not defined")
        return self._bodies[name].state_in_base_frame_from_ephemeris(time)

    def absolute_states(self, time: float, base_state) -> np.ndarray:
        """
        Absolute states of the integrated bodies, shape (n_bodies, 6).

        Parameters
        ----------
        time : float
            Evaluation epoch (used for ephemeris roots of the chains)
        base_state : array_like
            Flat base-frame system state
        """
        blocks = np.asarray(base_state, dtype=float).reshape(-1, 6)
        absolute = np.empty_like(blocks)
        roots: Dict[str, np.ndarray] = {}
        for i in self._update_order:
            central = self._central_bodies[i]
            if central in self._index:
                absolute[i] = blocks[i] + absolute[self._index[central]]
            else:
                if central not in roots:
                    roots[central] = self.external_state(central, time)
                absolute[i] = blocks[i] + roots[central]
        return absolute

    # ========== PROPERTY ACCESS ==========
    @property
    def bodies_to_integrate(self) -> Tuple[str, ...]:
        return self._bodies_to_integrate

    @property
    def central_bodies(self) -> Tuple[str, ...]:
        return self._central_bodies

    @property
    def bodies(self) -> BodyMap:
        return self._bodies

    @property
    def frame_origin(self) -> str:
        return self._frame_origin

    @property
    def n_bodies(self) -> int:
        return len(self._bodies_to_integrate)

    @property
    def state_size(self) -> int:
        return 6 * len(self._bodies_to_integrate)

    @property
    def update_order(self) -> Tuple[int, ...]:
        return self._update_order

    @property
    def conversion_matrix(self) -> np.ndarray:
        """Absolute integrated states = conversion_matrix @ base state + chain roots."""
        return self._conversion_matrix.copy()

    def __repr__(self):
        pairs = ", ".join(f"{b}->{c}" for b, c in
                          zip(self._bodies_to_integrate, self._central_bodies))
        return f"CentralBodyGraph({pairs}, origin='{self._frame_origin}')"


class EvaluationContext:
    """
    Read-only snapshot of the system at one evaluation.

    Absolute states of integrated bodies are resolved on construction;
    ephemeris states of other bodies are looked up on first use and kept
    for the lifetime of the context, so a context must not outlive the
    evaluation it was built for.

    Parameters
    ----------
    time : float
        Evaluation epoch
    graph : CentralBodyGraph
        Topology of the integrated bodies
    base_state : array_like
        Flat base-frame system state
    """

    def __init__(self, time: float, graph: CentralBodyGraph, base_state,
                 _absolute: Optional[np.ndarray] = None,
                 _external: Optional[Dict[str, np.ndarray]] = None):
        self._time = float(time)
        self._graph = graph
        self._base_state = np.array(base_state, dtype=float)
        self._base_state.flags.writeable = False
        if _absolute is None:
            _absolute = graph.absolute_states(self._time, self._base_state)
        self._absolute = _absolute
        self._absolute.flags.writeable = False
        self._external = dict(_external) if _external is not None else {}

    @property
    def time(self) -> float:
        return self._time

    @property
    def graph(self) -> CentralBodyGraph:
        return self._graph

    @property
    def base_state(self) -> np.ndarray:
        return self._base_state

    def state_of(self, name: str) -> np.ndarray:
        """Absolute Cartesian state of any body in the environment."""
        if name in self._external:
            return self._external[name]
        if self._graph.is_integrated(name):
            return self._absolute[self._graph.index_of(name)]
        state = self._graph.external_state(name, self._time)
        state.flags.writeable = False
        self._external[name] = state
        return state

    def position_of(self, name: str) -> np.ndarray:
        return self.state_of(name)[:3]

    def velocity_of(self, name: str) -> np.ndarray:
        return self.state_of(name)[3:]

    def with_state(self, name: str, absolute_state) -> "EvaluationContext":
        """
        Copy of this context with the absolute state of ``name`` replaced.

        Only that body is changed; states of bodies expressed relative to
        it are kept, which is what partials with respect to one absolute
        state require.
        """
        absolute_state = np.array(absolute_state, dtype=float)
        external = dict(self._external)
        absolute = self._absolute.copy()
        if self._graph.is_integrated(name):
            absolute[self._graph.index_of(name)] = absolute_state
        else:
            absolute_state.flags.writeable = False
            external[name] = absolute_state
        return EvaluationContext(self._time, self._graph, self._base_state,
                                 _absolute=absolute, _external=external)

    def __repr__(self):
        return f"EvaluationContext(time={self._time}, bodies={self._graph.bodies_to_integrate})"
