"""
Variational Equations Solver
============================

Orchestrates one propagation of a set of integrated bodies, either of the
equations of motion alone or jointly with the variational equations.

Examples
--------
>>> solver = VariationalEquationsSolver(
...     bodies, IntegratorSettings('rk4', initial_time=t0, step_size=3600.0),
...     PropagatorSettings(['Earth', 'Moon'], ['SSB', 'SSB'], models, x0, tf),
...     parameter_set)
>>> solver.integrate_variational_and_dynamical_equations()
>>> solver.state_transition_matrix_interface.get_combined_state_transition_and_sensitivity_matrix(t)
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from .accelerations import AccelerationAggregator, AccelerationModelMap
from .bodies import DEFAULT_FRAME_ORIGIN, BodyMap
from .exceptions import ConfigurationError, StateUnavailableError
from .formulations import PropagatorType, create_formulation
from .frames import CentralBodyGraph
from .integrators import IntegratorSettings, RungeKuttaIntegrator
from .interface import StateTransitionMatrixInterface
from .parameters import EstimatableParameterSet, InitialTranslationalStateParameter
from .trajectory import Trajectory
from .utils import Timer, validation_error
from .variational import VariationalEquations

logger = logging.getLogger(__name__)


@dataclass
class PropagatorSettings:
    """
    Translational propagation settings.

    Attributes
    ----------
    bodies_to_integrate : sequence of str
        Integrated bodies, in state-vector order
    central_bodies : sequence of str
        Central body of each integrated body
    acceleration_models : dict
        ``{affected_body: {exerting_body: [AccelerationModel, ...]}}``
    initial_states : array_like
        Initial base-frame system state (6 entries per body)
    final_time : float
        Propagation end epoch
    propagator : PropagatorType or str
        'cowell' or 'encke' (default: Cowell)
    frame_origin : str
        Name of the global frame origin
    """
    bodies_to_integrate: Sequence[str]
    central_bodies: Sequence[str]
    acceleration_models: AccelerationModelMap
    initial_states: np.ndarray
    final_time: float
    propagator: Union[PropagatorType, str] = PropagatorType.COWELL
    frame_origin: str = DEFAULT_FRAME_ORIGIN

    def __post_init__(self):
        self.bodies_to_integrate = tuple(self.bodies_to_integrate)
        self.central_bodies = tuple(self.central_bodies)
        self.initial_states = np.array(self.initial_states, dtype=float).ravel()
        self.propagator = PropagatorType.parse(self.propagator)
        if not math.isfinite(self.final_time):
            raise ConfigurationError(f"Final time must be finite, got {self.final_time}")
        self.final_time = float(self.final_time)


class SolverStatus(Enum):
    INITIALIZED = 'initialized'
    INTEGRATING = 'integrating'
    COMPLETED = 'completed'
    FAILED = 'failed'


class VariationalEquationsSolver:
    """
    Propagation of dynamics and, optionally, variational equations.

    All configuration is validated on construction; nothing is integrated
    unless ``integrate_on_creation`` is set.

    Parameters
    ----------
    bodies : dict of str to Body
        Propagation environment
    integrator_settings : IntegratorSettings
        Method, initial time and step control
    propagator_settings : PropagatorSettings
        Bodies, topology, accelerations, initial states and final time
    parameter_set : EstimatableParameterSet
        Estimated parameters; initial-state parameters, when present, must
        cover every integrated body in integration order
    integrate_on_creation : bool, optional
        Run a joint propagation immediately (default: False)

    Raises
    ------
    ConfigurationError
        On any inconsistency of topology, formulation, parameters or
        initial states
    """

    def __init__(self, bodies: BodyMap, integrator_settings: IntegratorSettings,
                 propagator_settings: PropagatorSettings,
                 parameter_set: EstimatableParameterSet,
                 integrate_on_creation: bool = False):
        self._bodies = bodies
        self._integrator_settings = integrator_settings
        self._propagator_settings = propagator_settings
        self._parameter_set = parameter_set

        self._graph = CentralBodyGraph(
            propagator_settings.bodies_to_integrate,
            propagator_settings.central_bodies,
            bodies,
            propagator_settings.frame_origin,
        )
        self._aggregator = AccelerationAggregator(
            propagator_settings.acceleration_models, self._graph)
        self._formulation = create_formulation(propagator_settings.propagator, self._graph)
        self._initial_states = self._check_initial_states(propagator_settings.initial_states)
        self._validate_parameters()

        self._integrator = RungeKuttaIntegrator(integrator_settings)
        self._equations = VariationalEquations(
            self._graph, self._aggregator, parameter_set, self._formulation)
        self._interface = StateTransitionMatrixInterface(
            self._graph.state_size, parameter_set.parameter_size)

        self._status = SolverStatus.INITIALIZED
        self._trajectory: Optional[Trajectory] = None
        self._final_combined_matrix: Optional[np.ndarray] = None
        logger.info("Solver created: %r, %s formulation, %d parameter entries",
                    self._graph, self._formulation.propagator_type.value,
                    parameter_set.total_size)

        if integrate_on_creation:
            self.integrate_variational_and_dynamical_equations()

    # ========== VALIDATION ==========
    def _check_initial_states(self, initial_states) -> np.ndarray:
        initial_states = np.array(initial_states, dtype=float).ravel()
        if initial_states.size != self._graph.state_size:
            raise ConfigurationError(
                f"Initial state has {initial_states.size} entries, expected "
                f"{self._graph.state_size} for {self._graph.n_bodies} bodies"
            )
        if not np.all(np.isfinite(initial_states)):
            raise ConfigurationError(f"Initial state is not finite: {initial_states}")
        return initial_states

    def _validate_parameters(self):
        state_parameters = self._parameter_set.initial_state_parameters
        if not state_parameters:
            return
        expected = list(zip(self._graph.bodies_to_integrate, self._graph.central_bodies))
        actual = []
        for parameter in state_parameters:
            if not isinstance(parameter, InitialTranslationalStateParameter):
                raise ConfigurationError(
                    f"Unsupported initial-state parameter {parameter!r}"
                )
            actual.append((parameter.body_name, parameter.central_body))
        if actual != expected:
            raise ConfigurationError(
                f"Initial-state parameters {actual} do not match the integrated "
                f"bodies and central bodies {expected}"
            )
        if not np.allclose(self._parameter_set.get_initial_states(), self._initial_states,
                           rtol=1e-12, atol=0.0):
            validation_error(
                "Initial-state parameter values differ from the propagator "
                "initial states; the propagator initial states are used"
            )

    # ========== PROPAGATION ==========
    def integrate_dynamical_equations_of_motion_only(self, initial_states=None) -> Trajectory:
        """
        Propagate the equations of motion only.

        The matrix history is cleared and stays empty.

        Parameters
        ----------
        initial_states : array_like, optional
            Replacement initial base-frame system state

        Returns
        -------
        Trajectory
            Base-frame states at the integrator epochs
        """
        return self._propagate(initial_states, variational=False)

    def integrate_variational_and_dynamical_equations(self, initial_states=None) -> Trajectory:
        """
        Propagate the equations of motion jointly with Phi and S.

        Starts from [x0; I; 0] and stores (t, Phi(t, t0), S(t)) at every
        integrator epoch in :attr:`state_transition_matrix_interface`.

        Parameters
        ----------
        initial_states : array_like, optional
            Replacement initial base-frame system state

        Returns
        -------
        Trajectory
            Base-frame states at the integrator epochs
        """
        return self._propagate(initial_states, variational=True)

    def reset_parameter_estimate(self, values, reintegrate_variational_equations: bool = True
                                 ) -> Trajectory:
        """
        Set a new full parameter vector and propagate again.

        Initial-state entries of ``values`` become the new propagation
        initial states.

        Parameters
        ----------
        values : array_like
            Full parameter vector (initial states first)
        reintegrate_variational_equations : bool, optional
            Run a joint propagation (default) or dynamics only
        """
        previous = self._parameter_set.get_full_parameter_values()
        self._parameter_set.reset_parameter_values(values)
        if self._parameter_set.initial_state_size > 0:
            try:
                initial_states = self._check_initial_states(
                    self._parameter_set.get_initial_states())
            except ConfigurationError:
                self._parameter_set.reset_parameter_values(previous)
                raise
            self._initial_states = initial_states
        logger.info("Parameter estimate reset")
        if reintegrate_variational_equations:
            return self.integrate_variational_and_dynamical_equations()
        return self.integrate_dynamical_equations_of_motion_only()

    def _propagate(self, initial_states, variational: bool) -> Trajectory:
        if initial_states is None:
            initial_states = self._initial_states
        else:
            initial_states = self._check_initial_states(initial_states)

        self._interface.clear()
        self._trajectory = None
        self._final_combined_matrix = None
        self._status = SolverStatus.INTEGRATING

        n = self._graph.state_size
        t0 = float(self._integrator_settings.initial_time)
        tf = self._propagator_settings.final_time
        mode = "joint" if variational else "dynamics-only"
        logger.info("Starting %s propagation from %s to %s", mode, t0, tf)

        try:
            with Timer(f"{mode.capitalize()} propagation", logger=logger):
                internal_state = self._formulation.initialize(t0, initial_states, tf)
                if variational:
                    rhs = self._equations.augmented_derivative
                    y0 = self._equations.initial_augmented_state(internal_state)
                else:
                    rhs = self._equations.state_derivative
                    y0 = internal_state

                times, solution = self._integrator.integrate(
                    rhs, y0, t0, tf, error_components=slice(0, n))

                base_states = np.array([self._formulation.to_base_frame(y[:n], t)
                                        for t, y in zip(times, solution)])
                trajectory = Trajectory(self._graph, times, base_states)

                if variational:
                    p = self._parameter_set.parameter_size
                    phis = solution[:, n:n + n * n].reshape(-1, n, n)
                    sensitivities = solution[:, n + n * n:].reshape(-1, n, p)
                    self._interface.update(times, phis, sensitivities)
                    self._final_combined_matrix = np.hstack((phis[-1], sensitivities[-1]))
        except Exception as error:
            self._status = SolverStatus.FAILED
            self._interface.clear()
            self._final_combined_matrix = None
            logger.error("%s propagation failed: %s", mode.capitalize(), error)
            raise

        self._initial_states = initial_states
        self._trajectory = trajectory
        self._status = SolverStatus.COMPLETED
        logger.info("Completed %s propagation: %d steps", mode, len(times) - 1)
        return trajectory

    # ========== PROPERTY ACCESS ==========
    @property
    def status(self) -> SolverStatus:
        return self._status

    @property
    def graph(self) -> CentralBodyGraph:
        return self._graph

    @property
    def formulation(self):
        return self._formulation

    @property
    def parameter_set(self) -> EstimatableParameterSet:
        return self._parameter_set

    @property
    def initial_states(self) -> np.ndarray:
        return self._initial_states.copy()

    @property
    def trajectory(self) -> Optional[Trajectory]:
        """Trajectory of the last successful propagation (None otherwise)."""
        return self._trajectory

    @property
    def state_transition_matrix_interface(self) -> StateTransitionMatrixInterface:
        return self._interface

    @property
    def final_combined_matrix(self) -> np.ndarray:
        """[Phi(tf, t0) | S(tf)] of the last joint propagation."""
        if self._final_combined_matrix is None:
            raise StateUnavailableError(
                "No combined matrix available; propagate the variational equations first"
            )
        return self._final_combined_matrix.copy()

    def __repr__(self):
        return (f"VariationalEquationsSolver({self._graph!r}, "
                f"{self._formulation.propagator_type.value}, status={self._status.value})")
