"""
Right-hand sides of the dynamics and of the variational equations.

The augmented state integrated in joint mode is

    [x; vec(Phi); vec(S)]

with ``x`` the integrated (formulation) state and both matrices flattened
row-major. Phi and S are always expressed in the base frame: they are
driven by A = df/dx and B = df/dp of the base-frame dynamics, evaluated at
the base-frame state reconstructed from the current trial state of every
integrator stage.
"""

from typing import Tuple

import numpy as np

from .accelerations import AccelerationAggregator
from .frames import CentralBodyGraph, EvaluationContext
from .formulations import PropagationFormulation
from .parameters import EstimatableParameterSet


def pack_augmented_state(state, state_transition_matrix, sensitivity_matrix) -> np.ndarray:
    """Flatten (x, Phi, S) into one augmented vector."""
    return np.concatenate((
        np.asarray(state, dtype=float).ravel(),
        np.asarray(state_transition_matrix, dtype=float).ravel(),
        np.asarray(sensitivity_matrix, dtype=float).ravel(),
    ))


def unpack_augmented_state(augmented_state, state_size: int, parameter_size: int
                           ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Split an augmented vector into (x, Phi, S).

    Returned arrays are views on ``augmented_state``.
    """
    augmented_state = np.asarray(augmented_state)
    expected = state_size * (1 + state_size + parameter_size)
    if augmented_state.size != expected:
        raise ValueError(
            f"Augmented state has {augmented_state.size} entries, expected {expected}"
        )
    phi_end = state_size + state_size**2
    state = augmented_state[:state_size]
    phi = augmented_state[state_size:phi_end].reshape(state_size, state_size)
    sensitivity = augmented_state[phi_end:].reshape(state_size, parameter_size)
    return state, phi, sensitivity


class VariationalEquations:
    """
    Dynamics and variational equations of a set of integrated bodies.

    Parameters
    ----------
    graph : CentralBodyGraph
        Topology of the integrated bodies
    aggregator : AccelerationAggregator
        Accelerations and their partials
    parameter_set : EstimatableParameterSet
        Parameters whose non-state entries form the columns of S
    formulation : PropagationFormulation
        Mapping between integrated and base-frame states
    """

    def __init__(self, graph: CentralBodyGraph, aggregator: AccelerationAggregator,
                 parameter_set: EstimatableParameterSet,
                 formulation: PropagationFormulation):
        self.graph = graph
        self.aggregator = aggregator
        self.parameter_set = parameter_set
        self.formulation = formulation

    @property
    def state_size(self) -> int:
        return self.graph.state_size

    @property
    def parameter_size(self) -> int:
        return self.parameter_set.parameter_size

    @property
    def augmented_size(self) -> int:
        return self.state_size * (1 + self.state_size + self.parameter_size)

    def initial_augmented_state(self, internal_state) -> np.ndarray:
        """[x0; I; 0]."""
        return pack_augmented_state(
            internal_state,
            np.eye(self.state_size),
            np.zeros((self.state_size, self.parameter_size)),
        )

    def _evaluate(self, time, internal_state):
        base_state = self.formulation.to_base_frame(internal_state, time)
        context = EvaluationContext(time, self.graph, base_state)
        accelerations = self.aggregator.compute_accelerations(context)
        derivative = self.formulation.state_derivative(
            time, internal_state, base_state, accelerations)
        return derivative, context

    # ========== RIGHT-HAND SIDES ==========
    def state_derivative(self, time: float, internal_state) -> np.ndarray:
        """Derivative of the integrated state only."""
        derivative, _ = self._evaluate(time, internal_state)
        return derivative

    def augmented_derivative(self, time: float, augmented_state) -> np.ndarray:
        """Derivative of [x; Phi; S]: [f; A Phi; A S + B]."""
        state, phi, sensitivity = unpack_augmented_state(
            augmented_state, self.state_size, self.parameter_size)
        derivative, context = self._evaluate(time, state)
        a_matrix = self.state_partial_matrix(context)
        b_matrix = self.parameter_partial_matrix(context)
        return pack_augmented_state(
            derivative,
            a_matrix @ phi,
            a_matrix @ sensitivity + b_matrix,
        )

    # ========== PARTIAL MATRICES ==========
    def state_partial_matrix(self, context: EvaluationContext) -> np.ndarray:
        """
        A = df/dx of the base-frame dynamics, shape (6N, 6N).

        Position rows hold the identity on the body's own velocity;
        velocity rows hold the acceleration partials.
        """
        n = self.graph.n_bodies
        acceleration_partials = self.aggregator.compute_state_partials(context)
        a_matrix = np.zeros((6 * n, 6 * n))
        for i in range(n):
            a_matrix[6 * i:6 * i + 3, 6 * i + 3:6 * i + 6] = np.eye(3)
            a_matrix[6 * i + 3:6 * i + 6, :] = acceleration_partials[3 * i:3 * i + 3, :]
        return a_matrix

    def parameter_partial_matrix(self, context: EvaluationContext) -> np.ndarray:
        """B = df/dp of the base-frame dynamics, shape (6N, P)."""
        n = self.graph.n_bodies
        acceleration_partials = self.aggregator.compute_parameter_partials(
            context, self.parameter_set)
        b_matrix = np.zeros((6 * n, self.parameter_size))
        for i in range(n):
            b_matrix[6 * i + 3:6 * i + 6, :] = acceleration_partials[3 * i:3 * i + 3, :]
        return b_matrix
