"""
Acceleration models and their aggregation.

Every model acts on one affected body and is exerted by one body. Models
read absolute positions from an :class:`~metabole.frames.EvaluationContext`
and expose their partials with respect to the absolute states of the
bodies they involve. The :class:`AccelerationAggregator` sums the models
per integrated body, maps the absolute-state partials onto the base-frame
system state through the central-body chain, and falls back to central
differences wherever analytic partials are not available.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

import numpy as np

from .bodies import BodyMap
from .config import config
from .exceptions import ConfigurationError, EvaluationError, MetaboleError
from .frames import CentralBodyGraph, EvaluationContext
from .parameters import EstimatableParameter, EstimatableParameterSet, GravitationalParameter

logger = logging.getLogger(__name__)

AccelerationModelMap = Dict[str, Dict[str, List["AccelerationModel"]]]


# ========== ACCELERATION MODELS ==========

class AccelerationModel(ABC):
    """
    Interface of a single acceleration contribution.

    Call sequence per evaluation: :meth:`update` with the context, then any
    of :meth:`acceleration`, :meth:`state_partial`, :meth:`parameter_partial`.
    Values read in between refer to the context of the last update.

    Attributes
    ----------
    analytic_partials : bool
        False if :meth:`state_partial` is not implemented; the aggregator
        then differentiates the acceleration numerically.
    """

    analytic_partials: bool = True

    def __init__(self, affected_body: str, exerting_body: str):
        if affected_body == exerting_body:
            raise ConfigurationError(
                f"Body '{affected_body}' cannot exert an acceleration on itself"
            )
        self._affected_body = affected_body
        self._exerting_body = exerting_body

    @property
    def affected_body(self) -> str:
        return self._affected_body

    @property
    def exerting_body(self) -> str:
        return self._exerting_body

    @property
    def involved_bodies(self) -> Tuple[str, ...]:
        """Bodies whose absolute state the acceleration depends on."""
        return (self._affected_body, self._exerting_body)

    @abstractmethod
    def update(self, context: EvaluationContext) -> None:
        ...

    @abstractmethod
    def acceleration(self) -> np.ndarray:
        ...

    def state_partial(self, body: str) -> np.ndarray:
        """Partial (3, 6) of the acceleration w.r.t. the absolute state of ``body``."""
        raise NotImplementedError(f"{type(self).__name__} has no analytic state partials")

    def parameter_partial(self, parameter: EstimatableParameter) -> Optional[np.ndarray]:
        """Partial (3, size) w.r.t. ``parameter``, or None when independent of it."""
        return None

    def __repr__(self):
        return f"{type(self).__name__}({self._affected_body} <- {self._exerting_body})"


def _gravitational_parameter(bodies: BodyMap, name: str, required: bool = True):
    if name not in bodies:
        raise ConfigurationError(f"Body '{name}' is not defined")
    mu = bodies[name].gravitational_parameter
    if mu is None and required:
        raise ConfigurationError(f"Body '{name}' has no gravitational parameter")
    return mu


def _point_mass_terms(relative_position, mu, epoch):
    """Acceleration -mu r / r^3 and its position gradient."""
    distance = np.linalg.norm(relative_position)
    if distance == 0.0 or not np.isfinite(distance):
        raise EvaluationError(f"Invalid separation {distance} in point-mass gravity", epoch)
    inv_r3 = 1.0 / distance**3
    acceleration = -mu * relative_position * inv_r3
    gradient = -mu * (np.eye(3) * inv_r3
                      - 3.0 * np.outer(relative_position, relative_position) * inv_r3 / distance**2)
    return acceleration, gradient, -relative_position * inv_r3


class PointMassGravity(AccelerationModel):
    """
    Point-mass gravity of ``exerting_body`` acting on ``affected_body``.

    Parameters
    ----------
    affected_body, exerting_body : str
        Body names
    bodies : dict of str to Body
        Environment the gravitational parameters are read from
    mutual : bool, optional
        Add the affected body's gravitational parameter, as required when
        the exerting body is the central body of the affected one
    analytic_partials : bool, optional
        Disable to have partials computed by finite differences
    """

    def __init__(self, affected_body: str, exerting_body: str, bodies: BodyMap,
                 mutual: bool = False, analytic_partials: bool = True):
        super().__init__(affected_body, exerting_body)
        _gravitational_parameter(bodies, exerting_body)
        self._bodies = bodies
        self._mutual = mutual
        self.analytic_partials = analytic_partials
        self._acceleration = None

    @property
    def mutual(self) -> bool:
        return self._mutual

    def _mu(self):
        mu = self._bodies[self._exerting_body].gravitational_parameter
        if self._mutual:
            affected = self._bodies.get(self._affected_body)
            if affected is not None and affected.gravitational_parameter is not None:
                mu = mu + affected.gravitational_parameter
        return mu

    def update(self, context):
        relative = context.position_of(self._affected_body) - context.position_of(self._exerting_body)
        self._acceleration, self._gradient, self._mu_partial = _point_mass_terms(
            relative, self._mu(), context.time)

    def acceleration(self):
        return self._acceleration

    def state_partial(self, body):
        partial = np.zeros((3, 6))
        if body == self._affected_body:
            partial[:, :3] = self._gradient
        elif body == self._exerting_body:
            partial[:, :3] = -self._gradient
        return partial

    def parameter_partial(self, parameter):
        if not isinstance(parameter, GravitationalParameter):
            return None
        if parameter.body_name == self._exerting_body or (
                self._mutual and parameter.body_name == self._affected_body):
            return self._mu_partial.reshape(3, 1)
        return None


class ThirdBodyPointMassGravity(AccelerationModel):
    """
    Point-mass gravity of a third body on a body orbiting ``central_body``.

    The acceleration is the direct attraction of the affected body minus
    that of the central body, i.e. the perturbation felt in a frame
    centred on the (accelerated) central body.
    """

    def __init__(self, affected_body: str, exerting_body: str, central_body: str,
                 bodies: BodyMap, analytic_partials: bool = True):
        super().__init__(affected_body, exerting_body)
        if central_body in (affected_body, exerting_body):
            raise ConfigurationError(
                f"Central body '{central_body}' must differ from affected and exerting bodies"
            )
        _gravitational_parameter(bodies, exerting_body)
        self._central_body = central_body
        self._bodies = bodies
        self.analytic_partials = analytic_partials
        self._acceleration = None

    @property
    def central_body(self) -> str:
        return self._central_body

    @property
    def involved_bodies(self):
        return (self._affected_body, self._exerting_body, self._central_body)

    def update(self, context):
        mu = self._bodies[self._exerting_body].gravitational_parameter
        exerting = context.position_of(self._exerting_body)
        direct, self._direct_gradient, direct_mu = _point_mass_terms(
            context.position_of(self._affected_body) - exerting, mu, context.time)
        central, self._central_gradient, central_mu = _point_mass_terms(
            context.position_of(self._central_body) - exerting, mu, context.time)
        self._acceleration = direct - central
        self._mu_partial = direct_mu - central_mu

    def acceleration(self):
        return self._acceleration

    def state_partial(self, body):
        partial = np.zeros((3, 6))
        if body == self._affected_body:
            partial[:, :3] = self._direct_gradient
        elif body == self._exerting_body:
            partial[:, :3] = self._central_gradient - self._direct_gradient
        elif body == self._central_body:
            partial[:, :3] = -self._central_gradient
        return partial

    def parameter_partial(self, parameter):
        if isinstance(parameter, GravitationalParameter) and parameter.body_name == self._exerting_body:
            return self._mu_partial.reshape(3, 1)
        return None

    def __repr__(self):
        return (f"ThirdBodyPointMassGravity({self._affected_body} <- {self._exerting_body}, "
                f"central={self._central_body})")


# ========== AGGREGATION ==========

def _state_step(state: np.ndarray, component: int) -> float:
    block = state[:3] if component < 3 else state[3:]
    return max(config.FD_STATE_RELATIVE_STEP * np.linalg.norm(block),
               config.FD_STATE_MINIMUM_STEP)


def _parameter_step(value: float) -> float:
    return max(config.FD_PARAMETER_RELATIVE_STEP * abs(value),
               config.FD_PARAMETER_MINIMUM_STEP)


class AccelerationAggregator:
    """
    Sum of acceleration models per integrated body, with partials.

    Parameters
    ----------
    acceleration_models : dict
        ``{affected_body: {exerting_body: [models]}}``
    graph : CentralBodyGraph
        Topology of the integrated bodies

    Raises
    ------
    ConfigurationError
        If a model acts on a body that is not integrated, is filed under
        the wrong (affected, exerting) key, or involves a body that is
        neither integrated nor has an ephemeris, or declares
        ``analytic_partials`` without overriding ``state_partial``
    """

    def __init__(self, acceleration_models: AccelerationModelMap, graph: CentralBodyGraph):
        self._graph = graph
        self._models: Dict[Tuple[str, str], List[AccelerationModel]] = {}
        self._models_per_body: List[List[AccelerationModel]] = [[] for _ in range(graph.n_bodies)]

        for affected, exerting_map in acceleration_models.items():
            index = graph.index_of(affected)
            for exerting, models in exerting_map.items():
                for model in models:
                    if (model.affected_body, model.exerting_body) != (affected, exerting):
                        raise ConfigurationError(
                            f"{model!r} registered under ({affected}, {exerting})"
                        )
                    for body in model.involved_bodies:
                        self._check_available(body)
                    overridden = type(model).state_partial is not AccelerationModel.state_partial
                    if model.analytic_partials and not overridden:
                        raise ConfigurationError(
                            f"{model!r} declares analytic partials but does not "
                            f"implement state_partial"
                        )
                    self._models.setdefault((affected, exerting), []).append(model)
                    self._models_per_body[index].append(model)

        self._last_context = None
        logger.debug("Aggregator with %d models on %d bodies",
                     sum(len(m) for m in self._models.values()), graph.n_bodies)

    def _check_available(self, name):
        if self._graph.is_integrated(name):
            return
        body = self._graph.bodies.get(name)
        if body is None or body.ephemeris is None:
            raise ConfigurationError(
                f"Body '{name}' is used by an acceleration model but is neither "
                f"integrated nor has an ephemeris"
            )

    @property
    def graph(self) -> CentralBodyGraph:
        return self._graph

    @property
    def models(self) -> Dict[Tuple[str, str], List[AccelerationModel]]:
        return {key: list(models) for key, models in self._models.items()}

    def models_acting_on(self, body: str) -> List[AccelerationModel]:
        return list(self._models_per_body[self._graph.index_of(body)])

    # ---------- model updates ----------
    def _all_models(self):
        for models in self._models_per_body:
            yield from models

    def _update_models(self, context: EvaluationContext, force: bool = False):
        if not force and self._last_context is context:
            return
        self._last_context = None
        with _evaluation_errors(context.time):
            for model in self._all_models():
                model.update(context)
        self._last_context = context

    # ---------- accelerations ----------
    def compute_accelerations(self, context: EvaluationContext) -> np.ndarray:
        """Total acceleration of each integrated body, shape (n_bodies, 3)."""
        self._update_models(context)
        accelerations = np.zeros((self._graph.n_bodies, 3))
        with _evaluation_errors(context.time):
            for index, models in enumerate(self._models_per_body):
                for model in models:
                    accelerations[index] += model.acceleration()
        return accelerations

    # ---------- state partials ----------
    def compute_state_partials(self, context: EvaluationContext) -> np.ndarray:
        """
        Partials of the accelerations w.r.t. the base-frame system state.

        Returns
        -------
        np.ndarray
            Shape (3 * n_bodies, 6 * n_bodies); rows grouped per affected body
        """
        self._update_models(context)
        n = self._graph.n_bodies
        absolute_partials = np.zeros((3 * n, 6 * n))
        with _evaluation_errors(context.time):
            for index, models in enumerate(self._models_per_body):
                rows = slice(3 * index, 3 * index + 3)
                for model in models:
                    for body in model.involved_bodies:
                        if not self._graph.is_integrated(body):
                            continue
                        column = 6 * self._graph.index_of(body)
                        if model.analytic_partials:
                            partial = model.state_partial(body)
                        else:
                            partial = self._numerical_state_partial(model, body, context)
                        absolute_partials[rows, column:column + 6] += partial
        # absolute states are sums of base-frame blocks along each chain
        return absolute_partials @ self._graph.conversion_matrix

    def _numerical_state_partial(self, model, body, context):
        nominal = context.state_of(body)
        partial = np.zeros((3, 6))
        for component in range(6):
            step = _state_step(nominal, component)
            accelerations = []
            for sign in (1.0, -1.0):
                perturbed = nominal.copy()
                perturbed[component] += sign * step
                model.update(context.with_state(body, perturbed))
                accelerations.append(model.acceleration().copy())
            partial[:, component] = (accelerations[0] - accelerations[1]) / (2.0 * step)
        model.update(context)
        return partial

    # ---------- parameter partials ----------
    def compute_parameter_partials(self, context: EvaluationContext,
                                   parameter_set: EstimatableParameterSet) -> np.ndarray:
        """
        Partials of the accelerations w.r.t. the non-initial-state parameters.

        Returns
        -------
        np.ndarray
            Shape (3 * n_bodies, parameter_set.parameter_size)
        """
        self._update_models(context)
        n = self._graph.n_bodies
        partials = np.zeros((3 * n, parameter_set.parameter_size))
        with _evaluation_errors(context.time):
            for parameter, start in parameter_set.other_parameter_columns():
                columns = slice(start, start + parameter.size)
                if parameter.analytic_partials:
                    for index, models in enumerate(self._models_per_body):
                        for model in models:
                            partial = model.parameter_partial(parameter)
                            if partial is not None:
                                partials[3 * index:3 * index + 3, columns] += partial
                else:
                    partials[:, columns] = self._numerical_parameter_partial(parameter, context)
        return partials

    def _numerical_parameter_partial(self, parameter, context):
        nominal = parameter.get_value()
        partial = np.zeros((3 * self._graph.n_bodies, parameter.size))
        try:
            for component in range(parameter.size):
                step = _parameter_step(nominal[component])
                accelerations = []
                for sign in (1.0, -1.0):
                    value = nominal.copy()
                    value[component] += sign * step
                    parameter.set_value(value)
                    self._update_models(context, force=True)
                    accelerations.append(self.compute_accelerations(context).ravel())
                partial[:, component] = (accelerations[0] - accelerations[1]) / (2.0 * step)
        finally:
            parameter.set_value(nominal)
            self._update_models(context, force=True)
        return partial

    def __repr__(self):
        pairs = ", ".join(f"{a}<-{e}" for a, e in self._models)
        return f"AccelerationAggregator({pairs})"


@contextmanager
def _evaluation_errors(epoch):
    """Re-raise numerical failures of acceleration models as EvaluationError."""
    try:
        yield
    except MetaboleError:
        raise
    except (ArithmeticError, ValueError, NotImplementedError) as error:
        raise EvaluationError(f"Acceleration evaluation failed: {error}", epoch) from error
