"""
Celestial bodies taking part in a propagation.

A :class:`Body` carries the physical data acceleration models read at
evaluation time (the gravitational parameter, which may be estimated and
therefore changes between runs) and, for bodies that are not integrated,
an ephemeris providing their state in the base frame.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np

from .ephemerides import Ephemeris
from .exceptions import ConfigurationError, EvaluationError

# name of the global frame origin when not overridden
DEFAULT_FRAME_ORIGIN = "SSB"


@dataclass
class Body:
    """
    Parameters of a body in the propagation environment.

    Attributes
    ----------
    name : str
        Unique body name
    gravitational_parameter : float, optional
        Gravitational parameter [m^3/s^2]; None for massless bodies.
        Mutated by :class:`~metabole.parameters.GravitationalParameter`.
    ephemeris : Ephemeris, optional
        Base-frame state provider; required for bodies that are used but
        not integrated
    """
    name: str
    gravitational_parameter: Optional[float] = None
    ephemeris: Optional[Ephemeris] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Body name must be a non-empty string")
        if self.gravitational_parameter is not None and self.gravitational_parameter <= 0:
            raise ValueError(
                f"Gravitational parameter must be positive, got {self.gravitational_parameter}"
            )

    def state_in_base_frame_from_ephemeris(self, epoch: float) -> np.ndarray:
        """
        Base-frame Cartesian state of the body from its ephemeris.

        Raises
        ------
        EvaluationError
            If the body has no ephemeris or it cannot be evaluated at ``epoch``
        """
        if self.ephemeris is None:
            raise EvaluationError(f"Body '{self.name}' has no ephemeris", epoch)
        return self.ephemeris.get_cartesian_state(epoch)


BodyMap = Dict[str, Body]


def get_initial_states_of_bodies(bodies_to_integrate: Sequence[str],
                                 central_bodies: Sequence[str],
                                 bodies: BodyMap,
                                 epoch: float,
                                 frame_origin: str = DEFAULT_FRAME_ORIGIN
                                 ) -> np.ndarray:
    """
    Initial base-frame states of the integrated bodies from their ephemerides.

    Each block is the ephemeris state of the body minus that of its central
    body (zero for the frame origin), concatenated in integration order.

    Parameters
    ----------
    bodies_to_integrate : sequence of str
        Names of the integrated bodies
    central_bodies : sequence of str
        Central body of each integrated body
    bodies : dict of str to Body
        Environment
    epoch : float
        Initial epoch
    frame_origin : str, optional
        Name of the global frame origin

    Returns
    -------
    np.ndarray
        Flat system state of length 6 * len(bodies_to_integrate)
    """
    if len(bodies_to_integrate) != len(central_bodies):
        raise ConfigurationError(
            f"Got {len(bodies_to_integrate)} bodies to integrate but "
            f"{len(central_bodies)} central bodies"
        )

    def _state(name):
        if name == frame_origin:
            return np.zeros(6)
        if name not in bodies:
            raise ConfigurationError(f"Unknown body '{name}'")
        return bodies[name].state_in_base_frame_from_ephemeris(epoch)

    blocks = [_state(body) - _state(central)
              for body, central in zip(bodies_to_integrate, central_bodies)]
    return np.concatenate(blocks) if blocks else np.zeros(0)
