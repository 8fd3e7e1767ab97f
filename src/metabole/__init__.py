"""
Metabole: Variational Equations for Orbit Propagation

A Python package for propagating the trajectories of one or more bodies
together with their state transition and sensitivity matrices, for Cowell
and Encke formulations and hierarchical central-body chains.
"""

# Configuration
from .config import config, temp_config

# Errors
from .exceptions import (
    MetaboleError,
    ConfigurationError,
    EvaluationError,
    IntegrationError,
    RangeError,
    StateUnavailableError,
)

# Environment
from .bodies import Body, get_initial_states_of_bodies
from .ephemerides import Ephemeris, ConstantEphemeris, KeplerEphemeris
from .frames import CentralBodyGraph, EvaluationContext

# Dynamics
from .accelerations import (
    AccelerationModel,
    PointMassGravity,
    ThirdBodyPointMassGravity,
    AccelerationAggregator,
)
from .parameters import (
    EstimatableParameter,
    InitialTranslationalStateParameter,
    GravitationalParameter,
    EstimatableParameterSet,
)
from .formulations import PropagatorType, CowellFormulation, EnckeFormulation
from .integrators import IntegratorSettings, RungeKuttaIntegrator, RungeKuttaCoefficients
from .variational import VariationalEquations

# Propagation and results
from .solver import PropagatorSettings, SolverStatus, VariationalEquationsSolver
from .interface import StateTransitionMatrixInterface
from .trajectory import Trajectory, Trajectory as Traj

# Defaults and utilities
from .defaults import solar_system_bodies
from .finite_differences import central_difference_jacobian, block_relative_error
from .logging_config import setup_logging

# Package metadata
__version__ = "0.1.0"

# Define what gets imported with "from metabole import *"
__all__ = [
    # Configuration
    "config",
    "temp_config",
    # Errors
    "MetaboleError",
    "ConfigurationError",
    "EvaluationError",
    "IntegrationError",
    "RangeError",
    "StateUnavailableError",
    # Environment
    "Body",
    "get_initial_states_of_bodies",
    "Ephemeris",
    "ConstantEphemeris",
    "KeplerEphemeris",
    "CentralBodyGraph",
    "EvaluationContext",
    # Dynamics
    "AccelerationModel",
    "PointMassGravity",
    "ThirdBodyPointMassGravity",
    "AccelerationAggregator",
    "EstimatableParameter",
    "InitialTranslationalStateParameter",
    "GravitationalParameter",
    "EstimatableParameterSet",
    "PropagatorType",
    "CowellFormulation",
    "EnckeFormulation",
    "IntegratorSettings",
    "RungeKuttaIntegrator",
    "RungeKuttaCoefficients",
    "VariationalEquations",
    # Propagation and results
    "PropagatorSettings",
    "SolverStatus",
    "VariationalEquationsSolver",
    "StateTransitionMatrixInterface",
    "Trajectory",
    # Defaults and utilities
    "solar_system_bodies",
    "central_difference_jacobian",
    "block_relative_error",
    "setup_logging",
    # Abbreviations
    "Traj",
]
