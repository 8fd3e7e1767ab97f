"""
Shared fixtures: the Earth-Moon propagation scenario.

Earth and Moon are integrated while the Sun rests at the frame origin.
Two topologies are available:

- 'barycentric': both bodies w.r.t. the frame origin, point-mass gravity
- 'hierarchical': Moon w.r.t. Earth, Earth w.r.t. Sun, mutual central
  gravity plus third-body perturbations

Parameters are the initial states of Moon and Earth followed by the
gravitational parameters of Moon, Earth and Sun.
"""

import numpy as np
import pytest

from metabole import (
    EstimatableParameterSet,
    GravitationalParameter,
    InitialTranslationalStateParameter,
    IntegratorSettings,
    PointMassGravity,
    PropagatorSettings,
    ThirdBodyPointMassGravity,
    VariationalEquationsSolver,
    config,
    get_initial_states_of_bodies,
)
from metabole.defaults import solar_system_bodies

T0 = 1.0e7
STEP = 3600.0
N_STEPS = 600
TF = T0 + N_STEPS * STEP
TEST_EPOCH = T0 + 300 * STEP

BODIES_TO_INTEGRATE = ('Moon', 'Earth')
CENTRAL_BODIES = {
    'barycentric': ('SSB', 'SSB'),
    'hierarchical': ('Earth', 'Sun'),
}
ESTIMATED_MU = ('Moon', 'Earth', 'Sun')

# central-difference steps per initial-state entry and gravitational parameter
STATE_STEPS = {
    'barycentric': [1e5, 1e5, 1e5, 0.1, 0.1, 0.1] * 2,
    'hierarchical': [1e5, 1e5, 1e5, 0.1, 0.1, 0.1, 1e5, 1e5, 1e7, 0.1, 0.1, 10.0],
}
PARAMETER_STEPS = [1e10, 1e10, 1e14]


def build_acceleration_models(configuration, bodies, analytic_partials=True):
    """Acceleration model map of a scenario topology."""
    if configuration == 'barycentric':
        return {
            'Moon': {
                'Earth': [PointMassGravity('Moon', 'Earth', bodies,
                                           analytic_partials=analytic_partials)],
                'Sun': [PointMassGravity('Moon', 'Sun', bodies,
                                         analytic_partials=analytic_partials)],
            },
            'Earth': {
                'Moon': [PointMassGravity('Earth', 'Moon', bodies,
                                          analytic_partials=analytic_partials)],
                'Sun': [PointMassGravity('Earth', 'Sun', bodies,
                                         analytic_partials=analytic_partials)],
            },
        }
    return {
        'Moon': {
            'Earth': [PointMassGravity('Moon', 'Earth', bodies, mutual=True,
                                       analytic_partials=analytic_partials)],
            'Sun': [ThirdBodyPointMassGravity('Moon', 'Sun', 'Earth', bodies,
                                              analytic_partials=analytic_partials)],
        },
        'Earth': {
            'Sun': [PointMassGravity('Earth', 'Sun', bodies, mutual=True,
                                     analytic_partials=analytic_partials)],
            'Moon': [ThirdBodyPointMassGravity('Earth', 'Moon', 'Sun', bodies,
                                               analytic_partials=analytic_partials)],
        },
    }


def build_solver(configuration='barycentric', propagator='cowell',
                 state_offset=None, parameter_offset=None,
                 analytic_partials=True, final_time=TF, method='rk4',
                 step_size=STEP, bodies=None, **integrator_kwargs):
    """Fresh environment and solver for one scenario run."""
    if bodies is None:
        bodies = solar_system_bodies()
    central_bodies = CENTRAL_BODIES[configuration]

    initial_states = get_initial_states_of_bodies(
        BODIES_TO_INTEGRATE, central_bodies, bodies, T0)
    if state_offset is not None:
        initial_states = initial_states + np.asarray(state_offset)
    if parameter_offset is not None:
        for name, offset in zip(ESTIMATED_MU, parameter_offset):
            bodies[name].gravitational_parameter += offset

    parameters = [
        InitialTranslationalStateParameter(body, initial_states[6 * i:6 * i + 6], central)
        for i, (body, central) in enumerate(zip(BODIES_TO_INTEGRATE, central_bodies))
    ]
    parameters += [GravitationalParameter(bodies[name]) for name in ESTIMATED_MU]

    propagator_settings = PropagatorSettings(
        BODIES_TO_INTEGRATE,
        central_bodies,
        build_acceleration_models(configuration, bodies, analytic_partials),
        initial_states,
        final_time,
        propagator=propagator,
    )
    integrator_settings = IntegratorSettings(
        method, initial_time=T0, step_size=step_size, **integrator_kwargs)
    return VariationalEquationsSolver(
        bodies, integrator_settings, propagator_settings,
        EstimatableParameterSet(parameters))


@pytest.fixture(autouse=True)
def reset_config():
    """Keep configuration changes local to one test."""
    yield
    config.reset()


@pytest.fixture
def bodies():
    return solar_system_bodies()


@pytest.fixture
def make_solver():
    """Factory for scenario solvers (see build_solver)."""
    return build_solver


@pytest.fixture(scope="module")
def barycentric_joint_solver():
    """Barycentric Cowell solver after one joint propagation."""
    solver = build_solver('barycentric')
    solver.integrate_variational_and_dynamical_equations()
    return solver
