"""
Test suite for ephemerides, bodies and initial states.

Tests cover:
- Constant and Keplerian ephemerides (parent chaining, validity interval)
- Body validation and ephemeris access
- Initial states of integrated bodies from ephemerides
- Default Solar System environment
"""

import numpy as np
import pytest

from metabole import (
    Body,
    ConfigurationError,
    ConstantEphemeris,
    EvaluationError,
    KeplerEphemeris,
    get_initial_states_of_bodies,
)
from metabole.defaults import EARTH_MU, MOON_MU, SUN_MU, solar_system_bodies
from metabole.kepler import propagate_kepler_orbit


class TestEphemerides:
    """Ephemeris providers."""

    def test_constant_ephemeris(self):
        ephemeris = ConstantEphemeris([1.0, 2.0, 3.0, 0.0, 0.0, 0.0])
        state = ephemeris.get_cartesian_state(1.0e9)
        assert np.array_equal(state, [1.0, 2.0, 3.0, 0.0, 0.0, 0.0])
        # callers may modify the returned state
        state[0] = 99.0
        assert ephemeris.get_cartesian_state(0.0)[0] == 1.0

    def test_constant_ephemeris_default_origin(self):
        assert np.array_equal(ConstantEphemeris().get_cartesian_state(5.0), np.zeros(6))

    def test_constant_ephemeris_wrong_size(self):
        with pytest.raises(ValueError):
            ConstantEphemeris([1.0, 2.0, 3.0])

    def test_kepler_ephemeris_at_reference_epoch(self):
        initial = np.array([3.844e8, 0.0, 0.0, 0.0, 1.0e3, 0.0])
        ephemeris = KeplerEphemeris(initial, 100.0, EARTH_MU + MOON_MU)
        assert np.array_equal(ephemeris.get_cartesian_state(100.0), initial)

    def test_kepler_ephemeris_with_parent(self):
        offset = np.array([1.0e11, 0.0, 0.0, 0.0, 3.0e4, 0.0])
        initial = np.array([3.844e8, 0.0, 0.0, 0.0, 1.0e3, 0.0])
        ephemeris = KeplerEphemeris(initial, 0.0, EARTH_MU, parent=ConstantEphemeris(offset))

        expected = propagate_kepler_orbit(initial, 5.0e5, EARTH_MU) + offset
        assert np.allclose(ephemeris.get_cartesian_state(5.0e5), expected)

    def test_kepler_ephemeris_from_elements(self):
        ephemeris = KeplerEphemeris.from_keplerian_elements(
            [3.844e8, 0.0, 0.0, 0.0, 0.0, 0.0], 0.0, EARTH_MU)
        assert np.allclose(ephemeris.get_cartesian_state(0.0)[:3], [3.844e8, 0.0, 0.0])
        assert ephemeris.mu == EARTH_MU
        assert ephemeris.parent is None

    def test_valid_interval(self):
        ephemeris = ConstantEphemeris(valid_interval=(0.0, 10.0))
        ephemeris.get_cartesian_state(10.0)
        with pytest.raises(EvaluationError) as info:
            ephemeris.get_cartesian_state(10.5)
        assert info.value.epoch == 10.5

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            ConstantEphemeris(valid_interval=(10.0, 0.0))

    def test_invalid_mu(self):
        with pytest.raises(ValueError):
            KeplerEphemeris(np.ones(6), 0.0, -1.0)


class TestBodies:
    """Body data and ephemeris access."""

    def test_negative_gravitational_parameter(self):
        with pytest.raises(ValueError):
            Body('Earth', -1.0)

    def test_empty_name(self):
        with pytest.raises(ValueError):
            Body('', 1.0)

    def test_massless_body(self):
        assert Body('Probe').gravitational_parameter is None

    def test_state_without_ephemeris(self):
        with pytest.raises(EvaluationError, match="no ephemeris"):
            Body('Probe').state_in_base_frame_from_ephemeris(0.0)


class TestInitialStates:
    """get_initial_states_of_bodies."""

    def test_barycentric_states(self, bodies):
        states = get_initial_states_of_bodies(['Moon', 'Earth'], ['SSB', 'SSB'], bodies, 1.0e7)
        assert states.shape == (12,)
        assert np.array_equal(states[:6], bodies['Moon'].state_in_base_frame_from_ephemeris(1.0e7))

    def test_hierarchical_states(self, bodies):
        states = get_initial_states_of_bodies(['Moon', 'Earth'], ['Earth', 'Sun'], bodies, 1.0e7)
        moon = bodies['Moon'].state_in_base_frame_from_ephemeris(1.0e7)
        earth = bodies['Earth'].state_in_base_frame_from_ephemeris(1.0e7)
        assert np.allclose(states[:6], moon - earth)
        # Sun rests at the origin
        assert np.allclose(states[6:], earth)
        assert 3.5e8 < np.linalg.norm(states[:3]) < 4.1e8

    def test_length_mismatch(self, bodies):
        with pytest.raises(ConfigurationError):
            get_initial_states_of_bodies(['Moon', 'Earth'], ['SSB'], bodies, 0.0)

    def test_unknown_body(self, bodies):
        with pytest.raises(ConfigurationError, match="Unknown body"):
            get_initial_states_of_bodies(['Pluto'], ['SSB'], bodies, 0.0)


class TestDefaultEnvironment:
    """solar_system_bodies factory."""

    def test_fresh_bodies_per_call(self):
        first, second = solar_system_bodies(), solar_system_bodies()
        first['Sun'].gravitational_parameter *= 2
        assert second['Sun'].gravitational_parameter == SUN_MU

    def test_earth_distance(self, bodies):
        earth = bodies['Earth'].state_in_base_frame_from_ephemeris(3.0e7)
        assert 1.45e11 < np.linalg.norm(earth[:3]) < 1.55e11
