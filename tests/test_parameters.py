"""
Test suite for estimatable parameters.

Tests cover:
- Initial-state and gravitational-parameter values
- Parameter set ordering, layout and value reset
- All-or-nothing reset when a value is rejected
"""

import numpy as np
import pytest

from metabole import (
    Body,
    ConfigurationError,
    EstimatableParameterSet,
    GravitationalParameter,
    InitialTranslationalStateParameter,
)


@pytest.fixture
def parameters():
    earth = Body('Earth', 4.0e14)
    moon = Body('Moon', 5.0e12)
    state_moon = InitialTranslationalStateParameter('Moon', np.arange(6.0), 'Earth')
    state_earth = InitialTranslationalStateParameter('Earth', np.arange(6.0) + 10.0)
    return state_moon, state_earth, GravitationalParameter(moon), GravitationalParameter(earth)


class TestParameters:
    """Single parameters."""

    def test_initial_state(self):
        parameter = InitialTranslationalStateParameter('Moon', np.ones(6), 'Earth')
        assert parameter.name == 'initial_state:Moon'
        assert parameter.central_body == 'Earth'
        assert parameter.is_initial_state
        assert parameter.size == 6

        value = parameter.get_value()
        value[0] = 5.0
        assert parameter.get_value()[0] == 1.0

        with pytest.raises(ConfigurationError):
            parameter.set_value(np.ones(5))

    def test_gravitational_parameter_writes_body(self):
        earth = Body('Earth', 4.0e14)
        parameter = GravitationalParameter(earth)
        assert parameter.name == 'gravitational_parameter:Earth'
        assert not parameter.is_initial_state

        parameter.set_value([3.9e14])
        assert earth.gravitational_parameter == 3.9e14
        assert np.array_equal(parameter.get_value(), [3.9e14])

    def test_gravitational_parameter_must_be_positive(self):
        parameter = GravitationalParameter(Body('Earth', 4.0e14))
        with pytest.raises(ConfigurationError):
            parameter.set_value(-1.0)
        with pytest.raises(ConfigurationError):
            parameter.set_value(np.nan)

    def test_body_without_gravitational_parameter(self):
        with pytest.raises(ConfigurationError):
            GravitationalParameter(Body('Probe'))


class TestParameterSet:
    """Ordered parameter collections."""

    def test_layout(self, parameters):
        parameter_set = EstimatableParameterSet(parameters)
        assert parameter_set.initial_state_size == 12
        assert parameter_set.parameter_size == 2
        assert parameter_set.total_size == 14
        assert len(parameter_set) == 4

        indices = parameter_set.parameter_indices()
        assert indices['initial_state:Earth'] == (6, 6)
        assert indices['gravitational_parameter:Earth'] == (13, 1)

        columns = [(p.name, start) for p, start in parameter_set.other_parameter_columns()]
        assert columns == [('gravitational_parameter:Moon', 0),
                           ('gravitational_parameter:Earth', 1)]

    def test_values(self, parameters):
        parameter_set = EstimatableParameterSet(parameters)
        values = parameter_set.get_full_parameter_values()
        assert np.array_equal(values[:12], np.concatenate([np.arange(6.0), np.arange(6.0) + 10.0]))
        assert np.array_equal(values[12:], [5.0e12, 4.0e14])
        assert np.array_equal(parameter_set.get_initial_states(), values[:12])

    def test_reset_values(self, parameters):
        parameter_set = EstimatableParameterSet(parameters)
        values = parameter_set.get_full_parameter_values()
        values[0] += 1.0
        values[-1] = 3.0e14
        parameter_set.reset_parameter_values(values)

        assert parameters[0].get_value()[0] == 1.0
        assert parameters[3].get_value()[0] == 3.0e14
        with pytest.raises(ConfigurationError):
            parameter_set.reset_parameter_values(values[:-1])

    def test_failed_reset_keeps_previous_values(self, parameters):
        parameter_set = EstimatableParameterSet(parameters)
        before = parameter_set.get_full_parameter_values()
        values = before.copy()
        values[0] += 1.0
        values[12] *= 2.0
        values[13] = -1.0

        with pytest.raises(ConfigurationError):
            parameter_set.reset_parameter_values(values)

        assert np.array_equal(parameter_set.get_full_parameter_values(), before)
        assert parameters[2].get_value()[0] == 5.0e12

    def test_state_parameters_first(self, parameters):
        state_moon, state_earth, mu_moon, _ = parameters
        with pytest.raises(ConfigurationError, match="precede"):
            EstimatableParameterSet([state_moon, mu_moon, state_earth])

    def test_duplicates_rejected(self, parameters):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            EstimatableParameterSet([parameters[0], parameters[0]])

    def test_empty_set(self):
        parameter_set = EstimatableParameterSet([])
        assert parameter_set.total_size == 0
        assert parameter_set.get_full_parameter_values().size == 0
        assert parameter_set.get_initial_states().size == 0
