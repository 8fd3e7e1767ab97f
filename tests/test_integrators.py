"""
Test suite for the Runge-Kutta integrator.

Tests cover:
- Butcher tableau consistency
- Fixed-step accuracy, convergence order and sample grid
- Backward integration
- Adaptive step control and error norm restricted to selected components
- Failure reporting and settings validation
"""

import numpy as np
import pytest

from metabole import (
    ConfigurationError,
    IntegrationError,
    IntegratorSettings,
    RungeKuttaCoefficients,
    RungeKuttaIntegrator,
)
from metabole.integrators import COEFFICIENT_TABLES


def decay(t, y):
    return -y


def oscillator(t, y):
    return np.array([y[1], -y[0]])


def integrator(**kwargs):
    return RungeKuttaIntegrator(IntegratorSettings(**kwargs))


class TestTableaux:
    """Consistency of the built-in Butcher tableaux."""

    @pytest.mark.parametrize('name', sorted(COEFFICIENT_TABLES))
    def test_consistency(self, name):
        table = COEFFICIENT_TABLES[name]
        assert np.isclose(sum(table.b), 1.0, rtol=0, atol=1e-14)
        for node, row in zip(table.c[1:], table.a):
            assert np.isclose(sum(row), node, rtol=0, atol=1e-14)
        if table.has_error_estimate:
            assert np.isclose(sum(table.b_embedded), 1.0, rtol=0, atol=1e-14)

    def test_inconsistent_tableau(self):
        with pytest.raises(ConfigurationError):
            RungeKuttaCoefficients(name='bad', c=(0.0, 1.0), a=(), b=(0.5, 0.5))
        with pytest.raises(ConfigurationError):
            RungeKuttaCoefficients(name='implicit', c=(0.0, 1.0), a=((0.5, 0.5),),
                                   b=(0.5, 0.5))

    def test_custom_tableau(self):
        heun = RungeKuttaCoefficients(name='heun', c=(0.0, 1.0), a=((1.0,),),
                                      b=(0.5, 0.5), order=2)
        times, states = integrator(method=heun, step_size=0.01).integrate(
            decay, [1.0], 0.0, 1.0)
        assert np.isclose(states[-1, 0], np.exp(-1.0), rtol=1e-4)


class TestFixedStep:
    """Fixed-step propagation."""

    def test_rk4_accuracy(self):
        times, states = integrator(step_size=0.01).integrate(oscillator, [1.0, 0.0], 0.0, 10.0)
        assert np.allclose(states[-1], [np.cos(10.0), -np.sin(10.0)], atol=1e-8)

    def test_rk4_convergence_order(self):
        errors = []
        for step in (0.1, 0.05):
            _, states = integrator(step_size=step).integrate(decay, [1.0], 0.0, 2.0)
            errors.append(abs(states[-1, 0] - np.exp(-2.0)))
        assert 14.0 < errors[0] / errors[1] < 18.0

    def test_grid_with_shortened_last_step(self):
        times, states = integrator(step_size=1.0).integrate(decay, [1.0], 0.0, 10.5)
        assert len(times) == 12
        assert np.array_equal(times[:11], np.arange(11.0))
        assert times[-1] == 10.5
        assert states.shape == (12, 1)

    def test_grid_exact_multiple(self):
        times, _ = integrator(initial_time=5.0, step_size=0.1).integrate(decay, [1.0], 5.0, 6.0)
        assert len(times) == 11
        assert times[0] == 5.0
        assert times[-1] == 6.0

    def test_backward(self):
        times, states = integrator(step_size=0.01).integrate(decay, [1.0], 1.0, 0.0)
        assert times[0] == 1.0 and times[-1] == 0.0
        assert np.all(np.diff(times) < 0)
        assert np.isclose(states[-1, 0], np.e, rtol=1e-9)

    def test_zero_interval(self):
        times, states = integrator().integrate(decay, [2.0, 3.0], 4.0, 4.0)
        assert np.array_equal(times, [4.0])
        assert np.array_equal(states, [[2.0, 3.0]])

    def test_first_sample_is_initial_state(self):
        initial = np.array([1.0, 0.5])
        _, states = integrator(step_size=0.5).integrate(oscillator, initial, 0.0, 3.0)
        assert np.array_equal(states[0], initial)
        states[0, 0] = 7.0
        assert initial[0] == 1.0


class TestAdaptive:
    """Embedded error control."""

    @pytest.mark.parametrize('method', ['dopri5', 'rkf45'])
    def test_accuracy(self, method):
        settings = dict(method=method, step_size=0.1, relative_tolerance=1e-11,
                        absolute_tolerance=1e-11)
        times, states = integrator(**settings).integrate(oscillator, [1.0, 0.0], 0.0, 10.0)
        assert times[-1] == 10.0
        assert np.allclose(states[-1], [np.cos(10.0), -np.sin(10.0)], atol=1e-8)

    def test_backward(self):
        times, states = integrator(method='dopri5', step_size=0.1).integrate(
            decay, [1.0], 1.0, 0.0)
        assert times[-1] == 0.0
        assert np.all(np.diff(times) < 0)
        assert np.isclose(states[-1, 0], np.e, rtol=1e-9)

    def test_error_components(self):
        """Extra components outside the error norm leave the step sequence unchanged."""

        def augmented(t, y):
            return np.array([-y[0], 1.0e6 * np.cos(1.0e3 * t)])

        settings = dict(method='dopri5', step_size=0.1, relative_tolerance=1e-8,
                        absolute_tolerance=1e-8)
        times, states = integrator(**settings).integrate(decay, [1.0], 0.0, 5.0)
        joint_times, joint_states = integrator(**settings).integrate(
            augmented, [1.0, 0.0], 0.0, 5.0, error_components=slice(0, 1))

        assert np.array_equal(joint_times, times)
        assert np.array_equal(joint_states[:, 0], states[:, 0])

    def test_minimum_step_rejection(self):
        def stiff(t, y):
            return -1.0e8 * y

        with pytest.raises(IntegrationError):
            integrator(method='dopri5', step_size=1.0, minimum_step=0.5,
                       relative_tolerance=1e-12, absolute_tolerance=1e-12).integrate(
                stiff, [1.0], 0.0, 10.0)


class TestFailures:
    """Errors raised while integrating."""

    def test_non_finite_state(self):
        def blows_up(t, y):
            return np.full_like(y, np.nan) if t > 2.5 else -y

        with pytest.raises(IntegrationError) as info:
            integrator(step_size=1.0).integrate(blows_up, [1.0], 0.0, 10.0)
        assert info.value.step_index == 3
        assert info.value.epoch == 3.0

    def test_non_finite_initial_state(self):
        with pytest.raises(IntegrationError):
            integrator().integrate(decay, [np.inf], 0.0, 1.0)

    def test_maximum_steps(self):
        with pytest.raises(IntegrationError):
            integrator(step_size=1.0, maximum_steps=5).integrate(decay, [1.0], 0.0, 10.0)


class TestSettings:
    """Settings validation."""

    def test_defaults(self):
        assert IntegratorSettings().adaptive is False
        assert IntegratorSettings(method='DOPRI5').adaptive is True
        assert IntegratorSettings(method='dopri5', adaptive=False).adaptive is False

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError, match="Unknown integration method"):
            IntegratorSettings(method='euler')

    def test_adaptive_without_embedded_solution(self):
        with pytest.raises(ConfigurationError):
            IntegratorSettings(method='rk4', adaptive=True)

    @pytest.mark.parametrize('kwargs', [
        dict(step_size=0.0),
        dict(step_size=np.inf),
        dict(initial_time=np.nan),
        dict(relative_tolerance=0.0),
        dict(minimum_step=2.0, maximum_step=1.0),
        dict(safety_factor=1.5),
        dict(minimum_factor=2.0),
        dict(maximum_steps=0),
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            IntegratorSettings(**kwargs)
