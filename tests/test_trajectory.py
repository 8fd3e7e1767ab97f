"""
Test suite for the Trajectory class.

Tests cover:
- Properties and sample access
- Interpolated evaluation
- Body and inertial state extraction
- DataFrame export and 3D plotting
"""

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from metabole import Body, CentralBodyGraph, ConfigurationError, RangeError, Trajectory
from metabole.ephemerides import ConstantEphemeris

SUN_STATE = np.array([1.0e3, 2.0e3, 3.0e3, 0.0, 0.0, 0.0])
TIMES = np.linspace(100.0, 200.0, 11)


def linear_states(times):
    """Uniform motion of a moon (w.r.t. its planet) and a planet (w.r.t. the Sun)."""
    moon = np.array([10.0, 0.0, 0.0, 0.0, 1.0, 0.0])
    planet = np.array([1.0e4, 0.0, 0.0, 0.0, 5.0, 1.0])
    rows = []
    for t in times:
        dt = t - times[0]
        rows.append(np.concatenate([
            moon + dt * np.concatenate([moon[3:], np.zeros(3)]),
            planet + dt * np.concatenate([planet[3:], np.zeros(3)]),
        ]))
    return np.array(rows)


@pytest.fixture
def trajectory():
    bodies = {
        'Sun': Body('Sun', 1.0e20, ConstantEphemeris(SUN_STATE)),
        'Planet': Body('Planet', 1.0e14),
        'Moon': Body('Moon', 1.0e12),
    }
    graph = CentralBodyGraph(['Moon', 'Planet'], ['Planet', 'Sun'], bodies)
    return Trajectory(graph, TIMES, linear_states(TIMES))


class TestProperties:
    """Basic properties and samples."""

    def test_bounds(self, trajectory):
        assert trajectory.t0 == 100.0
        assert trajectory.tf == 200.0
        assert trajectory.duration == 100.0
        assert len(trajectory) == 11
        assert 'Moon' in repr(trajectory)

    def test_initial_and_final_states(self, trajectory):
        states = linear_states(TIMES)
        assert np.array_equal(trajectory.initial_state, states[0])
        assert np.array_equal(trajectory.final_state, states[-1])

    def test_samples_are_read_only(self, trajectory):
        with pytest.raises(ValueError):
            trajectory.states[0, 0] = 1.0
        with pytest.raises(ValueError):
            trajectory.times[0] = 0.0

    def test_shape_mismatch(self, trajectory):
        with pytest.raises(ValueError):
            Trajectory(trajectory.graph, TIMES, linear_states(TIMES)[:, :6])

    def test_contains_time(self, trajectory):
        assert trajectory.contains_time(150.0)
        assert not trajectory.contains_time(250.0)


class TestEvaluation:
    """Interpolated state queries."""

    def test_state_at_sample(self, trajectory):
        assert np.array_equal(trajectory.state_at(TIMES[4]), linear_states(TIMES)[4])

    def test_state_between_samples(self, trajectory):
        expected = linear_states([100.0, 137.5])[1]
        assert np.allclose(trajectory(137.5), expected, rtol=1e-12)

    def test_evaluate_array(self, trajectory):
        states = trajectory.evaluate([110.0, 155.0])
        assert states.shape == (2, 12)
        assert trajectory.evaluate(110.0).shape == (12,)

    def test_out_of_range(self, trajectory):
        with pytest.raises(RangeError):
            trajectory.state_at(50.0)


class TestBodyStates:
    """Per-body extraction."""

    def test_body_states(self, trajectory):
        moon = trajectory.body_states('Moon')
        assert moon.shape == (11, 6)
        assert np.array_equal(moon, linear_states(TIMES)[:, :6])
        with pytest.raises(ConfigurationError):
            trajectory.body_states('Sun')

    def test_inertial_states(self, trajectory):
        states = linear_states(TIMES)
        moon = trajectory.inertial_states('Moon')
        assert np.allclose(moon, states[:, :6] + states[:, 6:] + SUN_STATE)
        planet = trajectory.inertial_states('Planet')
        assert np.allclose(planet, states[:, 6:] + SUN_STATE)


class TestExport:
    """DataFrame export and plotting."""

    def test_to_dataframe(self, trajectory):
        df = trajectory.to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert len(df) == 11
        assert list(df.columns[:4]) == ['time', 'Moon_x', 'Moon_y', 'Moon_z']
        assert 'Planet_vz' in df.columns
        assert np.allclose(df['Planet_vy'], 5.0)

    def test_to_dataframe_inertial(self, trajectory):
        df = trajectory.to_dataframe(times=[150.0], inertial=True)
        assert len(df) == 1
        expected = linear_states([100.0, 150.0])[1]
        assert np.isclose(df['Planet_x'].iloc[0], expected[6] + SUN_STATE[0])
        assert np.isclose(df['Moon_x'].iloc[0], expected[0] + expected[6] + SUN_STATE[0])

    def test_plot_3d(self, trajectory):
        fig = trajectory.plot_3d(n_points=50)
        assert isinstance(fig, go.Figure)
        assert [trace.name for trace in fig.data] == ['Moon', 'Planet']
        assert len(fig.data[0].x) == 11

    def test_plot_3d_selected_body(self, trajectory):
        fig = trajectory.plot_3d(bodies=['Planet'], inertial=False, colors=['red'])
        assert len(fig.data) == 1
        assert fig.data[0].line.color == 'red'

    def test_plot_3d_unknown_body(self, trajectory):
        with pytest.raises(ValueError):
            trajectory.plot_3d(bodies=['Sun'])
