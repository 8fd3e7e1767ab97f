'''Trajectory class definition
Time-tagged base-frame states of a propagation of integrated bodies'''

import numpy as np
import pandas as pd
from typing import Optional, Sequence, Union
import plotly.graph_objects as go
from .config import config
from .frames import CentralBodyGraph
from .utils import HistoryInterpolator


class Trajectory:
    """
    Propagated states of all integrated bodies.

    Attributes:
        graph: Central-body topology the states are expressed in (immutable)
        times: Sample epochs in propagation order
        states: Base-frame system states at the samples, shape (n, 6N)
        t0: Start time
        tf: End time
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, graph: CentralBodyGraph, times, states):
        self._graph = graph
        self._times = np.array(times, dtype=float)
        self._states = np.array(states, dtype=float)
        if self._states.shape != (self._times.size, graph.state_size):
            raise ValueError(
                f"States have shape {self._states.shape}, expected "
                f"{(self._times.size, graph.state_size)}"
            )
        self._times.flags.writeable = False
        self._states.flags.writeable = False
        self._interpolator = HistoryInterpolator(self._times, self._states)

    # ========== PROPERTY ACCESS ==========
    @property
    def graph(self) -> CentralBodyGraph:
        return self._graph

    @property
    def times(self) -> np.ndarray:
        return self._times

    @property
    def states(self) -> np.ndarray:
        return self._states

    @property
    def t0(self) -> float:
        return float(self._times[0])

    @property
    def tf(self) -> float:
        return float(self._times[-1])

    @property
    def duration(self) -> float:
        """Trajectory duration."""
        return self.tf - self.t0

    @property
    def initial_state(self) -> np.ndarray:
        return self._states[0].copy()

    @property
    def final_state(self) -> np.ndarray:
        return self._states[-1].copy()

    # ========== UTILITY METHODS ==========
    def state_at(self, t: float) -> np.ndarray:
        """
        Base-frame system state at time t.

        Parameters:
            t: Time to query (must be within [t0, tf])

        Returns:
            Flat state of length 6N; stored samples are returned exactly

        Raises:
            RangeError: If t lies outside the propagated interval
        """
        return self._interpolator(t)

    def evaluate(self, times: Union[float, np.ndarray, list]) -> np.ndarray:
        """
        Evaluate at one or more times.

        Returns:
            State of shape (6N,) if times is scalar,
            array of shape (n_times, 6N) if times is array-like
        """
        if isinstance(times, (int, float)):
            return self.state_at(times)
        return np.array([self.state_at(t) for t in np.asarray(times, dtype=float)])

    def body_states(self, body: str) -> np.ndarray:
        """Stored base-frame states of one body, shape (n, 6)."""
        index = self._graph.index_of(body)
        return self._states[:, 6 * index:6 * index + 6].copy()

    def inertial_states(self, body: str) -> np.ndarray:
        """Stored states of one body w.r.t. the frame origin, shape (n, 6)."""
        index = self._graph.index_of(body)
        return np.array([self._graph.absolute_states(t, x)[index]
                         for t, x in zip(self._times, self._states)])

    def contains_time(self, t: float) -> bool:
        """Check if time is within trajectory bounds."""
        return min(self.t0, self.tf) <= t <= max(self.t0, self.tf)

    def get_times(self, n_points: int = 100) -> np.ndarray:
        """Generate uniform time array spanning trajectory."""
        return np.linspace(self.t0, self.tf, n_points)

    def to_dataframe(self, times: Optional[np.ndarray] = None,
                     inertial: bool = False) -> pd.DataFrame:
        """
        Export trajectory to pandas DataFrame.

        Parameters:
            times: Specific times to evaluate. If None, uses the stored samples.
            inertial: Export states w.r.t. the frame origin instead of the
                      central bodies (default: False)

        Returns:
            DataFrame with a time column and '<body>_<component>' columns
        """
        if times is None:
            times = self._times
            states = self._states
        else:
            times = np.asarray(times, dtype=float)
            states = self.evaluate(times).reshape(times.size, -1)

        data = {'time': times}
        for index, body in enumerate(self._graph.bodies_to_integrate):
            if inertial:
                block = np.array([self._graph.absolute_states(t, x)[index]
                                  for t, x in zip(times, states)])
            else:
                block = states[:, 6 * index:6 * index + 6]
            for k, component in enumerate(('x', 'y', 'z', 'vx', 'vy', 'vz')):
                data[f'{body}_{component}'] = block[:, k]

        return pd.DataFrame(data)

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"Trajectory(bodies={list(self._graph.bodies_to_integrate)}, "
                f"t0={self.t0}, tf={self.tf}, samples={self._times.size})")

    def __len__(self):
        return self._times.size

    def __call__(self, t: float) -> np.ndarray:
        """Syntactic sugar for .state_at(t). Allows traj(t) syntax."""
        return self.state_at(t)

    # ========== PLOTTING ==========
    def plot_3d(self, bodies: Optional[Sequence[str]] = None,
                inertial: bool = True, n_points: Optional[int] = None,
                colors: Optional[Sequence[str]] = None) -> go.Figure:
        """
        Create 3D plot of the body trajectories.

        Parameters:
            bodies: Bodies to draw (default: all integrated bodies)
            inertial: Plot positions w.r.t. the frame origin (default: True)
            n_points: Number of points per body, uniformly spaced in time
                      (default: config.DEFAULT_PLOT_POINTS)
            colors: Line colors cycled over bodies (default: config.DEFAULT_TRAJ_COLORS)

        Returns:
            Plotly Figure object
        """
        if bodies is None:
            bodies = self._graph.bodies_to_integrate
        if n_points is None:
            n_points = config.DEFAULT_PLOT_POINTS
        if colors is None:
            colors = config.DEFAULT_TRAJ_COLORS

        times = self.get_times(min(n_points, max(2, self._times.size)))
        df = self.to_dataframe(times, inertial=inertial)

        fig = go.Figure()
        for k, body in enumerate(bodies):
            if not self._graph.is_integrated(body):
                raise ValueError(f"Body '{body}' is not part of this trajectory")
            fig.add_trace(go.Scatter3d(
                x=df[f'{body}_x'],
                y=df[f'{body}_y'],
                z=df[f'{body}_z'],
                mode='lines',
                line=dict(color=colors[k % len(colors)], width=3),
                name=body,
                hovertemplate='x: %{x:.1f}<br>y: %{y:.1f}<br>z: %{z:.1f}<extra></extra>'
            ))

        fig.update_layout(
            scene=dict(
                xaxis_title='X [m]',
                yaxis_title='Y [m]',
                zaxis_title='Z [m]',
                aspectmode='data'
            ),
            title='Inertial Trajectories' if inertial else 'Trajectories w.r.t. Central Bodies',
            showlegend=True
        )

        return fig
