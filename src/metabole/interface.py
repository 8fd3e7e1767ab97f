"""
Queryable history of the state transition and sensitivity matrices.

The interface stores the samples (t, Phi(t, t0), S(t)) of one joint
propagation and reconstructs the combined matrix [Phi | S] at any epoch of
the propagated interval. Phi and S are interpolated entrywise; this is
valid because every sample refers to the same initial epoch t0.

When the estimation epoch t_e differs from t0, the matrices are mapped
with the chain rule

    Phi(t, t_e) = Phi(t, t0) Phi(t_e, t0)^-1
    S_e(t)      = S(t) - Phi(t, t_e) S(t_e)
"""

import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .exceptions import RangeError, StateUnavailableError
from .utils import HistoryInterpolator

logger = logging.getLogger(__name__)


class StateTransitionMatrixInterface:
    """
    History of Phi(t, t0) and S(t) with interpolated access.

    Parameters
    ----------
    state_size : int
        Number of rows of Phi and S (6 per integrated body)
    parameter_size : int
        Number of columns of S
    estimation_epoch : float, optional
        Epoch the matrices are referred to; defaults to the start of the
        stored propagation
    """

    def __init__(self, state_size: int, parameter_size: int,
                 estimation_epoch: Optional[float] = None):
        self._state_size = state_size
        self._parameter_size = parameter_size
        self._estimation_epoch = estimation_epoch
        self._initial_time = None
        self._interpolator: Optional[HistoryInterpolator] = None

    # ========== HISTORY MANAGEMENT ==========
    def update(self, times, state_transition_matrices, sensitivity_matrices) -> None:
        """
        Replace the history with the samples of a new propagation.

        ``times[0]`` must be the propagation start; samples may be in
        decreasing time order for backward propagations.
        """
        times = np.asarray(times, dtype=float).ravel()
        phis = np.asarray(state_transition_matrices, dtype=float)
        sensitivities = np.asarray(sensitivity_matrices, dtype=float)
        n = self._state_size
        if phis.shape != (times.size, n, n):
            raise ValueError(
                f"State transition history has shape {phis.shape}, "
                f"expected {(times.size, n, n)}"
            )
        if sensitivities.shape != (times.size, n, self._parameter_size):
            raise ValueError(
                f"Sensitivity history has shape {sensitivities.shape}, "
                f"expected {(times.size, n, self._parameter_size)}"
            )
        combined = np.concatenate((phis, sensitivities), axis=2)
        self._interpolator = HistoryInterpolator(times, combined)
        self._initial_time = float(times[0])
        logger.debug("Matrix history updated with %d samples over [%s, %s]",
                     times.size, *self._interpolator.bounds)

    def clear(self) -> None:
        self._interpolator = None
        self._initial_time = None

    @property
    def is_empty(self) -> bool:
        return self._interpolator is None

    def _require_history(self) -> HistoryInterpolator:
        if self._interpolator is None:
            raise StateUnavailableError(
                "No state transition/sensitivity history available; "
                "propagate the variational equations first"
            )
        return self._interpolator

    # ========== PROPERTY ACCESS ==========
    @property
    def state_size(self) -> int:
        return self._state_size

    @property
    def parameter_size(self) -> int:
        return self._parameter_size

    @property
    def initial_time(self) -> Optional[float]:
        """Start epoch of the stored propagation (None when empty)."""
        return self._initial_time

    @property
    def interval(self):
        return self._require_history().bounds

    @property
    def estimation_epoch(self) -> Optional[float]:
        if self._estimation_epoch is None:
            return self._initial_time
        return self._estimation_epoch

    @estimation_epoch.setter
    def estimation_epoch(self, epoch: Optional[float]):
        self._estimation_epoch = None if epoch is None else float(epoch)

    # ========== QUERIES ==========
    def _raw_combined(self, time):
        return self._require_history()(time)

    def get_combined_state_transition_and_sensitivity_matrix(self, time: float) -> np.ndarray:
        """
        [Phi(t, t_e) | S_e(t)] at ``time``.

        Raises
        ------
        StateUnavailableError
            If no joint propagation has been stored
        RangeError
            If ``time`` (or the estimation epoch) lies outside the
            propagated interval
        """
        combined = self._raw_combined(time)
        epoch = self.estimation_epoch
        if epoch == self._initial_time:
            return combined

        n = self._state_size
        try:
            reference = self._raw_combined(epoch)
        except RangeError as error:
            raise RangeError(f"Estimation epoch {epoch} not covered: {error}") from error
        phi_t, s_t = combined[:, :n], combined[:, n:]
        phi_e, s_e = reference[:, :n], reference[:, n:]
        # Phi(t, t0) Phi(t_e, t0)^-1
        phi = np.linalg.solve(phi_e.T, phi_t.T).T
        return np.hstack((phi, s_t - phi @ s_e))

    def get_state_transition_matrix(self, time: float) -> np.ndarray:
        return self.get_combined_state_transition_and_sensitivity_matrix(time)[:, :self._state_size]

    def get_sensitivity_matrix(self, time: float) -> np.ndarray:
        return self.get_combined_state_transition_and_sensitivity_matrix(time)[:, self._state_size:]

    def get_full_combined_matrix_history(self) -> Dict[float, np.ndarray]:
        """Stored combined matrices (referred to the estimation epoch), keyed by epoch."""
        interpolator = self._require_history()
        return {float(t): self.get_combined_state_transition_and_sensitivity_matrix(t)
                for t in interpolator.times}

    # ========== EXPORT ==========
    def to_dataframe(self) -> pd.DataFrame:
        """
        Flattened matrix history, one row per epoch.

        Columns are ``phi_i_j`` for Phi and ``s_i_j`` for S.
        """
        history = self.get_full_combined_matrix_history()
        n, p = self._state_size, self._parameter_size
        columns = ([f"phi_{i}_{j}" for i in range(n) for j in range(n)]
                   + [f"s_{i}_{j}" for i in range(n) for j in range(p)])
        rows = [np.concatenate((m[:, :n].ravel(), m[:, n:].ravel())) for m in history.values()]
        df = pd.DataFrame(rows, columns=columns, index=pd.Index(list(history), name='time'))
        return df

    def __repr__(self):
        if self._interpolator is None:
            return f"StateTransitionMatrixInterface(size={self._state_size}x{self._parameter_size}, empty)"
        lower, upper = self._interpolator.bounds
        return (f"StateTransitionMatrixInterface(size={self._state_size}x{self._parameter_size}, "
                f"samples={len(self._interpolator)}, interval=[{lower}, {upper}])")
