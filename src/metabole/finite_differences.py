"""
Central-difference Jacobians of complete propagations.

Used to validate the propagated state transition and sensitivity matrices:
every column is obtained from two full propagations with one initial-state
or parameter entry perturbed by +/- its step. Runs are independent, so
they may execute concurrently on a thread pool; each run must build its
own environment (bodies, models, solver) inside ``propagate``.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

import numpy as np

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PropagationFunction = Callable[[np.ndarray, np.ndarray], np.ndarray]


def central_difference_jacobian(propagate: PropagationFunction,
                                state_steps: Sequence[float],
                                parameter_steps: Sequence[float] = (),
                                max_workers: Optional[int] = None) -> np.ndarray:
    """
    Jacobian of ``propagate`` by central differences.

    Parameters
    ----------
    propagate : callable
        ``propagate(state_offset, parameter_offset) -> state`` runs one
        propagation with the given offsets added to the nominal initial
        state and non-state parameter vector, and returns the state to
        differentiate (e.g. the base-frame state at a test epoch)
    state_steps : sequence of float
        Perturbation of each initial-state entry
    parameter_steps : sequence of float, optional
        Perturbation of each non-state parameter entry
    max_workers : int, optional
        Number of concurrent runs; None or 1 runs sequentially

    Returns
    -------
    np.ndarray
        Shape (state size, len(state_steps) + len(parameter_steps));
        columns ordered like the combined matrix [Phi | S]
    """
    state_steps = np.asarray(state_steps, dtype=float)
    parameter_steps = np.asarray(parameter_steps, dtype=float)
    if np.any(state_steps == 0) or np.any(parameter_steps == 0):
        raise ConfigurationError("Finite-difference steps must be non-zero")

    n_states, n_parameters = state_steps.size, parameter_steps.size
    steps = np.concatenate((state_steps, parameter_steps))

    offsets = []
    for column, step in enumerate(steps):
        for sign in (1.0, -1.0):
            delta = np.zeros(n_states + n_parameters)
            delta[column] = sign * step
            offsets.append((delta[:n_states], delta[n_states:]))

    def run(offset):
        return np.asarray(propagate(*offset), dtype=float)

    logger.info("Running %d perturbed propagations (%s)", len(offsets),
                f"{max_workers} workers" if max_workers and max_workers > 1 else "sequential")
    if max_workers is not None and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(run, offsets))
    else:
        results = [run(offset) for offset in offsets]

    jacobian = np.empty((results[0].size, steps.size))
    for column, step in enumerate(steps):
        jacobian[:, column] = (results[2 * column] - results[2 * column + 1]) / (2.0 * step)
    return jacobian


def block_relative_error(analytic, numerical, block_rows: int = 3) -> np.ndarray:
    """
    Entrywise error scaled per block of rows and column.

    Each entry of ``|analytic - numerical|`` is divided by the largest
    magnitude of ``numerical`` in the same column and block of
    ``block_rows`` rows (position or velocity of one body), which keeps
    near-zero entries from dominating a plain relative error.
    """
    analytic = np.asarray(analytic, dtype=float)
    numerical = np.asarray(numerical, dtype=float)
    if analytic.shape != numerical.shape:
        raise ValueError(f"Shape mismatch: {analytic.shape} vs {numerical.shape}")
    rows, columns = numerical.shape
    if rows % block_rows:
        raise ValueError(f"{rows} rows cannot be split in blocks of {block_rows}")

    blocks = np.abs(numerical).reshape(rows // block_rows, block_rows, columns)
    scale = np.repeat(blocks.max(axis=1), block_rows, axis=0)
    scale[scale == 0.0] = 1.0
    return np.abs(analytic - numerical) / scale
