"""
Global Configuration for Metabole Package
=========================================

This module provides package-wide configuration settings that users can modify
to control interpolation, finite-difference partials, the Encke reference
orbit and default plotting options.

Examples
--------
View current configuration:

>>> import metabole
>>> print(metabole.config)

Modify settings:

>>> metabole.config.INTERPOLATION_ORDER = 1  # Linear matrix interpolation
>>> metabole.config.ENCKE_REFERENCE = 'taylor'

Reset to defaults:

>>> metabole.config.reset()

Temporarily modify settings:

>>> with metabole.temp_config(STRICT_VALIDATION=False):
...     # Soft validation failures only warn inside this block
...     solver = VariationalEquationsSolver(...)

Notes
-----
These settings affect package-wide behavior. Modifying them will impact
all subsequent propagations until changed again or reset. Concurrent runs
read the same configuration object, so change it before starting them.
"""

from dataclasses import dataclass, fields
from contextlib import contextmanager


@dataclass
class MetaboleConfig:
    """
    Global configuration for Metabole package.

    Attributes
    ----------
    STRICT_VALIDATION : bool
        If True, soft validation failures raise exceptions.
        If False, they issue warnings.
        Default: True
    INTERPOLATION_ORDER : int
        Spline order used to interpolate the state and matrix histories
        between integrator samples (1 = linear, 3 = cubic).
        Lowered automatically when too few samples exist.
        Default: 3
    EPOCH_TOLERANCE : float
        Relative slack (with respect to the propagated interval length)
        accepted on the interval bounds when querying histories.
        Default: 1e-12
    FD_STATE_RELATIVE_STEP : float
        Relative perturbation of a body's position/velocity magnitude used
        for finite-difference state partials.
        Default: 1e-7
    FD_STATE_MINIMUM_STEP : float
        Lower bound on the finite-difference state perturbation.
        Default: 1e-3
    FD_PARAMETER_RELATIVE_STEP : float
        Relative perturbation of a parameter value used for
        finite-difference parameter partials.
        Default: 1e-6
    FD_PARAMETER_MINIMUM_STEP : float
        Lower bound on the finite-difference parameter perturbation.
        Default: 1e-8
    ENCKE_REFERENCE : str
        Reference orbit solver for the Encke formulation:
        'kepler' (analytic) or 'taylor' (heyoka Taylor integrator).
        Default: 'kepler'
    KEPLER_TOLERANCE : float
        Convergence tolerance on the universal anomaly.
        Default: 1e-13
    KEPLER_MAX_ITERATIONS : int
        Maximum Newton iterations for Kepler's equation.
        Default: 50
    TAYLOR_TOLERANCE : float
        Tolerance passed to heyoka for the Taylor reference orbit.
        Default: 1e-15
    PROGRESS_LOG_INTERVAL : int
        Number of integrator steps between DEBUG progress messages.
        Default: 1000
    DEFAULT_PLOT_POINTS : int
        Default number of points for trajectory plotting.
        Default: 1000
    DEFAULT_TRAJ_COLORS : tuple
        Colors cycled over bodies in trajectory plots.
    """

    # Validation behavior
    STRICT_VALIDATION: bool = True

    # History interpolation
    INTERPOLATION_ORDER: int = 3
    EPOCH_TOLERANCE: float = 1e-12

    # Finite-difference fallback partials
    FD_STATE_RELATIVE_STEP: float = 1e-7
    FD_STATE_MINIMUM_STEP: float = 1e-3
    FD_PARAMETER_RELATIVE_STEP: float = 1e-6
    FD_PARAMETER_MINIMUM_STEP: float = 1e-8

    # Encke reference orbit
    ENCKE_REFERENCE: str = 'kepler'
    KEPLER_TOLERANCE: float = 1e-13
    KEPLER_MAX_ITERATIONS: int = 50
    TAYLOR_TOLERANCE: float = 1e-15

    # Logging
    PROGRESS_LOG_INTERVAL: int = 1000

    # Plotting defaults
    DEFAULT_PLOT_POINTS: int = 1000
    DEFAULT_TRAJ_COLORS: tuple = ('red', 'blue', 'green', 'orange', 'purple')

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import metabole
        >>> metabole.config.INTERPOLATION_ORDER = 1  # Modify
        >>> metabole.config.reset()  # Back to defaults
        >>> metabole.config.INTERPOLATION_ORDER
        3
        """
        defaults = MetaboleConfig()
        for field in fields(self):
            setattr(self, field.name, getattr(defaults, field.name))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["MetaboleConfig:"]
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        lines.append("  Interpolation:")
        lines.append(f"    INTERPOLATION_ORDER = {self.INTERPOLATION_ORDER}")
        lines.append(f"    EPOCH_TOLERANCE = {self.EPOCH_TOLERANCE}")
        lines.append("  Finite Differences:")
        lines.append(f"    FD_STATE_RELATIVE_STEP = {self.FD_STATE_RELATIVE_STEP}")
        lines.append(f"    FD_STATE_MINIMUM_STEP = {self.FD_STATE_MINIMUM_STEP}")
        lines.append(f"    FD_PARAMETER_RELATIVE_STEP = {self.FD_PARAMETER_RELATIVE_STEP}")
        lines.append(f"    FD_PARAMETER_MINIMUM_STEP = {self.FD_PARAMETER_MINIMUM_STEP}")
        lines.append("  Encke Reference:")
        lines.append(f"    ENCKE_REFERENCE = '{self.ENCKE_REFERENCE}'")
        lines.append(f"    KEPLER_TOLERANCE = {self.KEPLER_TOLERANCE}")
        lines.append(f"    KEPLER_MAX_ITERATIONS = {self.KEPLER_MAX_ITERATIONS}")
        lines.append(f"    TAYLOR_TOLERANCE = {self.TAYLOR_TOLERANCE}")
        lines.append("  Logging:")
        lines.append(f"    PROGRESS_LOG_INTERVAL = {self.PROGRESS_LOG_INTERVAL}")
        lines.append("  Plotting:")
        lines.append(f"    DEFAULT_PLOT_POINTS = {self.DEFAULT_PLOT_POINTS}")
        lines.append(f"    DEFAULT_TRAJ_COLORS = {self.DEFAULT_TRAJ_COLORS}")
        return "\n".join(lines)


# Global configuration instance
config = MetaboleConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import metabole
    >>> with metabole.temp_config(ENCKE_REFERENCE='taylor'):
    ...     solver.integrate_variational_and_dynamical_equations()
    >>> # Original config restored here
    >>> metabole.config.ENCKE_REFERENCE
    'kepler'

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"MetaboleConfig has no attribute '{key}'. "
                f"Valid attributes: {[f.name for f in fields(config)]}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)
