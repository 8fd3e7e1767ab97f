"""
Exception hierarchy for the Metabole package.

All package errors derive from :class:`MetaboleError`. Each concrete error
also derives from the closest builtin so callers that only expect
``ValueError``/``RuntimeError`` keep working.

- ConfigurationError:    inconsistent setup, detected before integration
- EvaluationError:       acceleration or ephemeris evaluation failed (fatal)
- IntegrationError:      integrator produced a non-finite state (fatal)
- RangeError:            history queried outside the propagated interval
- StateUnavailableError: matrices queried before a variational propagation
"""


class MetaboleError(Exception):
    """Base class for all Metabole errors."""


class ConfigurationError(MetaboleError, ValueError):
    """Inconsistent body, central-body, parameter or integrator setup."""


class EvaluationError(MetaboleError, RuntimeError):
    """Acceleration, partial or ephemeris evaluation failed at an epoch."""

    def __init__(self, message, epoch=None):
        if epoch is not None:
            message = f"{message} (epoch {epoch!r})"
        super().__init__(message)
        self.epoch = epoch


class IntegrationError(EvaluationError):
    """Numerical integration produced an invalid (non-finite) state."""

    def __init__(self, message, epoch=None, step_index=None):
        if step_index is not None:
            message = f"{message} [step {step_index}]"
        super().__init__(message, epoch)
        self.step_index = step_index


class RangeError(MetaboleError, ValueError):
    """Query epoch lies outside the propagated interval."""


class StateUnavailableError(MetaboleError, RuntimeError):
    """Requested history does not exist (no variational propagation yet)."""
