"""
Exception hierarchy for tracerbox.

Every error is raised where it is detected and propagates to the caller.
Unit mismatches are pint's own ``DimensionalityError``, re-exported here
as ``UnitMismatchError``.
"""

from pint import DimensionalityError

UnitMismatchError = DimensionalityError


class TracerBoxError(Exception):
    """Base exception for all tracerbox errors."""
    pass


class ConfigurationError(TracerBoxError, ValueError):
    """Raised when model or run parameters are invalid."""
    pass


class ShapeMismatchError(TracerBoxError, ValueError):
    """Raised when a field does not match the box or boundary layout."""
    pass


class NumericalError(TracerBoxError):
    """Raised when a numerical step cannot be trusted."""
    pass


class IntegrationError(NumericalError):
    """Raised when the forcing quadrature error estimate is too large."""
    pass


class NumericalConsistencyError(NumericalError):
    """Raised when a propagated state keeps a non-negligible imaginary part."""
    pass


class UnimplementedCaseError(TracerBoxError, NotImplementedError):
    """Raised for tracer names or box layouts without a boundary rule."""
    pass
