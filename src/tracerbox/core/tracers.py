"""
Tracer Cases and Boundary Source Histories.
===========================================

Physics Background:
------------------
Each tracer enters the ocean through the two boundary boxes at the top of
the high- and mid-latitude columns. For point-source tracers the
mid-latitude boundary value is a fixed fraction of the high-latitude
value:

    f(t) = [ f_H(t),  r · f_H(t) ]

with r the tracer's boundary ratio. Per-box tracers (unit dye, C-14)
prescribe both boundary values directly.

Transient tracers (CFCs, SF6, iodine-129, dye) start from an empty ocean.
Steady tracers (argon-39) start from a uniform unit field with a unit
boundary value, so the radioactive decay spins the interior down toward
its equilibrium instead of having to fill it from zero.
"""

import numpy as np
import pandas as pd
from enum import Enum
from typing import Callable, Optional, Sequence, Union
from scipy.interpolate import interp1d

from .grid import DEFAULT_GRID, BoxGrid
from .propagator import FORCING_TOLERANCE, evolve_concentration
from ..exceptions import ConfigurationError, ShapeMismatchError, UnimplementedCaseError
from ..units import Q_, TIME_UNITS, as_quantity


# =============================================================================
# TRACER CASES
# =============================================================================

class Tracer(Enum):
    """
    Supported tracers.

    Each member carries (key, boundary ratio, half life [yr], steady, per box).
    """
    CFC11NH = ("CFC11NH", 0.75, None, False, False)
    CFC12NH = ("CFC12NH", 0.75, None, False, False)
    SF6NH = ("SF6NH", 0.75, None, False, False)
    IODINE129 = ("iodine129", 0.25, 15.7e6, False, False)
    ARGON39 = ("argon39", 1.0, 269.0, True, False)
    C14 = ("C14", 1.0, 5730.0, False, True)
    BOOL = ("Bool", 1.0, None, False, True)

    def __init__(self, key, boundary_ratio, halflife_years, steady, per_box):
        self.key = key
        self.boundary_ratio = boundary_ratio
        self.halflife_years = halflife_years
        self.steady = steady
        self.per_box = per_box

    @property
    def halflife(self):
        """Default radioactive half life (None for stable tracers)."""
        if self.halflife_years is None:
            return None
        return Q_(self.halflife_years, TIME_UNITS)

    @property
    def decays(self) -> bool:
        return self.halflife_years is not None

    @classmethod
    def from_name(cls, name: Union[str, "Tracer"]) -> "Tracer":
        """Resolve a tracer by key or member name (case-insensitive)."""
        if isinstance(name, cls):
            return name
        wanted = str(name).strip().lower()
        for tracer in cls:
            if wanted in (tracer.key.lower(), tracer.name.lower()):
                return tracer
        raise UnimplementedCaseError(
            f"Tracer {name!r} is not implemented; available: {[t.key for t in cls]}"
        )


# =============================================================================
# SOURCE HISTORIES
# =============================================================================

class ConstantHistory:
    """Boundary value that does not change in time."""

    def __init__(self, value=1.0, units="dimensionless"):
        self.value = as_quantity(value, units)

    def __call__(self, t):
        return self.value

    def __repr__(self) -> str:
        return f"ConstantHistory({self.value})"


class TabulatedHistory:
    """
    Linear interpolation of a tabulated boundary history.

    Values may be a single column (one point source) or one column per
    boundary box. Times outside the table raise ``ValueError``.

    Args:
        times: Table times (Quantity, or bare numbers in years)
        values: Array of shape (n_times,) or (n_times, n_columns)
        units: Units of the tabulated values
    """

    def __init__(self, times, values, units="dimensionless"):
        times = as_quantity(times, TIME_UNITS)
        t = np.asarray(times.m_as(TIME_UNITS), dtype=np.float64)
        v = np.asarray(getattr(values, "magnitude", values), dtype=np.float64)

        if t.ndim != 1 or t.size < 2:
            raise ConfigurationError("A tabulated history needs at least two times")
        if v.shape[0] != t.size or v.ndim > 2:
            raise ShapeMismatchError(
                f"Tabulated values of shape {v.shape} do not match {t.size} times"
            )
        if np.any(np.diff(t) <= 0):
            raise ConfigurationError("Tabulated history times must be strictly increasing")

        self.times = Q_(t, TIME_UNITS)
        self.values = v
        self.units = values.units if hasattr(values, "units") else Q_(1.0, units).units
        self._interpolant = interp1d(t, v, axis=0, kind="linear", bounds_error=True)

    @property
    def n_columns(self) -> int:
        return 1 if self.values.ndim == 1 else self.values.shape[1]

    @property
    def span(self):
        return self.times[0], self.times[-1]

    def __call__(self, t):
        t = as_quantity(t, TIME_UNITS).m_as(TIME_UNITS)
        return Q_(self._interpolant(t), self.units)

    def __repr__(self) -> str:
        start, end = self.span
        return f"TabulatedHistory({start.magnitude:g}-{end.magnitude:g} yr, {self.n_columns} column(s))"

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        column: Optional[str] = None,
        columns: Optional[Sequence[str]] = None,
        units="dimensionless",
    ) -> "TabulatedHistory":
        """
        Build from a year-indexed DataFrame.

        Args:
            frame: Table indexed by year
            column: Single point-source column
            columns: Per-box columns (in boundary order)
            units: Units of the tabulated values
        """
        if column is not None and columns is not None:
            raise ConfigurationError("Give either column or columns, not both")
        if column is not None:
            if column not in frame.columns:
                raise KeyError(f"Column {column!r} not in history table; available: {list(frame.columns)}")
            data = frame[column]
        else:
            data = frame[list(columns)] if columns is not None else frame

        data = data.dropna()
        times = np.asarray(data.index, dtype=np.float64)
        return cls(times, data.to_numpy(dtype=np.float64), units)


class BoundarySourceHistory:
    """Point-source history scaled onto the boundary boxes by fixed ratios."""

    def __init__(self, point_history: Callable, ratios):
        self.point_history = point_history
        self.ratios = as_quantity(ratios, "dimensionless")

    def __call__(self, t):
        value = as_quantity(self.point_history(t), "dimensionless")
        if np.ndim(value.magnitude) != 0:
            raise ShapeMismatchError(
                f"Point-source history must return a scalar, got shape {np.shape(value.magnitude)}"
            )
        return value * self.ratios

    def __repr__(self) -> str:
        return f"BoundarySourceHistory({self.point_history!r}, ratios={self.ratios.magnitude})"


def boundary_ratios(tracer: Tracer, grid: BoxGrid = DEFAULT_GRID):
    """
    Boundary values relative to the high-latitude box: ``[1, r]``.

    Raises:
        UnimplementedCaseError: If the grid does not have exactly two boundary boxes
    """
    tracer = Tracer.from_name(tracer)
    if grid.n_boundary != 2:
        raise UnimplementedCaseError(
            f"Boundary ratios are defined for two boundary boxes, grid has {grid.n_boundary}"
        )
    return Q_(np.array([1.0, tracer.boundary_ratio]), "dimensionless")


def tracer_source_history(
    tracer: Tracer,
    grid: BoxGrid = DEFAULT_GRID,
    history: Optional[Union[Callable, pd.DataFrame]] = None,
) -> Callable:
    """
    Boundary source history of ``tracer`` as a function of time.

    Args:
        tracer: Tracer case
        grid: Box grid defining the boundary boxes
        history: Tabulated history (DataFrame or callable); ignored for
            steady tracers

    Returns:
        Callable mapping a time Quantity to one value per boundary box
    """
    tracer = Tracer.from_name(tracer)

    if tracer.steady:
        return BoundarySourceHistory(ConstantHistory(1.0), boundary_ratios(tracer, grid))

    if tracer.per_box:
        if history is None:
            if tracer is Tracer.BOOL:
                return ConstantHistory(np.ones(grid.n_boundary))
            raise ConfigurationError(f"Tracer {tracer.key} needs a per-box source history")
        if isinstance(history, pd.DataFrame):
            history = TabulatedHistory.from_frame(history)
        if isinstance(history, TabulatedHistory) and history.n_columns != grid.n_boundary:
            raise ShapeMismatchError(
                f"History has {history.n_columns} columns, grid has {grid.n_boundary} boundary boxes"
            )
        return history

    ratios = boundary_ratios(tracer, grid)
    if history is None:
        raise ConfigurationError(f"Transient tracer {tracer.key} needs a source history")
    if isinstance(history, pd.DataFrame):
        history = TabulatedHistory.from_frame(history, column=tracer.key)
    return BoundarySourceHistory(history, ratios)


# =============================================================================
# DRIVERS
# =============================================================================

def _check_box(grid: BoxGrid, meridional: Optional[str], vertical: Optional[str]) -> None:
    if (meridional is None) != (vertical is None):
        raise ConfigurationError("Give both a meridional and a vertical label, or neither")
    if meridional is not None:
        grid.position(meridional, vertical)


def _check_matrices(A, B, grid: BoxGrid) -> None:
    if A.shape != (grid.size, grid.size):
        raise ShapeMismatchError(f"Transport matrix shape {A.shape} does not match {grid.size} boxes")
    if B.shape != (grid.size, grid.n_boundary):
        raise ShapeMismatchError(
            f"Boundary matrix shape {B.shape} does not match {grid.size}×{grid.n_boundary}"
        )


def _select(trajectory, meridional, vertical):
    if meridional is None:
        return trajectory
    return trajectory.timeseries(meridional, vertical)


def transient_tracer_timeseries(
    tracer: Tracer,
    A,
    B,
    tlist,
    history=None,
    meridional: Optional[str] = None,
    vertical: Optional[str] = None,
    halflife=None,
    grid: BoxGrid = DEFAULT_GRID,
    tolerance: float = FORCING_TOLERANCE,
    limit: int = 10000,
    verbose: bool = False,
):
    """
    Transient tracer evolving from an empty ocean.

    Args:
        tracer: Transient tracer case
        A: Transport matrix
        B: Boundary matrix
        tlist: Output times
        history: Tabulated source history
        meridional: Meridional label of the box to return (optional)
        vertical: Vertical label of the box to return (optional)
        halflife: Half life override (default: the tracer's own)
        grid: Box grid
        tolerance: Quadrature error tolerance per interval
        limit: Maximum number of quadrature subintervals
        verbose: Show a progress bar

    Returns:
        Trajectory, or the single-box timeseries when a box is named
    """
    tracer = Tracer.from_name(tracer)
    if tracer.steady:
        raise UnimplementedCaseError(f"{tracer.key} is a steady tracer")
    _check_box(grid, meridional, vertical)
    _check_matrices(A, B, grid)
    source = tracer_source_history(tracer, grid, history)

    trajectory = evolve_concentration(
        grid.zeros(),
        A,
        B,
        tlist,
        source,
        halflife=tracer.halflife if halflife is None else halflife,
        grid=grid,
        tolerance=tolerance,
        limit=limit,
        verbose=verbose,
    )
    return _select(trajectory, meridional, vertical)


def steady_tracer_timeseries(
    tracer: Tracer,
    A,
    B,
    tlist,
    meridional: Optional[str] = None,
    vertical: Optional[str] = None,
    halflife=None,
    grid: BoxGrid = DEFAULT_GRID,
    tolerance: float = FORCING_TOLERANCE,
    limit: int = 10000,
    verbose: bool = False,
):
    """
    Steady tracer spun down from a uniform unit field.

    Only argon-39 is a steady tracer. Arguments as in
    ``transient_tracer_timeseries``.
    """
    tracer = Tracer.from_name(tracer)
    if not tracer.steady:
        raise UnimplementedCaseError(f"Steady spin-up is only implemented for argon-39, not {tracer.key}")
    _check_box(grid, meridional, vertical)
    _check_matrices(A, B, grid)
    source = tracer_source_history(tracer, grid)

    trajectory = evolve_concentration(
        grid.ones(),
        A,
        B,
        tlist,
        source,
        halflife=tracer.halflife if halflife is None else halflife,
        grid=grid,
        tolerance=tolerance,
        limit=limit,
        verbose=verbose,
    )
    return _select(trajectory, meridional, vertical)


def tracer_timeseries(
    tracer: Union[str, Tracer],
    A,
    B,
    tlist,
    meridional: Optional[str] = None,
    vertical: Optional[str] = None,
    history=None,
    halflife=None,
    grid: BoxGrid = DEFAULT_GRID,
    tolerance: float = FORCING_TOLERANCE,
    limit: int = 10000,
    verbose: bool = False,
):
    """
    Simulate a named tracer and return its trajectory or one box's timeseries.

    Steady tracers start from ones, transient tracers from zeros. Every
    case error (unknown tracer, missing history, bad box label, grid
    without two boundary boxes) is raised before any integration.

    Example:
        >>> series = tracer_timeseries("argon39", A, B, tlist, "Low latitudes", "Abyssal")
    """
    tracer = Tracer.from_name(tracer)
    if tracer.steady:
        return steady_tracer_timeseries(
            tracer, A, B, tlist, meridional, vertical,
            halflife=halflife, grid=grid, tolerance=tolerance, limit=limit, verbose=verbose,
        )
    return transient_tracer_timeseries(
        tracer, A, B, tlist, history, meridional, vertical,
        halflife=halflife, grid=grid, tolerance=tolerance, limit=limit, verbose=verbose,
    )
