"""
Exact Propagation of the Linear Box Model.

Integrates dC/dt = A C + B f(t) between successive output times with

    C(tf) = exp(A (tf - ti)) C(ti)  +  ∫_ti^tf exp(A (tf - t)) B f(t) dt

The matrix exponential is evaluated through the eigendecomposition
A = V diag(μ) V⁻¹, computed once per configuration. The forced part is a
vector-valued adaptive quadrature (Duhamel integral) whose error estimate
must stay below an absolute tolerance; otherwise the whole trajectory is
abandoned with an IntegrationError.

Transport matrices whose eigenvectors are numerically dependent fall back
to scipy's Padé matrix exponential with a RuntimeWarning.
"""

import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Any, Callable, Optional
from scipy.integrate import quad_vec
from scipy.linalg import expm
from tqdm import tqdm

from .grid import BoxGrid
from .transport import decay_tendency, linear_probe
from ..exceptions import (
    ConfigurationError,
    IntegrationError,
    NumericalConsistencyError,
    ShapeMismatchError,
)
from ..units import Q_, TIME_UNITS, as_quantity


FORCING_TOLERANCE = 1.0e-5
IMAGINARY_TOLERANCE = 1.0e-8
CONDITION_LIMIT = 1.0e10


def _real_part(values: np.ndarray, tolerance: float = IMAGINARY_TOLERANCE) -> np.ndarray:
    """Real part of ``values``; raises if the imaginary residue is not negligible."""
    if not np.iscomplexobj(values):
        return values
    residue = np.max(np.abs(values.imag), initial=0.0)
    scale = max(1.0, np.max(np.abs(values.real), initial=0.0))
    if residue > tolerance * scale:
        raise NumericalConsistencyError(
            f"Imaginary residue {residue:.3e} exceeds {tolerance:.1e} × {scale:.3e}"
        )
    return values.real


@dataclass
class Propagator:
    """
    Solution operator exp(A Δt) of the homogeneous system.

    Attributes:
        matrix: Magnitude of the transport matrix A
        rate_units: Units of A (inverse time)
        eigenvalues: Eigenvalues μ of A
        eigenvectors: Eigenvector matrix V (None when falling back to expm)
        inverse: V⁻¹ (None when falling back to expm)
    """
    matrix: np.ndarray
    rate_units: Any
    eigenvalues: np.ndarray
    eigenvectors: Optional[np.ndarray] = None
    inverse: Optional[np.ndarray] = None

    @classmethod
    def from_matrix(cls, A, cond_limit: float = CONDITION_LIMIT) -> "Propagator":
        """
        Eigendecompose transport matrix ``A``.

        Args:
            A: Square Quantity matrix in inverse-time units
            cond_limit: Largest acceptable condition number of V

        Returns:
            Propagator
        """
        rate_units = A.units
        (1.0 / Q_(1.0, rate_units)).to(TIME_UNITS)

        matrix = np.array(A.magnitude, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ShapeMismatchError(f"Transport matrix must be square, got {matrix.shape}")

        mu, V = np.linalg.eig(matrix)
        condition = np.linalg.cond(V)

        if not np.isfinite(condition) or condition > cond_limit:
            warnings.warn(
                f"Transport matrix is close to defective (cond(V) = {condition:.2e}); "
                "using the Padé matrix exponential instead of eigenvectors",
                RuntimeWarning,
                stacklevel=2,
            )
            return cls(matrix=matrix, rate_units=rate_units, eigenvalues=mu)

        return cls(
            matrix=matrix,
            rate_units=rate_units,
            eigenvalues=mu,
            eigenvectors=V,
            inverse=np.linalg.inv(V),
        )

    @property
    def time_units(self):
        return self.rate_units ** -1

    @property
    def diagonalizable(self) -> bool:
        return self.eigenvectors is not None

    @property
    def size(self) -> int:
        return self.matrix.shape[0]

    def to_time(self, t) -> float:
        """Magnitude of time ``t`` in the propagator's time units (bare numbers pass through)."""
        if isinstance(t, Q_):
            return float(t.m_as(self.time_units))
        return float(t)

    def operator(self, dt: float) -> np.ndarray:
        """Real matrix exp(A dt) for a time step ``dt`` in ``time_units``."""
        if self.eigenvectors is None:
            return expm(self.matrix * dt)
        scaled = self.eigenvectors * np.exp(self.eigenvalues * dt)
        return _real_part(scaled @ self.inverse)


# =============================================================================
# SINGLE INTERVAL
# =============================================================================

def timestep_initial_condition(C, propagator: Propagator, ti, tf):
    """
    Advance state ``C`` from ``ti`` to ``tf`` without forcing.

    Args:
        C: Tracer field or vector at ``ti``
        propagator: Eigendecomposition of the transport matrix
        ti: Initial time
        tf: Final time

    Returns:
        Tracer state at ``tf`` (same shape and units as ``C``)
    """
    dt = propagator.to_time(tf) - propagator.to_time(ti)
    values = np.ravel(C.magnitude)
    if values.size != propagator.size:
        raise ShapeMismatchError(
            f"State has {values.size} entries, transport matrix is {propagator.size}×{propagator.size}"
        )
    advanced = propagator.operator(dt) @ values
    return Q_(advanced.reshape(np.shape(C.magnitude)), C.units)


def _boundary_values(source_history: Callable, t: float, propagator: Propagator, units, n_boundary: int):
    values = as_quantity(source_history(Q_(t, propagator.time_units)), "dimensionless")
    values = np.atleast_1d(np.asarray(values.m_as(units), dtype=np.float64))
    if values.shape != (n_boundary,):
        raise ShapeMismatchError(
            f"Source history returned {values.shape[0]} values, boundary matrix expects {n_boundary}"
        )
    return values


def forcing_integrand(t: float, tf: float, propagator: Propagator, B, source_history: Callable) -> np.ndarray:
    """
    Integrand exp(A (tf - t)) B f(t) of the forced contribution.

    ``t`` and ``tf`` are magnitudes in the propagator's time units.
    """
    source_units = propagator.rate_units / B.units
    f = _boundary_values(source_history, t, propagator, source_units, B.shape[1])
    return propagator.operator(tf - t) @ (B.magnitude @ f)


def integrate_forcing(
    ti,
    tf,
    propagator: Propagator,
    B,
    source_history: Callable,
    tolerance: float = FORCING_TOLERANCE,
    limit: int = 10000,
):
    """
    Forced contribution ∫_ti^tf exp(A (tf - t)) B f(t) dt.

    Args:
        ti: Start of the interval
        tf: End of the interval
        propagator: Eigendecomposition of the transport matrix
        B: Boundary matrix (boxes × boundary boxes)
        source_history: Boundary values as a function of time
        tolerance: Largest acceptable quadrature error estimate
        limit: Maximum number of quadrature subintervals

    Returns:
        Flat tracer vector (dimensionless for dimensionless boundary values)

    Raises:
        IntegrationError: If the error estimate reaches ``tolerance``
    """
    if B.shape[0] != propagator.size:
        raise ShapeMismatchError(
            f"Boundary matrix has {B.shape[0]} rows, transport matrix is {propagator.size}×{propagator.size}"
        )

    t0 = propagator.to_time(ti)
    t1 = propagator.to_time(tf)

    integral, error = quad_vec(
        lambda t: forcing_integrand(t, t1, propagator, B, source_history),
        t0,
        t1,
        epsabs=tolerance * 1.0e-3,
        limit=limit,
    )
    if not error < tolerance:
        raise IntegrationError(
            f"Integration error too large on [{t0}, {t1}]: estimate {error:.3e} ≥ {tolerance:.1e}"
        )

    # (rate / source) × source × time → dimensionless
    return Q_(np.asarray(integral, dtype=np.float64), "dimensionless")


# =============================================================================
# TRAJECTORY
# =============================================================================

@dataclass
class Trajectory:
    """
    Tracer concentrations at a sequence of output times.

    Attributes:
        times: Output times (Quantity, increasing)
        concentrations: Quantity of shape (n_times,) + state shape
        grid: Box grid for label lookups (optional)
    """
    times: Any
    concentrations: Any
    grid: Optional[BoxGrid] = None

    def __len__(self) -> int:
        return np.shape(self.concentrations.magnitude)[0]

    def __getitem__(self, index):
        return self.concentrations[index]

    def __iter__(self):
        for k in range(len(self)):
            yield self.concentrations[k]

    @property
    def final(self):
        return self.concentrations[-1]

    def _require_grid(self) -> BoxGrid:
        if self.grid is None:
            raise ConfigurationError("Trajectory has no grid; label lookups are unavailable")
        return self.grid

    def timeseries(self, meridional: str, vertical: str):
        """Concentration history of one box, looked up by its labels."""
        grid = self._require_grid()
        i, j = grid.position(meridional, vertical)
        return self.concentrations[:, i, j]

    def to_dataframe(self) -> pd.DataFrame:
        """One column per box ("meridional | vertical"), indexed by time."""
        grid = self._require_grid()
        values = np.asarray(self.concentrations.magnitude).reshape(len(self), grid.size)
        columns = [f"{m} | {v}" for m, v in grid.labels()]
        index = pd.Index(np.asarray(self.times.magnitude), name=f"time [{self.times.units}]")
        return pd.DataFrame(values, index=index, columns=columns)


def evolve_concentration(
    C0,
    A,
    B,
    tlist,
    source_history: Callable,
    halflife=None,
    grid: Optional[BoxGrid] = None,
    tolerance: float = FORCING_TOLERANCE,
    limit: int = 10000,
    verbose: bool = False,
) -> Trajectory:
    """
    Concentration history from the eigendecomposition of the transport matrix.

    Args:
        C0: Initial tracer field
        A: Transport matrix (yr⁻¹)
        B: Boundary matrix (yr⁻¹ per unit boundary value)
        tlist: Output times (Quantity, or bare numbers in years)
        source_history: Boundary values as a function of time
        halflife: Radioactive half life; adds the decay correction to A
        grid: Box grid attached to the returned trajectory
        tolerance: Largest acceptable quadrature error per interval
        limit: Maximum number of quadrature subintervals per interval
        verbose: Show a progress bar

    Returns:
        Trajectory whose first entry is ``C0``

    Raises:
        IntegrationError: If any interval's quadrature is not accurate enough
    """
    times = as_quantity(tlist, TIME_UNITS)
    t = np.atleast_1d(np.asarray(times.magnitude, dtype=np.float64))
    if t.ndim != 1 or t.size == 0:
        raise ConfigurationError("Output times must be a non-empty 1-D sequence")
    if np.any(np.diff(t) <= 0):
        raise ConfigurationError("Output times must be strictly increasing")
    times = Q_(t, times.units)

    if grid is not None:
        grid.check_field(C0, "initial condition")

    if halflife is not None:
        state = Q_(np.array(C0.magnitude, dtype=np.float64), C0.units)
        A = A + linear_probe(decay_tendency, state, halflife)

    propagator = Propagator.from_matrix(A)

    shape = np.shape(C0.magnitude)
    history = np.empty((t.size,) + shape, dtype=np.float64)
    history[0] = C0.magnitude

    current = Q_(history[0].copy(), C0.units)

    iterator = tqdm(
        range(1, t.size),
        desc="      Propagating",
        disable=not verbose,
        ncols=70,
        unit="interval",
    )
    for k in iterator:
        ti, tf = times[k - 1], times[k]
        homogeneous = timestep_initial_condition(current, propagator, ti, tf)
        forced = integrate_forcing(ti, tf, propagator, B, source_history, tolerance, limit)
        current = homogeneous + Q_(forced.magnitude.reshape(shape), forced.units)
        history[k] = current.m_as(C0.units)

    return Trajectory(times=times, concentrations=Q_(history, C0.units), grid=grid)
