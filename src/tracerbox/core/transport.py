"""
Tracer Fluxes, Convergence and Tendencies.

Builds the tracer tendency ∂C/∂t of the box model from three pieces:

    ∂C/∂t = [ ∇·J(C, Fv) + Jb(f, C, Fb) ] / (ρ V)  -  (ln 2 / T½) C

    J  = ρ Fv C            upwind advective-diffusive tracer flux
    ∇·J                    net accumulation per box (outflow + neighbour inflow)
    Jb = ρ Fb (f - C)      Dirichlet exchange at the boundary boxes

and linearizes any such tendency into matrix form with ``linear_probe``:

    A = linear_probe(tracer_tendency, C, f, Fv, Fb, V, grid)
    B = linear_probe(boundary_tendency, f, C, Fb, V, grid)

Units are carried by pint; every tendency is returned in yr⁻¹ and an
incompatible input raises ``DimensionalityError`` at the operation.
"""

import numpy as np
from numba import njit
from contextlib import contextmanager
from typing import Callable

from .fluxes import Fluxes
from .grid import BoxGrid
from ..units import (
    Q_,
    DEFAULT_DENSITY,
    MASS_UNITS,
    TENDENCY_UNITS,
    TRACER_FLUX_UNITS,
    as_quantity,
)


# =============================================================================
# FLUXES AND CONVERGENCE
# =============================================================================

def advective_diffusive_flux(C, Fv, density=DEFAULT_DENSITY):
    """
    Advective-diffusive flux of tracer ``C`` carried by volume fluxes ``Fv``.

    Each directional volume flux is multiplied by the tracer value of its
    source box (upwind) and by the uniform density.

    Args:
        C: Tracer field (grid Quantity)
        Fv: Volume fluxes, either a ``Fluxes`` or a single array
        density: Uniform seawater density

    Returns:
        Tracer flux in Tg/s, of the same type as ``Fv``
    """
    if isinstance(Fv, Fluxes):
        return Fv.map(lambda component: advective_diffusive_flux(C, component, density))
    return (density * (Fv * C)).to(TRACER_FLUX_UNITS)


@njit(cache=True)
def _convergence_kernel(north, south, up, down):
    """
    Net accumulation per box from four outgoing flux arrays.

    Rows run north → south, columns top → bottom.
    """
    nm, nv = north.shape
    out = -(north + south + up + down)

    # upward flux enters the box above, downward flux the box below
    out[:, : nv - 1] += up[:, 1:]
    out[:, 1:] += down[:, : nv - 1]

    # northward flux enters the box to the north, southward the box to the south
    out[: nm - 1, :] += north[1:, :]
    out[1:, :] += south[: nm - 1, :]

    return out


def convergence(J: Fluxes):
    """
    Convergence of tracer fluxes ``J``.

    Every box loses what it sends through its four faces and gains what
    its neighbours send through the shared face. Edge boxes get no credit
    on their missing side, so the sum over all boxes is zero whenever
    the fluxes conserve volume.

    Args:
        J: Tracer (or volume) fluxes

    Returns:
        Per-box net accumulation, in the units of ``J``
    """
    units = J.units
    north, south, up, down = (
        np.ascontiguousarray(c.m_as(units), dtype=np.float64) for c in J.components()
    )
    return Q_(_convergence_kernel(north, south, up, down), units)


def mass(V, density=DEFAULT_DENSITY):
    """Seawater mass of box volumes ``V`` at uniform ``density`` (Zg)."""
    return (density * V).to(MASS_UNITS)


def mass_convergence(Fv: Fluxes, grid: BoxGrid, density=DEFAULT_DENSITY):
    """
    Mass convergence of a volume-flux field.

    Convergence of the flux of a uniform unit tracer. Zero in every box
    for a volume-conserving circulation.
    """
    return convergence(advective_diffusive_flux(grid.ones(), Fv, density))


# =============================================================================
# BOUNDARY EXCHANGE
# =============================================================================

def local_boundary_flux(f, C, Fb, grid: BoxGrid, density=DEFAULT_DENSITY):
    """
    Tracer flux into the boundary boxes from their Dirichlet values.

    Args:
        f: Boundary values, one per boundary box
        C: Interior tracer field
        Fb: Boundary exchange volume flux, one per boundary box
        grid: Box grid defining the boundary boxes
        density: Uniform seawater density

    Returns:
        Tracer flux at the boundary boxes (boundary-shaped, Tg/s)
    """
    grid.check_boundary(f, "boundary condition f")
    grid.check_boundary(Fb, "boundary exchange Fb")
    grid.check_field(C, "tracer field C")

    delta = f - grid.boundary_values(C)
    return advective_diffusive_flux(delta, Fb, density)


def boundary_flux(f, C, Fb, grid: BoxGrid, density=DEFAULT_DENSITY):
    """
    Convergence contribution of boundary exchange.

    Computes ρ Fb (f - C) at the boundary boxes and scatters it onto a
    full grid field that is zero everywhere else.

    Args:
        f: Dirichlet boundary values, one per boundary box
        C: Interior tracer field
        Fb: Boundary exchange volume flux, one per boundary box
        grid: Box grid defining the boundary boxes
        density: Uniform seawater density

    Returns:
        Full-grid tracer flux convergence (Tg/s)

    Raises:
        ShapeMismatchError: If f, Fb or C do not match the grid layout
    """
    return grid.scatter_boundary(local_boundary_flux(f, C, Fb, grid, density))


def radioactive_decay(C, halflife):
    """Radioactive decay rate -(ln 2 / T½) C of tracer ``C``."""
    halflife = as_quantity(halflife, "yr")
    return -(np.log(2.0) / halflife) * C


# =============================================================================
# TENDENCIES
# =============================================================================

def tracer_tendency(C, f, Fv: Fluxes, Fb, V, grid: BoxGrid, density=DEFAULT_DENSITY):
    """
    Tracer tendency ∂C/∂t from circulation and boundary exchange.

    Probe with respect to ``C`` to obtain the transport matrix A.

    Args:
        C: Tracer field
        f: Dirichlet boundary values
        Fv: Volume fluxes
        Fb: Boundary exchange volume flux
        V: Box volumes
        grid: Box grid
        density: Uniform seawater density

    Returns:
        Tendency field in yr⁻¹
    """
    J = advective_diffusive_flux(C, Fv, density)
    total = convergence(J) + boundary_flux(f, C, Fb, grid, density)
    return (total / mass(V, density)).to(TENDENCY_UNITS)


def boundary_tendency(f, C, Fb, V, grid: BoxGrid, density=DEFAULT_DENSITY):
    """
    Tracer tendency due to boundary exchange alone.

    Probe with respect to ``f`` to obtain the boundary matrix B.
    """
    return (boundary_flux(f, C, Fb, grid, density) / mass(V, density)).to(TENDENCY_UNITS)


def decay_tendency(C, halflife):
    """
    Tracer tendency due to radioactive decay alone.

    Probe with respect to ``C`` to obtain the decay correction to A.
    """
    return radioactive_decay(C, halflife).to(TENDENCY_UNITS)


# =============================================================================
# LINEARIZATION
# =============================================================================

@contextmanager
def _perturbed(x, index):
    """
    Add one unit to component ``index`` of ``x`` in place.

    The original value is written back on exit, also when the body
    raises, so the state is restored bit for bit.
    """
    values = x.magnitude
    original = values[index]
    values[index] = original + 1.0
    try:
        yield x
    finally:
        values[index] = original


def linear_probe(func: Callable, x, *args, **kwargs):
    """
    Probe a function to determine its linear response in matrix form.

    ``func(x, *args, **kwargs)`` is evaluated once at ``x`` as a baseline
    and once more for every component of ``x`` raised by one unit of its
    physical quantity. The baseline-subtracted responses, flattened in
    row-major order, become the columns of the returned matrix.

    Only exact for linear (or affine) functions; no higher-order terms
    are estimated.

    Args:
        func: Function to probe; ``x`` must be its first argument
        x: Independent variable (Quantity array, float dtype)
        *args: Remaining positional arguments of ``func``
        **kwargs: Keyword arguments of ``func``

    Returns:
        Quantity of shape (response size, x size) in response/x units

    Example:
        >>> A = linear_probe(tracer_tendency, C, f, Fv, Fb, V, grid)
        >>> B = linear_probe(boundary_tendency, f, C, Fb, V, grid)
    """
    # func may return x itself or a view of it, so the baseline is copied
    baseline = func(x, *args, **kwargs)
    units = baseline.units
    base = np.array(baseline.m_as(units), dtype=np.float64, copy=True).ravel()
    n_out = base.size
    n_in = np.size(x.magnitude)
    shape = np.shape(x.magnitude)

    columns = np.empty((n_out, n_in), dtype=np.float64)
    for i in range(n_in):
        index = np.unravel_index(i, shape)
        with _perturbed(x, index):
            response = func(x, *args, **kwargs).m_as(units)
            columns[:, i] = np.ravel(response) - base

    return Q_(columns, units / x.units)
