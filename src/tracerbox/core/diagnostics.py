"""
Box Model Diagnostics.
======================

Physics Background:
------------------
A well-posed box model satisfies a few checkable properties:

1. VOLUME is conserved: the circulation's mass convergence vanishes in
   every box. Equivalently a uniform field with matching boundary values
   has zero tendency, A·1 + B·1 = 0.
2. The transport matrix is STABLE: every eigenvalue has a negative real
   part once boundary exchange is included. The slowest eigenvalue sets
   the ventilation timescale, the fastest the shortest mixing timescale.
3. The tracer INVENTORY ρ Σ V C grows only through boundary exchange.

All functions return flat dictionaries of floats, ready for logging and
CSV output.
"""

import numpy as np
from typing import Any, Dict, Optional

from .fluxes import Fluxes
from .grid import BoxGrid
from .transport import mass, mass_convergence
from ..units import DEFAULT_DENSITY, TIME_UNITS


# =============================================================================
# CONSERVATION
# =============================================================================

def compute_volume_conservation(
    fluxes: Fluxes,
    grid: BoxGrid,
    density=DEFAULT_DENSITY,
) -> Dict[str, float]:
    """
    Compute mass convergence of a circulation.

    Args:
        fluxes: Volume fluxes
        grid: Box grid
        density: Uniform seawater density

    Returns:
        Dictionary with the largest and net mass convergence [Tg/s]
    """
    divergence = mass_convergence(fluxes, grid, density).m_as("Tg/s")
    gross = sum(float(np.sum((density * c).m_as("Tg/s"))) for c in fluxes.components())

    max_abs = float(np.max(np.abs(divergence)))
    return {
        'volume_convergence_max': max_abs,
        'volume_convergence_net': float(np.sum(divergence)),
        'volume_convergence_relative': max_abs / gross if gross > 0 else 0.0,
    }


# =============================================================================
# MATRIX PROPERTIES
# =============================================================================

def compute_matrix_diagnostics(A, B=None) -> Dict[str, float]:
    """
    Compute spectral properties of the transport matrix.

    Args:
        A: Transport matrix (inverse time)
        B: Boundary matrix (optional)

    Returns:
        Dictionary with eigenvalue range, timescales and row sums
    """
    rates = np.asarray(A.m_as(f"1/{TIME_UNITS}"), dtype=np.float64)
    eigenvalues = np.linalg.eigvals(rates)
    decay_rates = -eigenvalues.real

    diagnostics = {
        'n_boxes': int(rates.shape[0]),
        'eigenvalue_real_max': float(np.max(eigenvalues.real)),
        'eigenvalue_real_min': float(np.min(eigenvalues.real)),
        'eigenvalue_imag_max': float(np.max(np.abs(eigenvalues.imag))),
        'stable': bool(np.all(eigenvalues.real < 0)),
        'trace': float(np.trace(rates)),
        'row_sum_max': float(np.max(np.abs(rates.sum(axis=1)))),
    }

    positive = decay_rates[decay_rates > 0]
    if positive.size > 0:
        diagnostics['timescale_slowest'] = float(1.0 / np.min(positive))
        diagnostics['timescale_fastest'] = float(1.0 / np.max(positive))
    else:
        diagnostics['timescale_slowest'] = np.inf
        diagnostics['timescale_fastest'] = np.inf

    if B is not None:
        forcing = np.asarray(B.m_as(f"1/{TIME_UNITS}"), dtype=np.float64)
        diagnostics['n_boundary'] = int(forcing.shape[1])
        diagnostics['boundary_rate_total'] = float(np.sum(forcing))
        diagnostics['row_sum_residual_max'] = float(
            np.max(np.abs(rates.sum(axis=1) + forcing.sum(axis=1)))
        )

        # steady response to unit boundary values: C = -A⁻¹ B 1
        if diagnostics['stable']:
            steady = -np.linalg.solve(rates, forcing @ np.ones(forcing.shape[1]))
            diagnostics['steady_unit_response_min'] = float(np.min(steady))
            diagnostics['steady_unit_response_max'] = float(np.max(steady))

    return diagnostics


# =============================================================================
# TRACER INVENTORY
# =============================================================================

def compute_tracer_inventory(
    trajectory: 'Trajectory',
    volumes,
    density=DEFAULT_DENSITY,
) -> Dict[str, float]:
    """
    Compute tracer inventory ρ Σ V C at the start and end of a run.

    Args:
        trajectory: Trajectory from evolve_concentration
        volumes: Box volumes
        density: Uniform seawater density

    Returns:
        Dictionary with initial/final inventory [Zg × tracer] and
        volume-weighted mean concentrations
    """
    box_mass = mass(volumes, density).m_as("Zg")
    total_mass = float(np.sum(box_mass))

    initial = np.asarray(trajectory[0].magnitude, dtype=np.float64)
    final = np.asarray(trajectory.final.magnitude, dtype=np.float64)

    inventory_initial = float(np.sum(box_mass * initial))
    inventory_final = float(np.sum(box_mass * final))

    return {
        'inventory_initial': inventory_initial,
        'inventory_final': inventory_final,
        'inventory_change': inventory_final - inventory_initial,
        'mean_concentration_initial': inventory_initial / total_mass,
        'mean_concentration_final': inventory_final / total_mass,
        'concentration_min_final': float(np.min(final)),
        'concentration_max_final': float(np.max(final)),
    }


def compute_all_diagnostics(
    model: 'BoxModel',
    A,
    B=None,
    trajectory: Optional['Trajectory'] = None,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    Compute all diagnostics for a model run.

    Args:
        model: BoxModel configuration
        A: Transport matrix used for the run
        B: Boundary matrix used for the run
        trajectory: Trajectory from the run (optional)
        verbose: Print diagnostic summary

    Returns:
        Dictionary with all computed metrics
    """
    diagnostics = {}

    # =========================================================================
    # 1. VOLUME CONSERVATION
    # =========================================================================
    diagnostics.update(compute_volume_conservation(model.circulation, model.grid, model.density))

    # =========================================================================
    # 2. MATRIX SPECTRUM
    # =========================================================================
    diagnostics.update(compute_matrix_diagnostics(A, B))
    diagnostics['flushing_time'] = float(model.flushing_time().m_as(TIME_UNITS))
    diagnostics['total_volume'] = float(model.total_volume.m_as("m**3"))

    # =========================================================================
    # 3. TRACER INVENTORY
    # =========================================================================
    if trajectory is not None:
        diagnostics.update(compute_tracer_inventory(trajectory, model.volumes, model.density))
        diagnostics['n_times'] = len(trajectory)
        diagnostics['time_final'] = float(trajectory.times[-1].m_as(TIME_UNITS))

    if verbose:
        print(f"      Max volume convergence: {diagnostics['volume_convergence_max']:.2e} Tg/s")
        print(f"      Slowest timescale: {diagnostics['timescale_slowest']:.1f} yr")
        print(f"      Fastest timescale: {diagnostics['timescale_fastest']:.2f} yr")
        if trajectory is not None:
            print(f"      Final mean concentration: {diagnostics['mean_concentration_final']:.4f}")

    return diagnostics
