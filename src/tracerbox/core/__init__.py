"""Core components of the tracer box model."""

from .grid import BoxGrid, DEFAULT_GRID
from .fluxes import (
    Fluxes,
    abyssal_overturning,
    intermediate_overturning,
    vertical_diffusion,
)
from .transport import (
    advective_diffusive_flux,
    convergence,
    mass,
    mass_convergence,
    local_boundary_flux,
    boundary_flux,
    radioactive_decay,
    tracer_tendency,
    boundary_tendency,
    decay_tendency,
    linear_probe,
)
from .model import BoxModel, box_volumes
from .propagator import (
    Propagator,
    Trajectory,
    timestep_initial_condition,
    forcing_integrand,
    integrate_forcing,
    evolve_concentration,
)
from .tracers import (
    Tracer,
    ConstantHistory,
    TabulatedHistory,
    BoundarySourceHistory,
    boundary_ratios,
    tracer_source_history,
    tracer_timeseries,
    transient_tracer_timeseries,
    steady_tracer_timeseries,
)
from .diagnostics import (
    compute_volume_conservation,
    compute_matrix_diagnostics,
    compute_tracer_inventory,
    compute_all_diagnostics,
)

__all__ = [
    "BoxGrid",
    "DEFAULT_GRID",
    "Fluxes",
    "abyssal_overturning",
    "intermediate_overturning",
    "vertical_diffusion",
    "advective_diffusive_flux",
    "convergence",
    "mass",
    "mass_convergence",
    "local_boundary_flux",
    "boundary_flux",
    "radioactive_decay",
    "tracer_tendency",
    "boundary_tendency",
    "decay_tendency",
    "linear_probe",
    "BoxModel",
    "box_volumes",
    "Propagator",
    "Trajectory",
    "timestep_initial_condition",
    "forcing_integrand",
    "integrate_forcing",
    "evolve_concentration",
    "Tracer",
    "ConstantHistory",
    "TabulatedHistory",
    "BoundarySourceHistory",
    "boundary_ratios",
    "tracer_source_history",
    "tracer_timeseries",
    "transient_tracer_timeseries",
    "steady_tracer_timeseries",
    "compute_volume_conservation",
    "compute_matrix_diagnostics",
    "compute_tracer_inventory",
    "compute_all_diagnostics",
]
