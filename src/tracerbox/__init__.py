"""
tracerbox: Linear Box Models of Ocean Tracer Transport

A small Python library for simulating tracer transport through a handful
of well-mixed ocean boxes ventilated at the surface.

The tracer tendency of every box is linear in the box concentrations C
and in the surface boundary values f:

    dC/dt = A C + B f(t)

A and B are obtained by probing the tendency function one component at a
time, and the system is integrated exactly between output times through
the eigendecomposition of A plus adaptive quadrature of the boundary
forcing.

Features:
    - Labeled meridional × vertical box grid with flattened state vectors
    - Superposable, volume-conserving circulation builders
    - Upwind flux convergence kernel compiled with Numba
    - Unit-checked quantities throughout (pint)
    - Exact eigenvector propagator with Padé fallback
    - Transient (CFC, SF6, iodine-129, dye, C-14) and steady (argon-39) tracers
    - CSV and NetCDF output, per-scenario logs

Example:
    >>> from tracerbox import BoxModel, tracer_timeseries
    >>> model = BoxModel.standard(psi_abyssal=20.0, psi_intermediate=10.0)
    >>> A, B = model.transport_matrix(), model.boundary_matrix()
    >>> tlist = np.linspace(0.0, 2000.0, 101)
    >>> series = tracer_timeseries("argon39", A, B, tlist, "Low latitudes", "Abyssal")

License: MIT
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .units import ureg, Q_, sverdrups
from .exceptions import (
    TracerBoxError,
    ConfigurationError,
    ShapeMismatchError,
    NumericalError,
    IntegrationError,
    NumericalConsistencyError,
    UnimplementedCaseError,
    UnitMismatchError,
)
from .core.grid import BoxGrid, DEFAULT_GRID
from .core.fluxes import (
    Fluxes,
    abyssal_overturning,
    intermediate_overturning,
    vertical_diffusion,
)
from .core.transport import (
    advective_diffusive_flux,
    convergence,
    boundary_flux,
    tracer_tendency,
    boundary_tendency,
    decay_tendency,
    linear_probe,
)
from .core.model import BoxModel
from .core.propagator import Propagator, Trajectory, evolve_concentration
from .core.tracers import (
    Tracer,
    ConstantHistory,
    TabulatedHistory,
    tracer_timeseries,
)
from .core.diagnostics import compute_all_diagnostics
from .io.config_manager import ConfigManager
from .io.data_handler import DataHandler

__all__ = [
    # Units
    "ureg",
    "Q_",
    "sverdrups",
    # Errors
    "TracerBoxError",
    "ConfigurationError",
    "ShapeMismatchError",
    "NumericalError",
    "IntegrationError",
    "NumericalConsistencyError",
    "UnimplementedCaseError",
    "UnitMismatchError",
    # Grid and fluxes
    "BoxGrid",
    "DEFAULT_GRID",
    "Fluxes",
    "abyssal_overturning",
    "intermediate_overturning",
    "vertical_diffusion",
    # Tendencies
    "advective_diffusive_flux",
    "convergence",
    "boundary_flux",
    "tracer_tendency",
    "boundary_tendency",
    "decay_tendency",
    "linear_probe",
    # Model and integration
    "BoxModel",
    "Propagator",
    "Trajectory",
    "evolve_concentration",
    # Tracers
    "Tracer",
    "ConstantHistory",
    "TabulatedHistory",
    "tracer_timeseries",
    # Diagnostics
    "compute_all_diagnostics",
    # IO
    "ConfigManager",
    "DataHandler",
]
