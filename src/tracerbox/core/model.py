"""
Box Model Configuration.

Bundles the grid, box volumes, circulation and boundary exchange of one
model configuration and derives its transport matrix A and boundary
matrix B:

    dC/dt = A C + B f(t)

The standard configuration superposes an abyssal overturning loop, an
intermediate overturning loop and vertical diffusive exchange on the
default 3 × 3 grid.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from .fluxes import (
    Fluxes,
    abyssal_overturning,
    intermediate_overturning,
    vertical_diffusion,
)
from .grid import DEFAULT_GRID, BoxGrid
from .transport import (
    boundary_tendency,
    linear_probe,
    mass,
    mass_convergence,
    tracer_tendency,
)
from ..exceptions import ConfigurationError
from ..units import Q_, DEFAULT_DENSITY, VOLUME_UNITS, as_quantity, sverdrups


# Horizontal area of each meridional category [m²]
DEFAULT_AREAS = (2.0e13, 4.0e13, 4.0e13)

# Thickness of each vertical layer [m]
DEFAULT_THICKNESSES = (1000.0, 1500.0, 1500.0)


def box_volumes(grid: BoxGrid, areas: Sequence[float], thicknesses: Sequence[float]):
    """
    Box volumes from meridional areas [m²] and layer thicknesses [m].

    Returns:
        Grid Quantity in m³
    """
    areas = np.asarray(areas, dtype=np.float64)
    thicknesses = np.asarray(thicknesses, dtype=np.float64)
    if areas.shape != (grid.shape[0],) or thicknesses.shape != (grid.shape[1],):
        raise ConfigurationError(
            f"Need {grid.shape[0]} areas and {grid.shape[1]} thicknesses, "
            f"got {areas.size} and {thicknesses.size}"
        )
    if np.any(areas <= 0) or np.any(thicknesses <= 0):
        raise ConfigurationError("Box areas and thicknesses must be positive")
    return Q_(np.outer(areas, thicknesses), VOLUME_UNITS)


@dataclass
class BoxModel:
    """
    One box model configuration.

    Attributes:
        volumes: Box volumes (grid Quantity, volume units)
        circulation: Volume fluxes between boxes
        boundary_exchange: Exchange volume flux at each boundary box
        grid: Box grid and label tables
        density: Uniform seawater density

    Example:
        >>> model = BoxModel.standard(psi_abyssal=20.0, psi_intermediate=10.0)
        >>> A = model.transport_matrix()
        >>> B = model.boundary_matrix()
    """
    volumes: Any
    circulation: Fluxes
    boundary_exchange: Any
    grid: BoxGrid = DEFAULT_GRID
    density: Any = field(default_factory=lambda: DEFAULT_DENSITY)

    def __post_init__(self):
        self.grid.check_field(self.volumes, "box volumes")
        self.grid.check_boundary(self.boundary_exchange, "boundary exchange")
        if self.circulation.shape != self.grid.shape:
            raise ConfigurationError(
                f"Circulation shape {self.circulation.shape} does not match grid {self.grid.shape}"
            )
        self.volumes.to(VOLUME_UNITS)
        self.boundary_exchange.to("m**3/s")
        self.circulation.to("m**3/s")
        self.density.to("kg/m**3")
        if np.any(self.volumes.magnitude <= 0):
            raise ConfigurationError("Box volumes must be positive")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def standard(
        cls,
        psi_abyssal: float = 20.0,
        psi_intermediate: float = 10.0,
        vertical_exchange: float = 5.0,
        boundary_exchange: float = 20.0,
        areas: Sequence[float] = DEFAULT_AREAS,
        thicknesses: Sequence[float] = DEFAULT_THICKNESSES,
        grid: BoxGrid = DEFAULT_GRID,
        density=DEFAULT_DENSITY,
    ) -> "BoxModel":
        """
        Standard three-cell configuration.

        Args:
            psi_abyssal: Abyssal overturning [Sv]
            psi_intermediate: Intermediate overturning [Sv]
            vertical_exchange: Vertical diffusive exchange [Sv]
            boundary_exchange: Surface exchange at each boundary box [Sv]
            areas: Area of each meridional category [m²]
            thicknesses: Thickness of each layer [m]
            grid: Box grid
            density: Uniform seawater density
        """
        circulation = (
            abyssal_overturning(sverdrups(psi_abyssal), grid)
            + intermediate_overturning(sverdrups(psi_intermediate), grid)
            + vertical_diffusion(sverdrups(vertical_exchange), grid)
        )
        Fb = Q_(np.full(grid.n_boundary, sverdrups(boundary_exchange).magnitude), "m**3/s")
        return cls(
            volumes=box_volumes(grid, areas, thicknesses),
            circulation=circulation,
            boundary_exchange=Fb,
            grid=grid,
            density=as_quantity(density, "kg/m**3"),
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "BoxModel":
        """Build the standard configuration from a ConfigManager dictionary."""
        return cls.standard(
            psi_abyssal=config.get("psi_abyssal", 20.0),
            psi_intermediate=config.get("psi_intermediate", 10.0),
            vertical_exchange=config.get("vertical_exchange", 5.0),
            boundary_exchange=config.get("boundary_exchange", 20.0),
            areas=config.get("areas", DEFAULT_AREAS),
            thicknesses=config.get("thicknesses", DEFAULT_THICKNESSES),
            density=config.get("density", DEFAULT_DENSITY.magnitude),
        )

    # ------------------------------------------------------------------
    # Tendency and matrices
    # ------------------------------------------------------------------

    def tendency(self, C, f):
        """Tracer tendency ∂C/∂t (yr⁻¹) for field ``C`` and boundary values ``f``."""
        return tracer_tendency(
            C, f, self.circulation, self.boundary_exchange, self.volumes, self.grid, self.density
        )

    def transport_matrix(self, C: Optional[Any] = None, f: Optional[Any] = None):
        """
        Transport matrix A (yr⁻¹), probed about state ``C`` (default zero).

        Rows and columns follow the grid's flattened order.
        """
        C = self.grid.zeros() if C is None else Q_(np.array(C.magnitude, dtype=np.float64), C.units)
        f = self.grid.boundary_zeros() if f is None else f
        return linear_probe(
            tracer_tendency,
            C,
            f,
            self.circulation,
            self.boundary_exchange,
            self.volumes,
            self.grid,
            self.density,
        )

    def boundary_matrix(self, C: Optional[Any] = None, f: Optional[Any] = None):
        """
        Boundary matrix B (yr⁻¹ per unit boundary value).

        Shape (number of boxes, number of boundary boxes).
        """
        C = self.grid.zeros() if C is None else C
        f = self.grid.boundary_zeros() if f is None else Q_(np.array(f.magnitude, dtype=np.float64), f.units)
        return linear_probe(
            boundary_tendency,
            f,
            C,
            self.boundary_exchange,
            self.volumes,
            self.grid,
            self.density,
        )

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def masses(self):
        return mass(self.volumes, self.density)

    @property
    def total_volume(self):
        return Q_(self.volumes.magnitude.sum(), self.volumes.units)

    def volume_balance(self):
        """Mass convergence of the circulation (zero when volume is conserved)."""
        return mass_convergence(self.circulation, self.grid, self.density)

    def flushing_time(self):
        """Total volume divided by total boundary exchange."""
        exchange = Q_(self.boundary_exchange.magnitude.sum(), self.boundary_exchange.units)
        return (self.total_volume / exchange).to("yr")

    def __repr__(self) -> str:
        return (
            f"BoxModel({self.grid.shape[0]}×{self.grid.shape[1]} boxes, "
            f"V={self.total_volume.to('m**3').magnitude:.3e} m³, "
            f"flushing={self.flushing_time().magnitude:.1f} yr)"
        )

    def describe(self) -> str:
        """Return detailed description of the model."""
        lines = [
            "",
            "Tracer Box Model",
            "================",
            f"Meridional: {', '.join(self.grid.meridional)}",
            f"Vertical:   {', '.join(self.grid.vertical)}",
            f"Boundary:   {', '.join(f'{m}/{v}' for m, v in self.grid.boundary)}",
            "",
            "Volumes [m³]:",
        ]
        vol = self.volumes.m_as(VOLUME_UNITS)
        for i, m in enumerate(self.grid.meridional):
            row = "  ".join(f"{vol[i, j]:.2e}" for j in range(self.grid.shape[1]))
            lines.append(f"  {m:<16s} {row}")
        lines += [
            "",
            f"Boundary exchange: {self.boundary_exchange.to('m**3/s')}",
            f"Density: {self.density}",
            f"Flushing time: {self.flushing_time().magnitude:.1f} yr",
            "",
        ]
        return "\n".join(lines)
