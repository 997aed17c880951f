"""
Directional Flux Fields and Circulation Builders.

A ``Fluxes`` object holds four grid-shaped arrays (north, south, up,
down). Each entry is the flux leaving a box through the named face and
is attributed to its source box (upwind convention): a box's ``north``
entry is what it hands to its northern neighbour, not what it receives.

Circulation builders return volume-conserving ``Fluxes`` for named
patterns. Superpose them with ``+`` to assemble multi-cell circulations:

    Fv = (abyssal_overturning(psi_a, grid)
          + intermediate_overturning(psi_i, grid)
          + vertical_diffusion(k_v, grid))

Grid orientation: row 0 is the northernmost box, column 0 the top layer.
"""

import numpy as np
from dataclasses import dataclass
from typing import Callable

from .grid import BoxGrid
from ..exceptions import ConfigurationError, ShapeMismatchError
from ..units import Q_, as_quantity


@dataclass
class Fluxes:
    """
    Four-directional flux field over a box grid.

    Attributes:
        north: Flux leaving each box northward
        south: Flux leaving each box southward
        up: Flux leaving each box upward
        down: Flux leaving each box downward
    """
    north: object
    south: object
    up: object
    down: object

    def __post_init__(self):
        shapes = {np.shape(c.magnitude) for c in self.components()}
        if len(shapes) != 1:
            raise ShapeMismatchError(f"Flux components have different shapes: {shapes}")

    def components(self):
        return (self.north, self.south, self.up, self.down)

    @property
    def shape(self):
        return np.shape(self.north.magnitude)

    @property
    def units(self):
        return self.north.units

    def __add__(self, other: "Fluxes") -> "Fluxes":
        if not isinstance(other, Fluxes):
            return NotImplemented
        return Fluxes(
            self.north + other.north,
            self.south + other.south,
            self.up + other.up,
            self.down + other.down,
        )

    def map(self, func: Callable) -> "Fluxes":
        """Apply ``func`` to every direction."""
        return Fluxes(func(self.north), func(self.south), func(self.up), func(self.down))

    def to(self, units) -> "Fluxes":
        return self.map(lambda c: c.to(units))

    @classmethod
    def zeros(cls, grid: BoxGrid, units) -> "Fluxes":
        return cls(grid.zeros(units), grid.zeros(units), grid.zeros(units), grid.zeros(units))


def _volume_flux(value):
    """Validate a volume/time magnitude; raises DimensionalityError otherwise."""
    value = as_quantity(value, "dimensionless")
    value.to("m**3/s")
    if np.ndim(value.magnitude) != 0:
        raise ConfigurationError(f"Expected a scalar volume flux, got shape {np.shape(value.magnitude)}")
    return value


def _require(grid: BoxGrid, n_meridional: int, n_vertical: int, name: str) -> None:
    nm, nv = grid.shape
    if nm < n_meridional or nv < n_vertical:
        raise ConfigurationError(
            f"{name} needs at least {n_meridional}×{n_vertical} boxes, grid is {nm}×{nv}"
        )


def abyssal_overturning(psi, grid: BoxGrid) -> Fluxes:
    """
    Abyssal overturning loop of strength ``psi``.

    Surface water flows north through the thermocline, sinks in the
    northernmost column, returns south along the bottom layer and upwells
    in the southernmost column. On the default grid:

        north: Low/Mid-latitude thermocline
        south: High/Mid-latitude abyssal
        up:    Low-latitude abyssal and deep
        down:  High-latitude thermocline and deep

    Args:
        psi: Volume flux (volume/time Quantity)
        grid: Box grid

    Returns:
        Volume-conserving Fluxes in the units of ``psi``
    """
    psi = _volume_flux(psi)
    _require(grid, 2, 2, "abyssal_overturning")

    north, south, up, down = (np.zeros(grid.shape) for _ in range(4))
    north[1:, 0] = psi.magnitude
    south[:-1, -1] = psi.magnitude
    up[-1, 1:] = psi.magnitude
    down[0, :-1] = psi.magnitude

    return Fluxes(*(Q_(f, psi.units) for f in (north, south, up, down)))


def intermediate_overturning(psi, grid: BoxGrid) -> Fluxes:
    """
    Intermediate overturning loop of strength ``psi``.

    Runs below the thermocline in the opposite sense of the abyssal loop:
    north along the bottom, up in the northernmost column, south in the
    second layer and down in the southernmost column. On the default grid:

        north: Mid/Low-latitude abyssal
        south: High/Mid-latitude deep
        up:    High-latitude abyssal
        down:  Low-latitude deep

    Args:
        psi: Volume flux (volume/time Quantity)
        grid: Box grid with at least three layers

    Returns:
        Volume-conserving Fluxes in the units of ``psi``
    """
    psi = _volume_flux(psi)
    _require(grid, 2, 3, "intermediate_overturning")

    north, south, up, down = (np.zeros(grid.shape) for _ in range(4))
    north[1:, -1] = psi.magnitude
    south[:-1, 1] = psi.magnitude
    up[0, 2:] = psi.magnitude
    down[-1, 1:-1] = psi.magnitude

    return Fluxes(*(Q_(f, psi.units) for f in (north, south, up, down)))


def vertical_diffusion(exchange, grid: BoxGrid) -> Fluxes:
    """
    Symmetric vertical exchange between adjacent layers.

    Every box below the top layer sends ``exchange`` up and every box
    above the bottom layer sends ``exchange`` down. No meridional flux.

    Args:
        exchange: Exchange volume flux (volume/time Quantity)
        grid: Box grid

    Returns:
        Volume-conserving Fluxes in the units of ``exchange``
    """
    exchange = _volume_flux(exchange)

    north, south, up, down = (np.zeros(grid.shape) for _ in range(4))
    up[:, 1:] += exchange.magnitude
    down[:, :-1] += exchange.magnitude

    return Fluxes(*(Q_(f, exchange.units) for f in (north, south, up, down)))
