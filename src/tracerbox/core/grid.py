"""
Labeled Box Grid for the Tracer Box Model.

The ocean is split into a small meridional × vertical grid of well-mixed
boxes. Every field (tracer concentration, tendency, volume, flux
component) is a pint Quantity wrapping a numpy array of shape
(n_meridional, n_vertical). Row 0 is the northernmost category and
column 0 the shallowest layer.

Default layout:

                      Thermocline   Deep   Abyssal
    High latitudes        B          .        .
    Mid-latitudes         B          .        .
    Low latitudes         .          .        .

B marks the boundary boxes where Dirichlet surface values are imposed.

Flattened (vector) views use row-major order, meridional category major:
flat index = i * n_vertical + j.
"""

import numpy as np
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from ..exceptions import ConfigurationError, ShapeMismatchError
from ..units import Q_, as_quantity


MERIDIONAL_NAMES: Tuple[str, ...] = ("High latitudes", "Mid-latitudes", "Low latitudes")
VERTICAL_NAMES: Tuple[str, ...] = ("Thermocline", "Deep", "Abyssal")
BOUNDARY_BOXES: Tuple[Tuple[str, str], ...] = (
    ("High latitudes", "Thermocline"),
    ("Mid-latitudes", "Thermocline"),
)


@dataclass(frozen=True)
class BoxGrid:
    """
    Label tables and index bookkeeping for a box model.

    Attributes:
        meridional: Ordered meridional category names (north to south)
        vertical: Ordered vertical category names (surface to bottom)
        boundary: (meridional, vertical) label pairs of boundary boxes

    Example:
        >>> grid = BoxGrid()
        >>> grid.position("Low latitudes", "Abyssal")
        (2, 2)
    """
    meridional: Tuple[str, ...] = MERIDIONAL_NAMES
    vertical: Tuple[str, ...] = VERTICAL_NAMES
    boundary: Tuple[Tuple[str, str], ...] = BOUNDARY_BOXES

    def __post_init__(self):
        # accept lists from config files but store immutable tuples
        object.__setattr__(self, "meridional", tuple(self.meridional))
        object.__setattr__(self, "vertical", tuple(self.vertical))
        object.__setattr__(self, "boundary", tuple(tuple(b) for b in self.boundary))

        if len(set(self.meridional)) != len(self.meridional):
            raise ConfigurationError(f"Duplicate meridional labels: {self.meridional}")
        if len(set(self.vertical)) != len(self.vertical):
            raise ConfigurationError(f"Duplicate vertical labels: {self.vertical}")
        if len(set(self.boundary)) != len(self.boundary):
            raise ConfigurationError(f"Duplicate boundary boxes: {self.boundary}")

        for m, v in self.boundary:
            if m not in self.meridional or v not in self.vertical:
                raise ConfigurationError(f"Boundary box ({m}, {v}) is not part of the grid")

    @property
    def shape(self) -> Tuple[int, int]:
        return (len(self.meridional), len(self.vertical))

    @property
    def size(self) -> int:
        return len(self.meridional) * len(self.vertical)

    @property
    def n_boundary(self) -> int:
        return len(self.boundary)

    def __repr__(self) -> str:
        return (
            f"BoxGrid({len(self.meridional)}×{len(self.vertical)} boxes, "
            f"{self.n_boundary} boundary)"
        )

    # ------------------------------------------------------------------
    # Label lookup
    # ------------------------------------------------------------------

    def position(self, meridional: str, vertical: str) -> Tuple[int, int]:
        """Integer (row, column) of the box with the given labels."""
        try:
            i = self.meridional.index(meridional)
        except ValueError:
            raise KeyError(f"Unknown meridional label: {meridional!r}") from None
        try:
            j = self.vertical.index(vertical)
        except ValueError:
            raise KeyError(f"Unknown vertical label: {vertical!r}") from None
        return i, j

    def flat_index(self, meridional: str, vertical: str) -> int:
        """Position of a box in the flattened state vector."""
        i, j = self.position(meridional, vertical)
        return i * len(self.vertical) + j

    def labels(self) -> List[Tuple[str, str]]:
        """Box labels in flattened order."""
        return [(m, v) for m in self.meridional for v in self.vertical]

    def boundary_positions(self) -> Tuple[np.ndarray, np.ndarray]:
        """Row and column index arrays of the boundary boxes."""
        positions = [self.position(m, v) for m, v in self.boundary]
        rows = np.array([p[0] for p in positions], dtype=np.intp)
        cols = np.array([p[1] for p in positions], dtype=np.intp)
        return rows, cols

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def zeros(self, units="dimensionless"):
        return Q_(np.zeros(self.shape, dtype=np.float64), units)

    def ones(self, units="dimensionless"):
        return Q_(np.ones(self.shape, dtype=np.float64), units)

    def full(self, value, units="dimensionless"):
        value = as_quantity(value, units)
        return Q_(np.full(self.shape, value.magnitude, dtype=np.float64), value.units)

    def boundary_zeros(self, units="dimensionless"):
        return Q_(np.zeros(self.n_boundary, dtype=np.float64), units)

    # ------------------------------------------------------------------
    # Views and selections
    # ------------------------------------------------------------------

    def check_field(self, field, name: str = "field") -> None:
        """Raise ShapeMismatchError unless ``field`` has the grid shape."""
        if _shape(field) != self.shape:
            raise ShapeMismatchError(
                f"{name} has shape {_shape(field)}, expected grid shape {self.shape}"
            )

    def check_boundary(self, values, name: str = "boundary field") -> None:
        """Raise ShapeMismatchError unless ``values`` covers the boundary boxes."""
        if _shape(values) != (self.n_boundary,):
            raise ShapeMismatchError(
                f"{name} has shape {_shape(values)}, expected ({self.n_boundary},) "
                f"for boundary boxes {list(self.boundary)}"
            )

    def flatten(self, field):
        """Grid field → state vector (copy)."""
        self.check_field(field)
        return Q_(np.array(field.magnitude, dtype=np.float64).reshape(self.size), field.units)

    def unflatten(self, vector):
        """State vector → grid field (copy)."""
        if _shape(vector) != (self.size,):
            raise ShapeMismatchError(
                f"vector has shape {_shape(vector)}, expected ({self.size},)"
            )
        return Q_(np.array(vector.magnitude, dtype=np.float64).reshape(self.shape), vector.units)

    def at(self, field, meridional: str, vertical: str):
        """Value of ``field`` in one box."""
        self.check_field(field)
        i, j = self.position(meridional, vertical)
        return field[i, j]

    def select(
        self,
        field,
        meridional: Optional[Sequence[str]] = None,
        vertical: Optional[Sequence[str]] = None,
    ):
        """
        Sub-field restricted to lists of labels along either axis.

        Args:
            field: Grid field
            meridional: Meridional labels to keep (default: all)
            vertical: Vertical labels to keep (default: all)

        Returns:
            Quantity of shape (len(meridional), len(vertical))
        """
        self.check_field(field)
        rows = self._indices(self.meridional, meridional)
        cols = self._indices(self.vertical, vertical)
        return field[np.ix_(rows, cols)]

    def boundary_values(self, field):
        """Values of a grid field at the boundary boxes, in boundary order."""
        self.check_field(field)
        rows, cols = self.boundary_positions()
        return Q_(field.magnitude[rows, cols].astype(np.float64), field.units)

    def scatter_boundary(self, values):
        """Full grid field holding ``values`` at boundary boxes and zero elsewhere."""
        self.check_boundary(values)
        rows, cols = self.boundary_positions()
        out = np.zeros(self.shape, dtype=np.float64)
        out[rows, cols] = values.magnitude
        return Q_(out, values.units)

    @staticmethod
    def _indices(names: Tuple[str, ...], wanted: Optional[Iterable[str]]) -> List[int]:
        if wanted is None:
            return list(range(len(names)))
        try:
            return [names.index(w) for w in wanted]
        except ValueError:
            raise KeyError(f"Unknown label in {list(wanted)}; available: {list(names)}") from None


DEFAULT_GRID = BoxGrid()


def _shape(x) -> Tuple[int, ...]:
    return np.shape(getattr(x, "magnitude", x))
