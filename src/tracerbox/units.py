"""
Physical units shared by every tracerbox module.

A single pint registry is created once and registered as the application
registry, so quantities built with ``pint.Quantity`` elsewhere interoperate
with the ones built here.
"""

import pint

ureg = pint.UnitRegistry()
pint.set_application_registry(ureg)
Q_ = ureg.Quantity

# Seawater reference density
DEFAULT_DENSITY = Q_(1035.0, "kg/m**3")

# 1 Sv = 10⁶ m³/s (the symbol "Sv" is taken by the sievert in pint)
SVERDRUP = Q_(1.0e6, "m**3/s")

TRACER_FLUX_UNITS = "Tg/s"
MASS_UNITS = "Zg"
TENDENCY_UNITS = "1/yr"
TIME_UNITS = "yr"
VOLUME_UNITS = "m**3"


def as_quantity(value, units):
    """Return ``value`` as a Quantity, attaching ``units`` to bare numbers."""
    if isinstance(value, ureg.Quantity):
        return value
    return Q_(value, units)


def sverdrups(value) -> "pint.Quantity":
    """Volume flux of ``value`` Sverdrups, expressed in m³/s."""
    return (value * SVERDRUP).to("m**3/s")
