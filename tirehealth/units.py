"""
Unit registry and helpers for tire measurements.

Uses pint so tread readings delivered in millimetres, inches or
32nds of an inch all land in millimetres before any scoring happens.
"""

import pint

# Shared unit registry for the entire application
ureg = pint.UnitRegistry()

# Tread depth gauges in the US report 32nds of an inch
ureg.define("thirty_second_inch = inch / 32 = in32")

# Shorthand for creating quantities
Q_ = ureg.Quantity

# Accepted spellings for raw tread units
TREAD_UNIT_ALIASES = {
    "mm": "millimeter",
    "millimeter": "millimeter",
    "millimetre": "millimeter",
    "in": "inch",
    "inch": "inch",
    "32nds": "thirty_second_inch",
    "in32": "thirty_second_inch",
}


def depth_to_mm(value: float, unit: str = "mm") -> float:
    """
    Convert a tread depth reading to millimetres.

    Raises:
        ValueError: If the unit is not a recognised tread unit
    """
    unit_name = TREAD_UNIT_ALIASES.get(unit.strip().lower())
    if unit_name is None:
        raise ValueError(f"Unsupported tread depth unit: {unit!r}")
    return Q_(value, unit_name).to("millimeter").magnitude


def kmh_to_mph(speed_kmh: float) -> float:
    """Convert km/h to mph."""
    return Q_(speed_kmh, "kilometer / hour").to("mile / hour").magnitude


def kg_to_lb(mass_kg: float) -> float:
    """Convert kilograms to pounds."""
    return Q_(mass_kg, "kilogram").to("pound").magnitude
