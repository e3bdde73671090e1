"""Drawing unit resolution ($INSUNITS and caller overrides)."""

from enum import Enum
from typing import Union


# $INSUNITS code -> millimetres per drawing unit
DXF_UNIT_TO_MM = {
    0: 1.0,  # unitless
    1: 25.4,  # inches
    2: 304.8,  # feet
    3: 1609344.0,  # miles
    4: 1.0,  # millimeters
    5: 10.0,  # centimeters
    6: 1000.0,  # meters
    7: 1000000.0,  # kilometers
    8: 0.0000254,  # microinches
    9: 0.0254,  # mils
    10: 914.4,  # yards
    11: 0.0000001,  # angstroms
    12: 0.000001,  # nanometers
    13: 0.001,  # microns
    14: 100.0,  # decimeters
    15: 10000.0,  # decameters
    16: 100000.0,  # hectometers
    17: 1000000000000.0,  # gigameters
    18: 149597870700000.0,  # astronomical units
}

UNIT_NAMES = {
    0: "unitless",
    1: "inches",
    2: "feet",
    3: "miles",
    4: "millimeters",
    5: "centimeters",
    6: "meters",
    7: "kilometers",
    8: "microinches",
    9: "mils",
    10: "yards",
    11: "angstroms",
    12: "nanometers",
    13: "microns",
    14: "decimeters",
    15: "decameters",
    16: "hectometers",
    17: "gigameters",
    18: "astronomical units",
}


class UnitOverride(Enum):
    """Caller-selected source unit."""

    AUTO = "auto"
    MILLIMETER = "mm"
    CENTIMETER = "cm"
    METER = "m"

    @property
    def scale_to_mm(self) -> float:
        return _OVERRIDE_TO_MM[self]

    @classmethod
    def parse(cls, value: Union[str, "UnitOverride", None]) -> "UnitOverride":
        """Accept an enum member, a short code or a long unit name."""
        if value is None:
            return cls.AUTO
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        raise ValueError(f"Unknown unit override: {value!r}")


_OVERRIDE_TO_MM = {
    UnitOverride.AUTO: 1.0,
    UnitOverride.MILLIMETER: 1.0,
    UnitOverride.CENTIMETER: 10.0,
    UnitOverride.METER: 1000.0,
}

_ALIASES = {
    "": UnitOverride.AUTO,
    "auto": UnitOverride.AUTO,
    "mm": UnitOverride.MILLIMETER,
    "millimeter": UnitOverride.MILLIMETER,
    "millimeters": UnitOverride.MILLIMETER,
    "cm": UnitOverride.CENTIMETER,
    "centimeter": UnitOverride.CENTIMETER,
    "centimeters": UnitOverride.CENTIMETER,
    "m": UnitOverride.METER,
    "meter": UnitOverride.METER,
    "meters": UnitOverride.METER,
}


def resolve_unit_scale(override: Union[str, UnitOverride, None], insunits: int) -> float:
    """Millimetres per drawing unit.

    An explicit override wins over the declared $INSUNITS code; unknown or
    zero codes resolve to 1.0.
    """
    unit = UnitOverride.parse(override)
    if unit is not UnitOverride.AUTO:
        return unit.scale_to_mm
    return DXF_UNIT_TO_MM.get(insunits, 1.0)


def unit_name(insunits: int) -> str:
    return UNIT_NAMES.get(insunits, "unknown")
