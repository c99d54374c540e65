"""
Unit registry and the Unit value object.

Every stored metric carries its value normalized to the base unit of its
type: meters for distance, kelvin for temperature. The conversion table
below is the single source of truth for that normalization. Stored
base values are never recomputed, so entries must stay stable.

Public API
----------
get_valid_units(type)        -> list[str]   (empty for unknown types)
is_valid_unit(type, unit)    -> bool        (never raises)
get_base_unit(type)          -> str
Unit(type, unit)             -> value object with to_base / from_base
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from app.core.errors import InvalidMetricTypeError, InvalidUnitError


class MetricType(str, enum.Enum):
    distance = "distance"
    temperature = "temperature"


class DistanceUnit(str, enum.Enum):
    meter = "meter"
    centimeter = "centimeter"
    inch = "inch"
    feet = "feet"
    yard = "yard"


class TemperatureUnit(str, enum.Enum):
    kelvin = "kelvin"
    celsius = "celsius"
    fahrenheit = "fahrenheit"


@dataclass(frozen=True)
class UnitConfig:
    to_base: Callable[[float], float]
    from_base: Callable[[float], float]
    symbol: str


# ---------------------------------------------------------------------------
# Conversion tables
# ---------------------------------------------------------------------------

DISTANCE_UNITS: Mapping[str, UnitConfig] = MappingProxyType({
    DistanceUnit.meter.value: UnitConfig(
        to_base=lambda v: v,
        from_base=lambda v: v,
        symbol="m",
    ),
    DistanceUnit.centimeter.value: UnitConfig(
        to_base=lambda v: v * 0.01,
        from_base=lambda v: v * 100,
        symbol="cm",
    ),
    DistanceUnit.inch.value: UnitConfig(
        to_base=lambda v: v * 0.0254,
        from_base=lambda v: v / 0.0254,
        symbol="in",
    ),
    DistanceUnit.feet.value: UnitConfig(
        to_base=lambda v: v * 0.3048,
        from_base=lambda v: v / 0.3048,
        symbol="ft",
    ),
    DistanceUnit.yard.value: UnitConfig(
        to_base=lambda v: v * 0.9144,
        from_base=lambda v: v / 0.9144,
        symbol="yd",
    ),
})

TEMPERATURE_UNITS: Mapping[str, UnitConfig] = MappingProxyType({
    TemperatureUnit.kelvin.value: UnitConfig(
        to_base=lambda v: v,
        from_base=lambda v: v,
        symbol="K",
    ),
    TemperatureUnit.celsius.value: UnitConfig(
        to_base=lambda v: v + 273.15,
        from_base=lambda v: v - 273.15,
        symbol="°C",
    ),
    TemperatureUnit.fahrenheit.value: UnitConfig(
        to_base=lambda v: (v - 32) * (5 / 9) + 273.15,
        from_base=lambda v: (v - 273.15) * (9 / 5) + 32,
        symbol="°F",
    ),
})

UNIT_CONFIGS: Mapping[MetricType, Mapping[str, UnitConfig]] = MappingProxyType({
    MetricType.distance: DISTANCE_UNITS,
    MetricType.temperature: TEMPERATURE_UNITS,
})

BASE_UNITS: Mapping[MetricType, str] = MappingProxyType({
    MetricType.distance: DistanceUnit.meter.value,
    MetricType.temperature: TemperatureUnit.kelvin.value,
})

# Unit used by the chart endpoint when the caller does not ask for one.
DEFAULT_DISPLAY_UNITS: Mapping[MetricType, str] = MappingProxyType({
    MetricType.distance: DistanceUnit.meter.value,
    MetricType.temperature: TemperatureUnit.celsius.value,
})


# ---------------------------------------------------------------------------
# Registry lookups
# ---------------------------------------------------------------------------

def parse_metric_type(value: object) -> Optional[MetricType]:
    """Case-insensitive lookup; returns None for anything unrecognized."""
    if isinstance(value, MetricType):
        return value
    if not isinstance(value, str):
        return None
    try:
        return MetricType(value.strip().lower())
    except ValueError:
        return None


def _units_for(type_: object) -> Mapping[str, UnitConfig]:
    metric_type = parse_metric_type(type_)
    if metric_type is None:
        return MappingProxyType({})
    return UNIT_CONFIGS[metric_type]


def get_valid_units(type_: object) -> list[str]:
    return list(_units_for(type_))


def all_units() -> list[str]:
    return [unit for units in UNIT_CONFIGS.values() for unit in units]


def is_valid_unit(type_: object, unit: object) -> bool:
    if not isinstance(unit, str):
        return False
    return unit.strip().lower() in _units_for(type_)


def get_base_unit(type_: object) -> str:
    metric_type = parse_metric_type(type_)
    if metric_type is None:
        raise InvalidMetricTypeError(str(type_))
    return BASE_UNITS[metric_type]


def get_symbol(type_: object, unit: str) -> str:
    return _units_for(type_)[unit.lower()].symbol


# ---------------------------------------------------------------------------
# Value object
# ---------------------------------------------------------------------------

class Unit:
    """A (type, unit) pair checked against the registry.

    Cheap and stateless; build one per request.
    """

    __slots__ = ("type", "unit", "_config")

    def __init__(self, type_: object, unit: str):
        metric_type = parse_metric_type(type_)
        if metric_type is None:
            raise InvalidMetricTypeError(str(type_))
        normalized = (unit or "").strip().lower()
        units = UNIT_CONFIGS[metric_type]
        if normalized not in units:
            raise InvalidUnitError(
                metric_type=metric_type.value,
                unit=normalized,
                valid_units=list(units),
            )
        self.type: MetricType = metric_type
        self.unit: str = normalized
        self._config: UnitConfig = units[normalized]

    @property
    def base_unit(self) -> str:
        return BASE_UNITS[self.type]

    @property
    def symbol(self) -> str:
        return self._config.symbol

    @property
    def is_base(self) -> bool:
        return self.unit == self.base_unit

    def to_base(self, value: float) -> float:
        return self._config.to_base(value)

    def from_base(self, value: float) -> float:
        return self._config.from_base(value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Unit):
            return NotImplemented
        return (self.type, self.unit) == (other.type, other.unit)

    def __hash__(self) -> int:
        return hash((self.type, self.unit))

    def __repr__(self) -> str:
        return f"Unit({self.type.value!r}, {self.unit!r})"
