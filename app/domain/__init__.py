from .units import (
    MetricType,
    DistanceUnit,
    TemperatureUnit,
    Unit,
    get_base_unit,
    get_valid_units,
    is_valid_unit,
)
from .metric import Metric

__all__ = [
    "MetricType",
    "DistanceUnit",
    "TemperatureUnit",
    "Unit",
    "get_base_unit",
    "get_valid_units",
    "is_valid_unit",
    "Metric",
]
