from .metric import MetricRecord

__all__ = [
    "MetricRecord",
]
