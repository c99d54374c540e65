"""
Metric services: create, list, chart.

Each function takes the storage collaborator explicitly and performs at
most one read or one write against it. Validation errors are raised before
storage is touched; storage errors propagate as they come.

Public API
----------
create_metric(repo, data)    -> MetricView
list_metrics(repo, query)    -> MetricPage
get_chart_data(repo, query)  -> ChartData
"""
from __future__ import annotations

import calendar
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from app.core.errors import (
    InvalidDateRangeError,
    InvalidMetricTypeError,
    InvalidPeriodError,
    InvalidUnitError,
    MissingUnitError,
)
from app.domain.metric import Metric, parse_calendar_date, parse_number
from app.domain.units import (
    DEFAULT_DISPLAY_UNITS,
    MetricType,
    Unit,
    get_valid_units,
    is_valid_unit,
    parse_metric_type,
)
from app.repositories.metric_repository import MetricFilters, MetricRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
CONVERSION_DECIMALS = 4

CHART_PERIODS: dict[str, int] = {"1month": 1, "2month": 2}
DEFAULT_CHART_PERIOD = "1month"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def _lower(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    stripped = str(v).strip().lower()
    return stripped or None


def _require_type(raw: Optional[str]) -> MetricType:
    metric_type = parse_metric_type(raw)
    if metric_type is None:
        raise InvalidMetricTypeError(raw)
    return metric_type


def _require_unit(metric_type: MetricType, unit: str) -> Unit:
    if not is_valid_unit(metric_type, unit):
        raise InvalidUnitError(
            metric_type=metric_type.value,
            unit=unit,
            valid_units=get_valid_units(metric_type),
        )
    return Unit(metric_type, unit)


def _to_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def subtract_months(day: date, months: int) -> date:
    """Calendar-month subtraction; the day clamps to the end of a shorter month."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


# ---------------------------------------------------------------------------
# Inputs (normalized request data)
# ---------------------------------------------------------------------------

@dataclass
class CreateMetricInput:
    user_id: str
    type: Optional[str]
    value: float
    unit: Optional[str]
    date: str

    @classmethod
    def from_raw(cls, user_id: Any, type: Any, value: Any, unit: Any, date: Any) -> "CreateMetricInput":
        return cls(
            user_id=str(user_id) if user_id is not None else "",
            type=_lower(type),
            value=parse_number(value),
            unit=_lower(unit),
            date=date.isoformat() if hasattr(date, "isoformat") else date,
        )


@dataclass
class ListMetricsQuery:
    user_id: str
    type: Optional[str] = None
    unit: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_raw(
        cls,
        user_id: Any,
        type: Any = None,
        unit: Any = None,
        start_date: Any = None,
        end_date: Any = None,
        page: Any = None,
        limit: Any = None,
        default_limit: int = DEFAULT_PAGE_SIZE,
        max_limit: int = MAX_PAGE_SIZE,
    ) -> "ListMetricsQuery":
        page_num = _to_int(page, 1)
        limit_num = _to_int(limit, default_limit)
        start = parse_calendar_date(start_date) if start_date else None
        end = parse_calendar_date(end_date) if end_date else None
        if start and end and end < start:
            raise InvalidDateRangeError(start, end)
        return cls(
            user_id=str(user_id),
            type=_lower(type),
            unit=_lower(unit),
            start_date=start,
            end_date=end,
            page=page_num if page_num >= 1 else 1,
            limit=min(limit_num if limit_num >= 1 else default_limit, max_limit),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class ChartQuery:
    user_id: str
    type: Optional[str]
    period: str
    unit: Optional[str]
    start_date: date
    end_date: date

    @classmethod
    def from_raw(
        cls,
        user_id: Any,
        type: Any,
        period: Any = None,
        unit: Any = None,
        today: Optional[date] = None,
    ) -> "ChartQuery":
        period_key = _lower(period) or DEFAULT_CHART_PERIOD
        if period_key not in CHART_PERIODS:
            raise InvalidPeriodError(period, list(CHART_PERIODS))
        end = today or _today()
        return cls(
            user_id=str(user_id),
            type=_lower(type),
            period=period_key,
            unit=_lower(unit),
            start_date=subtract_months(end, CHART_PERIODS[period_key]),
            end_date=end,
        )


# ---------------------------------------------------------------------------
# Result types (plain dataclasses, no ORM or Pydantic)
# ---------------------------------------------------------------------------

@dataclass
class MetricView:
    id: str
    user_id: str
    type: MetricType
    value: float             # as stored
    unit: str                # as stored
    original_value: float    # base or requested-unit representation
    original_unit: str
    date: date
    created_at: datetime


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int


@dataclass
class MetricPage:
    data: list[MetricView]
    pagination: Pagination


@dataclass
class ChartPoint:
    date: date
    value: float
    unit: str


@dataclass
class ChartData:
    type: MetricType
    unit: str
    period: str
    start_date: date
    end_date: date
    data: list[ChartPoint] = field(default_factory=list)

    @property
    def data_points(self) -> int:
        return len(self.data)


def _view(metric: Metric, original_value: float, original_unit: str) -> MetricView:
    return MetricView(
        id=metric.id,
        user_id=metric.user_id,
        type=metric.type,
        value=metric.value,
        unit=metric.unit,
        original_value=original_value,
        original_unit=original_unit,
        date=metric.date,
        created_at=metric.created_at,
    )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def create_metric(repo: MetricRepository, data: CreateMetricInput) -> MetricView:
    """
    Validate the (type, unit) pair, normalize the value to the base unit and
    store one metric. The response pairs the stored value with its base-unit
    representation under `original_value` / `original_unit`.
    """
    metric_type = _require_type(data.type)
    if not data.unit:
        raise MissingUnitError()
    unit = _require_unit(metric_type, data.unit)

    metric = Metric(
        user_id=data.user_id,
        type=metric_type,
        value=data.value,
        unit=unit.unit,
        base_value=unit.to_base(data.value),
        date=data.date,
    )
    saved = repo.save(metric)
    logger.info(
        "Created %s metric %s for user %s: %s %s -> %s %s",
        saved.type.value, saved.id, saved.user_id,
        saved.value, saved.unit, saved.base_value, unit.base_unit,
    )
    return _view(saved, saved.base_value, unit.base_unit)


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------

def _convert_for_listing(metric: Metric, target_unit: Optional[str]) -> MetricView:
    if target_unit and target_unit != metric.unit and is_valid_unit(metric.type, target_unit):
        converted = Unit(metric.type, target_unit).from_base(metric.base_value)
        return _view(metric, round(converted, CONVERSION_DECIMALS), target_unit)
    return _view(metric, metric.value, metric.unit)


def list_metrics(repo: MetricRepository, query: ListMetricsQuery) -> MetricPage:
    """
    Page through a user's metrics, newest first, optionally converting each
    one into a requested unit.

    A unit is checked against the type only when both are given. Without a
    type, metrics whose type does not know the requested unit are returned
    unconverted.
    """
    metric_type: Optional[MetricType] = None
    if query.type:
        metric_type = _require_type(query.type)
        if query.unit:
            _require_unit(metric_type, query.unit)

    filters = MetricFilters(
        type=metric_type,
        start_date=query.start_date,
        end_date=query.end_date,
        limit=query.limit,
        offset=query.offset,
    )
    result = repo.find_by_user_id(query.user_id, filters)
    logger.debug(
        "Listed %d of %d metrics for user %s (page %d)",
        len(result.data), result.total, query.user_id, query.page,
    )

    return MetricPage(
        data=[_convert_for_listing(m, query.unit) for m in result.data],
        pagination=Pagination(
            page=query.page,
            limit=query.limit,
            total=result.total,
            total_pages=total_pages(result.total, query.limit),
        ),
    )


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------

def get_chart_data(repo: MetricRepository, query: ChartQuery) -> ChartData:
    """
    Latest metric per day over the last one or two calendar months,
    converted to the requested unit (meter / celsius by default).
    """
    metric_type = _require_type(query.type)
    target = _require_unit(metric_type, query.unit or DEFAULT_DISPLAY_UNITS[metric_type])

    metrics = repo.get_chart_data(query.user_id, metric_type, query.start_date, query.end_date)
    points = [
        ChartPoint(
            date=m.date,
            value=round(target.from_base(m.base_value), CONVERSION_DECIMALS),
            unit=target.unit,
        )
        for m in metrics
    ]
    points.sort(key=lambda p: p.date)
    logger.debug(
        "Chart for user %s: %d %s points between %s and %s",
        query.user_id, len(points), metric_type.value, query.start_date, query.end_date,
    )

    return ChartData(
        type=metric_type,
        unit=target.unit,
        period=query.period,
        start_date=query.start_date,
        end_date=query.end_date,
        data=points,
    )
