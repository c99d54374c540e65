"""
Metrics router.

POST /metrics        record a metric (value normalized to the base unit)
GET  /metrics        list a user's metrics, optionally converted to a unit
GET  /metrics/chart  latest metric per day over the last 1 or 2 months
"""
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.errors import InvalidUnitError
from app.db.base import get_db
from app.domain.units import all_units
from app.repositories.metric_repository import SqlAlchemyMetricRepository
from app.schemas.metric import (
    ChartDataResponse,
    ChartPointResponse,
    CreateMetricRequest,
    CreateMetricResponse,
    ErrorResponse,
    ListMetricsResponse,
    MetricResponse,
    PaginationResponse,
)
from app.services.metrics import (
    ChartData,
    ChartQuery,
    CreateMetricInput,
    ListMetricsQuery,
    MAX_PAGE_SIZE,
    DEFAULT_PAGE_SIZE,
    MetricView,
    create_metric,
    get_chart_data,
    list_metrics,
)

router = APIRouter(prefix="/metrics", tags=["metrics"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error (bad type, unit, value or date)."},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded."},
    500: {"model": ErrorResponse, "description": "Storage or unexpected failure."},
}


def get_metric_repository(db: Session = Depends(get_db)) -> SqlAlchemyMetricRepository:
    return SqlAlchemyMetricRepository(db)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _view_to_response(v: MetricView) -> MetricResponse:
    return MetricResponse(
        id=v.id,
        user_id=v.user_id,
        type=v.type.value,
        value=v.value,
        unit=v.unit,
        original_value=v.original_value,
        original_unit=v.original_unit,
        date=v.date.isoformat(),
        created_at=v.created_at.isoformat(),
    )


def _chart_to_response(c: ChartData) -> ChartDataResponse:
    return ChartDataResponse(
        type=c.type.value,
        unit=c.unit,
        period=c.period,
        start_date=c.start_date.isoformat(),
        end_date=c.end_date.isoformat(),
        data_points=c.data_points,
        data=[
            ChartPointResponse(date=p.date.isoformat(), value=p.value, unit=p.unit)
            for p in c.data
        ],
    )


# ---------------------------------------------------------------------------
# POST /metrics
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=CreateMetricResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a metric",
    responses=_ERROR_RESPONSES,
)
def create(
    payload: CreateMetricRequest,
    repo: SqlAlchemyMetricRepository = Depends(get_metric_repository),
):
    """
    Store a distance or temperature measurement.

    The value is kept as supplied and also normalized once to the base unit
    (meter / kelvin). The response returns the base representation as
    `originalValue` / `originalUnit`.
    """
    data = CreateMetricInput.from_raw(
        user_id=payload.user_id,
        type=payload.type.value,
        value=payload.value,
        unit=payload.unit,
        date=payload.date,
    )
    view = create_metric(repo, data)
    return CreateMetricResponse(data=_view_to_response(view))


# ---------------------------------------------------------------------------
# GET /metrics
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=ListMetricsResponse,
    summary="List metrics with filters and pagination",
    responses=_ERROR_RESPONSES,
)
def list_(
    user_id: UUID = Query(alias="userId", description="Owner of the metrics."),
    type: Optional[str] = Query(
        default=None, description='Filter by type: "distance" or "temperature".',
    ),
    unit: Optional[str] = Query(
        default=None, description="Convert each metric into this unit.", examples=["feet"],
    ),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    repo: SqlAlchemyMetricRepository = Depends(get_metric_repository),
):
    """
    Return a page of metrics, newest date first (ties broken by creation time).

    When `unit` differs from a metric's stored unit, the stored base value is
    converted and returned as `originalValue` / `originalUnit`, rounded to
    4 decimals. Without `type`, `unit` must still be a known unit code.
    """
    if unit and not type and unit.strip().lower() not in all_units():
        raise InvalidUnitError(metric_type=None, unit=unit.strip().lower(), valid_units=all_units())

    query = ListMetricsQuery.from_raw(
        user_id=user_id,
        type=type,
        unit=unit,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    result = list_metrics(repo, query)
    return ListMetricsResponse(
        data=[_view_to_response(v) for v in result.data],
        pagination=PaginationResponse(
            page=result.pagination.page,
            limit=result.pagination.limit,
            total=result.pagination.total,
            total_pages=result.pagination.total_pages,
        ),
    )


# ---------------------------------------------------------------------------
# GET /metrics/chart
# ---------------------------------------------------------------------------

@router.get(
    "/chart",
    response_model=ChartDataResponse,
    summary="Chart data: latest metric per day",
    responses=_ERROR_RESPONSES,
)
def chart(
    user_id: UUID = Query(alias="userId", description="Owner of the metrics."),
    type: str = Query(description='"distance" or "temperature".'),
    period: str = Query(default="1month", description='"1month" or "2month".'),
    unit: Optional[str] = Query(
        default=None,
        description="Target unit. Defaults to meter (distance) or celsius (temperature).",
    ),
    repo: SqlAlchemyMetricRepository = Depends(get_metric_repository),
):
    """
    One point per calendar day in the window ending today (UTC): the metric
    recorded last that day, converted to the target unit and rounded to
    4 decimals. Points are sorted oldest first.
    """
    query = ChartQuery.from_raw(user_id=user_id, type=type, period=period, unit=unit)
    return _chart_to_response(get_chart_data(repo, query))
