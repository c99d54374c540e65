"""
Metric request / response schemas.

POST /metrics        → CreateMetricRequest → CreateMetricResponse
GET  /metrics        → ListMetricsResponse
GET  /metrics/chart  → ChartDataResponse

Field names are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

import datetime as dt
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.domain.units import MetricType, get_valid_units, is_valid_unit


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class CreateMetricRequest(CamelModel):
    """A single measurement, in any unit registered for its type."""

    user_id: UUID = Field(description="Owner of the metric.")
    type: MetricType = Field(
        description='Metric type: "distance" or "temperature".',
        examples=["distance"],
    )
    value: float = Field(description="Magnitude in `unit`.", examples=[100])
    unit: str = Field(
        min_length=1,
        description="Unit code valid for `type`.",
        examples=["centimeter"],
    )
    date: dt.date = Field(description="ISO date (YYYY-MM-DD) the measurement applies to.",
                          examples=["2025-12-01"])

    @field_validator("type", "unit", mode="before")
    @classmethod
    def lowercase(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("value", mode="before")
    @classmethod
    def reject_boolean(cls, v):
        # lax float mode would turn true/false into 1.0/0.0
        if isinstance(v, bool):
            raise ValueError("Value must be a valid number")
        return v

    @model_validator(mode="after")
    def check_unit_matches_type(self) -> "CreateMetricRequest":
        if not is_valid_unit(self.type, self.unit):
            valid = ", ".join(get_valid_units(self.type))
            raise ValueError(
                f'Invalid unit "{self.unit}" for type "{self.type.value}". Valid units: {valid}'
            )
        return self


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class MetricResponse(CamelModel):
    """
    `value` / `unit` are the pair as stored. `original_value` / `original_unit`
    carry the converted representation: the base unit on create, the requested
    unit on list.
    """
    id: str
    user_id: str
    type: str
    value: float
    unit: str
    original_value: float
    original_unit: str
    date: str = Field(description="ISO date of the measurement.")
    created_at: str = Field(description="ISO-8601 creation timestamp.")


class CreateMetricResponse(CamelModel):
    success: bool = True
    data: MetricResponse


class PaginationResponse(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ListMetricsResponse(CamelModel):
    success: bool = True
    data: list[MetricResponse]
    pagination: PaginationResponse


class ChartPointResponse(CamelModel):
    date: str
    value: float
    unit: str


class ChartDataResponse(CamelModel):
    """Latest metric per day over the chart window, oldest first."""
    success: bool = True
    type: str
    unit: str
    period: str
    start_date: str
    end_date: str
    data_points: int
    data: list[ChartPointResponse]


class ApiInfoResponse(CamelModel):
    name: str
    version: str
    description: str
    endpoints: dict[str, str]
    supported_units: dict[str, list[str]]


class ErrorBody(CamelModel):
    code: str
    message: str
    details: Optional[dict] = None


class ErrorResponse(CamelModel):
    """Standard error envelope returned for all 4xx/5xx responses."""
    success: bool = False
    error: ErrorBody
