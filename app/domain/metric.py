"""
Metric entity.

Guards structural integrity only: owner present, known type, finite value,
non-empty unit, parseable calendar date. Whether the unit belongs to the
type is a cross-field rule checked by the services before an entity is
built.

`base_value` is whatever the caller computed at creation time. Rebuilding
an entity from storage keeps it as stored; nothing here converts units.
"""
from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from app.core.errors import (
    InvalidDateError,
    InvalidMetricTypeError,
    InvalidValueError,
    MissingUnitError,
    MissingUserIdError,
)
from app.domain.units import MetricType, parse_metric_type

DateLike = Union[date, datetime, str]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive timestamps; stored values are always UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_calendar_date(value: Any) -> date:
    """Reduce a date, datetime or ISO string to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise InvalidDateError(value)


def parse_number(value: Any) -> float:
    """Numbers and numeric strings to float. Storage may hand back Decimals or strings."""
    if isinstance(value, bool) or value is None:
        raise InvalidValueError(value)
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError as exc:
            raise InvalidValueError(value) from exc
    else:
        raise InvalidValueError(value)
    if not math.isfinite(number):
        raise InvalidValueError(value)
    return number


@dataclass
class Metric:
    user_id: str
    type: MetricType
    value: float
    unit: str
    base_value: float
    date: DateLike
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.id:
            self.id = str(uuid.uuid4())
        if not self.user_id or not str(self.user_id).strip():
            raise MissingUserIdError()
        self.user_id = str(self.user_id)

        metric_type = parse_metric_type(self.type)
        if metric_type is None:
            raise InvalidMetricTypeError(None if self.type is None else str(self.type))
        self.type = metric_type

        if isinstance(self.value, bool) or not isinstance(self.value, (int, float, Decimal)):
            raise InvalidValueError(self.value)
        self.value = float(self.value)
        if not math.isfinite(self.value):
            raise InvalidValueError(self.value)

        if not self.unit or not str(self.unit).strip():
            raise MissingUnitError()

        self.base_value = parse_number(self.base_value)
        self.date = parse_calendar_date(self.date)

    # -- projections -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Transport / display form."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type.value,
            "value": self.value,
            "unit": self.unit,
            "baseValue": self.base_value,
            "date": self.date.isoformat(),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    def to_row(self) -> dict[str, Any]:
        """Storage form, keyed by column name."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "value": self.value,
            "unit": self.unit,
            "base_value": self.base_value,
            "date": self.date,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Union[Mapping[str, Any], Any]) -> "Metric":
        """Rebuild from a persisted row (ORM object or mapping) without recomputing base_value."""
        get = row.get if isinstance(row, Mapping) else (lambda k: getattr(row, k, None))
        created_at = _as_utc(get("created_at"))
        updated_at = _as_utc(get("updated_at"))
        return cls(
            id=get("id"),
            user_id=get("user_id"),
            type=get("type"),
            value=parse_number(get("value")),
            unit=get("unit"),
            base_value=parse_number(get("base_value")),
            date=get("date"),
            created_at=created_at or _utcnow(),
            updated_at=updated_at or created_at or _utcnow(),
        )
