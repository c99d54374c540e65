"""
Metric storage.

MetricRepository is the contract the services depend on; the SQLAlchemy
implementation below is the production adapter. Ordering rules are part
of the contract:

  find_by_user_id  -> date DESC, created_at DESC (id DESC breaks ties)
  get_chart_data   -> one metric per date, the latest by created_at
                      (highest id on equal timestamps), date ASC
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StorageError
from app.domain.metric import Metric
from app.domain.units import MetricType
from app.models.metric import MetricRecord

logger = logging.getLogger(__name__)


@dataclass
class MetricFilters:
    type: Optional[MetricType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: int = 20
    offset: int = 0


@dataclass
class FindByUserIdResult:
    data: list[Metric] = field(default_factory=list)
    total: int = 0


class MetricRepository(Protocol):
    def save(self, metric: Metric) -> Metric: ...

    def find_by_user_id(self, user_id: str, filters: MetricFilters) -> FindByUserIdResult: ...

    def get_chart_data(
        self, user_id: str, type_: MetricType, start_date: date, end_date: date
    ) -> list[Metric]: ...


def latest_per_day(metrics: Iterable[Metric]) -> list[Metric]:
    """Group by calendar date and keep the newest entry of each day, oldest day first."""
    latest: dict[date, Metric] = {}
    for metric in metrics:
        current = latest.get(metric.date)
        if current is None or (metric.created_at, metric.id) > (current.created_at, current.id):
            latest[metric.date] = metric
    return [latest[day] for day in sorted(latest)]


class SqlAlchemyMetricRepository:
    def __init__(self, db: Session):
        self.db = db

    def save(self, metric: Metric) -> Metric:
        record = MetricRecord(**metric.to_row())
        try:
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("save") from exc
        logger.debug("Stored metric %s for user %s", record.id, record.user_id)
        return Metric.from_row(record)

    def find_by_user_id(self, user_id: str, filters: MetricFilters) -> FindByUserIdResult:
        conditions = [MetricRecord.user_id == user_id]
        if filters.type is not None:
            conditions.append(MetricRecord.type == filters.type)
        if filters.start_date is not None:
            conditions.append(MetricRecord.date >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(MetricRecord.date <= filters.end_date)

        count_stmt = select(func.count(MetricRecord.id)).where(*conditions)
        data_stmt = (
            select(MetricRecord)
            .where(*conditions)
            .order_by(
                MetricRecord.date.desc(),
                MetricRecord.created_at.desc(),
                MetricRecord.id.desc(),
            )
            .limit(filters.limit)
            .offset(filters.offset)
        )
        try:
            total = self.db.execute(count_stmt).scalar() or 0
            rows = self.db.execute(data_stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError("find_by_user_id") from exc
        return FindByUserIdResult(data=[Metric.from_row(r) for r in rows], total=total)

    def get_chart_data(
        self, user_id: str, type_: MetricType, start_date: date, end_date: date
    ) -> list[Metric]:
        stmt = (
            select(MetricRecord)
            .where(
                MetricRecord.user_id == user_id,
                MetricRecord.type == type_,
                MetricRecord.date >= start_date,
                MetricRecord.date <= end_date,
            )
            .order_by(MetricRecord.date, MetricRecord.created_at, MetricRecord.id)
        )
        try:
            rows = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError("get_chart_data") from exc
        return latest_per_day(Metric.from_row(r) for r in rows)
