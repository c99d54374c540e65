import datetime as dt
from decimal import Decimal

from sqlalchemy import String, Numeric, Date, DateTime, Enum, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.domain.units import MetricType


class MetricRecord(Base):
    """Row shape of a stored metric. `base_value` is written once, at insert."""
    __tablename__ = "metrics"
    __table_args__ = (
        Index("ix_metrics_user_type_date", "user_id", "type", "date"),
        Index("idx_metrics_chart", "user_id", "type", "date", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    type: Mapped[MetricType] = mapped_column(
        Enum(MetricType, name="metric_type"), nullable=False, index=True
    )
    value: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    base_value: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
