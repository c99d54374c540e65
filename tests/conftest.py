"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests. The
environment is pinned before the application is imported so the
process-wide Settings (and the engine built from them) point at SQLite.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_metrics.db"
os.environ["APP_ENV"] = "test"

from datetime import date, datetime, timezone  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import app.models  # noqa: E402,F401
from app.db.base import Base, get_db  # noqa: E402
from app.domain.metric import Metric  # noqa: E402
from app.domain.units import MetricType  # noqa: E402
from app.main import app  # noqa: E402
from app.repositories.metric_repository import (  # noqa: E402
    FindByUserIdResult,
    MetricFilters,
    latest_per_day,
)

SQLITE_URL = os.environ["DATABASE_URL"]

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# In-memory storage collaborator
# ---------------------------------------------------------------------------

class InMemoryMetricRepository:
    """Implements the MetricRepository contract over a list; records every call."""

    def __init__(self):
        self.metrics: list[Metric] = []
        self.calls: list[str] = []

    def add(
        self,
        type: str,
        value: float,
        unit: str,
        base_value: float,
        day: date,
        user_id: str = "user-1",
        created_at: Optional[datetime] = None,
        id: Optional[str] = None,
    ) -> Metric:
        """Seed a metric directly, bypassing the services."""
        metric = Metric(
            id=id or "",
            user_id=user_id,
            type=type,
            value=value,
            unit=unit,
            base_value=base_value,
            date=day,
            created_at=created_at or datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc),
        )
        self.metrics.append(metric)
        return metric

    def save(self, metric: Metric) -> Metric:
        self.calls.append("save")
        self.metrics.append(metric)
        return metric

    def find_by_user_id(self, user_id: str, filters: MetricFilters) -> FindByUserIdResult:
        self.calls.append("find_by_user_id")
        matching = [
            m for m in self.metrics
            if m.user_id == user_id
            and (filters.type is None or m.type == filters.type)
            and (filters.start_date is None or m.date >= filters.start_date)
            and (filters.end_date is None or m.date <= filters.end_date)
        ]
        matching.sort(key=lambda m: (m.date, m.created_at, m.id), reverse=True)
        page = matching[filters.offset:filters.offset + filters.limit]
        return FindByUserIdResult(data=page, total=len(matching))

    def get_chart_data(
        self, user_id: str, type_: MetricType, start_date: date, end_date: date
    ) -> list[Metric]:
        self.calls.append("get_chart_data")
        return latest_per_day(
            m for m in self.metrics
            if m.user_id == user_id and m.type == type_ and start_date <= m.date <= end_date
        )


@pytest.fixture()
def repo():
    return InMemoryMetricRepository()
