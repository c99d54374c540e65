"""
Unit tests for the metric services (create / list / chart) against the
in-memory repository. No HTTP layer, no database.
"""
from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from app.core.errors import (
    InvalidDateRangeError,
    InvalidMetricTypeError,
    InvalidPeriodError,
    InvalidUnitError,
    InvalidValueError,
    StorageError,
)
from app.domain.units import MetricType
from app.repositories.metric_repository import latest_per_day
from app.services.metrics import (
    ChartQuery,
    CreateMetricInput,
    ListMetricsQuery,
    create_metric,
    get_chart_data,
    list_metrics,
    subtract_months,
    total_pages,
)

TODAY = date(2025, 12, 15)


def _at(day: date, hour: int) -> datetime:
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


class FailingRepository:
    def save(self, metric):
        raise StorageError("save")


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreateMetric:
    def test_centimeters_are_normalized_to_meters(self, repo):
        data = CreateMetricInput.from_raw(
            user_id="user-1", type="distance", value=100, unit="centimeter", date="2025-12-01",
        )
        view = create_metric(repo, data)
        assert view.value == 100
        assert view.unit == "centimeter"
        assert view.original_value == pytest.approx(1)
        assert view.original_unit == "meter"
        assert view.date == date(2025, 12, 1)
        assert repo.calls == ["save"]
        assert repo.metrics[0].base_value == pytest.approx(1)

    def test_rejects_unit_of_other_type_before_storage(self, repo):
        data = CreateMetricInput.from_raw(
            user_id="user-1", type="distance", value=1, unit="kelvin", date="2025-12-01",
        )
        with pytest.raises(InvalidUnitError) as exc:
            create_metric(repo, data)
        assert "meter, centimeter, inch, feet, yard" in exc.value.message
        assert repo.calls == []

    def test_rejects_unknown_type_before_storage(self, repo):
        data = CreateMetricInput.from_raw(
            user_id="user-1", type="weight", value=1, unit="kilogram", date="2025-12-01",
        )
        with pytest.raises(InvalidMetricTypeError):
            create_metric(repo, data)
        assert repo.calls == []

    def test_type_and_unit_are_case_insensitive(self, repo):
        data = CreateMetricInput.from_raw(
            user_id="user-1", type="Temperature", value=0, unit="CELSIUS", date="2025-12-01",
        )
        view = create_metric(repo, data)
        assert view.type is MetricType.temperature
        assert view.unit == "celsius"
        assert view.original_value == pytest.approx(273.15)
        assert view.original_unit == "kelvin"

    def test_numeric_string_value(self, repo):
        data = CreateMetricInput.from_raw(
            user_id="user-1", type="distance", value="12.5", unit="meter", date="2025-12-01",
        )
        assert create_metric(repo, data).value == 12.5

    def test_non_numeric_value(self):
        with pytest.raises(InvalidValueError):
            CreateMetricInput.from_raw(
                user_id="user-1", type="distance", value="far", unit="meter", date="2025-12-01",
            )

    def test_fahrenheit_boiling_point(self, repo):
        data = CreateMetricInput.from_raw(
            user_id="user-1", type="temperature", value=212, unit="fahrenheit", date="2025-12-01",
        )
        assert create_metric(repo, data).original_value == pytest.approx(373.15)

    def test_storage_failure_propagates(self):
        data = CreateMetricInput.from_raw(
            user_id="user-1", type="distance", value=1, unit="meter", date="2025-12-01",
        )
        with pytest.raises(StorageError):
            create_metric(FailingRepository(), data)


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------

class TestListMetrics:
    def test_converts_to_requested_unit(self, repo):
        repo.add("distance", 1, "meter", 1, date(2025, 12, 1))
        page = list_metrics(repo, ListMetricsQuery.from_raw(user_id="user-1", unit="feet"))
        item = page.data[0]
        assert item.original_value == 3.2808
        assert item.original_unit == "feet"
        assert item.value == 1
        assert item.unit == "meter"

    def test_passes_through_without_target_unit(self, repo):
        repo.add("temperature", 20, "celsius", 293.15, date(2025, 12, 1))
        item = list_metrics(repo, ListMetricsQuery.from_raw(user_id="user-1")).data[0]
        assert item.original_value == 20
        assert item.original_unit == "celsius"

    def test_same_unit_is_not_converted(self, repo):
        repo.add("distance", 3, "feet", 0.9144, date(2025, 12, 1))
        item = list_metrics(
            repo, ListMetricsQuery.from_raw(user_id="user-1", type="distance", unit="feet"),
        ).data[0]
        assert item.original_value == 3
        assert item.original_unit == "feet"

    def test_rejects_unit_incompatible_with_type(self, repo):
        query = ListMetricsQuery.from_raw(user_id="user-1", type="distance", unit="celsius")
        with pytest.raises(InvalidUnitError):
            list_metrics(repo, query)
        assert repo.calls == []

    def test_unit_without_type_converts_only_matching_metrics(self, repo):
        repo.add("distance", 1, "meter", 1, date(2025, 12, 2))
        repo.add("temperature", 0, "celsius", 273.15, date(2025, 12, 1))
        page = list_metrics(repo, ListMetricsQuery.from_raw(user_id="user-1", unit="feet"))
        distance, temperature = page.data
        assert distance.original_unit == "feet"
        assert temperature.original_unit == "celsius"
        assert temperature.original_value == 0

    def test_filters_by_type(self, repo):
        repo.add("distance", 1, "meter", 1, date(2025, 12, 2))
        repo.add("temperature", 0, "celsius", 273.15, date(2025, 12, 1))
        page = list_metrics(repo, ListMetricsQuery.from_raw(user_id="user-1", type="temperature"))
        assert [m.type for m in page.data] == [MetricType.temperature]
        assert page.pagination.total == 1

    def test_newest_first(self, repo):
        repo.add("distance", 1, "meter", 1, date(2025, 12, 1), created_at=_at(date(2025, 12, 1), 8))
        repo.add("distance", 2, "meter", 2, date(2025, 12, 3), created_at=_at(date(2025, 12, 3), 8))
        repo.add("distance", 3, "meter", 3, date(2025, 12, 3), created_at=_at(date(2025, 12, 3), 9))
        page = list_metrics(repo, ListMetricsQuery.from_raw(user_id="user-1"))
        assert [m.value for m in page.data] == [3, 2, 1]

    def test_pagination(self, repo):
        for day in range(1, 6):
            repo.add("distance", day, "meter", day, date(2025, 12, day))
        page = list_metrics(repo, ListMetricsQuery.from_raw(user_id="user-1", page=3, limit=2))
        assert [m.value for m in page.data] == [1]
        assert page.pagination.page == 3
        assert page.pagination.limit == 2
        assert page.pagination.total == 5
        assert page.pagination.total_pages == 3

    def test_empty_result(self, repo):
        page = list_metrics(repo, ListMetricsQuery.from_raw(user_id="nobody"))
        assert page.data == []
        assert page.pagination.total == 0
        assert page.pagination.total_pages == 0


class TestListMetricsQuery:
    def test_defaults(self):
        q = ListMetricsQuery.from_raw(user_id="u")
        assert (q.page, q.limit, q.offset) == (1, 20, 0)

    def test_limit_is_capped(self):
        assert ListMetricsQuery.from_raw(user_id="u", limit=500).limit == 100

    def test_garbage_page_and_limit_fall_back(self):
        q = ListMetricsQuery.from_raw(user_id="u", page="abc", limit=0)
        assert (q.page, q.limit) == (1, 20)

    def test_offset(self):
        assert ListMetricsQuery.from_raw(user_id="u", page=4, limit=10).offset == 30

    def test_lowercases(self):
        q = ListMetricsQuery.from_raw(user_id="u", type="DISTANCE", unit="Feet")
        assert (q.type, q.unit) == ("distance", "feet")

    def test_date_range(self):
        q = ListMetricsQuery.from_raw(user_id="u", start_date="2025-12-01", end_date="2025-12-31")
        assert q.start_date == date(2025, 12, 1)
        assert q.end_date == date(2025, 12, 31)

    def test_reversed_date_range(self):
        with pytest.raises(InvalidDateRangeError):
            ListMetricsQuery.from_raw(user_id="u", start_date="2025-12-31", end_date="2025-12-01")


@pytest.mark.parametrize(
    "total,limit,expected",
    [(0, 20, 0), (1, 20, 1), (20, 20, 1), (21, 20, 2), (100, 7, 15), (5, 1, 5)],
)
def test_total_pages(total, limit, expected):
    assert total_pages(total, limit) == expected


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------

class TestChartData:
    def test_celsius_points_in_fahrenheit_sorted_ascending(self, repo):
        repo.add("temperature", 10, "celsius", 283.15, date(2025, 12, 11))
        repo.add("temperature", 0, "celsius", 273.15, date(2025, 12, 10))
        query = ChartQuery.from_raw(
            user_id="user-1", type="temperature", unit="fahrenheit", today=TODAY,
        )
        chart = get_chart_data(repo, query)
        assert [p.date for p in chart.data] == [date(2025, 12, 10), date(2025, 12, 11)]
        assert [p.value for p in chart.data] == [pytest.approx(32), pytest.approx(50)]
        assert all(p.unit == "fahrenheit" for p in chart.data)
        assert chart.data_points == 2
        assert chart.unit == "fahrenheit"
        assert chart.type is MetricType.temperature

    def test_latest_entry_of_the_day_wins(self, repo):
        day = date(2025, 12, 12)
        repo.add("distance", 5, "meter", 5, day, created_at=_at(day, 18))
        repo.add("distance", 1, "meter", 1, day, created_at=_at(day, 7))
        chart = get_chart_data(repo, ChartQuery.from_raw(user_id="user-1", type="distance", today=TODAY))
        assert [p.value for p in chart.data] == [5]

    def test_default_units(self, repo):
        repo.add("temperature", 300, "kelvin", 300, date(2025, 12, 1))
        temp = get_chart_data(repo, ChartQuery.from_raw(user_id="user-1", type="temperature", today=TODAY))
        assert temp.unit == "celsius"
        assert temp.data[0].value == pytest.approx(26.85)
        dist = get_chart_data(repo, ChartQuery.from_raw(user_id="user-1", type="distance", today=TODAY))
        assert dist.unit == "meter"

    def test_values_rounded_to_four_decimals(self, repo):
        repo.add("distance", 1, "meter", 1, date(2025, 12, 1))
        chart = get_chart_data(
            repo, ChartQuery.from_raw(user_id="user-1", type="distance", unit="inch", today=TODAY),
        )
        assert chart.data[0].value == 39.3701

    def test_one_month_window(self, repo):
        repo.add("distance", 1, "meter", 1, date(2025, 11, 14))
        repo.add("distance", 2, "meter", 2, date(2025, 11, 15))
        repo.add("distance", 3, "meter", 3, TODAY)
        chart = get_chart_data(repo, ChartQuery.from_raw(user_id="user-1", type="distance", today=TODAY))
        assert chart.start_date == date(2025, 11, 15)
        assert chart.end_date == TODAY
        assert chart.period == "1month"
        assert [p.value for p in chart.data] == [2, 3]

    def test_two_month_window(self, repo):
        repo.add("distance", 1, "meter", 1, date(2025, 10, 15))
        chart = get_chart_data(
            repo, ChartQuery.from_raw(user_id="user-1", type="distance", period="2month", today=TODAY),
        )
        assert chart.start_date == date(2025, 10, 15)
        assert chart.data_points == 1

    def test_invalid_period(self):
        with pytest.raises(InvalidPeriodError):
            ChartQuery.from_raw(user_id="user-1", type="distance", period="1year", today=TODAY)

    def test_invalid_type(self, repo):
        with pytest.raises(InvalidMetricTypeError):
            get_chart_data(repo, ChartQuery.from_raw(user_id="user-1", type="speed", today=TODAY))
        assert repo.calls == []

    def test_unit_incompatible_with_type(self, repo):
        query = ChartQuery.from_raw(user_id="user-1", type="temperature", unit="yard", today=TODAY)
        with pytest.raises(InvalidUnitError):
            get_chart_data(repo, query)
        assert repo.calls == []


class TestSubtractMonths:
    @pytest.mark.parametrize(
        "day,months,expected",
        [
            (date(2025, 12, 15), 1, date(2025, 11, 15)),
            (date(2026, 1, 10), 1, date(2025, 12, 10)),
            (date(2026, 3, 31), 1, date(2026, 2, 28)),
            (date(2026, 3, 31), 2, date(2026, 1, 31)),
            (date(2024, 3, 31), 1, date(2024, 2, 29)),
            (date(2025, 2, 28), 2, date(2024, 12, 28)),
        ],
    )
    def test_calendar_months(self, day, months, expected):
        assert subtract_months(day, months) == expected


class TestLatestPerDay:
    def test_tie_on_created_at_keeps_highest_id(self, repo):
        day = date(2025, 12, 1)
        stamp = _at(day, 10)
        repo.add("distance", 1, "meter", 1, day, created_at=stamp, id="aaa")
        repo.add("distance", 2, "meter", 2, day, created_at=stamp, id="bbb")
        assert [m.id for m in latest_per_day(repo.metrics)] == ["bbb"]
        assert [m.id for m in latest_per_day(reversed(repo.metrics))] == ["bbb"]

    def test_sorted_by_date(self, repo):
        repo.add("distance", 1, "meter", 1, date(2025, 12, 3))
        repo.add("distance", 1, "meter", 1, date(2025, 12, 1))
        repo.add("distance", 1, "meter", 1, date(2025, 12, 2))
        assert [m.date.day for m in latest_per_day(repo.metrics)] == [1, 2, 3]
