"""
Unit tests for production forecasting.

Run: pytest tests/unit/test_forecast_service.py -v
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from services.forecast_service import (
    ForecastService,
    historical_completions,
    average_daily_rate,
    queue_clear_days,
    forecast_next_days,
    estimation_accuracy,
    capacity_analysis,
)
from models.production import ProductionTaskResponse, DailyCompletion

from tests.factories import TaskFactory

TODAY = date(2026, 3, 10)


def completed_on(day: date, count: int, **overrides) -> list[dict]:
    at = datetime(day.year, day.month, day.day, 15, tzinfo=timezone.utc)
    return [TaskFactory.create_completed(at, **overrides) for _ in range(count)]


def tasks(rows: list[dict]) -> list[ProductionTaskResponse]:
    return [ProductionTaskResponse.model_validate(r) for r in rows]


class TestHistoricalCompletions:
    """Tests for historical_completions() and average_daily_rate()"""

    def test_trailing_week_counts(self):
        """Completions [2,3,1,0,4,2,3] oldest first."""
        # Arrange
        counts = [2, 3, 1, 0, 4, 2, 3]
        rows = []
        for offset, count in enumerate(counts):
            rows += completed_on(TODAY - timedelta(days=6 - offset), count)

        # Act
        history = historical_completions(tasks(rows), TODAY)

        # Assert
        assert [d.completed for d in history] == counts
        assert history[0].date == (TODAY - timedelta(days=6)).isoformat()
        assert history[-1].date == TODAY.isoformat()

    def test_rate_and_days_to_clear(self):
        """15 completions over 7 days; 10 queued tasks take 5 days."""
        history = [
            DailyCompletion(date=f"2026-03-0{i + 1}", completed=c, hours=0)
            for i, c in enumerate([2, 3, 1, 0, 4, 2, 3])
        ]

        rate = average_daily_rate(history)

        assert rate == pytest.approx(15 / 7)
        assert round(rate, 2) == 2.14
        assert queue_clear_days(10, rate) == 5

    def test_zero_rate_gives_zero_days(self):
        assert queue_clear_days(10, 0) == 0

    def test_completions_outside_window_ignored(self):
        rows = completed_on(TODAY - timedelta(days=7), 3)

        history = historical_completions(tasks(rows), TODAY)

        assert sum(d.completed for d in history) == 0

    def test_hours_fall_back_to_estimate(self):
        rows = completed_on(TODAY, 1, estimated_hours=6)
        rows[0]["actual_hours"] = None

        history = historical_completions(tasks(rows), TODAY)

        assert history[-1].hours == 6


class TestForecastNextDays:
    """Tests for forecast_next_days()"""

    def test_scheduled_ends_per_day(self):
        tomorrow = TODAY + timedelta(days=1)
        rows = [
            TaskFactory.create(status="scheduled", scheduled_end=f"{tomorrow.isoformat()}T10:00:00Z"),
            TaskFactory.create(status="scheduled", scheduled_end=f"{tomorrow.isoformat()}T16:00:00Z"),
            TaskFactory.create(status="in_progress", scheduled_end=f"{tomorrow.isoformat()}T16:00:00Z"),
        ]

        forecast = forecast_next_days(tasks(rows), TODAY, rate=15 / 7)

        assert len(forecast) == 7
        assert forecast[0].date == tomorrow.isoformat()
        assert forecast[0].scheduled == 2
        assert all(day.forecast == 2 for day in forecast)


class TestEstimationAccuracy:
    """Tests for estimation_accuracy()"""

    def test_variance_and_accuracy(self):
        rows = completed_on(TODAY, 1, actual_hours=6, estimated_hours=4)
        rows += completed_on(TODAY, 1, actual_hours=4, estimated_hours=4)

        result = estimation_accuracy(tasks(rows))

        assert result.avg_actual_hours == 5.0
        assert result.avg_estimated_hours == 4.0
        assert result.variance == 1.0
        assert result.accuracy == 75.0

    def test_no_estimates_is_fully_accurate(self):
        result = estimation_accuracy([])

        assert result.accuracy == 100.0
        assert result.variance == 0.0

    def test_accuracy_can_go_negative(self):
        rows = completed_on(TODAY, 1, actual_hours=10, estimated_hours=4)

        result = estimation_accuracy(tasks(rows))

        assert result.accuracy == -50.0


class TestCapacityAnalysis:
    """Tests for capacity_analysis()"""

    def test_projected_date(self):
        rows = [TaskFactory.create(status="scheduled") for _ in range(10)]

        result = capacity_analysis(tasks(rows), 15 / 7, TODAY)

        assert result.total_scheduled == 10
        assert result.avg_daily_completion == 2.1
        assert result.estimated_days_to_complete == 5
        assert result.projected_completion_date == "Mar 15, 2026"

    def test_no_throughput(self):
        rows = [TaskFactory.create(status="scheduled")]

        result = capacity_analysis(tasks(rows), 0, TODAY)

        assert result.projected_completion_date == "N/A"
        assert result.estimated_days_to_complete == 0

    def test_empty_queue_with_throughput(self):
        rows = completed_on(TODAY - timedelta(days=2), 1)

        result = capacity_analysis(tasks(rows), 1 / 7, TODAY)

        assert result.total_scheduled == 0
        assert result.estimated_days_to_complete == 0
        assert result.projected_completion_date == "N/A"


class TestForecastService:
    """Tests for ForecastService.get_forecast()"""

    def test_end_to_end(self, mock_db, mock_supabase):
        # Arrange
        rows = completed_on(TODAY, 7) + [TaskFactory.create(status="scheduled") for _ in range(3)]
        mock_supabase.set_table_data("production_tasks", rows)
        service = ForecastService()

        # Act
        result = service.get_forecast(today=TODAY)

        # Assert
        assert result.capacity.avg_daily_completion == 1.0
        assert result.capacity.total_scheduled == 3
        assert result.capacity.estimated_days_to_complete == 3
        assert len(result.history) == 7
        assert len(result.forecast) == 7
