"""
Production forecasting.

Read-only statistics derived from the production task list: completions
over the trailing week, expected completions for the coming week, how long
the scheduled queue will take to clear and how good the hour estimates
have been.
"""

from typing import Optional
from datetime import date, timedelta
from math import ceil
import structlog

from config.workflow import FORECAST_WINDOW_DAYS, TASK_FETCH_LIMIT
from models.production import (
    TaskStatus,
    ProductionTaskResponse,
    DailyCompletion,
    DailyForecast,
    CapacityAnalysis,
    EstimationAccuracy,
    ProductionForecast,
)
from services.entity_store import EntityStore
from utils.time_utils import utcnow, as_date

logger = structlog.get_logger(__name__)

PROJECTED_DATE_FORMAT = "%b %d, %Y"


# ===================
# CALCULATIONS
# ===================

def historical_completions(
    tasks: list[ProductionTaskResponse],
    today: date,
    days: int = FORECAST_WINDOW_DAYS
) -> list[DailyCompletion]:
    """
    Completed tasks per day over the window ending today, oldest first.

    Hours count actual_hours, falling back to estimated_hours.
    """
    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED and t.actual_end]

    history = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        done = [t for t in completed if as_date(t.actual_end) == day]
        history.append(DailyCompletion(
            date=day.isoformat(),
            completed=len(done),
            hours=sum(t.actual_hours or t.estimated_hours or 0 for t in done),
        ))
    return history


def average_daily_rate(history: list[DailyCompletion]) -> float:
    """Mean completions per day. Days with no completions count as zero."""
    if not history:
        return 0.0
    return sum(day.completed for day in history) / len(history)


def queue_clear_days(scheduled_count: int, rate: float) -> int:
    """Whole days to work through the scheduled queue; 0 when nothing completes."""
    if rate <= 0:
        return 0
    return ceil(scheduled_count / rate)


def forecast_next_days(
    tasks: list[ProductionTaskResponse],
    today: date,
    rate: float,
    days: int = FORECAST_WINDOW_DAYS
) -> list[DailyForecast]:
    """Scheduled task ends per day for the coming days, with the expected completions."""
    scheduled = [t for t in tasks if t.status == TaskStatus.SCHEDULED and t.scheduled_end]

    forecast = []
    for offset in range(1, days + 1):
        day = today + timedelta(days=offset)
        forecast.append(DailyForecast(
            date=day.isoformat(),
            scheduled=sum(1 for t in scheduled if as_date(t.scheduled_end) == day),
            forecast=round(rate),
        ))
    return forecast


def estimation_accuracy(tasks: list[ProductionTaskResponse]) -> EstimationAccuracy:
    """
    Compare actual to estimated hours over completed tasks.

    Averages are taken separately over tasks that recorded each value.
    Accuracy is 100 with no estimates and is not clamped at zero.
    """
    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    actuals = [t.actual_hours for t in completed if t.actual_hours]
    estimates = [t.estimated_hours for t in completed if t.estimated_hours]

    avg_actual = sum(actuals) / len(actuals) if actuals else 0.0
    avg_estimated = sum(estimates) / len(estimates) if estimates else 0.0
    variance = avg_actual - avg_estimated

    if avg_estimated > 0:
        accuracy = (1 - abs(variance) / avg_estimated) * 100
    else:
        accuracy = 100.0

    return EstimationAccuracy(
        avg_actual_hours=round(avg_actual, 1),
        avg_estimated_hours=round(avg_estimated, 1),
        variance=round(variance, 1),
        accuracy=round(accuracy, 1),
    )


def capacity_analysis(
    tasks: list[ProductionTaskResponse],
    rate: float,
    today: date
) -> CapacityAnalysis:
    """Queue sizes and the date the scheduled queue should clear."""
    total_scheduled = sum(1 for t in tasks if t.status == TaskStatus.SCHEDULED)
    total_in_progress = sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS)
    days = queue_clear_days(total_scheduled, rate)

    if days > 0:
        projected = (today + timedelta(days=days)).strftime(PROJECTED_DATE_FORMAT)
    else:
        projected = "N/A"

    return CapacityAnalysis(
        total_scheduled=total_scheduled,
        total_in_progress=total_in_progress,
        avg_daily_completion=round(rate, 1),
        estimated_days_to_complete=days,
        projected_completion_date=projected,
    )


class ForecastService:
    """Builds the forecast from the current task list."""

    def __init__(self):
        self.tasks = EntityStore("production_tasks")

    def get_forecast(self, today: Optional[date] = None) -> ProductionForecast:
        today = today or utcnow().date()

        rows = self.tasks.list(sort="-scheduled_start", limit=TASK_FETCH_LIMIT)
        tasks = [ProductionTaskResponse.model_validate(row) for row in rows]

        history = historical_completions(tasks, today)
        rate = average_daily_rate(history)

        result = ProductionForecast(
            history=history,
            forecast=forecast_next_days(tasks, today, rate),
            capacity=capacity_analysis(tasks, rate, today),
            accuracy=estimation_accuracy(tasks),
        )

        logger.info(
            "production_forecast_computed",
            tasks=len(tasks),
            avg_daily_completion=result.capacity.avg_daily_completion,
            days_to_clear=result.capacity.estimated_days_to_complete
        )

        return result


# Singleton instance
_forecast_service: Optional[ForecastService] = None


def get_forecast_service() -> ForecastService:
    """Get or create ForecastService instance."""
    global _forecast_service
    if _forecast_service is None:
        _forecast_service = ForecastService()
    return _forecast_service
