"""
Production task, workstation and forecast schemas.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional
from enum import Enum
from datetime import datetime

from models.base import BaseSchema, TimestampMixin
from models.order import Priority
from config.workflow import DEFAULT_CAPACITY_HOURS_PER_DAY


class TaskStatus(str, Enum):
    """Production task status values."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


TASK_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.SCHEDULED: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.BLOCKED},
    TaskStatus.BLOCKED: {TaskStatus.IN_PROGRESS},
    TaskStatus.COMPLETED: set(),
}


def is_valid_task_transition(current: TaskStatus, new: TaskStatus) -> bool:
    """
    Check if a task status transition is allowed.

    scheduled -> in_progress -> completed, with in_progress <-> blocked.
    Completed is terminal.
    """
    return TaskStatus(new) in TASK_TRANSITIONS[TaskStatus(current)]


# ===================
# TASK SCHEMAS
# ===================

class ProductionTaskCreate(BaseSchema):
    """
    Schedule a task by hand.

    scheduled_end is derived from scheduled_start + estimated_hours.
    """

    order_id: Optional[str] = Field(None, description="Order this task produces")
    task_name: str = Field(..., min_length=1)
    workstation: Optional[str] = None
    priority: Priority = Priority.NORMAL
    scheduled_start: datetime
    estimated_hours: float = Field(8, gt=0)
    materials_ready: bool = True
    notes: Optional[str] = None


class BlockTaskRequest(BaseModel):
    """Reason a task cannot continue; whitespace is checked by the service."""
    reason: str = ""


class ProductionTaskResponse(BaseSchema, TimestampMixin):
    """Production task as stored."""

    id: str
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    task_name: str
    workstation: Optional[str] = None
    status: TaskStatus = TaskStatus.SCHEDULED
    priority: Priority = Priority.NORMAL
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    actual_hours: Optional[float] = None
    blocked_reason: Optional[str] = None
    materials_ready: bool = True
    notes: Optional[str] = None


class AutoScheduleResponse(BaseModel):
    """Tasks created by an auto-schedule run."""
    count: int
    message: str
    tasks: list[ProductionTaskResponse] = Field(default_factory=list)


# ===================
# WORKSTATIONS
# ===================

class WorkStationCreate(BaseSchema):
    """Create a workstation."""

    name: str = Field(..., min_length=1, max_length=100)
    capacity_hours_per_day: float = Field(DEFAULT_CAPACITY_HOURS_PER_DAY, gt=0)
    description: Optional[str] = None
    is_active: bool = True


class WorkStationUpdate(BaseSchema):
    """Partial workstation edit."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    capacity_hours_per_day: Optional[float] = Field(None, gt=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class WorkStationResponse(BaseSchema, TimestampMixin):
    """Workstation as stored."""

    id: str
    name: str
    capacity_hours_per_day: float = DEFAULT_CAPACITY_HOURS_PER_DAY
    description: Optional[str] = None
    is_active: bool = True

    @model_validator(mode="before")
    @classmethod
    def default_capacity(cls, data):
        if isinstance(data, dict) and not data.get("capacity_hours_per_day"):
            data = {**data, "capacity_hours_per_day": DEFAULT_CAPACITY_HOURS_PER_DAY}
        return data


class WorkStationUtilization(BaseModel):
    """Load on one workstation from its in-progress tasks."""
    workstation: WorkStationResponse
    active_tasks: int
    hours_used: float
    capacity: float
    utilization: float


# ===================
# KPIs AND FORECAST
# ===================

class ProductionKPIs(BaseModel):
    """Headline production counters."""
    scheduled_today: int
    in_progress: int
    blocked: int
    completed_this_week: int


class DailyCompletion(BaseModel):
    """Completed tasks on one past day."""
    date: str
    completed: int
    hours: float


class DailyForecast(BaseModel):
    """Scheduled and expected completions on one future day."""
    date: str
    scheduled: int
    forecast: int


class CapacityAnalysis(BaseModel):
    """Queue size and projected clear date."""
    total_scheduled: int
    total_in_progress: int
    avg_daily_completion: float
    estimated_days_to_complete: int
    projected_completion_date: str


class EstimationAccuracy(BaseModel):
    """
    How close estimates were to actuals for completed tasks.

    accuracy can go negative when the variance exceeds the estimate.
    """
    avg_actual_hours: float
    avg_estimated_hours: float
    variance: float
    accuracy: float


class ProductionForecast(BaseModel):
    """Full forecast payload."""
    history: list[DailyCompletion]
    forecast: list[DailyForecast]
    capacity: CapacityAnalysis
    accuracy: EstimationAccuracy


# ===================
# PRODUCTION LIST
# ===================

class ProductionListItem(BaseModel):
    """One line of the daily production list."""
    order_number: str
    item: str
    quantity: int
    special_options: Optional[str] = None
    order_options: Optional[str] = None


class ProductionListRequest(BaseModel):
    """Orders to include; empty means every order in production."""
    order_ids: list[str] = Field(default_factory=list)
