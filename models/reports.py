"""
Report, dashboard and insight schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum
from datetime import date

from models.order import Priority, OrderResponse
from models.shipment import ShipmentResponse


class Level(str, Enum):
    """Severity / impact / confidence scale used by LLM output."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ===================
# DASHBOARD
# ===================

class DashboardStats(BaseModel):
    """Front-page counters."""
    pending_orders: int = Field(..., description="Orders pending or processing")
    urgent_orders: int = Field(..., description="Rush plus priority orders")
    shipments_today: int
    spend_today: float
    recent_orders: list[OrderResponse] = Field(default_factory=list)
    recent_shipments: list[ShipmentResponse] = Field(default_factory=list)


# ===================
# REPORTS
# ===================

class ReportKPIs(BaseModel):
    """Headline numbers for a date range."""
    orders_per_day: float
    avg_fulfillment_days: float
    total_items: int
    total_orders: int
    total_shipments: int


class DailyVolume(BaseModel):
    """Orders and shipments created on one day."""
    date: date
    orders: int
    shipments: int


class BreakdownEntry(BaseModel):
    """Count for one status or priority value."""
    name: str
    value: int


class ReportResponse(BaseModel):
    """Order and shipment report over a date range."""
    date_from: date
    date_to: date
    kpis: ReportKPIs
    daily: list[DailyVolume]
    status_breakdown: list[BreakdownEntry]
    priority_breakdown: list[BreakdownEntry]


# ===================
# INSIGHTS
# ===================

class PrioritySuggestion(BaseModel):
    """Advisory priority from the LLM. Never written back automatically."""
    order_id: str
    current_priority: Priority
    suggested_priority: Priority
    reasoning: str
    confidence: Level


class Bottleneck(BaseModel):
    title: str
    description: str
    severity: Level = Level.MEDIUM


class Recommendation(BaseModel):
    title: str
    description: str
    impact: Level = Level.MEDIUM


class ProductionAnalysis(BaseModel):
    """LLM reading of the production metrics."""
    health_assessment: str
    bottlenecks: list[Bottleneck] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    key_trend: str = ""


class ProductionMetrics(BaseModel):
    """Metrics handed to the LLM for a date range."""
    total_orders: int
    fulfilled_orders: int
    pending_orders: int
    production_orders: int
    avg_fulfillment_days: float
    avg_weight: float
    total_shipments: int
    fastest_fulfillment_days: Optional[int] = None
    slowest_fulfillment_days: Optional[int] = None
    status_breakdown: dict[str, int] = Field(default_factory=dict)
    priority_breakdown: dict[str, int] = Field(default_factory=dict)


class ProductionInsights(BaseModel):
    metrics: ProductionMetrics
    insights: ProductionAnalysis


class InsightRequest(BaseModel):
    """Date range for production insights."""
    date_from: date
    date_to: date


class QuestionRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=1000)


class QuestionAnswer(BaseModel):
    question: str
    answer: str
