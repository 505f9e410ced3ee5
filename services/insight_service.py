"""
LLM insights: priority suggestions, production analysis and free-text Q&A.

Everything here is advisory. A priority suggestion is returned to the
caller and only takes effect if it is applied through the order service.
"""

from typing import Optional, Callable
from datetime import date, timedelta
from collections import Counter
import json
import structlog

from models.order import OrderStatus, Priority, total_quantity
from models.reports import (
    Level,
    PrioritySuggestion,
    ProductionAnalysis,
    ProductionMetrics,
    ProductionInsights,
    QuestionAnswer,
)
from integrations.llm import LLMClient
from services.entity_store import EntityStore
from services.report_service import (
    in_range,
    fulfilled_orders,
    fulfillment_days,
    average_fulfillment_days,
)
from exceptions import OrderNotFoundError, ValidationError
from utils.time_utils import utcnow

logger = structlog.get_logger(__name__)

# Trailing window of metrics given to free-text questions
QUESTION_WINDOW_DAYS = 30

LEVELS = [level.value for level in Level]

PRIORITY_SCHEMA = {
    "type": "object",
    "properties": {
        "suggested_priority": {"type": "string", "enum": [p.value for p in Priority]},
        "reasoning": {"type": "string"},
        "confidence": {"type": "string", "enum": LEVELS},
    },
    "required": ["suggested_priority", "reasoning", "confidence"],
}

ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "health_assessment": {"type": "string"},
        "bottlenecks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "severity": {"type": "string", "enum": LEVELS},
                },
            },
        },
        "recommendations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "impact": {"type": "string", "enum": LEVELS},
                },
            },
        },
        "key_trend": {"type": "string"},
    },
    "required": ["health_assessment", "bottlenecks", "recommendations", "key_trend"],
}

ANSWER_SCHEMA = {
    "type": "object",
    "properties": {"answer": {"type": "string"}},
    "required": ["answer"],
}


def order_context(order: dict) -> str:
    """Plain-text summary of an order for the priority prompt."""
    address = order.get("shipping_address") or {}
    items = order.get("items") or []
    lines = [
        f"Order number: {order.get('order_number')}",
        f"Customer: {order.get('customer_name')}",
        f"Order value: ${order.get('order_value') or 0:.2f}",
        f"Total weight: {order.get('total_weight') or 0} lb",
        f"International: {'yes' if order.get('is_international') else 'no'}"
        f" (ships to {address.get('country') or 'US'})",
        f"Current priority: {order.get('priority') or Priority.NORMAL.value}",
        f"Line items: {len(items)}",
        f"Total quantity: {total_quantity(items)}",
        f"Special instructions: {order.get('special_instructions') or 'none'}",
        f"Created: {order.get('created_date')}",
        f"Source: {order.get('source') or 'manual'}",
    ]
    return "\n".join(lines)


def production_metrics(orders: list[dict], shipments: list[dict]) -> ProductionMetrics:
    """Summary statistics over the orders and shipments of a period."""
    days = [d for d in (fulfillment_days(o) for o in fulfilled_orders(orders)) if d is not None]
    weights = [o.get("total_weight") or 0 for o in orders]

    return ProductionMetrics(
        total_orders=len(orders),
        fulfilled_orders=len(fulfilled_orders(orders)),
        pending_orders=sum(1 for o in orders if o.get("status") == OrderStatus.PENDING.value),
        production_orders=sum(1 for o in orders if o.get("status") == OrderStatus.PRODUCTION.value),
        avg_fulfillment_days=average_fulfillment_days(orders),
        avg_weight=round(sum(weights) / len(weights), 1) if weights else 0.0,
        total_shipments=len(shipments),
        fastest_fulfillment_days=min(days) if days else None,
        slowest_fulfillment_days=max(days) if days else None,
        status_breakdown=dict(Counter(o.get("status") or OrderStatus.PENDING.value for o in orders)),
        priority_breakdown=dict(Counter(o.get("priority") or Priority.NORMAL.value for o in orders)),
    )


class InsightService:
    """
    LLM-backed analysis.

    llm_factory returns an object with invoke(prompt, schema) -> dict.
    """

    def __init__(self, llm_factory: Callable[[], LLMClient] = LLMClient.from_settings):
        self.orders = EntityStore("orders")
        self.shipments = EntityStore("shipments")
        self.llm_factory = llm_factory

    def _metrics(self, date_from: date, date_to: date) -> ProductionMetrics:
        orders = in_range(self.orders.list(sort="-created_date"), date_from, date_to)
        shipments = in_range(self.shipments.list(sort="-created_date"), date_from, date_to)
        return production_metrics(orders, shipments)

    def suggest_priority(self, order_id: str) -> PrioritySuggestion:
        """
        Ask the LLM what priority an order deserves.

        Nothing is written.

        Raises:
            OrderNotFoundError: If order doesn't exist
            LLMError: LLM call failed or returned an unusable answer
        """
        order = self.orders.get(order_id)
        if not order:
            raise OrderNotFoundError(order_id)

        llm = self.llm_factory()

        prompt = (
            "Suggest a fulfillment priority (rush, priority or normal) for this order. "
            "Consider order value, weight, destination, special instructions and age.\n\n"
            f"{order_context(order)}"
        )
        result = llm.invoke(prompt, PRIORITY_SCHEMA)

        suggestion = PrioritySuggestion(
            order_id=order_id,
            current_priority=order.get("priority") or Priority.NORMAL.value,
            suggested_priority=result["suggested_priority"],
            reasoning=result["reasoning"],
            confidence=result["confidence"],
        )

        logger.info(
            "priority_suggested",
            order_id=order_id,
            current_priority=suggestion.current_priority.value,
            suggested_priority=suggestion.suggested_priority.value,
            confidence=suggestion.confidence.value
        )

        return suggestion

    def production_insights(self, date_from: date, date_to: date) -> ProductionInsights:
        """
        Metrics for a period plus the LLM's reading of them.

        Raises:
            ValidationError: date_from after date_to
            LLMError: LLM call failed or returned an unusable answer
        """
        if date_from > date_to:
            raise ValidationError("date_from must be on or before date_to", code="INVALID_DATE_RANGE")

        metrics = self._metrics(date_from, date_to)
        llm = self.llm_factory()

        prompt = (
            f"Analyze warehouse fulfillment performance from {date_from.isoformat()} "
            f"to {date_to.isoformat()}. Assess overall health, name bottlenecks with "
            "a severity, recommend improvements with an expected impact and state "
            "the key trend.\n\n"
            f"Metrics:\n{json.dumps(metrics.model_dump(), indent=2)}"
        )
        analysis = ProductionAnalysis.model_validate(llm.invoke(prompt, ANALYSIS_SCHEMA))

        logger.info(
            "production_insights_generated",
            date_from=date_from.isoformat(),
            date_to=date_to.isoformat(),
            bottlenecks=len(analysis.bottlenecks),
            recommendations=len(analysis.recommendations)
        )

        return ProductionInsights(metrics=metrics, insights=analysis)

    def ask(self, question: str, today: Optional[date] = None) -> QuestionAnswer:
        """Answer a free-text question using the last 30 days of metrics."""
        question = (question or "").strip()
        if not question:
            raise ValidationError("Question is required", code="QUESTION_REQUIRED")

        today = today or utcnow().date()
        metrics = self._metrics(today - timedelta(days=QUESTION_WINDOW_DAYS), today)
        llm = self.llm_factory()

        prompt = (
            "Answer the question about warehouse operations using these metrics "
            f"for the last {QUESTION_WINDOW_DAYS} days.\n\n"
            f"Metrics:\n{json.dumps(metrics.model_dump(), indent=2)}\n\n"
            f"Question: {question}"
        )
        result = llm.invoke(prompt, ANSWER_SCHEMA)

        logger.info("question_answered", question_length=len(question))

        return QuestionAnswer(question=question, answer=result["answer"])


# Singleton instance
_insight_service: Optional[InsightService] = None


def get_insight_service() -> InsightService:
    """Get or create InsightService instance."""
    global _insight_service
    if _insight_service is None:
        _insight_service = InsightService()
    return _insight_service
