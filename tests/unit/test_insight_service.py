"""
Unit tests for InsightService.

The LLM is replaced with a stub exposing invoke(prompt, schema).

Run: pytest tests/unit/test_insight_service.py -v
"""

import pytest
from datetime import date

from services.insight_service import (
    InsightService,
    PRIORITY_SCHEMA,
    ANALYSIS_SCHEMA,
    ANSWER_SCHEMA,
    order_context,
    production_metrics,
)
from integrations.llm import parse_json_response
from models.order import Priority
from exceptions import OrderNotFoundError, ValidationError, LLMError

from tests.factories import OrderFactory, ShipmentFactory


class StubLLM:
    """Records prompts and returns canned results per schema."""

    def __init__(self, results: dict):
        self.results = results
        self.calls = []

    def invoke(self, prompt: str, schema: dict) -> dict:
        self.calls.append((prompt, schema))
        return self.results[id(schema)]


def stub_factory(stub: StubLLM):
    return lambda: stub


class TestSuggestPriority:
    """Tests for InsightService.suggest_priority()"""

    def test_returns_suggestion_without_writing(self, mock_db, mock_supabase):
        # Arrange
        order = OrderFactory.create(priority="normal", special_instructions="Needed for a trade show")
        mock_supabase.set_table_data("orders", [order])
        stub = StubLLM({id(PRIORITY_SCHEMA): {
            "suggested_priority": "rush",
            "reasoning": "Trade show deadline",
            "confidence": "high",
        }})
        service = InsightService(llm_factory=stub_factory(stub))

        # Act
        suggestion = service.suggest_priority(order["id"])

        # Assert
        assert suggestion.current_priority == Priority.NORMAL
        assert suggestion.suggested_priority == Priority.RUSH
        assert "Needed for a trade show" in stub.calls[0][0]
        assert mock_supabase.get_row("orders", order["id"])["priority"] == "normal"
        assert mock_supabase.write_count("orders") == 0

    def test_unknown_order_skips_llm(self, mock_db, mock_supabase):
        stub = StubLLM({})
        service = InsightService(llm_factory=stub_factory(stub))

        with pytest.raises(OrderNotFoundError):
            service.suggest_priority("missing")

        assert stub.calls == []


class TestProductionInsights:
    """Tests for InsightService.production_insights()"""

    def test_metrics_and_analysis(self, mock_db, mock_supabase):
        # Arrange
        mock_supabase.set_table_data("orders", [
            OrderFactory.create(status="shipped", created_date="2026-03-02T09:00:00+00:00",
                                updated_date="2026-03-05T10:00:00+00:00"),
            OrderFactory.create(status="pending", created_date="2026-03-03T09:00:00+00:00"),
            OrderFactory.create(status="pending", created_date="2026-02-01T09:00:00+00:00"),
        ])
        mock_supabase.set_table_data("shipments", [
            ShipmentFactory.create(created_date="2026-03-05T10:00:00+00:00"),
        ])
        stub = StubLLM({id(ANALYSIS_SCHEMA): {
            "health_assessment": "Steady",
            "bottlenecks": [{"title": "Staging", "description": "Backlog", "severity": "medium"}],
            "recommendations": [],
            "key_trend": "Flat",
        }})
        service = InsightService(llm_factory=stub_factory(stub))

        # Act
        result = service.production_insights(date(2026, 3, 1), date(2026, 3, 7))

        # Assert
        assert result.metrics.total_orders == 2
        assert result.metrics.fulfilled_orders == 1
        assert result.metrics.avg_fulfillment_days == 3.0
        assert result.metrics.total_shipments == 1
        assert result.insights.bottlenecks[0].title == "Staging"

    def test_inverted_range(self, mock_db, mock_supabase):
        service = InsightService(llm_factory=stub_factory(StubLLM({})))

        with pytest.raises(ValidationError):
            service.production_insights(date(2026, 3, 7), date(2026, 3, 1))

    def test_llm_failure_propagates(self, mock_db, mock_supabase):
        class FailingLLM:
            def invoke(self, prompt, schema):
                raise LLMError("LLM API error: overloaded")

        service = InsightService(llm_factory=lambda: FailingLLM())

        with pytest.raises(LLMError):
            service.production_insights(date(2026, 3, 1), date(2026, 3, 7))


class TestAsk:
    """Tests for InsightService.ask()"""

    def test_answer(self, mock_db, mock_supabase):
        stub = StubLLM({id(ANSWER_SCHEMA): {"answer": "Twelve orders."}})
        service = InsightService(llm_factory=stub_factory(stub))

        result = service.ask("How many orders shipped?", today=date(2026, 3, 31))

        assert result.answer == "Twelve orders."
        assert "How many orders shipped?" in stub.calls[0][0]

    def test_blank_question(self, mock_db, mock_supabase):
        service = InsightService(llm_factory=stub_factory(StubLLM({})))

        with pytest.raises(ValidationError) as exc_info:
            service.ask("   ")

        assert exc_info.value.code == "QUESTION_REQUIRED"


class TestHelpers:
    """Tests for order_context(), production_metrics() and parse_json_response()"""

    def test_order_context_mentions_destination(self):
        text = order_context(OrderFactory.create(country="CA"))

        assert "International: yes (ships to CA)" in text

    def test_metrics_on_empty_period(self):
        metrics = production_metrics([], [])

        assert metrics.total_orders == 0
        assert metrics.avg_weight == 0.0
        assert metrics.fastest_fulfillment_days is None

    def test_parse_fenced_json(self):
        assert parse_json_response('```json\n{"answer": "ok"}\n```') == {"answer": "ok"}

    def test_parse_rejects_prose(self):
        with pytest.raises(LLMError):
            parse_json_response("Sure! Here is the answer.")
