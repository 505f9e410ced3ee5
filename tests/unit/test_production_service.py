"""
Unit tests for ProductionService.

Run: pytest tests/unit/test_production_service.py -v
"""

import random
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from config import settings
from config.workflow import DEFAULT_WORKSTATION
from services.production_service import ProductionService, estimate_task_hours
from models.production import (
    TaskStatus,
    ProductionTaskCreate,
    WorkStationCreate,
    is_valid_task_transition,
)
from exceptions import (
    ProductionTaskNotFoundError,
    InvalidStatusTransitionError,
    BlockedReasonRequiredError,
    ValidationError,
    IntegrationNotConfiguredError,
)

from tests.factories import OrderFactory, TaskFactory

NOW = datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc)  # a Wednesday


class TestEstimateTaskHours:
    """Tests for estimate_task_hours()"""

    def test_half_hour_per_unit(self):
        """2 + 1 units -> 1.5 hours."""
        items = [{"quantity": 2, "weight": 3}, {"quantity": 1, "weight": 5}]

        assert estimate_task_hours(items) == 1.5

    def test_never_under_one_hour(self):
        assert estimate_task_hours([{"quantity": 1}]) == 1.0

    def test_no_items_counts_as_one_unit(self):
        assert estimate_task_hours([]) == 1.0


class TestProductionServiceTasks:
    """Tests for task creation and the task state machine"""

    def test_create_task_derives_end_and_order_number(self, mock_db, mock_supabase):
        # Arrange
        order = OrderFactory.create(order_number="ORD-77")
        mock_supabase.set_table_data("orders", [order])
        service = ProductionService()

        # Act
        task = service.create_task(ProductionTaskCreate(
            order_id=order["id"],
            task_name="Cut panels",
            scheduled_start=NOW,
            estimated_hours=3,
        ))

        # Assert
        assert task.order_number == "ORD-77"
        assert task.status == TaskStatus.SCHEDULED
        assert task.scheduled_end == NOW + timedelta(hours=3)

    def test_create_task_without_order(self, mock_db, mock_supabase):
        service = ProductionService()

        task = service.create_task(ProductionTaskCreate(task_name="Maintenance", scheduled_start=NOW))

        assert task.order_number == "N/A"

    def test_start_then_complete_records_whole_hours(self, mock_db, mock_supabase):
        row = TaskFactory.create(status="scheduled", estimated_hours=4)
        mock_supabase.set_table_data("production_tasks", [row])
        service = ProductionService()

        service.start_task(row["id"], now=NOW)
        task = service.complete_task(row["id"], now=NOW + timedelta(hours=2, minutes=59))

        assert task.status == TaskStatus.COMPLETED
        assert task.actual_hours == 2
        assert task.actual_end == NOW + timedelta(hours=2, minutes=59)

    def test_complete_without_start_uses_estimate(self, mock_db, mock_supabase):
        row = TaskFactory.create(status="in_progress", estimated_hours=5)
        mock_supabase.set_table_data("production_tasks", [row])
        service = ProductionService()

        task = service.complete_task(row["id"], now=NOW)

        assert task.actual_hours == 5

    def test_cannot_complete_scheduled_task(self, mock_db, mock_supabase):
        row = TaskFactory.create(status="scheduled")
        mock_supabase.set_table_data("production_tasks", [row])
        service = ProductionService()

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            service.complete_task(row["id"], now=NOW)

        assert exc_info.value.details["entity"] == "Task"
        assert mock_supabase.get_row("production_tasks", row["id"])["status"] == "scheduled"

    def test_block_requires_reason(self, mock_db, mock_supabase):
        row = TaskFactory.create(status="in_progress")
        mock_supabase.set_table_data("production_tasks", [row])
        service = ProductionService()

        with pytest.raises(BlockedReasonRequiredError):
            service.block_task(row["id"], "  ")

        assert mock_supabase.table("production_tasks").calls == []

    def test_block_and_resume(self, mock_db, mock_supabase):
        row = TaskFactory.create(status="in_progress")
        mock_supabase.set_table_data("production_tasks", [row])
        service = ProductionService()

        blocked = service.block_task(row["id"], "Waiting on glass")
        resumed = service.resume_task(row["id"])

        assert blocked.status == TaskStatus.BLOCKED
        assert blocked.blocked_reason == "Waiting on glass"
        assert resumed.status == TaskStatus.IN_PROGRESS
        assert resumed.blocked_reason is None

    def test_completed_is_terminal(self):
        assert not any(is_valid_task_transition(TaskStatus.COMPLETED, s) for s in TaskStatus)

    def test_missing_task(self, mock_db, mock_supabase):
        service = ProductionService()

        with pytest.raises(ProductionTaskNotFoundError):
            service.start_task("missing")


class TestProductionServiceAutoSchedule:
    """Tests for ProductionService.auto_schedule()"""

    def test_estimate_and_end_from_items(self, mock_db, mock_supabase):
        """Quantities 2 and 1 -> 1.5 hours, one day long."""
        # Arrange
        order = OrderFactory.create(
            status="production",
            customer_name="Acme",
            items=[{"sku": "A", "quantity": 2, "weight": 3}, {"sku": "B", "quantity": 1, "weight": 5}],
        )
        mock_supabase.set_table_data("orders", [order])
        service = ProductionService()

        # Act
        result = service.auto_schedule(rng=random.Random(1), now=NOW)

        # Assert
        assert result.count == 1
        task = result.tasks[0]
        assert task.estimated_hours == 1.5
        assert task.task_name == "Acme - 3 items"
        assert task.workstation == DEFAULT_WORKSTATION
        assert task.scheduled_start == NOW
        assert task.scheduled_end == NOW + timedelta(days=1)

    def test_priority_order_and_back_to_back_cursor(self, mock_db, mock_supabase):
        # Arrange
        normal = OrderFactory.create_aged(30, status="production", priority="normal")
        rush = OrderFactory.create_aged(1, status="production", priority="rush",
                                        items=[{"sku": "R", "quantity": 20}])
        priority = OrderFactory.create_aged(5, status="production", priority="priority")
        mock_supabase.set_table_data("orders", [normal, rush, priority])
        service = ProductionService()

        # Act
        result = service.auto_schedule(rng=random.Random(1), now=NOW)

        # Assert
        assert [t.order_id for t in result.tasks] == [rush["id"], priority["id"], normal["id"]]
        # 20 units -> 10 hours -> 2 days
        assert result.tasks[0].scheduled_end == NOW + timedelta(days=2)
        assert result.tasks[1].scheduled_start == result.tasks[0].scheduled_end
        assert result.tasks[2].scheduled_start == result.tasks[1].scheduled_end

    def test_skips_orders_that_already_have_tasks(self, mock_db, mock_supabase):
        scheduled = OrderFactory.create(status="production")
        mock_supabase.set_table_data("orders", [scheduled, OrderFactory.create(status="pending")])
        mock_supabase.set_table_data("production_tasks", [TaskFactory.create(order_id=scheduled["id"])])
        service = ProductionService()

        result = service.auto_schedule(now=NOW)

        assert result.count == 0
        assert result.message == "No new orders to schedule"
        assert len(mock_supabase.get_table_data("production_tasks")) == 1

    def test_workstation_drawn_from_injected_rng(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("orders", OrderFactory.create_batch(4, status="production"))
        mock_supabase.set_table_data("workstations", [
            {"id": "w1", "name": "Saw", "is_active": True},
            {"id": "w2", "name": "Press", "is_active": True},
            {"id": "w3", "name": "Retired", "is_active": False},
        ])

        first = ProductionService().auto_schedule(rng=random.Random(42), now=NOW)
        mock_supabase.set_table_data("production_tasks", [])
        second = ProductionService().auto_schedule(rng=random.Random(42), now=NOW)

        stations = [t.workstation for t in first.tasks]
        assert stations == [t.workstation for t in second.tasks]
        assert set(stations) <= {"Saw", "Press"}
        assert first.message == "Scheduled 4 new tasks"


class TestProductionServiceWorkstations:
    """Tests for workstation utilization"""

    def test_utilization_is_capped(self, mock_db, mock_supabase):
        # Arrange
        mock_supabase.set_table_data("workstations", [
            {"id": "w1", "name": "Saw", "is_active": True, "capacity_hours_per_day": 8},
            {"id": "w2", "name": "Press", "is_active": True, "capacity_hours_per_day": 10},
        ])
        mock_supabase.set_table_data("production_tasks", [
            TaskFactory.create(status="in_progress", workstation="Saw", estimated_hours=6),
            TaskFactory.create(status="in_progress", workstation="Saw", estimated_hours=6),
            TaskFactory.create(status="in_progress", workstation="Press", estimated_hours=3),
            TaskFactory.create(status="scheduled", workstation="Press", estimated_hours=8),
        ])
        service = ProductionService()

        # Act
        result = {u.workstation.name: u for u in service.get_utilization()}

        # Assert
        assert result["Saw"].utilization == 100.0
        assert result["Saw"].active_tasks == 2
        assert result["Press"].utilization == 30.0

    def test_create_workstation_defaults(self, mock_db, mock_supabase):
        service = ProductionService()

        station = service.create_workstation(WorkStationCreate(name="Paint"))

        assert station.capacity_hours_per_day == 8.0
        assert station.is_active is True


class TestProductionServiceKPIs:
    """Tests for ProductionService.get_kpis()"""

    def test_counts(self, mock_db, mock_supabase):
        sunday = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
        last_saturday = datetime(2026, 2, 28, 12, tzinfo=timezone.utc)
        mock_supabase.set_table_data("production_tasks", [
            TaskFactory.create(status="scheduled", scheduled_start=NOW.isoformat()),
            TaskFactory.create(status="scheduled", scheduled_start=(NOW + timedelta(days=1)).isoformat()),
            TaskFactory.create(status="in_progress"),
            TaskFactory.create(status="blocked"),
            TaskFactory.create_completed(sunday),
            TaskFactory.create_completed(last_saturday),
        ])
        service = ProductionService()

        kpis = service.get_kpis(now=NOW)

        assert kpis.scheduled_today == 1
        assert kpis.in_progress == 1
        assert kpis.blocked == 1
        assert kpis.completed_this_week == 1


class TestProductionList:
    """Tests for build_production_list() and email_production_list()"""

    def test_shorthand_replaces_item_name(self, mock_db, mock_supabase):
        # Arrange
        order = OrderFactory.create(status="production", order_number="ORD-9", items=[
            {"sku": "shelf-36", "name": "Shelf 36in oak", "quantity": 2, "options": "Left"},
            {"sku": "BOLT", "name": "Bolt pack", "quantity": 1},
        ])
        mock_supabase.set_table_data("orders", [order, OrderFactory.create(status="pending")])
        mock_supabase.set_table_data("product_shorthands", [
            {"id": "s1", "sku": "SHELF-36", "shorthand": "S36", "special_options": "Oak"},
        ])
        service = ProductionService()

        # Act
        lines = service.build_production_list()

        # Assert
        assert len(lines) == 2
        assert lines[0].item == "S36"
        assert lines[0].special_options == "Oak"
        assert lines[0].order_options == "Left"
        assert lines[1].item == "Bolt pack"

    def test_order_ids_narrow_the_list(self, mock_db, mock_supabase):
        wanted, other = OrderFactory.create_batch(2, status="production")
        mock_supabase.set_table_data("orders", [wanted, other])
        service = ProductionService()

        lines = service.build_production_list([wanted["id"]])

        assert {line.order_number for line in lines} == {wanted["order_number"]}

    def test_email_empty_list_rejected(self, mock_db, mock_supabase):
        service = ProductionService()

        with pytest.raises(ValidationError) as exc_info:
            service.email_production_list("floor@example.com")

        assert exc_info.value.code == "EMPTY_PRODUCTION_LIST"

    def test_email_sends_table_and_workbook(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("orders", [OrderFactory.create(status="production", order_number="A<1>")])
        service = ProductionService()

        with patch("services.production_service.send_html_email") as send:
            count = service.email_production_list("floor@example.com")

        assert count == 1
        kwargs = send.call_args.kwargs
        assert kwargs["to"] == "floor@example.com"
        assert kwargs["subject"].startswith("Production List - ")
        assert "A&lt;1&gt;" in kwargs["html_body"]
        filename, data, mime_type = kwargs["attachment"]
        assert filename.endswith(".xlsx")
        assert data[:2] == b"PK"

    def test_email_without_smtp_host(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("orders", [OrderFactory.create(status="production")])
        service = ProductionService()

        with patch.object(settings, "smtp_host", None):
            with pytest.raises(IntegrationNotConfiguredError):
                service.email_production_list("floor@example.com")
