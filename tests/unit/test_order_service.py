"""
Unit tests for OrderService.

Run: pytest tests/unit/test_order_service.py -v
Run with coverage: pytest tests/unit/test_order_service.py --cov=services/order_service
"""

import pytest
from unittest.mock import patch, MagicMock

from config import settings
from services.order_service import OrderService, get_order_service
from services.queue_service import QueueFilters
from models.order import (
    OrderCreate,
    OrderUpdate,
    OrderStatus,
    Priority,
    ORDER_TRANSITIONS,
    is_valid_order_transition,
)
from models.base import Address
from exceptions import (
    OrderNotFoundError,
    InvalidStatusTransitionError,
    StatusConflictError,
    IssueNoteRequiredError,
    InvalidDeletePasswordError,
    BulkStatusUpdateError,
    ValidationError,
)

from tests.factories import OrderFactory, ProductFactory, address

VALID_STATUSES = {s.value for s in OrderStatus}


def order_create(country: str = "US", **overrides) -> OrderCreate:
    data = {
        "order_number": "ord-2001",
        "customer_name": "Pat Doe",
        "shipping_address": address(country),
        "items": [
            {"sku": "A-1", "name": "Bracket", "quantity": 2, "weight": 3},
            {"sku": "B-2", "name": "Panel", "quantity": 1, "weight": 5},
        ],
    }
    data.update(overrides)
    return OrderCreate(**data)


class TestOrderServiceCreate:
    """Tests for OrderService.create()"""

    def test_create_starts_pending_and_manual(self, mock_db, mock_supabase):
        """Should store a pending manual order with derived weight."""
        # Arrange
        service = OrderService()

        # Act
        order = service.create(order_create())

        # Assert
        assert order.status == OrderStatus.PENDING
        assert order.source.value == "manual"
        assert order.order_number == "ORD-2001"
        assert order.total_weight == 11.0
        assert mock_supabase.get_row("orders", order.id) is not None

    def test_domestic_address_is_not_international(self, mock_db, mock_supabase):
        service = OrderService()

        order = service.create(order_create("US"))

        assert order.is_international is False

    def test_foreign_address_is_international(self, mock_db, mock_supabase):
        service = OrderService()

        order = service.create(order_create("CA"))

        assert order.is_international is True


class TestOrderServiceUpdate:
    """Tests for OrderService.update()"""

    def test_address_edit_to_foreign_country_sets_flag(self, mock_db, mock_supabase):
        """Editing the address re-derives is_international."""
        # Arrange
        row = OrderFactory.create(country="US")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        # Act
        order = service.update(row["id"], OrderUpdate(shipping_address=Address(**address("CA"))))

        # Assert
        assert order.is_international is True
        assert mock_supabase.get_row("orders", row["id"])["is_international"] is True

    def test_address_edit_back_to_home_country_clears_flag(self, mock_db, mock_supabase):
        row = OrderFactory.create(country="CA")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        order = service.update(row["id"], OrderUpdate(shipping_address=Address(**address("US"))))

        assert order.is_international is False

    def test_items_edit_recomputes_weight(self, mock_db, mock_supabase):
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        order = service.update(row["id"], OrderUpdate(items=[{"sku": "X", "quantity": 4, "weight": 2.5}]))

        assert order.total_weight == 10.0

    def test_empty_update_writes_nothing(self, mock_db, mock_supabase):
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        service.update(row["id"], OrderUpdate())

        assert mock_supabase.write_count("orders") == 0

    def test_update_unknown_order_raises(self, mock_db, mock_supabase):
        service = OrderService()

        with pytest.raises(OrderNotFoundError):
            service.update("missing", OrderUpdate(customer_name="X"))


class TestOrderServiceDelete:
    """Tests for OrderService.delete()"""

    def test_wrong_password_leaves_order(self, mock_db, mock_supabase, delete_password):
        """Should reject and leave the record unchanged."""
        # Arrange
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        # Act / Assert
        with pytest.raises(InvalidDeletePasswordError) as exc_info:
            service.delete(row["id"], "guess")

        assert exc_info.value.status_code == 403
        assert mock_supabase.get_row("orders", row["id"]) == row
        assert mock_supabase.write_count("orders") == 0

    def test_correct_password_removes_order(self, mock_db, mock_supabase, delete_password):
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        assert service.delete(row["id"], delete_password) is True
        assert mock_supabase.get_row("orders", row["id"]) is None

    def test_no_configured_password_rejects_everything(self, mock_db, mock_supabase):
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        with patch.object(settings, "order_delete_password", None):
            with pytest.raises(InvalidDeletePasswordError):
                service.delete(row["id"], "")

        assert mock_supabase.get_row("orders", row["id"]) is not None


class TestOrderServiceStatus:
    """Tests for OrderService.update_status() and the transition table"""

    def test_every_transition_target_is_a_known_status(self):
        for current, targets in ORDER_TRANSITIONS.items():
            assert current.value in VALID_STATUSES
            assert {t.value for t in targets} <= VALID_STATUSES

    def test_unknown_status_rejected_before_write(self, mock_db, mock_supabase):
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        with pytest.raises(ValueError):
            service.update_status(row["id"], "archived")

        assert mock_supabase.get_row("orders", row["id"])["status"] == "pending"

    def test_cancelled_is_terminal(self):
        assert not any(is_valid_order_transition(OrderStatus.CANCELLED, s) for s in OrderStatus)

    def test_unguarded_update_overwrites(self, mock_db, mock_supabase):
        """Default behaviour is last-writer-wins."""
        row = OrderFactory.create(status="shipped")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        order = service.update_status(row["id"], OrderStatus.PRODUCTION)

        assert order.status == OrderStatus.PRODUCTION

    def test_guarded_update_applies_when_status_matches(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="production")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        order = service.update_status(
            row["id"], OrderStatus.STAGING, actor="lee@example.com",
            expected_status=OrderStatus.PRODUCTION
        )

        assert order.status == OrderStatus.STAGING
        assert order.staged_by == "lee@example.com"

    def test_guarded_update_conflicts_when_status_moved(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="hold")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        with pytest.raises(StatusConflictError) as exc_info:
            service.update_status(row["id"], OrderStatus.STAGING, expected_status=OrderStatus.PRODUCTION)

        assert exc_info.value.status_code == 409
        assert mock_supabase.get_row("orders", row["id"])["status"] == "hold"

    def test_guarded_update_rejects_illegal_transition(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="pending")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        with pytest.raises(InvalidStatusTransitionError):
            service.update_status(row["id"], OrderStatus.SHIPPED, expected_status=OrderStatus.PENDING)

    def test_compare_and_swap_setting_guards_workflow_actions(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="hold")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        with patch.object(settings, "status_compare_and_swap", True):
            with pytest.raises(BulkStatusUpdateError) as exc_info:
                service.move_to_staging([row["id"]], actor="lee@example.com")

        assert exc_info.value.status_code == 409
        assert mock_supabase.get_row("orders", row["id"])["status"] == "hold"

    def test_staging_back_to_production_with_compare_and_swap(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="staging")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        with patch.object(settings, "status_compare_and_swap", True):
            result = service.move_to_production([row["id"]], from_status=OrderStatus.STAGING)

        assert result[0].status == OrderStatus.PRODUCTION
        assert mock_supabase.get_row("orders", row["id"])["status"] == "production"

    def test_hold_refuses_cancelled_order_with_compare_and_swap(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="cancelled")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        with patch.object(settings, "status_compare_and_swap", True):
            with pytest.raises(BulkStatusUpdateError) as exc_info:
                service.hold([row["id"]])

        assert exc_info.value.status_code == 422
        assert mock_supabase.get_row("orders", row["id"])["status"] == "cancelled"

    def test_hold_guards_on_stored_status_with_compare_and_swap(self, mock_db, mock_supabase):
        rows = [OrderFactory.create(status="pending"), OrderFactory.create(status="staging")]
        mock_supabase.set_table_data("orders", rows)
        service = OrderService()

        with patch.object(settings, "status_compare_and_swap", True):
            service.hold([r["id"] for r in rows])

        assert all(mock_supabase.get_row("orders", r["id"])["status"] == "hold" for r in rows)

    def test_update_missing_order_raises(self, mock_db, mock_supabase):
        service = OrderService()

        with pytest.raises(OrderNotFoundError):
            service.update_status("missing", OrderStatus.HOLD)


class TestOrderServiceBulk:
    """Tests for OrderService.bulk_update_status()"""

    def test_all_applied_in_order(self, mock_db, mock_supabase):
        rows = OrderFactory.create_batch(3, status="pending")
        mock_supabase.set_table_data("orders", rows)
        service = OrderService()

        result = service.move_to_production([r["id"] for r in rows])

        assert [o.id for o in result] == [r["id"] for r in rows]
        assert all(mock_supabase.get_row("orders", r["id"])["status"] == "production" for r in rows)

    @pytest.mark.parametrize("count", [4, 6, 8])
    def test_failure_midway_keeps_earlier_writes(self, mock_db, mock_supabase, count):
        """
        The (N/2)-th write fails: orders before it stay updated, the rest
        are never attempted, nothing is rolled back.
        """
        # Arrange
        rows = OrderFactory.create_batch(count, status="pending")
        mock_supabase.set_table_data("orders", rows)
        ids = [r["id"] for r in rows]
        failing = count // 2 - 1
        mock_supabase.fail_on("orders", "update", record_id=ids[failing])
        service = OrderService()

        # Act
        with pytest.raises(BulkStatusUpdateError) as exc_info:
            service.bulk_update_status(ids, OrderStatus.PRODUCTION)

        # Assert
        error = exc_info.value
        assert error.applied_ids == ids[:failing]
        assert error.failed_id == ids[failing]
        assert error.skipped_ids == ids[failing + 1:]
        for order_id in ids[:failing]:
            assert mock_supabase.get_row("orders", order_id)["status"] == "production"
        for order_id in ids[failing:]:
            assert mock_supabase.get_row("orders", order_id)["status"] == "pending"

    def test_error_details_list_ids(self, mock_db, mock_supabase):
        rows = OrderFactory.create_batch(2, status="pending")
        mock_supabase.set_table_data("orders", rows)
        service = OrderService()

        with pytest.raises(BulkStatusUpdateError) as exc_info:
            service.hold([rows[0]["id"], "missing", rows[1]["id"]])

        details = exc_info.value.to_dict()["error"]["details"]
        assert details["applied_ids"] == [rows[0]["id"]]
        assert details["failed_id"] == "missing"
        assert details["skipped_ids"] == [rows[1]["id"]]
        assert exc_info.value.status_code == 404

    def test_release_hold_rejects_invalid_target(self, mock_db, mock_supabase):
        service = OrderService()

        with pytest.raises(InvalidStatusTransitionError):
            service.release_hold(["x"], OrderStatus.SHIPPED)


class TestOrderServicePacking:
    """Tests for complete_packing(), flag_issue() and get_packing_list()"""

    @pytest.mark.parametrize("note", ["", "   ", None])
    def test_flag_issue_without_note_writes_nothing(self, mock_db, mock_supabase, note):
        """Empty note: no read, no write, order stays staged."""
        # Arrange
        row = OrderFactory.create(status="staging")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        # Act
        with pytest.raises(IssueNoteRequiredError):
            service.flag_issue(row["id"], note)

        # Assert
        assert mock_supabase.table("orders").calls == []
        assert mock_supabase.get_row("orders", row["id"])["status"] == "staging"

    def test_flag_issue_holds_with_note(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="staging", special_instructions="Gift wrap")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        order = service.flag_issue(row["id"], "  Missing hinge  ")

        assert order.status == OrderStatus.HOLD
        assert order.special_instructions == "Missing hinge"

    def test_complete_packing_moves_to_processing(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="staging")
        mock_supabase.set_table_data("orders", [row])
        service = OrderService()

        order = service.complete_packing(row["id"])

        assert order.status == OrderStatus.PROCESSING

    def test_packing_list_enriches_by_sku(self, mock_db, mock_supabase):
        # Arrange
        order = OrderFactory.create(items=[
            {"sku": "KIT-1", "name": "Kit", "quantity": 1},
            {"sku": "UNKNOWN", "name": "Loose part", "quantity": 3},
        ])
        product = ProductFactory.create(
            sku="KIT-1",
            components=[{"name": "Screws", "quantity": 8}],
            packing_notes="Bag the screws"
        )
        mock_supabase.set_table_data("orders", [order])
        mock_supabase.set_table_data("products", [product])
        service = OrderService()

        # Act
        packing = service.get_packing_list(order["id"])

        # Assert
        assert packing.items[0].packing_notes == "Bag the screws"
        assert packing.items[0].components == [{"name": "Screws", "quantity": 8}]
        assert packing.items[1].components == []
        assert packing.items[1].packing_notes is None


class TestOrderServiceQueues:
    """Tests for OrderService.get_queue()"""

    def test_queue_selects_status_and_sorts(self, mock_db, mock_supabase):
        # Arrange
        normal = OrderFactory.create_aged(10, status="production")
        rush = OrderFactory.create_aged(1, status="production", priority="rush")
        pending = OrderFactory.create(status="pending")
        mock_supabase.set_table_data("orders", [normal, rush, pending])
        service = OrderService()

        # Act
        result = service.get_queue("production")

        # Assert
        assert [o.id for o in result] == [rush["id"], normal["id"]]

    def test_queue_respects_fetch_limit(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("orders", OrderFactory.create_batch(5, status="staging"))
        service = OrderService()

        with patch.object(settings, "queue_fetch_limit", 3):
            result = service.get_queue("staging", QueueFilters())

        assert len(result) == 3

    def test_unknown_queue(self, mock_db, mock_supabase):
        service = OrderService()

        with pytest.raises(ValidationError) as exc_info:
            service.get_queue("archive")

        assert exc_info.value.code == "UNKNOWN_QUEUE"


class TestOrderServiceMagentoPush:
    """Status changes on Magento orders are pushed best-effort"""

    def test_push_failure_does_not_fail_transition(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="pending", source="magento")
        mock_supabase.set_table_data("orders", [row])
        magento = MagicMock()
        magento.push_order_status.side_effect = RuntimeError("store down")
        service = OrderService()

        with patch("services.magento_service.get_magento_service", return_value=magento):
            order = service.update_status(row["id"], OrderStatus.PRODUCTION)

        assert order.status == OrderStatus.PRODUCTION
        magento.push_order_status.assert_called_once()
        assert magento.push_order_status.call_args[0][1] == "pending"

    def test_manual_orders_are_not_pushed(self, mock_db, mock_supabase):
        row = OrderFactory.create(status="pending", source="manual")
        mock_supabase.set_table_data("orders", [row])
        magento = MagicMock()
        service = OrderService()

        with patch("services.magento_service.get_magento_service", return_value=magento):
            service.update_status(row["id"], OrderStatus.PRODUCTION)

        magento.push_order_status.assert_not_called()


class TestGetOrderService:
    def test_singleton(self, mock_db):
        assert get_order_service() is get_order_service()
