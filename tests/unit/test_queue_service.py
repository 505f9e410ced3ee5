"""
Unit tests for queue filtering and sorting.

Run: pytest tests/unit/test_queue_service.py -v
"""

import random
import pytest

from services.queue_service import (
    QUEUES,
    QueueFilters,
    QueueSort,
    build_queue,
    filter_orders,
    matches_search,
    sort_orders,
)
from models.order import OrderStatus, Priority, OrderSource, priority_rank

from tests.factories import OrderFactory


class TestPriorityRank:
    """Tests for priority_rank()"""

    def test_rank_order(self):
        """rush < priority < normal."""
        assert priority_rank("rush") < priority_rank("priority") < priority_rank("normal")

    def test_unknown_priority_ranks_as_normal(self):
        assert priority_rank("whenever") == priority_rank(Priority.NORMAL)


class TestSortOrders:
    """Tests for sort_orders()"""

    def test_priority_groups_for_any_input_order(self):
        """Rush strictly before priority, priority strictly before normal."""
        # Arrange
        orders = (
            OrderFactory.create_batch(4, priority="normal")
            + OrderFactory.create_batch(3, priority="rush")
            + OrderFactory.create_batch(3, priority="priority")
        )
        rng = random.Random(7)

        for _ in range(20):
            shuffled = orders[:]
            rng.shuffle(shuffled)

            # Act
            result = sort_orders(shuffled, QueueSort.NEWEST_FIRST)

            # Assert
            ranks = [priority_rank(o["priority"]) for o in result]
            assert ranks == sorted(ranks)
            assert [o["priority"] for o in result[:3]] == ["rush"] * 3
            assert [o["priority"] for o in result[3:6]] == ["priority"] * 3

    def test_ties_keep_oldest_first(self):
        """Within one priority the secondary key decides."""
        # Arrange
        old = OrderFactory.create_aged(48, priority="rush")
        new = OrderFactory.create_aged(1, priority="rush")
        normal = OrderFactory.create_aged(72, priority="normal")

        # Act
        result = sort_orders([new, normal, old], QueueSort.OLDEST_FIRST)

        # Assert
        assert [o["id"] for o in result] == [old["id"], new["id"], normal["id"]]

    def test_ties_keep_newest_first(self):
        old = OrderFactory.create_aged(48)
        new = OrderFactory.create_aged(1)

        result = sort_orders([old, new], QueueSort.NEWEST_FIRST)

        assert [o["id"] for o in result] == [new["id"], old["id"]]

    def test_recently_updated_first(self):
        stale = OrderFactory.create(updated_date="2026-01-01T08:00:00+00:00")
        fresh = OrderFactory.create(updated_date="2026-01-03T08:00:00Z")

        result = sort_orders([stale, fresh], QueueSort.RECENTLY_UPDATED)

        assert result[0]["id"] == fresh["id"]

    def test_missing_priority_sorts_as_normal(self):
        rush = OrderFactory.create(priority="rush")
        unset = OrderFactory.create(priority=None)

        result = sort_orders([unset, rush], QueueSort.NEWEST_FIRST)

        assert result[0]["id"] == rush["id"]

    def test_priority_first_off_keeps_secondary_only(self):
        """The on-hold queue is newest first regardless of priority."""
        rush = OrderFactory.create_aged(48, priority="rush")
        normal = OrderFactory.create_aged(1, priority="normal")

        result = sort_orders([rush, normal], QueueSort.NEWEST_FIRST, priority_first=False)

        assert result[0]["id"] == normal["id"]


class TestFilterOrders:
    """Tests for filter_orders() and matches_search()"""

    def test_search_matches_order_number_case_insensitive(self):
        order = OrderFactory.create(order_number="ORD-5555")

        assert matches_search(order, "ord-55")

    def test_search_matches_customer_email(self):
        order = OrderFactory.create(customer_email="ops@acme.test")

        assert matches_search(order, "ACME")

    def test_search_skus_only_when_enabled(self):
        order = OrderFactory.create(items=[{"sku": "GASKET-9", "quantity": 1}])

        assert not matches_search(order, "gasket")
        assert matches_search(order, "gasket", include_skus=True)

    def test_blank_search_matches_everything(self):
        assert matches_search(OrderFactory.create(), "   ")

    def test_filters_compose(self):
        # Arrange
        orders = [
            OrderFactory.create(priority="rush", source="magento"),
            OrderFactory.create(priority="rush", source="manual"),
            OrderFactory.create(priority="normal", source="magento"),
        ]
        filters = QueueFilters(priority=Priority.RUSH, source=OrderSource.MAGENTO)

        # Act
        result = filter_orders(orders, filters)

        # Assert
        assert len(result) == 1
        assert result[0]["id"] == orders[0]["id"]

    def test_status_filter(self):
        orders = [OrderFactory.create(status="pending"), OrderFactory.create(status="hold")]

        result = filter_orders(orders, QueueFilters(status=OrderStatus.HOLD))

        assert [o["status"] for o in result] == ["hold"]


class TestQueueDefinitions:
    """Tests for the QUEUES table and build_queue()"""

    @pytest.mark.parametrize("name,status", [
        ("production", OrderStatus.PRODUCTION),
        ("staging", OrderStatus.STAGING),
        ("packing", OrderStatus.STAGING),
        ("ready_to_ship", OrderStatus.PROCESSING),
        ("on_hold", OrderStatus.HOLD),
    ])
    def test_queue_status(self, name, status):
        assert QUEUES[name].status == status

    def test_orders_queue_has_no_status(self):
        assert QUEUES["orders"].status is None

    def test_on_hold_queue_searches_skus(self):
        # Arrange
        held = OrderFactory.create(status="hold", items=[{"sku": "HINGE-2", "quantity": 1}])
        other = OrderFactory.create(status="hold")

        # Act
        result = build_queue([held, other], QUEUES["on_hold"], QueueFilters(search="hinge"))

        # Assert
        assert [o["id"] for o in result] == [held["id"]]
