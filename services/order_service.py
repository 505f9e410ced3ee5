"""
Order service: manual intake, edits and the order status workflow.

Status changes are direct last-writer-wins updates unless the caller
supplies an expected status, in which case the write is a compare-and-swap
against the stored status.
"""

from typing import Optional
import structlog

from config import settings
from models.order import (
    OrderCreate,
    OrderUpdate,
    OrderResponse,
    OrderStatus,
    OrderSource,
    Priority,
    PackingListItem,
    PackingListResponse,
    is_valid_order_transition,
    compute_total_weight,
    is_international_address,
)
from services.entity_store import EntityStore
from services.queue_service import QUEUES, QueueFilters, build_queue
from exceptions import (
    OrderNotFoundError,
    InvalidStatusTransitionError,
    StatusConflictError,
    IssueNoteRequiredError,
    InvalidDeletePasswordError,
    BulkStatusUpdateError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


class OrderService:
    """
    Order business logic.

    Handles manual order entry, edits, queues and every workflow
    transition between pending and delivered.
    """

    def __init__(self):
        self.orders = EntityStore("orders")
        self.products = EntityStore("products")

    def _row_to_response(self, row: dict) -> OrderResponse:
        return OrderResponse.model_validate(row)

    def _get_row(self, order_id: str) -> dict:
        row = self.orders.get(order_id)
        if not row:
            raise OrderNotFoundError(order_id)
        return row

    def _expected(self, source: Optional[OrderStatus]) -> Optional[OrderStatus]:
        """Source status to guard on when compare-and-swap is switched on."""
        if settings.status_compare_and_swap:
            return source
        return None

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(self, limit: Optional[int] = None) -> list[OrderResponse]:
        """Newest orders first, truncated at the queue fetch limit."""
        rows = self.orders.list(sort="-created_date", limit=limit or settings.queue_fetch_limit)
        return [self._row_to_response(row) for row in rows]

    def get_by_id(self, order_id: str) -> OrderResponse:
        """
        Get a single order.

        Raises:
            OrderNotFoundError: If order doesn't exist
        """
        logger.debug("getting_order", order_id=order_id)
        return self._row_to_response(self._get_row(order_id))

    def get_queue(self, name: str, filters: Optional[QueueFilters] = None) -> list[OrderResponse]:
        """
        Orders for one workflow page, filtered and sorted.

        The fetch is capped at settings.queue_fetch_limit; anything past
        the cap is silently left out.
        """
        queue = QUEUES.get(name)
        if queue is None:
            raise ValidationError(
                f"Unknown queue: {name}",
                code="UNKNOWN_QUEUE",
                details={"queue": name, "available": sorted(QUEUES)}
            )

        limit = settings.queue_fetch_limit
        if queue.status:
            rows = self.orders.filter({"status": queue.status}, sort="-created_date", limit=limit)
        else:
            rows = self.orders.list(sort="-created_date", limit=limit)

        result = build_queue(rows, queue, filters or QueueFilters())

        logger.info(
            "order_queue_retrieved",
            queue=name,
            fetched=len(rows),
            returned=len(result)
        )

        return [self._row_to_response(row) for row in result]

    def get_packing_list(self, order_id: str) -> PackingListResponse:
        """
        Order items enriched with components and packing notes by SKU.

        Items whose SKU has no product get empty enrichment.
        """
        order = self._get_row(order_id)
        items = order.get("items") or []

        skus = sorted({item.get("sku") for item in items if item.get("sku")})
        products = self.products.filter({"sku": skus}) if skus else []
        by_sku = {p["sku"]: p for p in products}

        packing_items = []
        for item in items:
            product = by_sku.get(item.get("sku")) or {}
            packing_items.append(PackingListItem(
                **item,
                components=product.get("components") or [],
                packing_notes=product.get("packing_notes") or None,
            ))

        return PackingListResponse(
            order_id=order["id"],
            order_number=order["order_number"],
            items=packing_items,
        )

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: OrderCreate) -> OrderResponse:
        """
        Create a manual order.

        Always pending, always source=manual. Weight and the international
        flag are derived, never taken from input.
        """
        logger.info("creating_order", order_number=data.order_number)

        record = data.model_dump(mode="json")
        record.update({
            "status": OrderStatus.PENDING.value,
            "source": OrderSource.MANUAL.value,
            "total_weight": compute_total_weight(data.items),
            "is_international": is_international_address(data.shipping_address),
        })

        row = self.orders.create(record)

        logger.info(
            "order_created",
            order_id=row.get("id"),
            order_number=data.order_number,
            is_international=record["is_international"]
        )

        return self._row_to_response(row)

    def update(self, order_id: str, data: OrderUpdate) -> OrderResponse:
        """
        Partial edit.

        Re-derives is_international when the address changes and
        total_weight when the items change.
        """
        logger.info("updating_order", order_id=order_id)

        self._get_row(order_id)

        update_data = data.model_dump(mode="json", exclude_unset=True)
        if not update_data:
            return self.get_by_id(order_id)

        if data.shipping_address is not None:
            update_data["is_international"] = is_international_address(data.shipping_address)
        if data.items is not None:
            update_data["total_weight"] = compute_total_weight(data.items)

        row = self.orders.update(order_id, update_data)
        if row is None:
            raise OrderNotFoundError(order_id)

        logger.info("order_updated", order_id=order_id, fields=list(update_data.keys()))

        return self._row_to_response(row)

    def set_priority(self, order_id: str, priority: Priority) -> OrderResponse:
        """Change queue priority. LLM suggestions are applied through here too."""
        self._get_row(order_id)
        row = self.orders.update(order_id, {"priority": priority.value})
        if row is None:
            raise OrderNotFoundError(order_id)

        logger.info("order_priority_set", order_id=order_id, priority=priority.value)

        return self._row_to_response(row)

    def delete(self, order_id: str, password: str) -> bool:
        """
        Delete an order behind the shared delete password.

        Raises:
            InvalidDeletePasswordError: Wrong password or none configured
            OrderNotFoundError: If order doesn't exist
        """
        expected = settings.order_delete_password
        if not expected or password != expected:
            logger.warning("order_delete_rejected", order_id=order_id)
            raise InvalidDeletePasswordError("order")

        self._get_row(order_id)
        self.orders.delete(order_id)

        logger.info("order_deleted", order_id=order_id)

        return True

    # ===================
    # STATUS WORKFLOW
    # ===================

    def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        actor: Optional[str] = None,
        expected_status: Optional[OrderStatus] = None,
        extra: Optional[dict] = None,
        guard_current: bool = False
    ) -> OrderResponse:
        """
        Move an order to a new status.

        Without expected_status this is an unguarded overwrite. With it,
        the transition must be allowed from expected_status and the stored
        status must still equal it when the write lands. guard_current
        uses the stored status as expected_status when none is given.

        Raises:
            OrderNotFoundError: If order doesn't exist
            InvalidStatusTransitionError: expected_status -> status not allowed
            StatusConflictError: Stored status moved away from expected_status
        """
        status = OrderStatus(status)
        current = self._get_row(order_id)
        old_status = current.get("status")

        updates = dict(extra or {})
        updates["status"] = status.value
        if status == OrderStatus.STAGING and actor:
            updates["staged_by"] = actor

        if expected_status is None and guard_current and old_status:
            expected_status = OrderStatus(old_status)

        if expected_status is not None:
            expected_status = OrderStatus(expected_status)
            if not is_valid_order_transition(expected_status, status):
                raise InvalidStatusTransitionError(expected_status.value, status.value)
            if old_status != expected_status.value:
                raise StatusConflictError(order_id, expected_status.value, status.value)

            row = self.orders.update_where(order_id, updates, {"status": expected_status.value})
            if row is None:
                logger.warning(
                    "order_status_conflict",
                    order_id=order_id,
                    expected_status=expected_status.value,
                    new_status=status.value
                )
                raise StatusConflictError(order_id, expected_status.value, status.value)
        else:
            row = self.orders.update(order_id, updates)
            if row is None:
                raise OrderNotFoundError(order_id)

        logger.info(
            "order_status_updated",
            order_id=order_id,
            from_status=old_status,
            to_status=status.value,
            actor=actor,
            guarded=expected_status is not None
        )

        if old_status != status.value:
            self._push_to_magento(row, old_status)

        return self._row_to_response(row)

    def bulk_update_status(
        self,
        order_ids: list[str],
        status: OrderStatus,
        actor: Optional[str] = None,
        expected_status: Optional[OrderStatus] = None,
        guard_current: bool = False
    ) -> list[OrderResponse]:
        """
        Apply one status change to many orders, one write per order, in order.

        The first failure stops the batch. Writes already applied stay
        applied; nothing is rolled back.

        Raises:
            BulkStatusUpdateError: Lists applied, failed and skipped ids
        """
        logger.info("bulk_updating_order_status", count=len(order_ids), status=OrderStatus(status).value)

        applied: list[str] = []
        results: list[OrderResponse] = []

        for index, order_id in enumerate(order_ids):
            try:
                results.append(self.update_status(
                    order_id, status, actor, expected_status, guard_current=guard_current
                ))
            except Exception as e:
                logger.error(
                    "bulk_order_status_aborted",
                    failed_id=order_id,
                    applied=len(applied),
                    remaining=len(order_ids) - index - 1,
                    error=str(e)
                )
                raise BulkStatusUpdateError(
                    status=OrderStatus(status).value,
                    applied_ids=applied,
                    failed_id=order_id,
                    skipped_ids=list(order_ids[index + 1:]),
                    cause=e
                )
            applied.append(order_id)

        return results

    def move_to_production(
        self,
        order_ids: list[str],
        from_status: Optional[OrderStatus] = None
    ) -> list[OrderResponse]:
        """Orders page bulk action from pending; the staging page passes from_status=staging."""
        return self.bulk_update_status(
            order_ids, OrderStatus.PRODUCTION,
            expected_status=self._expected(from_status or OrderStatus.PENDING)
        )

    def move_to_staging(self, order_ids: list[str], actor: Optional[str]) -> list[OrderResponse]:
        """Production -> staging, stamping staged_by."""
        return self.bulk_update_status(
            order_ids, OrderStatus.STAGING, actor=actor,
            expected_status=self._expected(OrderStatus.PRODUCTION)
        )

    def back_to_pending(self, order_ids: list[str]) -> list[OrderResponse]:
        return self.bulk_update_status(
            order_ids, OrderStatus.PENDING,
            expected_status=self._expected(OrderStatus.PRODUCTION)
        )

    def mark_ready_to_ship(self, order_ids: list[str]) -> list[OrderResponse]:
        """Staging -> processing from the staging page."""
        return self.bulk_update_status(
            order_ids, OrderStatus.PROCESSING,
            expected_status=self._expected(OrderStatus.STAGING)
        )

    def hold(
        self,
        order_ids: list[str],
        from_status: Optional[OrderStatus] = None
    ) -> list[OrderResponse]:
        """
        Put orders on hold. Hold is reachable from any live status.

        With compare-and-swap on and no from_status, each order is guarded
        on its own stored status, so cancelled orders are refused.
        """
        return self.bulk_update_status(
            order_ids, OrderStatus.HOLD,
            expected_status=self._expected(from_status),
            guard_current=settings.status_compare_and_swap
        )

    def cancel(
        self,
        order_ids: list[str],
        from_status: Optional[OrderStatus] = None
    ) -> list[OrderResponse]:
        """Cancel pending orders, or held ones with from_status=hold."""
        return self.bulk_update_status(
            order_ids, OrderStatus.CANCELLED,
            expected_status=self._expected(from_status or OrderStatus.PENDING)
        )

    def release_hold(self, order_ids: list[str], status: OrderStatus) -> list[OrderResponse]:
        """Held orders back to pending, production or cancelled."""
        if not is_valid_order_transition(OrderStatus.HOLD, status):
            raise InvalidStatusTransitionError(OrderStatus.HOLD.value, OrderStatus(status).value)
        return self.bulk_update_status(
            order_ids, status, expected_status=self._expected(OrderStatus.HOLD)
        )

    def complete_packing(self, order_id: str) -> OrderResponse:
        """Packing station: packed order becomes ready to ship."""
        return self.update_status(
            order_id, OrderStatus.PROCESSING,
            expected_status=self._expected(OrderStatus.STAGING)
        )

    def flag_issue(self, order_id: str, note: str) -> OrderResponse:
        """
        Packing station: put a staged order on hold with an issue note.

        The note replaces special_instructions. An empty note aborts
        before any read or write.

        Raises:
            IssueNoteRequiredError: Note is empty or whitespace
        """
        note = (note or "").strip()
        if not note:
            raise IssueNoteRequiredError(order_id)

        return self.update_status(
            order_id, OrderStatus.HOLD,
            expected_status=self._expected(OrderStatus.STAGING),
            extra={"special_instructions": note}
        )

    # ===================
    # MAGENTO SYNC
    # ===================

    def _push_to_magento(self, row: dict, old_status: Optional[str]) -> None:
        """Best-effort status push for Magento orders. Never fails the transition."""
        if row.get("source") != OrderSource.MAGENTO.value:
            return

        from services.magento_service import get_magento_service

        try:
            get_magento_service().push_order_status(row, old_status)
        except Exception as e:
            logger.warning(
                "magento_status_push_failed",
                order_id=row.get("id"),
                order_number=row.get("order_number"),
                error=str(e)
            )


# Singleton instance
_order_service: Optional[OrderService] = None


def get_order_service() -> OrderService:
    """Get or create order service instance."""
    global _order_service
    if _order_service is None:
        _order_service = OrderService()
    return _order_service
