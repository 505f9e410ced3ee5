"""
Order API routes.

Covers manual intake, edits, workflow queues and every status action the
workflow pages trigger. Bulk actions apply one write per order in the
order given and stop at the first failure.
"""

from fastapi import APIRouter, Query, Depends
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.base import MessageResponse
from models.order import (
    OrderCreate,
    OrderUpdate,
    OrderResponse,
    OrderStatus,
    OrderSource,
    Priority,
    OrderStatusUpdate,
    BulkStatusUpdate,
    BulkActionRequest,
    ReleaseHoldRequest,
    FlagIssueRequest,
    PriorityUpdate,
    DeleteRequest,
    BulkStatusUpdateResponse,
    PackingListResponse,
)
from services.order_service import get_order_service
from services.queue_service import QueueFilters
from routes.deps import get_current_user, get_optional_user
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def bulk_result(status: OrderStatus, orders: list[OrderResponse]) -> BulkStatusUpdateResponse:
    return BulkStatusUpdateResponse(
        status=status,
        updated=[o.id for o in orders],
        count=len(orders)
    )


# ===================
# READ ROUTES
# ===================

@router.get("", response_model=list[OrderResponse])
async def list_orders(
    limit: Optional[int] = Query(None, ge=1, le=500, description="Max orders, newest first")
):
    """List orders, newest first."""
    try:
        service = get_order_service()
        return service.get_all(limit=limit)

    except Exception as e:
        return handle_error(e)


@router.get("/queues/{queue}", response_model=list[OrderResponse])
async def get_queue(
    queue: str,
    search: Optional[str] = Query(None, description="Order number, customer name or email"),
    status: Optional[OrderStatus] = Query(None, description="Filter by status (orders queue)"),
    priority: Optional[Priority] = Query(None, description="Filter by priority"),
    source: Optional[OrderSource] = Query(None, description="Filter by source")
):
    """
    Orders for one workflow page.

    Queues: orders, production, staging, packing, ready_to_ship, on_hold.
    Rush orders come first, then priority, then normal.
    """
    try:
        service = get_order_service()
        filters = QueueFilters(search=search, status=status, priority=priority, source=source)
        return service.get_queue(queue, filters)

    except Exception as e:
        return handle_error(e)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str):
    """
    Get a single order.

    Raises:
        404: Order not found
    """
    try:
        service = get_order_service()
        return service.get_by_id(order_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{order_id}/packing-list", response_model=PackingListResponse)
async def get_packing_list(order_id: str):
    """Order items with components and packing notes from the catalog."""
    try:
        service = get_order_service()
        return service.get_packing_list(order_id)

    except Exception as e:
        return handle_error(e)


# ===================
# WRITE ROUTES
# ===================

@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(data: OrderCreate):
    """
    Create a manual order.

    Starts pending. Weight and the international flag are derived.
    """
    try:
        service = get_order_service()
        return service.create(data)

    except Exception as e:
        return handle_error(e)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(order_id: str, data: OrderUpdate):
    """Edit an order. Status changes go through the workflow routes."""
    try:
        service = get_order_service()
        return service.update(order_id, data)

    except Exception as e:
        return handle_error(e)


@router.patch("/{order_id}/priority", response_model=OrderResponse)
async def set_priority(order_id: str, data: PriorityUpdate):
    try:
        service = get_order_service()
        return service.set_priority(order_id, data.priority)

    except Exception as e:
        return handle_error(e)


@router.delete("/{order_id}", response_model=MessageResponse)
async def delete_order(
    order_id: str,
    data: DeleteRequest,
    user: str = Depends(get_current_user)
):
    """
    Delete an order.

    Raises:
        403: Wrong delete password
        404: Order not found
    """
    try:
        service = get_order_service()
        service.delete(order_id, data.password)

        logger.info("order_delete_requested", order_id=order_id, user=user)

        return MessageResponse(message=f"Order {order_id} deleted")

    except Exception as e:
        return handle_error(e)


# ===================
# STATUS ROUTES
# ===================

@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_status(
    order_id: str,
    data: OrderStatusUpdate,
    user: Optional[str] = Depends(get_optional_user)
):
    """
    Move one order to a new status.

    With expected_status the write only lands if the order is still in
    that status (409 otherwise).
    """
    try:
        service = get_order_service()
        return service.update_status(
            order_id,
            data.status,
            actor=user,
            expected_status=data.expected_status
        )

    except Exception as e:
        return handle_error(e)


@router.post("/bulk/status", response_model=BulkStatusUpdateResponse)
async def bulk_update_status(
    data: BulkStatusUpdate,
    user: Optional[str] = Depends(get_optional_user)
):
    """
    Move several orders to one status.

    On failure the error details list applied, failed and skipped ids.
    """
    try:
        service = get_order_service()
        orders = service.bulk_update_status(
            data.order_ids,
            data.status,
            actor=user,
            expected_status=data.expected_status
        )
        return bulk_result(data.status, orders)

    except Exception as e:
        return handle_error(e)


@router.post("/actions/move-to-production", response_model=BulkStatusUpdateResponse)
async def move_to_production(data: BulkActionRequest):
    try:
        service = get_order_service()
        result = service.move_to_production(data.order_ids, data.from_status)
        return bulk_result(OrderStatus.PRODUCTION, result)

    except Exception as e:
        return handle_error(e)


@router.post("/actions/move-to-staging", response_model=BulkStatusUpdateResponse)
async def move_to_staging(data: BulkActionRequest, user: str = Depends(get_current_user)):
    """Production -> staging. The acting user is recorded as staged_by."""
    try:
        service = get_order_service()
        return bulk_result(OrderStatus.STAGING, service.move_to_staging(data.order_ids, actor=user))

    except Exception as e:
        return handle_error(e)


@router.post("/actions/back-to-pending", response_model=BulkStatusUpdateResponse)
async def back_to_pending(data: BulkActionRequest):
    try:
        service = get_order_service()
        return bulk_result(OrderStatus.PENDING, service.back_to_pending(data.order_ids))

    except Exception as e:
        return handle_error(e)


@router.post("/actions/ready-to-ship", response_model=BulkStatusUpdateResponse)
async def mark_ready_to_ship(data: BulkActionRequest):
    try:
        service = get_order_service()
        return bulk_result(OrderStatus.PROCESSING, service.mark_ready_to_ship(data.order_ids))

    except Exception as e:
        return handle_error(e)


@router.post("/actions/hold", response_model=BulkStatusUpdateResponse)
async def hold_orders(data: BulkActionRequest):
    try:
        service = get_order_service()
        return bulk_result(OrderStatus.HOLD, service.hold(data.order_ids, data.from_status))

    except Exception as e:
        return handle_error(e)


@router.post("/actions/cancel", response_model=BulkStatusUpdateResponse)
async def cancel_orders(data: BulkActionRequest):
    try:
        service = get_order_service()
        return bulk_result(OrderStatus.CANCELLED, service.cancel(data.order_ids, data.from_status))

    except Exception as e:
        return handle_error(e)


@router.post("/actions/release-hold", response_model=BulkStatusUpdateResponse)
async def release_hold(data: ReleaseHoldRequest):
    """Held orders back to pending, production or cancelled."""
    try:
        service = get_order_service()
        return bulk_result(data.status, service.release_hold(data.order_ids, data.status))

    except Exception as e:
        return handle_error(e)


@router.post("/{order_id}/complete-packing", response_model=OrderResponse)
async def complete_packing(order_id: str):
    """Packing station: order packed, ready to ship."""
    try:
        service = get_order_service()
        return service.complete_packing(order_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{order_id}/flag-issue", response_model=OrderResponse)
async def flag_issue(order_id: str, data: FlagIssueRequest):
    """
    Packing station: put the order on hold with an issue note.

    Raises:
        422: Empty note (nothing is written)
    """
    try:
        service = get_order_service()
        return service.flag_issue(order_id, data.note)

    except Exception as e:
        return handle_error(e)
