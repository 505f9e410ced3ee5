"""
Magento integration API routes.

Imports and syncs are triggered by hand or by an external scheduler;
nothing here runs in the background.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from models.magento import (
    OrderImportResult,
    ProductSyncResult,
    OrderPushResult,
    ConnectionTestResult,
)
from services.magento_service import get_magento_service
from services.order_service import get_order_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/integrations/magento", tags=["Magento"])


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


# ===================
# ROUTES
# ===================

@router.get("/test", response_model=ConnectionTestResult)
async def test_connection():
    """
    Check the Magento credentials.

    Raises:
        422: Magento not configured
        502: Magento unreachable or rejected the token
    """
    try:
        service = get_magento_service()
        return service.test_connection()

    except Exception as e:
        return handle_error(e)


@router.post("/orders/import", response_model=OrderImportResult)
async def import_orders(
    full: bool = Query(False, description="Fetch up to the full page cap instead of the incremental one")
):
    """Create orders for Magento orders not seen before."""
    try:
        service = get_magento_service()
        return service.import_orders(incremental=not full)

    except Exception as e:
        return handle_error(e)


@router.post("/products/sync", response_model=ProductSyncResult)
async def sync_products(
    full: bool = Query(False, description="Ignore the last sync time")
):
    """Create or update products by SKU."""
    try:
        service = get_magento_service()
        return service.sync_products(incremental=not full)

    except Exception as e:
        return handle_error(e)


@router.post("/orders/{order_id}/push", response_model=OrderPushResult)
async def push_order_status(order_id: str):
    """
    Send an order's current status to Magento by hand.

    Status changes push automatically; this retries one that failed.
    """
    try:
        order = get_order_service().get_by_id(order_id)
        service = get_magento_service()
        return service.push_order_status(order.model_dump(mode="json"), old_status=None, force=True)

    except Exception as e:
        return handle_error(e)
