"""
Product and inventory API routes.

Stock quantities change only through the adjustments endpoint, which
records a ledger entry for every change.
"""

from fastapi import APIRouter, Query, Depends
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.base import MessageResponse
from models.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    InventoryStats,
    StockFilter,
    StockAdjustmentCreate,
    StockAdjustmentResponse,
    StockAdjustmentResult,
)
from services.product_service import get_product_service
from routes.deps import get_current_user
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])


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


# ===================
# ROUTES
# ===================

@router.get("", response_model=list[ProductResponse])
async def list_products(
    search: Optional[str] = Query(None, description="Name or SKU"),
    category: Optional[str] = Query(None, description="Filter by category"),
    stock: Optional[StockFilter] = Query(None, description="low, out or healthy")
):
    """List products by name with the inventory page filters."""
    try:
        service = get_product_service()
        return service.get_all(search=search, category=category, stock=stock)

    except Exception as e:
        return handle_error(e)


@router.get("/stats", response_model=InventoryStats)
async def get_inventory_stats():
    """Total products, low and out of stock counts, stock value."""
    try:
        service = get_product_service()
        return service.get_stats()

    except Exception as e:
        return handle_error(e)


@router.get("/categories", response_model=list[str])
async def list_categories():
    try:
        service = get_product_service()
        return service.get_categories()

    except Exception as e:
        return handle_error(e)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str):
    """
    Get a single product.

    Raises:
        404: Product not found
    """
    try:
        service = get_product_service()
        return service.get_by_id(product_id)

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(data: ProductCreate):
    """
    Create a product.

    Raises:
        409: SKU already exists
    """
    try:
        service = get_product_service()
        return service.create(data)

    except Exception as e:
        return handle_error(e)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(product_id: str, data: ProductUpdate):
    try:
        service = get_product_service()
        return service.update(product_id, data)

    except Exception as e:
        return handle_error(e)


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(product_id: str):
    try:
        service = get_product_service()
        service.delete(product_id)
        return MessageResponse(message=f"Product {product_id} deleted")

    except Exception as e:
        return handle_error(e)


# ===================
# STOCK ADJUSTMENTS
# ===================

@router.post("/{product_id}/adjustments", response_model=StockAdjustmentResult, status_code=201)
async def adjust_stock(
    product_id: str,
    data: StockAdjustmentCreate,
    user: str = Depends(get_current_user)
):
    """
    Adjust stock and record the change in the ledger.

    Stock never goes below zero.
    """
    try:
        service = get_product_service()
        return service.adjust_stock(product_id, data, actor=user)

    except Exception as e:
        return handle_error(e)


@router.get("/{product_id}/adjustments", response_model=list[StockAdjustmentResponse])
async def list_adjustments(product_id: str):
    """Latest 50 ledger entries, newest first."""
    try:
        service = get_product_service()
        return service.get_adjustments(product_id)

    except Exception as e:
        return handle_error(e)
