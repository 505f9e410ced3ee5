"""
Product catalog and stock adjustment schemas.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from enum import Enum
from datetime import datetime

from models.base import BaseSchema, TimestampMixin
from config.workflow import DEFAULT_LOW_STOCK_THRESHOLD


class ProductStatus(str, Enum):
    """Catalog visibility."""
    ENABLED = "enabled"
    DISABLED = "disabled"


class StockFilter(str, Enum):
    """Stock level buckets used by the inventory view."""
    LOW = "low"
    OUT = "out"
    HEALTHY = "healthy"


class AdjustmentType(str, Enum):
    """Reason class for a stock adjustment."""
    MANUAL_ADD = "manual_add"
    MANUAL_REMOVE = "manual_remove"
    DAMAGED = "damaged"
    FOUND = "found"
    RECOUNT = "recount"


# Types that add the entered quantity; the rest subtract it
ADDITIVE_ADJUSTMENTS = {
    AdjustmentType.MANUAL_ADD,
    AdjustmentType.FOUND,
    AdjustmentType.RECOUNT,
}


def signed_change(adjustment_type: AdjustmentType, quantity: float) -> float:
    """Quantity change with the sign implied by the adjustment type."""
    if AdjustmentType(adjustment_type) in ADDITIVE_ADJUSTMENTS:
        return quantity
    return -abs(quantity)


def stock_level(stock_quantity: Optional[float], threshold: Optional[float]) -> StockFilter:
    """
    Classify a stock quantity.

    out: 0, low: 0 < qty <= threshold, healthy: above threshold.
    """
    qty = stock_quantity or 0
    limit = threshold or DEFAULT_LOW_STOCK_THRESHOLD
    if qty <= 0:
        return StockFilter.OUT
    if qty <= limit:
        return StockFilter.LOW
    return StockFilter.HEALTHY


# ===================
# PRODUCT SCHEMAS
# ===================

class Component(BaseSchema):
    """A part packed with a product."""
    name: str
    quantity: float = 1
    notes: Optional[str] = None


class ProductCreate(BaseSchema):
    """
    Create a product.

    Required: sku, name
    """

    sku: str = Field(..., min_length=1, max_length=100, description="Business key")
    name: str = Field(..., min_length=1, description="Product name")
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(0, ge=0)
    stock_quantity: float = Field(0, ge=0)
    low_stock_threshold: float = Field(DEFAULT_LOW_STOCK_THRESHOLD, ge=0)
    weight: float = Field(0, ge=0, description="Unit weight in lb")
    status: ProductStatus = ProductStatus.ENABLED
    components: list[Component] = Field(default_factory=list)
    packing_notes: Optional[str] = None
    related_items: list[str] = Field(default_factory=list, description="Related SKUs")

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str) -> str:
        """SKUs are stored upper-case."""
        return v.upper()


class ProductUpdate(BaseSchema):
    """
    Partial product edit.

    Stock quantity changes go through stock adjustments.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    low_stock_threshold: Optional[float] = Field(None, ge=0)
    weight: Optional[float] = Field(None, ge=0)
    status: Optional[ProductStatus] = None
    components: Optional[list[Component]] = None
    packing_notes: Optional[str] = None
    related_items: Optional[list[str]] = None


class ProductResponse(BaseSchema, TimestampMixin):
    """Product as stored."""

    id: str
    sku: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = 0
    stock_quantity: float = 0
    low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD
    weight: float = 0
    status: ProductStatus = ProductStatus.ENABLED
    components: list[Component] = Field(default_factory=list)
    packing_notes: Optional[str] = None
    related_items: list[str] = Field(default_factory=list)
    magento_id: Optional[str] = None
    last_synced: Optional[datetime] = None

    @field_validator("price", "stock_quantity", "weight", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        return v or 0

    @field_validator("low_stock_threshold", mode="before")
    @classmethod
    def default_threshold(cls, v):
        return v or DEFAULT_LOW_STOCK_THRESHOLD

    @field_validator("components", "related_items", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


class InventoryStats(BaseModel):
    """Catalog-wide stock summary."""
    total_products: int
    low_stock: int
    out_of_stock: int
    total_value: float


# ===================
# STOCK ADJUSTMENTS
# ===================

class StockAdjustmentCreate(BaseSchema):
    """Adjust a product's stock."""

    adjustment_type: AdjustmentType
    quantity: float = Field(..., description="Units; the sign comes from the adjustment type")
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("quantity")
    @classmethod
    def non_zero(cls, v: float) -> float:
        if v == 0:
            raise ValueError("Quantity must be non-zero")
        return v


class StockAdjustmentResponse(BaseSchema):
    """Ledger entry. Never updated or deleted."""

    id: str
    product_id: str
    sku: Optional[str] = None
    product_name: Optional[str] = None
    adjustment_type: AdjustmentType
    quantity_change: float
    previous_quantity: float
    new_quantity: float
    reason: Optional[str] = None
    adjusted_by: Optional[str] = None
    created_date: Optional[datetime] = None


class StockAdjustmentResult(BaseModel):
    """Ledger entry plus the product after the adjustment."""
    adjustment: StockAdjustmentResponse
    product: ProductResponse
