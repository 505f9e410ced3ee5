"""
Order schemas, the order status state machine and priority ranking.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from enum import Enum

from models.base import BaseSchema, TimestampMixin, Address
from config.workflow import HOME_COUNTRY


class OrderStatus(str, Enum):
    """Order workflow status values."""
    PENDING = "pending"
    PRODUCTION = "production"
    STAGING = "staging"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    HOLD = "hold"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    """Order priority values."""
    RUSH = "rush"
    PRIORITY = "priority"
    NORMAL = "normal"


class OrderSource(str, Enum):
    """Where an order entered the system."""
    MAGENTO = "magento"
    MANUAL = "manual"


# Lower rank sorts first in every queue
PRIORITY_RANK = {
    Priority.RUSH: 0,
    Priority.PRIORITY: 1,
    Priority.NORMAL: 2,
}


def priority_rank(priority) -> int:
    """
    Rank of a priority value. Unknown or missing values rank as normal.

    Accepts either a Priority or its string value.
    """
    try:
        return PRIORITY_RANK[Priority(priority)]
    except ValueError:
        return PRIORITY_RANK[Priority.NORMAL]


# Allowed status changes. processing -> processing is the label flow
# re-asserting the status; hold is reachable from every live state.
ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.PRODUCTION,
        OrderStatus.HOLD,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PRODUCTION: {
        OrderStatus.STAGING,
        OrderStatus.PENDING,
        OrderStatus.HOLD,
    },
    OrderStatus.STAGING: {
        OrderStatus.PROCESSING,
        OrderStatus.PRODUCTION,
        OrderStatus.HOLD,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.HOLD,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.HOLD,
    },
    OrderStatus.DELIVERED: {
        OrderStatus.HOLD,
    },
    OrderStatus.HOLD: {
        OrderStatus.PENDING,
        OrderStatus.PRODUCTION,
        OrderStatus.CANCELLED,
    },
    OrderStatus.CANCELLED: set(),
}


def is_valid_order_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """
    Check if an order status transition is allowed.

    Rules:
    - pending -> production / hold / cancelled
    - production -> staging / pending / hold
    - staging -> processing / production / hold
    - processing -> shipped / delivered (carrier updates)
    - hold -> pending / production / cancelled
    - cancelled is terminal
    """
    return OrderStatus(new) in ORDER_TRANSITIONS[OrderStatus(current)]


# ===================
# DERIVED FIELDS
# ===================

def compute_total_weight(items: list) -> float:
    """Sum of item weight x quantity. Accepts OrderItem models or dicts."""
    total = 0.0
    for item in items or []:
        if isinstance(item, dict):
            weight = item.get("weight") or 0
            quantity = item.get("quantity") or 0
        else:
            weight = item.weight or 0
            quantity = item.quantity or 0
        total += float(weight) * float(quantity)
    return round(total, 2)


def total_quantity(items: list) -> int:
    """Total units across all line items."""
    count = 0
    for item in items or []:
        quantity = item.get("quantity") if isinstance(item, dict) else item.quantity
        count += int(quantity or 0)
    return count


def is_international_address(address) -> bool:
    """True when the address ships outside the home country."""
    if address is None:
        return False
    country = address.get("country") if isinstance(address, dict) else address.country
    return (country or HOME_COUNTRY).strip().upper() != HOME_COUNTRY


# ===================
# LINE ITEMS
# ===================

class OrderItem(BaseSchema):
    """One order line."""

    sku: str = Field(..., description="Product SKU")
    name: str = Field("", description="Product name")
    quantity: int = Field(1, ge=0, description="Units ordered")
    weight: float = Field(0, ge=0, description="Unit weight in lb")
    options: Optional[str] = Field(None, description="Special options")


class PackingListItem(OrderItem):
    """Order line enriched with packing instructions from the catalog."""

    components: list[dict] = Field(default_factory=list)
    packing_notes: Optional[str] = None


class PackingListResponse(BaseModel):
    """Items to pack for one order."""
    order_id: str
    order_number: str
    items: list[PackingListItem]


# ===================
# ORDER SCHEMAS
# ===================

class OrderCreate(BaseSchema):
    """
    Create a manual order.

    Source is always manual and status always pending; total_weight and
    is_international are derived from items and address.
    """

    order_number: str = Field(..., min_length=1, max_length=50, description="Business order number")
    customer_name: str = Field(..., min_length=1, description="Customer name")
    customer_email: Optional[str] = Field(None, description="Customer email")
    shipping_address: Address = Field(..., description="Ship-to address")
    items: list[OrderItem] = Field(default_factory=list, description="Line items")
    priority: Priority = Field(Priority.NORMAL, description="Queue priority")
    order_value: float = Field(0, ge=0, description="Order value")
    special_instructions: Optional[str] = Field(None, description="Free-text instructions")

    @field_validator("order_number")
    @classmethod
    def normalize_order_number(cls, v: str) -> str:
        """Order numbers are stored upper-case."""
        return v.upper()


class OrderUpdate(BaseSchema):
    """
    Partial order edit.

    Status is changed through the workflow endpoints, not here.
    """

    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    shipping_address: Optional[Address] = None
    items: Optional[list[OrderItem]] = None
    priority: Optional[Priority] = None
    order_value: Optional[float] = Field(None, ge=0)
    special_instructions: Optional[str] = None


class OrderResponse(BaseSchema, TimestampMixin):
    """Order as stored."""

    id: str
    order_number: str
    status: OrderStatus
    priority: Priority = Priority.NORMAL
    source: OrderSource = OrderSource.MANUAL
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    shipping_address: Optional[Address] = None
    items: list[OrderItem] = Field(default_factory=list)
    total_weight: float = 0
    order_value: float = 0
    is_international: bool = False
    special_instructions: Optional[str] = None
    staged_by: Optional[str] = None

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, v):
        """Missing priority reads as normal."""
        return v or Priority.NORMAL

    @field_validator("items", mode="before")
    @classmethod
    def default_items(cls, v):
        return v or []


# ===================
# WORKFLOW REQUESTS
# ===================

class OrderStatusUpdate(BaseSchema):
    """Change one order's status."""

    status: OrderStatus = Field(..., description="New status")
    expected_status: Optional[OrderStatus] = Field(
        None,
        description="Only apply if the stored status still equals this value"
    )


class BulkStatusUpdate(BaseSchema):
    """Change the status of several orders, applied in the given order."""

    order_ids: list[str] = Field(..., min_length=1)
    status: OrderStatus
    expected_status: Optional[OrderStatus] = None


class BulkActionRequest(BaseSchema):
    """Selected orders for a bulk workflow action."""

    order_ids: list[str] = Field(..., min_length=1)
    from_status: Optional[OrderStatus] = Field(
        None, description="Status the page shows the orders in; guards the write when compare-and-swap is on"
    )


class ReleaseHoldRequest(BulkActionRequest):
    """Move held orders back into the workflow."""

    status: OrderStatus = Field(OrderStatus.PENDING, description="pending, production or cancelled")

    @field_validator("status")
    @classmethod
    def release_target(cls, v: OrderStatus) -> OrderStatus:
        if v not in ORDER_TRANSITIONS[OrderStatus.HOLD]:
            raise ValueError("Held orders can only be released to pending, production or cancelled")
        return v


class FlagIssueRequest(BaseModel):
    """Packing issue note; whitespace is checked by the service."""
    note: str = ""


class PriorityUpdate(BaseSchema):
    """Set an order's priority."""
    priority: Priority


class DeleteRequest(BaseModel):
    """Password-gated delete."""
    password: str = ""


class BulkStatusUpdateResponse(BaseModel):
    """Result of a bulk status change."""
    status: OrderStatus
    updated: list[str]
    count: int
