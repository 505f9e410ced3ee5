"""
Shipment schemas for label creation, validation and tracking.
"""

from pydantic import BaseModel, Field, computed_field
from typing import Optional
from enum import Enum
from datetime import date

from models.base import BaseSchema, TimestampMixin, Address


class ShipmentStatus(str, Enum):
    """Carrier-side shipment status values."""
    LABEL_CREATED = "label_created"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"
    VOIDED = "voided"


class Carrier(str, Enum):
    """Supported carriers."""
    FEDEX = "fedex"
    USPS = "usps"


class ShipmentCategory(str, Enum):
    """What a shipment was for."""
    ORDER = "order"
    CUSTOM_PART = "custom_part"
    SAMPLE = "sample"
    RETURN = "return"
    OTHER = "other"


TRACKING_URLS = {
    Carrier.FEDEX: "https://www.fedex.com/fedextrack/?trknbr={}",
    Carrier.USPS: "https://tools.usps.com/go/TrackConfirmAction?tLabels={}",
}


class Dimensions(BaseSchema):
    """Package dimensions in inches."""
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


# ===================
# LABEL REQUESTS
# ===================

class PackageRequest(BaseSchema):
    """Package and addresses shared by label purchase and validation."""

    service_type: str = Field(..., description="FedEx service type, e.g. FEDEX_GROUND")
    weight: float = Field(..., gt=0, description="Package weight in lb")
    dimensions: Dimensions
    ship_to_address: Address
    ship_from_address: Optional[Address] = Field(
        None,
        description="Defaults to the ship-from address in shipping settings"
    )


class CreateLabelRequest(PackageRequest):
    """Buy a label and record the shipment."""

    order_id: Optional[str] = Field(None, description="Order the label ships; empty for test labels")
    box_type: Optional[str] = Field(None, description="Box preset name")
    shipment_category: ShipmentCategory = ShipmentCategory.ORDER
    category_notes: Optional[str] = None
    shipping_cost: Optional[float] = Field(None, ge=0)


class ValidateShipmentResponse(BaseModel):
    """Carrier verdict on a package before purchase."""
    validated: bool
    message: Optional[str] = None
    errors: list[str] = Field(default_factory=list)


# ===================
# SHIPMENT SCHEMAS
# ===================

class ShipmentUpdate(BaseSchema):
    """Status, category and cost edits."""

    status: Optional[ShipmentStatus] = None
    shipment_category: Optional[ShipmentCategory] = None
    category_notes: Optional[str] = None
    shipping_cost: Optional[float] = Field(None, ge=0)


class ShipmentResponse(BaseSchema, TimestampMixin):
    """Shipment as stored."""

    id: str
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    tracking_number: str
    carrier: Carrier = Carrier.FEDEX
    service_type: Optional[str] = None
    status: ShipmentStatus = ShipmentStatus.LABEL_CREATED
    ship_date: Optional[date] = None
    estimated_delivery: Optional[date] = None
    weight: Optional[float] = None
    dimensions: Optional[Dimensions] = None
    box_type: Optional[str] = None
    label_url: Optional[str] = None
    label_format: Optional[str] = None
    customer_name: Optional[str] = None
    destination_address: Optional[Address] = None
    is_international: bool = False
    shipping_cost: Optional[float] = None
    shipment_category: ShipmentCategory = ShipmentCategory.ORDER
    category_notes: Optional[str] = None
    shipped_by: Optional[str] = None
    needs_reconciliation: bool = False
    reconciliation_note: Optional[str] = None

    @computed_field
    @property
    def tracking_url(self) -> str:
        """Public carrier tracking page."""
        return TRACKING_URLS[self.carrier].format(self.tracking_number)


class CreateLabelResponse(BaseModel):
    """Purchased label and the shipment recorded for it."""
    tracking_number: str
    label_url: str
    shipment: ShipmentResponse


class ShipmentListResponse(BaseModel):
    """Filtered shipments with their combined cost."""
    data: list[ShipmentResponse]
    total: int
    total_cost: float
