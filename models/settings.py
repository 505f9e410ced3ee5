"""
Shipping settings and reference data schemas.

Covers the single shipping settings record, box presets, packing configs
and product shorthands.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from models.base import BaseSchema, TimestampMixin, Address


SETTINGS_KEY = "main"


# ===================
# SHIPPING SETTINGS
# ===================

class ShippingSettingsUpdate(BaseSchema):
    """
    Save shipping settings.

    All fields optional - only provided fields are written.
    """

    return_address: Optional[Address] = Field(None, description="Ship-from address")
    default_carrier: Optional[str] = None
    default_box: Optional[str] = None
    auto_print_labels: Optional[bool] = None
    default_label_format: Optional[str] = None
    magento_polling_interval: Optional[int] = Field(None, ge=1, description="Minutes")
    send_tracking_emails: Optional[bool] = None
    markup_percentage: Optional[float] = Field(None, ge=0)
    magento_two_way_sync: Optional[bool] = None


class ShippingSettingsResponse(BaseSchema, TimestampMixin):
    """Shipping settings, with defaults when nothing has been saved yet."""

    id: Optional[str] = None
    setting_key: str = SETTINGS_KEY
    return_address: Optional[Address] = None
    default_carrier: str = "cheapest"
    default_box: Optional[str] = None
    auto_print_labels: bool = False
    default_label_format: str = "zpl"
    magento_polling_interval: int = 15
    send_tracking_emails: bool = True
    markup_percentage: float = 0
    magento_two_way_sync: bool = False
    last_order_sync: Optional[datetime] = None
    last_product_sync: Optional[datetime] = None


# ===================
# BOX PRESETS
# ===================

class BoxPresetCreate(BaseSchema):
    """Create a box preset."""

    name: str = Field(..., min_length=1, max_length=100)
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    best_for: Optional[str] = None
    is_active: bool = True
    is_custom: bool = True


class BoxPresetResponse(BaseSchema, TimestampMixin):
    """Box preset as stored."""

    id: str
    name: str
    length: float
    width: float
    height: float
    best_for: Optional[str] = None
    is_active: bool = True
    is_custom: bool = True


# ===================
# PACKING CONFIGS
# ===================

class PackingConfigCreate(BaseSchema):
    """Packing instructions for a SKU."""

    sku: str = Field(..., min_length=1, max_length=100)
    product_name: Optional[str] = None
    components: list[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str) -> str:
        return v.upper()


class PackingConfigResponse(BaseSchema, TimestampMixin):
    """Packing config as stored."""

    id: str
    sku: str
    product_name: Optional[str] = None
    components: list[str] = Field(default_factory=list)
    notes: Optional[str] = None


# ===================
# PRODUCT SHORTHANDS
# ===================

class ProductShorthandCreate(BaseSchema):
    """Short production-floor name for a SKU."""

    sku: str = Field(..., min_length=1, max_length=100)
    shorthand: str = Field(..., min_length=1, max_length=100)
    special_options: Optional[str] = None

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str) -> str:
        return v.upper()


class ProductShorthandUpdate(BaseSchema):
    """Partial shorthand edit."""

    shorthand: Optional[str] = Field(None, min_length=1, max_length=100)
    special_options: Optional[str] = None


class ProductShorthandResponse(BaseSchema, TimestampMixin):
    """Product shorthand as stored."""

    id: str
    sku: str
    shorthand: str
    special_options: Optional[str] = None


class ReferenceDeleted(BaseModel):
    """Acknowledges a deleted reference record."""
    id: str
    deleted: bool = True
