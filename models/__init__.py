"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
    Address,
    MessageResponse,
)
from models.order import (
    OrderStatus,
    Priority,
    OrderSource,
    PRIORITY_RANK,
    ORDER_TRANSITIONS,
    priority_rank,
    is_valid_order_transition,
    compute_total_weight,
    is_international_address,
    OrderItem,
    OrderCreate,
    OrderUpdate,
    OrderResponse,
    OrderStatusUpdate,
    BulkStatusUpdate,
    PackingListResponse,
)
from models.shipment import (
    ShipmentStatus,
    Carrier,
    ShipmentCategory,
    CreateLabelRequest,
    PackageRequest,
    ShipmentUpdate,
    ShipmentResponse,
    ValidateShipmentResponse,
)
from models.product import (
    ProductStatus,
    AdjustmentType,
    StockFilter,
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    StockAdjustmentCreate,
    StockAdjustmentResponse,
    InventoryStats,
)
from models.production import (
    TaskStatus,
    TASK_TRANSITIONS,
    is_valid_task_transition,
    ProductionTaskCreate,
    ProductionTaskResponse,
    WorkStationCreate,
    WorkStationResponse,
    ProductionForecast,
    ProductionKPIs,
)
from models.settings import (
    ShippingSettingsUpdate,
    ShippingSettingsResponse,
    BoxPresetCreate,
    BoxPresetResponse,
    PackingConfigCreate,
    PackingConfigResponse,
    ProductShorthandCreate,
    ProductShorthandResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    "Address",
    "MessageResponse",
    # Orders
    "OrderStatus",
    "Priority",
    "OrderSource",
    "PRIORITY_RANK",
    "ORDER_TRANSITIONS",
    "priority_rank",
    "is_valid_order_transition",
    "compute_total_weight",
    "is_international_address",
    "OrderItem",
    "OrderCreate",
    "OrderUpdate",
    "OrderResponse",
    "OrderStatusUpdate",
    "BulkStatusUpdate",
    "PackingListResponse",
    # Shipments
    "ShipmentStatus",
    "Carrier",
    "ShipmentCategory",
    "CreateLabelRequest",
    "PackageRequest",
    "ShipmentUpdate",
    "ShipmentResponse",
    "ValidateShipmentResponse",
    # Products
    "ProductStatus",
    "AdjustmentType",
    "StockFilter",
    "ProductCreate",
    "ProductUpdate",
    "ProductResponse",
    "StockAdjustmentCreate",
    "StockAdjustmentResponse",
    "InventoryStats",
    # Production
    "TaskStatus",
    "TASK_TRANSITIONS",
    "is_valid_task_transition",
    "ProductionTaskCreate",
    "ProductionTaskResponse",
    "WorkStationCreate",
    "WorkStationResponse",
    "ProductionForecast",
    "ProductionKPIs",
    # Settings
    "ShippingSettingsUpdate",
    "ShippingSettingsResponse",
    "BoxPresetCreate",
    "BoxPresetResponse",
    "PackingConfigCreate",
    "PackingConfigResponse",
    "ProductShorthandCreate",
    "ProductShorthandResponse",
]
