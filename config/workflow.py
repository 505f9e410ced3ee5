"""
Workflow constants for production scheduling, inventory and Magento sync.

Kept separate from environment settings: these are business rules, not
deployment configuration.
"""

# =============================================================================
# PRODUCTION SCHEDULING
# =============================================================================

# Auto-schedule estimate: half an hour of production per unit ordered
HOURS_PER_ITEM = 0.5

# Minimum estimate for any auto-scheduled task
MIN_TASK_HOURS = 1.0

# One scheduled production day; auto-schedule advances its cursor by
# ceil(estimated_hours / HOURS_PER_WORKDAY) days per task
HOURS_PER_WORKDAY = 8

# Workstation used when none are configured
DEFAULT_WORKSTATION = "Main Production"

# Capacity assumed for a workstation without an explicit value
DEFAULT_CAPACITY_HOURS_PER_DAY = 8.0

# Trailing window for completion history and forward forecast
FORECAST_WINDOW_DAYS = 7


# =============================================================================
# INVENTORY
# =============================================================================

# Products at or below this quantity count as low stock
DEFAULT_LOW_STOCK_THRESHOLD = 10

# Stock adjustment history page size
ADJUSTMENT_HISTORY_LIMIT = 50


# =============================================================================
# SHIPMENTS
# =============================================================================

# Default trailing window for the shipments list
SHIPMENT_LIST_DAYS = 30

SHIPMENT_FETCH_LIMIT = 200


# =============================================================================
# MAGENTO
# =============================================================================

# Internal order status -> Magento order status
MAGENTO_STATUS_MAP = {
    "pending": "processing",
    "production": "processing",
    "staging": "processing",
    "processing": "processing",
    "shipped": "complete",
    "delivered": "complete",
    "hold": "holded",
    "cancelled": "canceled",
}

# Magento extension_attributes.priority -> internal priority
MAGENTO_PRIORITY_MAP = {
    "urgent": "rush",
    "rush": "rush",
    "high": "rush",
    "priority": "priority",
    "medium": "priority",
}

# Orders shipping here are domestic
HOME_COUNTRY = "US"


def magento_status_for(status: str) -> str:
    """Map an internal order status to Magento's vocabulary."""
    return MAGENTO_STATUS_MAP.get(status, "processing")


# =============================================================================
# PRODUCTION TASKS
# =============================================================================

# Tasks loaded for the production page, KPIs and forecast
TASK_FETCH_LIMIT = 200


# =============================================================================
# DASHBOARD
# =============================================================================

# Most recent orders and shipments considered by the dashboard
DASHBOARD_FETCH_LIMIT = 50

# Rows shown in each dashboard list
DASHBOARD_LIST_SIZE = 5
