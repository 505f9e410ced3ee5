"""
Magento sync result schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional


class OrderImportResult(BaseModel):
    """Outcome of a Magento order import."""
    fetched: int
    created: int
    skipped: int
    pages: int
    incremental: bool
    order_numbers: list[str] = Field(default_factory=list)


class ProductSyncResult(BaseModel):
    """Outcome of a Magento product sync."""
    fetched: int
    created: int
    updated: int
    incremental: bool


class OrderPushResult(BaseModel):
    """Outcome of pushing one order's status to Magento."""
    order_number: str
    pushed: bool
    skipped_reason: Optional[str] = None
    magento_order_id: Optional[int] = None
    magento_status: Optional[str] = None
    via_comment: bool = False
    updates_applied: list[str] = Field(default_factory=list)


class ConnectionTestResult(BaseModel):
    """Reachability of the Magento store."""
    connected: bool
    store_url: str
    store_views: int = 0
