"""
Magento sync service.

Imports new orders, syncs the product catalog and pushes order status
changes back to the store when two-way sync is on.
"""

from typing import Optional
import structlog

from config import settings
from config.workflow import MAGENTO_PRIORITY_MAP, HOME_COUNTRY, magento_status_for
from models.order import OrderStatus, OrderSource, Priority
from models.magento import (
    OrderImportResult,
    ProductSyncResult,
    OrderPushResult,
    ConnectionTestResult,
)
from models.product import ProductStatus
from integrations.magento import MagentoClient
from services.entity_store import EntityStore
from services.settings_service import get_settings_service
from exceptions import MagentoError
from utils.time_utils import utcnow, as_utc

logger = structlog.get_logger(__name__)

MAGENTO_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


# ===================
# MAPPING
# ===================

def map_priority(magento_priority: Optional[str]) -> Priority:
    """urgent/rush/high -> rush, priority/medium -> priority, else normal."""
    if not magento_priority:
        return Priority.NORMAL
    return Priority(MAGENTO_PRIORITY_MAP.get(str(magento_priority).lower(), Priority.NORMAL.value))


def map_magento_order(magento_order: dict) -> dict:
    """
    Convert a Magento order into an order record.

    The ship-to address comes from the first shipping assignment.
    """
    extension = magento_order.get("extension_attributes") or {}
    assignments = extension.get("shipping_assignments") or [{}]
    address = ((assignments[0] or {}).get("shipping") or {}).get("address") or {}
    street = address.get("street") or []

    items = []
    total_weight = 0.0
    for item in magento_order.get("items") or []:
        weight = float(item.get("weight") or 0)
        quantity = int(float(item.get("qty_ordered") or 0))
        total_weight += weight * quantity
        items.append({
            "sku": item.get("sku"),
            "name": item.get("name") or "",
            "quantity": quantity,
            "weight": weight,
        })

    country = address.get("country_id") or HOME_COUNTRY
    first = magento_order.get("customer_firstname") or ""
    last = magento_order.get("customer_lastname") or ""

    return {
        "order_number": magento_order.get("increment_id"),
        "source": OrderSource.MAGENTO.value,
        "status": OrderStatus.PENDING.value,
        "priority": map_priority(extension.get("priority")).value,
        "customer_name": f"{first} {last}".strip(),
        "customer_email": magento_order.get("customer_email"),
        "shipping_address": {
            "name": " ".join(p for p in (address.get("firstname"), address.get("lastname")) if p) or None,
            "street1": street[0] if len(street) > 0 else "",
            "street2": street[1] if len(street) > 1 else "",
            "city": address.get("city") or "",
            "state": address.get("region") or "",
            "zip": address.get("postcode") or "",
            "country": country,
            "phone": address.get("telephone") or "",
        },
        "items": items,
        "total_weight": round(total_weight, 2),
        "order_value": float(magento_order.get("grand_total") or 0),
        "is_international": country.upper() != HOME_COUNTRY,
    }


def map_magento_product(magento_product: dict) -> dict:
    """Convert a Magento product into product fields."""
    extension = magento_product.get("extension_attributes") or {}
    stock_item = extension.get("stock_item") or {}
    description = next(
        (
            attr.get("value")
            for attr in magento_product.get("custom_attributes") or []
            if attr.get("attribute_code") == "description"
        ),
        ""
    )

    return {
        "sku": magento_product.get("sku"),
        "name": magento_product.get("name") or magento_product.get("sku"),
        "description": description,
        "price": float(magento_product.get("price") or 0),
        "stock_quantity": float(stock_item.get("qty") or 0),
        "weight": float(magento_product.get("weight") or 0),
        "status": (
            ProductStatus.ENABLED.value
            if magento_product.get("status") == 1
            else ProductStatus.DISABLED.value
        ),
        "magento_id": str(magento_product.get("id")) if magento_product.get("id") is not None else None,
        "last_synced": utcnow().isoformat(),
    }


class MagentoService:
    """
    Magento sync business logic.

    The client is built per call so credential changes apply without a
    restart.
    """

    def __init__(self, client_factory=MagentoClient.from_settings):
        self.orders = EntityStore("orders")
        self.products = EntityStore("products")
        self.shipments = EntityStore("shipments")
        self.client_factory = client_factory

    def test_connection(self) -> ConnectionTestResult:
        client = self.client_factory()
        views = client.test_connection()
        return ConnectionTestResult(connected=True, store_url=client.store_url, store_views=views)

    # ===================
    # ORDER IMPORT
    # ===================

    def import_orders(self, incremental: bool = True) -> OrderImportResult:
        """
        Pull orders awaiting fulfillment and create the ones not seen before.

        Orders are matched on order_number. New orders start pending.
        """
        client = self.client_factory()
        client.test_connection()

        max_pages = (
            settings.magento_max_pages_incremental if incremental
            else settings.magento_max_pages_full
        )

        logger.info("magento_order_import_started", incremental=incremental, max_pages=max_pages)

        magento_orders, pages = client.fetch_orders(
            status=settings.magento_import_status,
            created_since=settings.magento_import_since,
            max_pages=max_pages,
        )

        numbers = [o.get("increment_id") for o in magento_orders if o.get("increment_id")]
        existing = self.orders.filter({"order_number": numbers}) if numbers else []
        seen = {row["order_number"] for row in existing}

        new_orders = []
        for magento_order in magento_orders:
            number = magento_order.get("increment_id")
            if not number or number in seen:
                continue
            seen.add(number)
            new_orders.append(map_magento_order(magento_order))

        if new_orders:
            self.orders.bulk_create(new_orders)

        get_settings_service().stamp_sync("last_order_sync")

        logger.info(
            "magento_order_import_completed",
            fetched=len(magento_orders),
            created=len(new_orders),
            pages=pages
        )

        return OrderImportResult(
            fetched=len(magento_orders),
            created=len(new_orders),
            skipped=len(magento_orders) - len(new_orders),
            pages=pages,
            incremental=incremental,
            order_numbers=[o["order_number"] for o in new_orders],
        )

    # ===================
    # PRODUCT SYNC
    # ===================

    def sync_products(self, incremental: bool = True) -> ProductSyncResult:
        """
        Create or update products by SKU.

        Incremental runs only fetch products updated since the last sync.
        """
        client = self.client_factory()
        client.test_connection()

        updated_since = None
        if incremental:
            last = as_utc(get_settings_service().get_shipping_settings().last_product_sync)
            if last:
                updated_since = last.strftime(MAGENTO_TIME_FORMAT)

        logger.info("magento_product_sync_started", incremental=incremental, updated_since=updated_since)

        magento_products = client.fetch_products(
            updated_since=updated_since,
            max_pages=settings.magento_max_pages_full,
        )

        skus = [p.get("sku") for p in magento_products if p.get("sku")]
        existing = self.products.filter({"sku": skus}) if skus else []
        by_sku = {row["sku"]: row for row in existing}

        created = []
        updated = 0
        for magento_product in magento_products:
            if not magento_product.get("sku"):
                continue
            data = map_magento_product(magento_product)
            current = by_sku.get(data["sku"])
            if current:
                self.products.update(current["id"], data)
                updated += 1
            else:
                created.append(data)

        if created:
            self.products.bulk_create(created)

        get_settings_service().stamp_sync("last_product_sync")

        logger.info(
            "magento_product_sync_completed",
            fetched=len(magento_products),
            created=len(created),
            updated=updated
        )

        return ProductSyncResult(
            fetched=len(magento_products),
            created=len(created),
            updated=updated,
            incremental=bool(updated_since),
        )

    # ===================
    # STATUS PUSH
    # ===================

    def push_order_status(
        self,
        order: dict,
        old_status: Optional[str],
        force: bool = False
    ) -> OrderPushResult:
        """
        Mirror an order's status change into Magento.

        Skips non-Magento orders, unchanged statuses (unless force) and
        stores without two-way sync. Tracking numbers of the order's
        shipments ride along. If the order update is rejected the status is
        posted as an order comment instead.

        Raises:
            MagentoError: Order not found in Magento, or both writes rejected
        """
        order_number = order.get("order_number") or ""
        status = order.get("status")

        def skipped(reason: str) -> OrderPushResult:
            logger.debug("magento_push_skipped", order_number=order_number, reason=reason)
            return OrderPushResult(order_number=order_number, pushed=False, skipped_reason=reason)

        if order.get("source") != OrderSource.MAGENTO.value:
            return skipped("Not a Magento order")
        if not force and (not old_status or old_status == status):
            return skipped("No relevant changes to sync")
        if not get_settings_service().get_shipping_settings().magento_two_way_sync:
            return skipped("Two-way sync is disabled")

        client = self.client_factory()
        magento_status = magento_status_for(status)
        updates: dict = {"status": magento_status}

        shipments = self.shipments.filter({"order_id": order["id"]}) if order.get("id") else []
        tracking = [
            {
                "track_number": s.get("tracking_number"),
                "title": (s.get("carrier") or "").upper(),
                "carrier_code": "fedex" if s.get("carrier") == "fedex" else "usps",
            }
            for s in shipments
            if s.get("tracking_number")
        ]
        if tracking:
            updates["extension_attributes"] = {
                "shipping_assignments": [{"shipping": {"tracking": tracking}}]
            }

        magento_order = client.find_order(order_number)
        if not magento_order:
            raise MagentoError(
                f"Order {order_number} not found in Magento",
                details={"order_number": order_number}
            )
        entity_id = magento_order["entity_id"]

        via_comment = False
        try:
            client.update_order(entity_id, updates)
        except MagentoError as e:
            logger.warning(
                "magento_order_update_rejected",
                order_number=order_number,
                error=str(e)
            )
            client.add_order_comment(
                entity_id,
                comment=f"Status updated to: {status}",
                status=magento_status,
            )
            via_comment = True

        logger.info(
            "magento_order_status_pushed",
            order_number=order_number,
            magento_order_id=entity_id,
            magento_status=magento_status,
            via_comment=via_comment
        )

        return OrderPushResult(
            order_number=order_number,
            pushed=True,
            magento_order_id=entity_id,
            magento_status=magento_status,
            via_comment=via_comment,
            updates_applied=list(updates.keys()),
        )


# Singleton instance
_magento_service: Optional[MagentoService] = None


def get_magento_service() -> MagentoService:
    """Get or create MagentoService instance."""
    global _magento_service
    if _magento_service is None:
        _magento_service = MagentoService()
    return _magento_service
