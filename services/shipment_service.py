"""
Shipment service: label purchase, validation and the shipment log.

Label creation runs as a short saga:
1. Check FedEx credentials, the ship-from address and the order
2. Buy the label
3. Record the shipment
4. Move the order to processing

Nothing before step 2 touches FedEx. If step 4 fails the shipment is
flagged for reconciliation and the error is re-raised.
"""

from typing import Optional, Callable
from datetime import timedelta
import structlog

from config import settings
from config.workflow import SHIPMENT_LIST_DAYS, SHIPMENT_FETCH_LIMIT, HOME_COUNTRY
from models.base import Address
from models.order import OrderStatus
from models.shipment import (
    CreateLabelRequest,
    CreateLabelResponse,
    PackageRequest,
    ShipmentUpdate,
    ShipmentResponse,
    ShipmentListResponse,
    ShipmentStatus,
    ValidateShipmentResponse,
    Carrier,
)
from integrations.fedex import FedExClient
from services.entity_store import EntityStore
from services.order_service import get_order_service
from services.settings_service import get_settings_service
from exceptions import (
    OrderNotFoundError,
    ShipmentNotFoundError,
    InvalidDeletePasswordError,
    ValidationError,
)
from utils.time_utils import utcnow, as_utc

logger = structlog.get_logger(__name__)


class ShipmentService:
    """
    Shipment business logic.

    The FedEx client is built per call through client_factory, which
    raises before any request when credentials are missing.
    """

    def __init__(self, client_factory: Callable[[], FedExClient] = FedExClient.from_settings):
        self.shipments = EntityStore("shipments")
        self.orders = EntityStore("orders")
        self.client_factory = client_factory

    def _get_row(self, shipment_id: str) -> dict:
        row = self.shipments.get(shipment_id)
        if not row:
            raise ShipmentNotFoundError(shipment_id)
        return row

    def _ship_from(self, package: PackageRequest) -> Address:
        """Explicit ship-from address, else the one in shipping settings."""
        if package.ship_from_address:
            return package.ship_from_address
        return_address = get_settings_service().get_shipping_settings().return_address
        if not return_address:
            raise ValidationError(
                "No ship-from address given and none saved in shipping settings",
                code="SHIP_FROM_REQUIRED"
            )
        return return_address

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        search: Optional[str] = None,
        carrier: Optional[Carrier] = None,
        status: Optional[ShipmentStatus] = None,
        category: Optional[str] = None,
        days: Optional[int] = SHIPMENT_LIST_DAYS
    ) -> ShipmentListResponse:
        """
        Recent shipments, newest first, with the total shipping cost.

        Args:
            search: Case-insensitive match on order number, tracking
                number or customer name
            carrier: fedex or usps
            status: Shipment status
            category: Shipment category
            days: Trailing window on created_date; 0 or None for everything
        """
        rows = self.shipments.list(sort="-created_date", limit=SHIPMENT_FETCH_LIMIT)

        if search:
            needle = search.strip().lower()
            rows = [
                r for r in rows
                if any(
                    needle in (r.get(field) or "").lower()
                    for field in ("order_number", "tracking_number", "customer_name")
                )
            ]

        if carrier:
            rows = [r for r in rows if r.get("carrier") == Carrier(carrier).value]

        if status:
            rows = [r for r in rows if r.get("status") == ShipmentStatus(status).value]

        if category:
            rows = [r for r in rows if r.get("shipment_category") == category]

        if days:
            cutoff = utcnow() - timedelta(days=days)
            rows = [
                r for r in rows
                if (as_utc(r.get("created_date")) or cutoff) >= cutoff
            ]

        shipments = [ShipmentResponse.model_validate(r) for r in rows]
        total_cost = round(sum(s.shipping_cost or 0 for s in shipments), 2)

        logger.debug("shipments_retrieved", count=len(shipments), total_cost=total_cost)

        return ShipmentListResponse(data=shipments, total=len(shipments), total_cost=total_cost)

    def get_by_id(self, shipment_id: str) -> ShipmentResponse:
        """
        Get a single shipment.

        Raises:
            ShipmentNotFoundError: If shipment doesn't exist
        """
        return ShipmentResponse.model_validate(self._get_row(shipment_id))

    def get_by_order(self, order_id: str) -> list[ShipmentResponse]:
        rows = self.shipments.filter({"order_id": order_id}, sort="-created_date")
        return [ShipmentResponse.model_validate(r) for r in rows]

    # ===================
    # WRITE OPERATIONS
    # ===================

    def update(self, shipment_id: str, data: ShipmentUpdate) -> ShipmentResponse:
        """Edit status, category or cost."""
        self._get_row(shipment_id)

        update_data = data.model_dump(mode="json", exclude_unset=True)
        if not update_data:
            return self.get_by_id(shipment_id)

        row = self.shipments.update(shipment_id, update_data)
        if row is None:
            raise ShipmentNotFoundError(shipment_id)

        logger.info("shipment_updated", shipment_id=shipment_id, fields=list(update_data.keys()))

        return ShipmentResponse.model_validate(row)

    def delete(self, shipment_id: str, password: str) -> bool:
        """
        Delete a shipment record behind the shared delete password.

        Does not void the label with the carrier.

        Raises:
            InvalidDeletePasswordError: Wrong password or none configured
            ShipmentNotFoundError: If shipment doesn't exist
        """
        expected = settings.order_delete_password
        if not expected or password != expected:
            logger.warning("shipment_delete_rejected", shipment_id=shipment_id)
            raise InvalidDeletePasswordError("shipment")

        self._get_row(shipment_id)
        self.shipments.delete(shipment_id)

        logger.info("shipment_deleted", shipment_id=shipment_id)

        return True

    # ===================
    # LABELS
    # ===================

    def create_label(self, request: CreateLabelRequest, actor: Optional[str] = None) -> CreateLabelResponse:
        """
        Buy a FedEx label, record the shipment and move the order on.

        The order update is unconditional: whatever status the order is in
        becomes processing.

        Raises:
            IntegrationNotConfiguredError: FedEx credentials missing
            OrderNotFoundError: order_id given but unknown
            FedExError: Label purchase failed
        """
        client = self.client_factory()
        ship_from = self._ship_from(request)

        order = None
        if request.order_id:
            order = self.orders.get(request.order_id)
            if not order:
                raise OrderNotFoundError(request.order_id)

        label = client.create_label(request, ship_from)

        destination = request.ship_to_address
        record = {
            "order_id": request.order_id,
            "order_number": order.get("order_number") if order else None,
            "customer_name": order.get("customer_name") if order else destination.name,
            "tracking_number": label.tracking_number,
            "carrier": Carrier.FEDEX.value,
            "service_type": request.service_type,
            "status": ShipmentStatus.LABEL_CREATED.value,
            "ship_date": utcnow().date().isoformat(),
            "weight": request.weight,
            "dimensions": request.dimensions.model_dump(),
            "box_type": request.box_type or "Custom",
            "label_url": label.label_url,
            "label_format": "pdf",
            "destination_address": destination.model_dump(mode="json"),
            "is_international": (destination.country or HOME_COUNTRY).upper() != HOME_COUNTRY,
            "shipping_cost": request.shipping_cost,
            "shipment_category": request.shipment_category.value,
            "category_notes": request.category_notes,
            "shipped_by": actor,
        }

        try:
            shipment_row = self.shipments.create(record)
        except Exception as e:
            logger.error(
                "shipment_record_failed",
                tracking_number=label.tracking_number,
                order_id=request.order_id,
                error=str(e)
            )
            raise

        logger.info(
            "shipment_created",
            shipment_id=shipment_row.get("id"),
            tracking_number=label.tracking_number,
            order_id=request.order_id,
            actor=actor
        )

        if order:
            try:
                get_order_service().update_status(order["id"], OrderStatus.PROCESSING, actor=actor)
            except Exception as e:
                logger.error(
                    "label_order_update_failed",
                    shipment_id=shipment_row.get("id"),
                    order_id=order["id"],
                    error=str(e)
                )
                try:
                    self.shipments.update(shipment_row["id"], {
                        "needs_reconciliation": True,
                        "reconciliation_note": f"Order status update failed: {e}",
                    })
                except Exception as flag_error:
                    logger.error(
                        "shipment_reconciliation_flag_failed",
                        shipment_id=shipment_row.get("id"),
                        order_id=order["id"],
                        error=str(flag_error)
                    )
                raise e

        return CreateLabelResponse(
            tracking_number=label.tracking_number,
            label_url=label.label_url,
            shipment=ShipmentResponse.model_validate(shipment_row),
        )

    def validate_shipment(self, request: PackageRequest) -> ValidateShipmentResponse:
        """
        Ask FedEx whether the package would be accepted.

        A carrier rejection is a normal result with validated=False.
        """
        client = self.client_factory()
        ship_from = self._ship_from(request)

        result = client.validate(request, ship_from)

        logger.info("shipment_validated", validated=result["validated"])

        return ValidateShipmentResponse(**result)


# Singleton instance
_shipment_service: Optional[ShipmentService] = None


def get_shipment_service() -> ShipmentService:
    """Get or create ShipmentService instance."""
    global _shipment_service
    if _shipment_service is None:
        _shipment_service = ShipmentService()
    return _shipment_service
