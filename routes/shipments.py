"""
Shipment API routes.

Label purchase and validation go to FedEx; everything else reads or edits
the shipment log.
"""

from fastapi import APIRouter, Query, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Optional
import structlog

from config.workflow import SHIPMENT_LIST_DAYS
from models.base import MessageResponse
from models.order import DeleteRequest
from models.shipment import (
    CreateLabelRequest,
    CreateLabelResponse,
    PackageRequest,
    ShipmentUpdate,
    ShipmentResponse,
    ShipmentListResponse,
    ShipmentStatus,
    ShipmentCategory,
    ValidateShipmentResponse,
    Carrier,
)
from services.shipment_service import get_shipment_service
from services.export_service import get_export_service
from routes.deps import get_current_user
from exceptions import AppError
from utils.time_utils import utcnow

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/shipments", tags=["Shipments"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


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

@router.get("", response_model=ShipmentListResponse)
async def list_shipments(
    search: Optional[str] = Query(None, description="Order number, tracking number or customer"),
    carrier: Optional[Carrier] = Query(None, description="Filter by carrier"),
    status: Optional[ShipmentStatus] = Query(None, description="Filter by status"),
    category: Optional[ShipmentCategory] = Query(None, description="Filter by category"),
    days: int = Query(SHIPMENT_LIST_DAYS, ge=0, description="Trailing days; 0 for all")
):
    """
    List recent shipments with the total shipping cost.
    """
    try:
        service = get_shipment_service()
        return service.get_all(
            search=search,
            carrier=carrier,
            status=status,
            category=category.value if category else None,
            days=days
        )

    except Exception as e:
        return handle_error(e)


@router.get("/export")
async def export_shipments(
    search: Optional[str] = Query(None),
    carrier: Optional[Carrier] = Query(None),
    status: Optional[ShipmentStatus] = Query(None),
    category: Optional[ShipmentCategory] = Query(None),
    days: int = Query(SHIPMENT_LIST_DAYS, ge=0)
):
    """Download the filtered shipment log as an Excel workbook."""
    try:
        service = get_shipment_service()
        shipments = service.get_all(
            search=search,
            carrier=carrier,
            status=status,
            category=category.value if category else None,
            days=days
        )

        workbook = get_export_service().generate_shipments_excel(shipments.data)
        filename = f"shipments-{utcnow().date().isoformat()}.xlsx"

        return StreamingResponse(
            workbook,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except Exception as e:
        return handle_error(e)


@router.post("/label", response_model=CreateLabelResponse, status_code=201)
async def create_label(data: CreateLabelRequest, user: str = Depends(get_current_user)):
    """
    Buy a FedEx label, record the shipment and move the order to processing.

    Raises:
        404: Order not found
        422: FedEx not configured or no ship-from address
        502: FedEx rejected the request
    """
    try:
        service = get_shipment_service()
        return service.create_label(data, actor=user)

    except Exception as e:
        return handle_error(e)


@router.post("/validate", response_model=ValidateShipmentResponse)
async def validate_shipment(data: PackageRequest):
    """
    Check a package with FedEx before buying a label.

    A carrier rejection is a 200 with validated=false.
    """
    try:
        service = get_shipment_service()
        return service.validate_shipment(data)

    except Exception as e:
        return handle_error(e)


@router.get("/order/{order_id}", response_model=list[ShipmentResponse])
async def get_order_shipments(order_id: str):
    try:
        service = get_shipment_service()
        return service.get_by_order(order_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{shipment_id}", response_model=ShipmentResponse)
async def get_shipment(shipment_id: str):
    """
    Get a single shipment.

    Raises:
        404: Shipment not found
    """
    try:
        service = get_shipment_service()
        return service.get_by_id(shipment_id)

    except Exception as e:
        return handle_error(e)


@router.patch("/{shipment_id}", response_model=ShipmentResponse)
async def update_shipment(shipment_id: str, data: ShipmentUpdate):
    try:
        service = get_shipment_service()
        return service.update(shipment_id, data)

    except Exception as e:
        return handle_error(e)


@router.delete("/{shipment_id}", response_model=MessageResponse)
async def delete_shipment(
    shipment_id: str,
    data: DeleteRequest,
    user: str = Depends(get_current_user)
):
    """
    Delete a shipment record. The label is not voided with FedEx.

    Raises:
        403: Wrong delete password
        404: Shipment not found
    """
    try:
        service = get_shipment_service()
        service.delete(shipment_id, data.password)

        logger.info("shipment_delete_requested", shipment_id=shipment_id, user=user)

        return MessageResponse(message=f"Shipment {shipment_id} deleted")

    except Exception as e:
        return handle_error(e)
