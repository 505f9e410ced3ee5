"""
Production API routes.

Tasks and their state machine, auto-scheduling, workstations, KPIs,
the forecast and the daily production list.
"""

from fastapi import APIRouter, Query, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Optional
import structlog

from models.base import MessageResponse
from models.production import (
    TaskStatus,
    ProductionTaskCreate,
    ProductionTaskResponse,
    BlockTaskRequest,
    AutoScheduleResponse,
    WorkStationCreate,
    WorkStationUpdate,
    WorkStationResponse,
    WorkStationUtilization,
    ProductionKPIs,
    ProductionForecast,
    ProductionListItem,
    ProductionListRequest,
)
from services.production_service import get_production_service
from services.forecast_service import get_forecast_service
from services.export_service import get_export_service
from routes.deps import get_current_user
from exceptions import AppError
from utils.time_utils import utcnow

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/production", tags=["Production"])

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
# TASKS
# ===================

@router.get("/tasks", response_model=list[ProductionTaskResponse])
async def list_tasks(
    status: Optional[TaskStatus] = Query(None, description="Filter by status"),
    workstation: Optional[str] = Query(None, description="Filter by workstation name")
):
    """Tasks by scheduled start, latest first."""
    try:
        service = get_production_service()
        return service.get_tasks(status=status, workstation=workstation)

    except Exception as e:
        return handle_error(e)


@router.post("/tasks", response_model=ProductionTaskResponse, status_code=201)
async def create_task(data: ProductionTaskCreate):
    """Schedule a task by hand. It ends estimated_hours after it starts."""
    try:
        service = get_production_service()
        return service.create_task(data)

    except Exception as e:
        return handle_error(e)


@router.get("/tasks/{task_id}", response_model=ProductionTaskResponse)
async def get_task(task_id: str):
    try:
        service = get_production_service()
        return service.get_task(task_id)

    except Exception as e:
        return handle_error(e)


@router.post("/tasks/{task_id}/start", response_model=ProductionTaskResponse)
async def start_task(task_id: str):
    try:
        service = get_production_service()
        return service.start_task(task_id)

    except Exception as e:
        return handle_error(e)


@router.post("/tasks/{task_id}/complete", response_model=ProductionTaskResponse)
async def complete_task(task_id: str):
    """Completes the task and records whole hours worked."""
    try:
        service = get_production_service()
        return service.complete_task(task_id)

    except Exception as e:
        return handle_error(e)


@router.post("/tasks/{task_id}/block", response_model=ProductionTaskResponse)
async def block_task(task_id: str, data: BlockTaskRequest):
    """
    Block an in-progress task.

    Raises:
        422: Empty reason (nothing is written)
    """
    try:
        service = get_production_service()
        return service.block_task(task_id, data.reason)

    except Exception as e:
        return handle_error(e)


@router.post("/tasks/{task_id}/resume", response_model=ProductionTaskResponse)
async def resume_task(task_id: str):
    try:
        service = get_production_service()
        return service.resume_task(task_id)

    except Exception as e:
        return handle_error(e)


@router.post("/auto-schedule", response_model=AutoScheduleResponse)
async def auto_schedule():
    """Create tasks for every production order that has none."""
    try:
        service = get_production_service()
        return service.auto_schedule()

    except Exception as e:
        return handle_error(e)


# ===================
# METRICS
# ===================

@router.get("/kpis", response_model=ProductionKPIs)
async def get_kpis():
    try:
        service = get_production_service()
        return service.get_kpis()

    except Exception as e:
        return handle_error(e)


@router.get("/forecast", response_model=ProductionForecast)
async def get_forecast():
    """Trailing week of completions, next week's outlook, capacity and accuracy."""
    try:
        service = get_forecast_service()
        return service.get_forecast()

    except Exception as e:
        return handle_error(e)


@router.get("/utilization", response_model=list[WorkStationUtilization])
async def get_utilization():
    try:
        service = get_production_service()
        return service.get_utilization()

    except Exception as e:
        return handle_error(e)


# ===================
# WORKSTATIONS
# ===================

@router.get("/workstations", response_model=list[WorkStationResponse])
async def list_workstations(active_only: bool = Query(False)):
    try:
        service = get_production_service()
        return service.list_workstations(active_only=active_only)

    except Exception as e:
        return handle_error(e)


@router.post("/workstations", response_model=WorkStationResponse, status_code=201)
async def create_workstation(data: WorkStationCreate):
    try:
        service = get_production_service()
        return service.create_workstation(data)

    except Exception as e:
        return handle_error(e)


@router.patch("/workstations/{station_id}", response_model=WorkStationResponse)
async def update_workstation(station_id: str, data: WorkStationUpdate):
    try:
        service = get_production_service()
        return service.update_workstation(station_id, data)

    except Exception as e:
        return handle_error(e)


@router.delete("/workstations/{station_id}", response_model=MessageResponse)
async def delete_workstation(station_id: str):
    try:
        service = get_production_service()
        service.delete_workstation(station_id)
        return MessageResponse(message=f"Workstation {station_id} deleted")

    except Exception as e:
        return handle_error(e)


# ===================
# PRODUCTION LIST
# ===================

@router.get("/list", response_model=list[ProductionListItem])
async def get_production_list(
    order_ids: Optional[list[str]] = Query(None, description="Limit to these orders")
):
    """One line per item of the orders in production."""
    try:
        service = get_production_service()
        return service.build_production_list(order_ids)

    except Exception as e:
        return handle_error(e)


@router.get("/list/export")
async def export_production_list(
    order_ids: Optional[list[str]] = Query(None, description="Limit to these orders")
):
    """Download the production list as an Excel workbook."""
    try:
        service = get_production_service()
        items = service.build_production_list(order_ids)

        today = utcnow().date()
        workbook = get_export_service().generate_production_list_excel(items, today)
        filename = f"production-list-{today.isoformat()}.xlsx"

        return StreamingResponse(
            workbook,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except Exception as e:
        return handle_error(e)


@router.post("/list/email", response_model=MessageResponse)
async def email_production_list(data: ProductionListRequest, user: str = Depends(get_current_user)):
    """
    Email the production list to the acting user.

    Raises:
        422: Nothing in production, or SMTP not configured
        502: Delivery failed
    """
    try:
        service = get_production_service()
        lines = service.email_production_list(user, data.order_ids)
        return MessageResponse(message=f"Production list with {lines} lines sent to {user}")

    except Exception as e:
        return handle_error(e)
