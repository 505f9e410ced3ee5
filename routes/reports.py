"""
Dashboard, report and insight API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, StreamingResponse
from datetime import date
import structlog

from models.reports import (
    DashboardStats,
    ReportResponse,
    PrioritySuggestion,
    ProductionInsights,
    InsightRequest,
    QuestionRequest,
    QuestionAnswer,
)
from services.report_service import get_report_service
from services.insight_service import get_insight_service
from services.export_service import get_export_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Reports"])

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
# DASHBOARD & REPORTS
# ===================

@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard():
    """Pending and urgent order counts, today's shipments and spend."""
    try:
        service = get_report_service()
        return service.get_dashboard()

    except Exception as e:
        return handle_error(e)


@router.get("/reports", response_model=ReportResponse)
async def get_report(
    date_from: date = Query(..., description="First day, inclusive"),
    date_to: date = Query(..., description="Last day, inclusive")
):
    """KPIs, daily volumes and breakdowns for orders created in the range."""
    try:
        service = get_report_service()
        return service.get_report(date_from, date_to)

    except Exception as e:
        return handle_error(e)


@router.get("/reports/export")
async def export_report(
    date_from: date = Query(...),
    date_to: date = Query(...)
):
    """Download the report as an Excel workbook."""
    try:
        report = get_report_service().get_report(date_from, date_to)
        workbook = get_export_service().generate_report_excel(report)
        filename = f"report-{date_from.isoformat()}-{date_to.isoformat()}.xlsx"

        return StreamingResponse(
            workbook,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except Exception as e:
        return handle_error(e)


# ===================
# INSIGHTS
# ===================

@router.post("/insights/priority/{order_id}", response_model=PrioritySuggestion)
async def suggest_priority(order_id: str):
    """
    LLM priority suggestion for an order.

    Advisory only: apply it with PATCH /api/orders/{order_id}/priority.
    """
    try:
        service = get_insight_service()
        return service.suggest_priority(order_id)

    except Exception as e:
        return handle_error(e)


@router.post("/insights/production", response_model=ProductionInsights)
async def production_insights(data: InsightRequest):
    """Metrics for the range plus an LLM assessment of them."""
    try:
        service = get_insight_service()
        return service.production_insights(data.date_from, data.date_to)

    except Exception as e:
        return handle_error(e)


@router.post("/insights/ask", response_model=QuestionAnswer)
async def ask_question(data: QuestionRequest):
    try:
        service = get_insight_service()
        return service.ask(data.question)

    except Exception as e:
        return handle_error(e)
