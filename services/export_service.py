"""
Export service: Excel workbooks for the shipping log, the order report
and the daily production list.
"""

from datetime import date
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Border, Side, PatternFill
import structlog

from models.shipment import ShipmentResponse
from models.production import ProductionListItem
from models.reports import ReportResponse

logger = structlog.get_logger(__name__)

SHIPMENT_COLUMNS = [
    ("Order Number", 16),
    ("Tracking Number", 22),
    ("Carrier", 10),
    ("Service", 22),
    ("Status", 16),
    ("Customer", 28),
    ("Ship Date", 12),
    ("Cost", 10),
]

PRODUCTION_LIST_COLUMNS = [
    ("Order #", 14),
    ("Item Name", 40),
    ("Qty", 8),
    ("Special Options", 30),
    ("Order Options", 30),
]


def _write_header(ws, columns: list[tuple[str, int]], row: int = 1) -> None:
    """Bold, shaded header row with column widths."""
    bold_font = Font(bold=True)
    fill = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
    border = Border(bottom=Side(style="thin", color="000000"))

    for index, (title, width) in enumerate(columns, start=1):
        cell = ws.cell(row=row, column=index, value=title)
        cell.font = bold_font
        cell.fill = fill
        cell.border = border
        ws.column_dimensions[cell.column_letter].width = width


def _to_bytes(wb: Workbook) -> BytesIO:
    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


class ExportService:
    """Service for generating Excel exports."""

    def generate_shipments_excel(self, shipments: list[ShipmentResponse]) -> BytesIO:
        """
        Shipping log, one row per shipment, with a cost total.

        Args:
            shipments: Already filtered shipments

        Returns:
            BytesIO containing the Excel file
        """
        logger.info("generating_shipments_excel", count=len(shipments))

        wb = Workbook()
        ws = wb.active
        ws.title = "Shipments"

        _write_header(ws, SHIPMENT_COLUMNS)

        row = 2
        for s in shipments:
            ws.cell(row=row, column=1, value=s.order_number or "")
            ws.cell(row=row, column=2, value=s.tracking_number)
            ws.cell(row=row, column=3, value=s.carrier.value.upper())
            ws.cell(row=row, column=4, value=s.service_type or "")
            ws.cell(row=row, column=5, value=s.status.value)
            ws.cell(row=row, column=6, value=s.customer_name or "")
            ws.cell(row=row, column=7, value=s.ship_date.isoformat() if s.ship_date else "")
            cost = ws.cell(row=row, column=8, value=s.shipping_cost or 0)
            cost.number_format = "$#,##0.00"
            row += 1

        row += 1
        ws.cell(row=row, column=7, value="TOTAL").font = Font(bold=True)
        total = ws.cell(row=row, column=8, value=round(sum(s.shipping_cost or 0 for s in shipments), 2))
        total.font = Font(bold=True)
        total.number_format = "$#,##0.00"

        return _to_bytes(wb)

    def generate_report_excel(self, report: ReportResponse) -> BytesIO:
        """
        Order report workbook.

        Creates:
        - Summary sheet with the KPIs and both breakdowns
        - Daily sheet with orders and shipments per day
        """
        logger.info(
            "generating_report_excel",
            date_from=str(report.date_from),
            date_to=str(report.date_to),
            days=len(report.daily)
        )

        bold_font = Font(bold=True)
        title_font = Font(bold=True, size=14)

        wb = Workbook()
        ws = wb.active
        ws.title = "Summary"
        ws.column_dimensions["A"].width = 28
        ws.column_dimensions["B"].width = 14

        ws["A1"] = "Fulfillment Report"
        ws["A1"].font = title_font
        ws["A2"] = f"{report.date_from.isoformat()} to {report.date_to.isoformat()}"

        kpis = [
            ("Orders per day", report.kpis.orders_per_day),
            ("Avg fulfillment (days)", report.kpis.avg_fulfillment_days),
            ("Total items", report.kpis.total_items),
            ("Total orders", report.kpis.total_orders),
            ("Total shipments", report.kpis.total_shipments),
        ]

        row = 4
        for label, value in kpis:
            ws.cell(row=row, column=1, value=label).font = bold_font
            ws.cell(row=row, column=2, value=value)
            row += 1

        for heading, entries in (
            ("Status", report.status_breakdown),
            ("Priority", report.priority_breakdown),
        ):
            row += 1
            ws.cell(row=row, column=1, value=heading).font = bold_font
            ws.cell(row=row, column=2, value="Orders").font = bold_font
            row += 1
            for entry in entries:
                ws.cell(row=row, column=1, value=entry.name)
                ws.cell(row=row, column=2, value=entry.value)
                row += 1

        daily = wb.create_sheet("Daily")
        _write_header(daily, [("Date", 14), ("Orders", 10), ("Shipments", 12)])
        for index, day in enumerate(report.daily, start=2):
            daily.cell(row=index, column=1, value=day.date.isoformat())
            daily.cell(row=index, column=2, value=day.orders)
            daily.cell(row=index, column=3, value=day.shipments)

        return _to_bytes(wb)

    def generate_production_list_excel(
        self,
        items: list[ProductionListItem],
        list_date: Optional[date] = None
    ) -> BytesIO:
        """Daily production list, one row per order line."""
        list_date = list_date or date.today()

        logger.info("generating_production_list_excel", lines=len(items))

        wb = Workbook()
        ws = wb.active
        ws.title = "Production List"

        ws["A1"] = f"Production List - {list_date.strftime('%m/%d/%Y')}"
        ws["A1"].font = Font(bold=True, size=14)

        _write_header(ws, PRODUCTION_LIST_COLUMNS, row=3)

        row = 4
        for item in items:
            ws.cell(row=row, column=1, value=item.order_number)
            ws.cell(row=row, column=2, value=item.item)
            ws.cell(row=row, column=3, value=item.quantity)
            ws.cell(row=row, column=4, value=item.special_options or "")
            ws.cell(row=row, column=5, value=item.order_options or "")
            row += 1

        row += 1
        ws.cell(row=row, column=1, value=f"Total items: {sum(i.quantity for i in items)}").font = Font(bold=True)

        return _to_bytes(wb)


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
